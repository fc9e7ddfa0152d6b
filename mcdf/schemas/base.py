"""
Schema helpers shared by the service layer.
"""

from typing import Any, TypeVar

from pydantic import BaseModel, ValidationError

from mcdf.utils.errors import ValidationFailure

SchemaT = TypeVar("SchemaT", bound=BaseModel)


def validate_input(schema: type[SchemaT], data: SchemaT | dict[str, Any]) -> SchemaT:
    """
    Validate raw input against a schema, raising ValidationFailure on error.

    Already-validated schema instances pass straight through.
    """
    if isinstance(data, schema):
        return data
    try:
        return schema.model_validate(data)
    except ValidationError as e:
        errors = [
            f"{'.'.join(str(p) for p in err['loc']) or 'input'}: {err['msg']}"
            for err in e.errors()
        ]
        raise ValidationFailure(f"Invalid {schema.__name__}", errors=errors) from e

"""MCDF welfare fund: member eligibility, contributions, loans, health claims, cashouts and ledger."""

__version__ = "0.1.0"

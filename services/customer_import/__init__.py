"""
Customer Import Service

Imports customer records from a CSV export into Linear:
- Row validation with Pydantic
- Canonical domain derivation per customer
- Reconciliation against existing Linear customers (create or update)
- Structured JSON logging with structlog
- CLI interface
"""

__version__ = "0.1.0"

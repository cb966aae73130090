"""
Entry point for running the customer import service as a module.

Usage:
    python -m services.customer_import --file customers.csv
"""

from .main import cli_main

if __name__ == "__main__":
    exit(cli_main())

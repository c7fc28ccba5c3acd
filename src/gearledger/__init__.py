"""gearledger - equipment lending ledger for clubs and troops."""

__version__ = "0.1.0"

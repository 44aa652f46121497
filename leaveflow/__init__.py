"""Leave approval workflow and balance ledger service."""

__version__ = "1.0.0"

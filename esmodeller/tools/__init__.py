"""
Operational tools for esmodeller.

- admin_cli: ping, count, document validation, schema printing
"""

from .admin_cli import AdminCLI, main, setup_logging

__all__ = ["AdminCLI", "main", "setup_logging"]

"""Configuration module for COMEX Ledger."""

from comex_ledger.config.logging import configure_logging
from comex_ledger.config.settings import Settings, get_settings

__all__ = ["Settings", "get_settings", "configure_logging"]

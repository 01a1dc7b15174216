"""Configuration module for the agency ledger."""

from agency_ledger.config.logging import configure_logging, get_logger
from agency_ledger.config.settings import Settings, get_settings

__all__ = ["Settings", "get_settings", "configure_logging", "get_logger"]

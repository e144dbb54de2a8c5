"""
Utility helpers for repairdesk (logging configuration).
"""

from repairdesk.utils.logging import JsonFormatter, configure_logging, get_logger

__all__ = ["JsonFormatter", "configure_logging", "get_logger"]

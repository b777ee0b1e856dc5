"""
Core utilities for houze_agents.

This package provides shared functionality such as logging configuration.
"""

from houze_agents.core.logging_config import get_logger, sanitize_for_log, setup_logging

__all__ = ["get_logger", "sanitize_for_log", "setup_logging"]

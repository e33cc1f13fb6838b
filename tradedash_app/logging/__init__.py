"""
Logging configuration and utilities for the TradeDash engine.
"""
from .config import bind_session_context, clear_session_context, configure_logging, get_logger

__all__ = ["bind_session_context", "clear_session_context", "configure_logging", "get_logger"]

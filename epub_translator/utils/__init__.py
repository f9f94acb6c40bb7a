"""Utility helpers"""
from .unified_logger import (
    LogLevel,
    LogType,
    UnifiedLogger,
    get_logger,
    setup_cli_logger,
)

__all__ = ['LogLevel', 'LogType', 'UnifiedLogger', 'get_logger', 'setup_cli_logger']

"""
Structured logging for the Solana Privacy Scanner.

JSON logs with timestamp, event_type, target and scan context.
Use get_logger() in all modules for aggregation-friendly output.
"""

from solana_privacy_scanner.logging.logger import bind_target, get_logger

__all__ = ["bind_target", "get_logger"]

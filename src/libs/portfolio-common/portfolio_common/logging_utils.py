# src/libs/portfolio-common/portfolio_common/logging_utils.py
import logging
import sys
import uuid
from contextvars import ContextVar
from typing import Optional, TextIO

from pythonjsonlogger import jsonlogger

from .config import ENVIRONMENT, LOG_LEVEL, SERVICE_NAME

# Correlation ID for the request or batch currently being processed.
correlation_id_var: ContextVar[str] = ContextVar("correlation_id", default="<not-set>")
# The (portfolio, symbol) scope a ledger operation is working on, e.g. "P1:PETR4".
ledger_scope_var: ContextVar[str] = ContextVar("ledger_scope", default="<not-set>")

class CorrelationIdFilter(logging.Filter):
    """
    A logging filter that injects the current correlation ID and ledger scope
    from their ContextVars into the log record.
    """
    def filter(self, record):
        """
        Attaches the correlation ID and scope to the log record.

        Args:
            record: The log record to be filtered.

        Returns:
            True to allow the record to be processed.
        """
        record.correlation_id = correlation_id_var.get()
        record.ledger_scope = ledger_scope_var.get()
        record.service = SERVICE_NAME
        record.environment = ENVIRONMENT
        return True

def setup_logging(level: str = LOG_LEVEL, stream: Optional[TextIO] = None):
    """
    Configures the root logger for structured JSON logging with correlation-ID
    and scope awareness. All loggers, including library ones, inherit it.
    Records go to `stream`, stdout by default.
    """
    root_logger = logging.getLogger()

    # Clear any existing handlers to prevent duplicate logs
    if root_logger.hasHandlers():
        root_logger.handlers.clear()

    root_logger.setLevel(level)

    handler = logging.StreamHandler(stream or sys.stdout)
    formatter = jsonlogger.JsonFormatter(
        "%(asctime)s %(name)s %(levelname)s %(message)s %(service)s %(environment)s %(correlation_id)s %(ledger_scope)s",
        rename_fields={
            "asctime": "timestamp",
            "levelname": "level",
            "name": "logger"
        }
    )
    handler.setFormatter(formatter)
    handler.addFilter(CorrelationIdFilter())

    root_logger.addHandler(handler)

def generate_correlation_id(prefix: str) -> str:
    """
    Generates a new correlation ID with a caller-specific prefix.
    Args:
        prefix: A short code for the caller (e.g., 'REPLAY').
    Returns:
        A formatted correlation ID string.
    """
    return f"{prefix}:{uuid.uuid4()}"

def format_scope(portfolio_id: str, symbol: str) -> str:
    return f"{portfolio_id}:{symbol}"

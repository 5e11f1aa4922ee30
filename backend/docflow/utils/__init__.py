"""Utility modules"""
from .logger import get_logger, setup_logging, set_correlation_id, get_correlation_id
from .time import utc_now, format_iso, parse_iso, is_sla_breached
from .idgen import generate_id, generate_correlation_id

__all__ = [
    "get_logger",
    "setup_logging",
    "set_correlation_id",
    "get_correlation_id",
    "utc_now",
    "format_iso",
    "parse_iso",
    "is_sla_breached",
    "generate_id",
    "generate_correlation_id",
]

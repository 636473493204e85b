"""Utility modules for mockgen."""

from mockgen.utils.logging import get_logger, setup_logging
from mockgen.utils.urls import is_valid_url, parse_url, query_params

__all__ = ["get_logger", "is_valid_url", "parse_url", "query_params", "setup_logging"]

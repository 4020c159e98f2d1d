# Shared errors, logging and correlation utilities
from .errors import DeepReviewError, ErrorCode, ErrorDetail
from .logging_config import setup_logging, get_logger

__all__ = [
    "DeepReviewError",
    "ErrorCode",
    "ErrorDetail",
    "setup_logging",
    "get_logger",
]

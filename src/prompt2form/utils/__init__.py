"""Utility functions for prompt2form."""

from prompt2form.utils.llm_client import LLMClient
from prompt2form.utils.logging_setup import setup_logging
from prompt2form.utils.retry import RateLimitBackoff, ValidationRetryPolicy

__all__ = ["LLMClient", "setup_logging", "RateLimitBackoff", "ValidationRetryPolicy"]

"""Logging utilities for ordscan."""

from ordscan.utils.logging import log_rss_memory, setup_logging, write_run_log

__all__ = ["log_rss_memory", "setup_logging", "write_run_log"]

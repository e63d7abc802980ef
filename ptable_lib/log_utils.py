#!/usr/bin/env python3
"""
ptable_lib/log_utils.py: Logging setup for the library.
This module contains:
- RichLogFormatter: A custom logging formatter for colorful console output.
- ContextFilter: A logging filter to add contextual data (like the document
  being processed) to log records, and log_context to attach it to the
  root handlers for the duration of a block.
"""

import logging
from contextlib import contextmanager

PROJECT_TOPICS = {
    "ptable": {"geometry", "cluster", "cells", "transfer", "extract", "schema", "config"},
}


def setup_logging(
    level=logging.INFO,
    color_logs=False,
    debug_topics=None,
    log_file: str = None,
    project_name: str = "ptable",
):
    """Configures logging for the application."""
    root_logger = logging.getLogger()
    if root_logger.hasHandlers():
        for h in root_logger.handlers[:]:
            root_logger.removeHandler(h)
            h.close()

    # Console Handler (always enabled)
    console_handler = logging.StreamHandler()
    console_handler.setFormatter(RichLogFormatter(use_color=color_logs))
    root_logger.addHandler(console_handler)
    root_logger.setLevel(level)

    # File Handler (optional)
    if log_file:
        try:
            file_handler = logging.FileHandler(log_file, mode="w")
            file_handler.setFormatter(RichLogFormatter(use_color=False))
            root_logger.addHandler(file_handler)
            logging.getLogger(project_name).info("Logging to file: %s", log_file)
        except IOError as e:
            logging.getLogger(project_name).error("Could not open log file %s: %s", log_file, e)

    # pdfminer is very verbose at DEBUG level
    logging.getLogger("pdfminer").setLevel(logging.WARNING)

    if debug_topics:
        valid_topics = PROJECT_TOPICS.get(project_name, set())
        user_topics = [t.strip() for t in debug_topics.split(",")]
        if "all" in user_topics:
            topics_to_set = valid_topics
        else:
            topics_to_set = {
                full for u in user_topics for full in valid_topics if u and full.startswith(u)
            }
        for topic in topics_to_set:
            logging.getLogger(f"{project_name}.{topic}").setLevel(logging.DEBUG)


class ContextFilter(logging.Filter):
    """
    A logging filter that injects contextual information into log records.
    """

    def __init__(self, context_str=""):
        super().__init__()
        self.context_str = context_str

    def filter(self, record):
        record.context = self.context_str
        return True


@contextmanager
def log_context(context_str: str):
    """Tags every record reaching the root handlers with context_str while active."""
    log_filter = ContextFilter(context_str)
    handlers = logging.getLogger().handlers[:]
    for h in handlers:
        h.addFilter(log_filter)
    try:
        yield log_filter
    finally:
        for h in handlers:
            h.removeFilter(log_filter)


# --- CUSTOM LOGGING FORMATTER ---
class RichLogFormatter(logging.Formatter):
    """A custom logging formatter for colorful and aligned console output.
    Every line of a message is prefixed with the level and the topic (the
    logger name part after the project name), so multi-line messages such as
    the list of unconsumed prevent-bindings stay readable.
    Args:
        use_color (bool): If True, ANSI color codes are used. Defaults to False.
    """

    _LEVEL_COLORS = {
        logging.DEBUG: "\033[38;5;252m",
        logging.INFO: "\033[38;5;111m",
        logging.WARNING: "\033[38;5;229m",
        logging.ERROR: "\033[38;5;210m",
        logging.CRITICAL: "\033[38;5;217m",
    }

    def __init__(self, use_color=False):
        super().__init__()
        if use_color:
            self.COLORS = dict(self._LEVEL_COLORS)
            self.BOLD = "\033[1m"
            self.RESET = "\033[0m"
        else:
            self.COLORS = {level: "" for level in self._LEVEL_COLORS}
            self.BOLD = ""
            self.RESET = ""

    def format(self, record):
        color = self.COLORS.get(record.levelno, self.RESET)
        level_name = record.levelname[:5]

        name_parts = record.name.split(".")
        topic = name_parts[1][:6] if len(name_parts) > 1 else record.name[:6]

        has_ctx = hasattr(record, "context") and record.context
        context_str = f"[{record.context}]" if has_ctx else ""

        prefix = (
            f"{color}{level_name:<5}{self.RESET}:"
            f"{self.BOLD}{topic:<6}{self.RESET}{context_str}: "
        )
        message = record.getMessage()
        if record.exc_info:
            message = f"{message}\n{self.formatException(record.exc_info)}"
        return "\n".join(f"{prefix}{line}" for line in message.split("\n"))

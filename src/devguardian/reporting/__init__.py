"""Report summaries and renderers."""

from .formatters import (
    CLIFormatter,
    Formatter,
    HTMLFormatter,
    JSONFormatter,
    OutputFormat,
    RenderError,
    create_formatter,
)
from .report import AuditReport
from .summary import summarize

__all__ = [
    "AuditReport",
    "CLIFormatter",
    "Formatter",
    "HTMLFormatter",
    "JSONFormatter",
    "OutputFormat",
    "RenderError",
    "create_formatter",
    "summarize",
]

"""Report generators for goal runs."""
from reporters.base import BaseReporter, ReportFormat, summarize
from reporters.json_reporter import JSONReporter
from reporters.junit import JUnitReporter

__all__ = [
    "BaseReporter",
    "ReportFormat",
    "summarize",
    "JSONReporter",
    "JUnitReporter",
]

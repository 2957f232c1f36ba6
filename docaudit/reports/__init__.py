"""Report generators for audit results.

This package provides different output formats:
- console.py: Rich terminal output with colors
- json_report.py: JSON output for CI integration and baselines
"""

from .console import ConsoleReporter
from .json_report import JSONReporter, report_to_dict

__all__ = ["ConsoleReporter", "JSONReporter", "report_to_dict"]

"""
Execution package: the scan engine and its results.
"""

from scanspine.execution.engine import ScanEngine, select_backends
from scanspine.execution.results import Finding, ResultAggregate, ScanResult, SourceResult

__all__ = [
    "ScanEngine",
    "select_backends",
    "Finding",
    "SourceResult",
    "ResultAggregate",
    "ScanResult",
]

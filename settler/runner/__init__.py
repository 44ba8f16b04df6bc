# settler/runner/__init__.py
# Command-line runner for the reconciliation kernel.
#
# ENTRY POINT:
#   python -m settler.runner.run_reconciliation reconcile|verify ...

from .failure_handler import FAILURE_TYPES, FailureHandler, FailureRecord, classify_exception
from .run_reconciliation import main as run_reconciliation

__all__ = [
    "FAILURE_TYPES",
    "FailureHandler",
    "FailureRecord",
    "classify_exception",
    "run_reconciliation",
]

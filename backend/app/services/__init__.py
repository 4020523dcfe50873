"""
Services package for session lifecycle logic.
"""

from .reconciliation_scheduler import ReconciliationScheduler
from .session_reconciler import (
    ReconciliationError,
    ReconciliationReport,
    StatusReconciler,
)
from .session_resolver import (
    ModuleView,
    ResolvedSession,
    SessionCodeResolver,
)

__all__ = [
    "ReconciliationScheduler",
    "ReconciliationError",
    "ReconciliationReport",
    "StatusReconciler",
    "ModuleView",
    "ResolvedSession",
    "SessionCodeResolver",
]

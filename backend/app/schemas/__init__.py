"""
Pydantic schemas for request/response validation.
"""
from .test_sessions import (
    AccessResultResponse,
    SessionModuleTest,
    SessionModuleResponse,
    SessionByCodeData,
    SessionByCodeResponse,
    ReconciliationErrorResponse,
    ReconciliationReportResponse,
    ReconcileTriggerResponse,
)

__all__ = [
    "AccessResultResponse",
    "SessionModuleTest",
    "SessionModuleResponse",
    "SessionByCodeData",
    "SessionByCodeResponse",
    "ReconciliationErrorResponse",
    "ReconciliationReportResponse",
    "ReconcileTriggerResponse",
]

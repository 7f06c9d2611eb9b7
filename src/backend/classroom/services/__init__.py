"""
业务服务层
"""
from .progress_store import ProgressStore
from .progress_service import (
    ClassProgress,
    ModuleProgress,
    NextStep,
    OverallProgress,
    ProgressEngine,
    format_duration,
)
from .grading_service import GradeResult, GradingContext, GradingOracleClient
from .submission_service import SubmissionManager, SubmissionPayload, SubmitResult
from .certificate_service import CertificateEvaluator

__all__ = [
    "ProgressStore",
    "ProgressEngine",
    "ModuleProgress",
    "ClassProgress",
    "OverallProgress",
    "NextStep",
    "format_duration",
    "GradingOracleClient",
    "GradingContext",
    "GradeResult",
    "SubmissionManager",
    "SubmissionPayload",
    "SubmitResult",
    "CertificateEvaluator",
]

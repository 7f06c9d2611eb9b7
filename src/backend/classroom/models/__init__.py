"""
Models package
Export all database models
"""
import logging
from pathlib import Path

from .base import Base
from .enums import StepStatus, SubmissionStatus, SubmissionType, GraderType, EnrollmentStatus
from .catalog import Classroom, ClassEnrollment, Module, Step, Assignment, DEFAULT_STEP_MINUTES
from .step_progress import StepProgress
from .submission import Submission, Grade
from .certificate import Certificate

logger = logging.getLogger(__name__)

__all__ = [
    "Base",
    "StepStatus",
    "SubmissionStatus",
    "SubmissionType",
    "GraderType",
    "EnrollmentStatus",
    "Classroom",
    "ClassEnrollment",
    "Module",
    "Step",
    "Assignment",
    "DEFAULT_STEP_MINUTES",
    "StepProgress",
    "Submission",
    "Grade",
    "Certificate",
]


def init_db():
    """初始化数据库"""
    from ..core.database import engine

    # SQLite 文件所在目录不存在时先创建
    if engine.url.get_backend_name() == "sqlite" and engine.url.database not in (None, "", ":memory:"):
        Path(engine.url.database).parent.mkdir(parents=True, exist_ok=True)

    # 创建所有表
    Base.metadata.create_all(bind=engine)
    logger.info("Database tables created successfully")


def drop_all():
    """删除所有表（仅开发测试用）"""
    from ..core.database import engine

    # 删除所有表
    Base.metadata.drop_all(bind=engine)
    logger.warning("All tables dropped")

"""
状态与类型枚举

数据库中以字符串存储，读写时通过枚举校验取值。
"""
from enum import Enum


class StepStatus(str, Enum):
    """步骤进度状态（未开始 = 无进度记录）"""
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class SubmissionStatus(str, Enum):
    """作业提交状态：pending → grading → graded，评分失败时 grading → pending"""
    PENDING = "pending"
    GRADING = "grading"
    GRADED = "graded"


class SubmissionType(str, Enum):
    """提交内容类型"""
    FILE = "file"
    URL = "url"
    BOTH = "both"


class GraderType(str, Enum):
    """评分来源"""
    AI = "ai"
    MANUAL = "manual"


class EnrollmentStatus(str, Enum):
    """选课状态"""
    ACTIVE = "active"
    DROPPED = "dropped"

"""
业务异常定义

服务层只抛出这里定义的异常，API 层负责转换为 HTTP 响应。
每个异常携带对应的 HTTP 状态码。
"""

from typing import Optional


class ClassroomError(Exception):
    """业务异常基类"""

    status_code: int = 400

    def __init__(self, message: str, cause: Optional[Exception] = None):
        self.message = message
        self.cause = cause
        super().__init__(self.message)

    def __str__(self) -> str:
        if self.cause:
            return f"{self.message} (caused by: {self.cause})"
        return self.message


class ValidationError(ClassroomError):
    """输入不合法（分数越界、提交内容为空等）"""
    status_code = 422


class NotFoundError(ClassroomError):
    """引用的模块/步骤/作业/提交不存在"""
    status_code = 404


class NotEnrolledError(ClassroomError):
    """用户未选修对应班级"""
    status_code = 403


class ConflictError(ClassroomError):
    """违反唯一性约束或状态冲突"""
    status_code = 409


class NotEligibleError(ClassroomError):
    """尚未满足证书签发条件"""
    status_code = 409


class GradingOracleError(ClassroomError):
    """
    AI 评分调用失败

    网络错误、超时、非 2xx 响应、响应无法解析为评分结构，统一归为此异常。
    """
    status_code = 502

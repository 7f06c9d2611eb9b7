"""
API 公共依赖
"""
from fastapi import Depends, HTTPException
from sqlalchemy.orm import Session

from classroom.core.database import get_db
from classroom.core.exceptions import ClassroomError
from classroom.services import GradingOracleClient, ProgressStore


def get_store(db: Session = Depends(get_db)) -> ProgressStore:
    """进度存储依赖注入"""
    return ProgressStore(db)


def get_grading_oracle() -> GradingOracleClient:
    """评分客户端依赖注入（测试中可通过 dependency_overrides 替换）"""
    return GradingOracleClient()


def http_error(e: ClassroomError) -> HTTPException:
    """业务异常转换为 HTTP 异常"""
    return HTTPException(status_code=e.status_code, detail=e.message)

"""
步骤进度模型 - 记录用户在每个步骤上的学习状态
"""
from sqlalchemy import Column, String, Text, DateTime, ForeignKey, UniqueConstraint

from .base import Base
from .enums import StepStatus


class StepProgress(Base):
    """
    步骤进度模型

    设计原则：
    - 每个 (user_id, step_id) 最多一条记录，首次访问步骤时创建
    - completed_at 有值当且仅当 status = completed
    - 已完成的记录不会回退为 in_progress
    """
    __tablename__ = "step_progress"
    __table_args__ = (
        UniqueConstraint("user_id", "step_id", name="uq_step_progress_user_step"),
    )

    id = Column(String(36), primary_key=True, index=True)
    user_id = Column(String(36), nullable=False, index=True)  # 用户ID
    module_id = Column(String(36), ForeignKey("modules.id"), nullable=False, index=True)  # 模块ID
    step_id = Column(String(36), ForeignKey("steps.id"), nullable=False, index=True)  # 步骤ID
    status = Column(String(20), nullable=False, default=StepStatus.IN_PROGRESS.value)  # in_progress | completed
    started_at = Column(DateTime, nullable=True)  # 首次开始时间
    completed_at = Column(DateTime, nullable=True)  # 完成时间
    notes = Column(Text, nullable=True)  # 学习笔记

    @property
    def is_completed(self) -> bool:
        return self.status == StepStatus.COMPLETED.value

    def __repr__(self):
        return f"<StepProgress(user='{self.user_id}' step='{self.step_id}' status={self.status})>"

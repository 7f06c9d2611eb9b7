"""
结业证书模型
"""
from sqlalchemy import Column, String, Integer, Float, DateTime, UniqueConstraint
from datetime import datetime

from .base import Base


class Certificate(Base):
    """
    结业证书（签发时的快照，签发后不再修改）

    之后学习进度变化不会重新计算证书内容。
    """
    __tablename__ = "certificates"
    __table_args__ = (
        UniqueConstraint("student_id", "class_id", name="uq_certificate_student_class"),
    )

    id = Column(String(36), primary_key=True)
    student_id = Column(String(36), nullable=False, index=True)
    class_id = Column(String(36), nullable=False, index=True)
    completion_date = Column(DateTime, default=datetime.utcnow, nullable=False)
    modules_completed = Column(Integer, nullable=False)
    total_modules = Column(Integer, nullable=False)
    assignments_graded = Column(Integer, nullable=False)
    total_assignments = Column(Integer, nullable=False)
    average_grade = Column(Float, nullable=True)
    certificate_code = Column(String(80), unique=True, nullable=False, index=True)

    def __repr__(self):
        return f"<Certificate(code='{self.certificate_code}' student='{self.student_id}' class='{self.class_id}')>"

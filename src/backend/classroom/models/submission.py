"""
作业提交与评分模型
"""
from sqlalchemy import Column, String, Integer, Text, DateTime, ForeignKey, UniqueConstraint, CheckConstraint
from sqlalchemy.orm import relationship
from datetime import datetime

from .base import Base
from .enums import SubmissionStatus


class Submission(Base):
    """
    作业提交模型

    每个 (assignment_id, student_id) 只有一条有效提交。
    status 只由 SubmissionManager 修改：pending → grading → graded。
    """
    __tablename__ = "submissions"
    __table_args__ = (
        UniqueConstraint("assignment_id", "student_id", name="uq_submission_assignment_student"),
    )

    id = Column(String(36), primary_key=True, index=True)
    assignment_id = Column(String(36), ForeignKey("assignments.id"), nullable=False, index=True)
    student_id = Column(String(36), nullable=False, index=True)
    submission_type = Column(String(10), nullable=False)  # file | url | both
    file_ref = Column(String(500), nullable=True)  # 上传文件的存储引用
    submission_url = Column(String(500), nullable=True)  # 作品链接
    notes = Column(Text, nullable=True)  # 学生备注
    status = Column(String(20), nullable=False, default=SubmissionStatus.PENDING.value, index=True)
    submitted_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    graded_at = Column(DateTime, nullable=True)

    assignment = relationship("Assignment")
    grades = relationship("Grade", back_populates="submission", order_by="Grade.created_at")

    def __repr__(self):
        return f"<Submission(id='{self.id}' assignment='{self.assignment_id}' status={self.status})>"


class Grade(Base):
    """
    评分记录（只追加，从不修改）

    重新评分会新增一条记录，读取时以最新一条为准。
    """
    __tablename__ = "grades"
    __table_args__ = (
        CheckConstraint("score >= 1 AND score <= 5", name="ck_grade_score_range"),
    )

    id = Column(String(36), primary_key=True, index=True)
    submission_id = Column(String(36), ForeignKey("submissions.id"), nullable=False, index=True)
    grader_type = Column(String(10), nullable=False)  # ai | manual
    score = Column(Integer, nullable=False)  # 1-5 分
    feedback = Column(Text, nullable=False)
    strengths = Column(Text, nullable=True)
    improvements = Column(Text, nullable=True)
    analysis = Column(Text, nullable=True)
    graded_by = Column(String(36), nullable=True)  # 人工评分时为评分人ID
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    submission = relationship("Submission", back_populates="grades")

    def __repr__(self):
        return f"<Grade(submission='{self.submission_id}' grader={self.grader_type} score={self.score})>"

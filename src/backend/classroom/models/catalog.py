"""
课程目录模型 - 班级、选课、模块、步骤、作业

这些表由管理端维护，本服务只读取。
"""
from sqlalchemy import Column, String, Integer, Text, Boolean, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from datetime import datetime

from .base import Base
from .enums import EnrollmentStatus

# 步骤未配置预计时长时使用的默认值（分钟）
DEFAULT_STEP_MINUTES = 10


class Classroom(Base):
    """班级模型"""
    __tablename__ = "classes"

    id = Column(String(36), primary_key=True, index=True)
    name = Column(String(200), nullable=False)  # 班级名称
    description = Column(Text, nullable=True)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    modules = relationship("Module", back_populates="classroom", order_by="Module.order_number")

    def __repr__(self):
        return f"<Classroom(id='{self.id}' name='{self.name}')>"


class ClassEnrollment(Base):
    """选课记录"""
    __tablename__ = "class_enrollments"
    __table_args__ = (
        UniqueConstraint("class_id", "student_id", name="uq_enrollment_class_student"),
    )

    id = Column(String(36), primary_key=True)
    class_id = Column(String(36), ForeignKey("classes.id"), nullable=False, index=True)
    student_id = Column(String(36), nullable=False, index=True)  # 外部身份系统的用户ID
    status = Column(String(20), default=EnrollmentStatus.ACTIVE.value)  # active | dropped
    enrolled_at = Column(DateTime, default=datetime.utcnow)

    def __repr__(self):
        return f"<ClassEnrollment(class='{self.class_id}' student='{self.student_id}' status={self.status})>"


class Module(Base):
    """学习模块 - 有序的步骤集合"""
    __tablename__ = "modules"

    id = Column(String(36), primary_key=True, index=True)
    class_id = Column(String(36), ForeignKey("classes.id"), nullable=False, index=True)
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    order_number = Column(Integer, default=0)  # 模块排序
    is_active = Column(Boolean, default=True)

    classroom = relationship("Classroom", back_populates="modules")
    steps = relationship("Step", back_populates="module", order_by="Step.order_number")

    def __repr__(self):
        return f"<Module(id='{self.id}' title='{self.title}' order={self.order_number})>"


class Step(Base):
    """学习步骤 - 有完成状态的最小内容单元"""
    __tablename__ = "steps"

    id = Column(String(36), primary_key=True, index=True)
    module_id = Column(String(36), ForeignKey("modules.id"), nullable=False, index=True)
    title = Column(String(200), nullable=False)
    content = Column(Text, nullable=True)
    order_number = Column(Integer, default=0)  # 模块内排序
    estimated_minutes = Column(Integer, default=DEFAULT_STEP_MINUTES)  # 预计学习时长（分钟）

    module = relationship("Module", back_populates="steps")

    def __repr__(self):
        return f"<Step(id='{self.id}' title='{self.title}' module_id='{self.module_id}')>"


class Assignment(Base):
    """作业模型"""
    __tablename__ = "assignments"

    id = Column(String(36), primary_key=True, index=True)
    class_id = Column(String(36), ForeignKey("classes.id"), nullable=False, index=True)
    module_id = Column(String(36), ForeignKey("modules.id"), nullable=True)  # 关联模块（可选，用于评分上下文）
    step_id = Column(String(36), ForeignKey("steps.id"), nullable=True)  # 关联步骤（可选）
    title = Column(String(200), nullable=False)
    instructions = Column(Text, nullable=False)  # 作业要求
    rubric = Column(Text, nullable=True)  # 评分标准
    ai_grading_enabled = Column(Boolean, default=False)  # 提交后是否自动 AI 评分
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    module = relationship("Module")
    step = relationship("Step")

    def __repr__(self):
        return f"<Assignment(id='{self.id}' title='{self.title}' ai={self.ai_grading_enabled})>"

"""
进度存储适配层

对数据库会话的薄封装，集中所有查询与写入：
- 步骤进度（StepProgress）
- 作业提交（Submission）与评分（Grade）
- 结业证书（Certificate）
- 课程目录的只读查询（模块、步骤、作业、选课）

每次写入单独提交；违反唯一约束时回滚并抛出 ConflictError。
"""
import logging
import uuid
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from classroom.core.exceptions import ConflictError
from classroom.models import (
    Assignment,
    Certificate,
    ClassEnrollment,
    EnrollmentStatus,
    Grade,
    Module,
    Step,
    StepProgress,
    Submission,
    SubmissionStatus,
)

logger = logging.getLogger(__name__)


class ProgressStore:
    """进度存储适配器"""

    def __init__(self, db: Session):
        self.db = db

    # ==================== 通用写入 ====================

    def _insert(self, obj, conflict_message: str):
        """插入并提交，唯一约束冲突时转换为 ConflictError"""
        self.db.add(obj)
        try:
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            logger.warning(f"{conflict_message}: {e.orig}")
            raise ConflictError(conflict_message, cause=e)
        self.db.refresh(obj)
        return obj

    def _save(self, obj, fields: Dict[str, Any]):
        for key, value in fields.items():
            setattr(obj, key, value)
        self.db.commit()
        self.db.refresh(obj)
        return obj

    # ==================== 课程目录 ====================

    def get_module(self, module_id: str) -> Optional[Module]:
        return self.db.query(Module).filter(Module.id == module_id).first()

    def get_step(self, step_id: str) -> Optional[Step]:
        return self.db.query(Step).filter(Step.id == step_id).first()

    def get_assignment(self, assignment_id: str) -> Optional[Assignment]:
        return self.db.query(Assignment).filter(Assignment.id == assignment_id).first()

    def list_active_class_ids(self, user_id: str) -> List[str]:
        """获取用户当前有效选课的班级ID"""
        rows = self.db.query(ClassEnrollment.class_id).filter(
            ClassEnrollment.student_id == user_id,
            ClassEnrollment.status == EnrollmentStatus.ACTIVE.value
        ).all()
        return [row[0] for row in rows]

    def is_enrolled(self, user_id: str, class_id: str) -> bool:
        return self.db.query(ClassEnrollment).filter(
            ClassEnrollment.student_id == user_id,
            ClassEnrollment.class_id == class_id,
            ClassEnrollment.status == EnrollmentStatus.ACTIVE.value
        ).first() is not None

    def list_modules(self, class_ids: Iterable[str]) -> List[Module]:
        """
        获取班级下的启用模块（含步骤）

        模块按 order_number 排序，步骤由关系定义按 order_number 排序。
        """
        class_ids = list(class_ids)
        if not class_ids:
            return []
        return self.db.query(Module).options(
            selectinload(Module.steps)
        ).filter(
            Module.class_id.in_(class_ids),
            Module.is_active == True  # noqa: E712
        ).order_by(Module.order_number.asc(), Module.id.asc()).all()

    def list_assignments(self, class_id: str) -> List[Assignment]:
        """获取班级下的启用作业"""
        return self.db.query(Assignment).filter(
            Assignment.class_id == class_id,
            Assignment.is_active == True  # noqa: E712
        ).order_by(Assignment.created_at.asc()).all()

    # ==================== 步骤进度 ====================

    def get_step_progress(self, user_id: str, step_id: str) -> Optional[StepProgress]:
        return self.db.query(StepProgress).filter(
            StepProgress.user_id == user_id,
            StepProgress.step_id == step_id
        ).first()

    def list_step_progress(self, user_id: str) -> List[StepProgress]:
        """获取用户的全部步骤进度"""
        return self.db.query(StepProgress).filter(
            StepProgress.user_id == user_id
        ).all()

    def create_step_progress(self, **fields) -> StepProgress:
        progress = StepProgress(id=str(uuid.uuid4()), **fields)
        return self._insert(progress, f"步骤 {fields.get('step_id')} 的进度记录已存在")

    def update_step_progress(self, progress: StepProgress, **fields) -> StepProgress:
        return self._save(progress, fields)

    # ==================== 作业提交 ====================

    def get_submission(self, submission_id: str) -> Optional[Submission]:
        return self.db.query(Submission).filter(Submission.id == submission_id).first()

    def find_submission(self, assignment_id: str, student_id: str) -> Optional[Submission]:
        return self.db.query(Submission).filter(
            Submission.assignment_id == assignment_id,
            Submission.student_id == student_id
        ).first()

    def list_submissions(
        self,
        assignment_id: Optional[str] = None,
        student_id: Optional[str] = None,
        status: Optional[SubmissionStatus] = None
    ) -> List[Submission]:
        query = self.db.query(Submission)
        if assignment_id:
            query = query.filter(Submission.assignment_id == assignment_id)
        if student_id:
            query = query.filter(Submission.student_id == student_id)
        if status:
            query = query.filter(Submission.status == status.value)
        return query.order_by(Submission.submitted_at.asc()).all()

    def create_submission(self, **fields) -> Submission:
        submission = Submission(id=str(uuid.uuid4()), **fields)
        return self._insert(
            submission,
            f"学生 {fields.get('student_id')} 已提交过作业 {fields.get('assignment_id')}"
        )

    def update_submission(self, submission: Submission, **fields) -> Submission:
        return self._save(submission, fields)

    def transition_submission(
        self,
        submission_id: str,
        from_status: SubmissionStatus,
        to_status: SubmissionStatus,
        **fields
    ) -> bool:
        """
        条件更新提交状态

        仅当当前状态为 from_status 时才更新，保证状态迁移的原子性。

        Returns:
            bool: 是否有记录被更新
        """
        result = self.db.execute(
            update(Submission)
            .where(Submission.id == submission_id, Submission.status == from_status.value)
            .values(status=to_status.value, **fields)
            .execution_options(synchronize_session=False)
        )
        self.db.commit()
        updated = result.rowcount == 1
        if updated:
            self.db.expire_all()
        return updated

    # ==================== 评分 ====================

    def record_grade(self, submission: Submission, **fields) -> Grade:
        """
        写入评分并将提交置为 graded

        评分记录与提交状态在同一次提交中落库，不会出现状态为 graded 但没有评分的情况。
        """
        now = datetime.utcnow()
        grade = Grade(
            id=str(uuid.uuid4()),
            submission_id=submission.id,
            created_at=now,
            **fields
        )
        self.db.add(grade)
        submission.status = SubmissionStatus.GRADED.value
        submission.graded_at = now
        try:
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        self.db.refresh(grade)
        self.db.refresh(submission)
        return grade

    def list_grades(self, submission_id: str) -> List[Grade]:
        return self.db.query(Grade).filter(
            Grade.submission_id == submission_id
        ).order_by(Grade.created_at.asc(), Grade.id.asc()).all()

    def get_latest_grade(self, submission_id: str) -> Optional[Grade]:
        return self.db.query(Grade).filter(
            Grade.submission_id == submission_id
        ).order_by(Grade.created_at.desc(), Grade.id.desc()).first()

    # ==================== 结业证书 ====================

    def get_certificate(self, student_id: str, class_id: str) -> Optional[Certificate]:
        return self.db.query(Certificate).filter(
            Certificate.student_id == student_id,
            Certificate.class_id == class_id
        ).first()

    def create_certificate(self, **fields) -> Certificate:
        certificate = Certificate(id=str(uuid.uuid4()), **fields)
        return self._insert(
            certificate,
            f"学生 {fields.get('student_id')} 在班级 {fields.get('class_id')} 的证书已存在"
        )

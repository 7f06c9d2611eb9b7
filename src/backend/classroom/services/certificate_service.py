"""
结业证书服务

证书是签发时刻的快照：一旦签发不再修改，之后的进度变化不会影响已签发的证书。
"""
import logging
import secrets
from datetime import datetime
from typing import Optional

from classroom.core.exceptions import ConflictError, NotEligibleError, NotEnrolledError
from classroom.models import Certificate, SubmissionStatus
from classroom.services.progress_service import ClassProgress, ProgressEngine, is_certificate_eligible
from classroom.services.progress_store import ProgressStore

logger = logging.getLogger(__name__)


def generate_certificate_code(class_id: str, student_id: str, now: Optional[datetime] = None) -> str:
    """
    生成证书编号

    格式：CERT-<班级ID前8位>-<学生ID前8位>-<签发时间>-<随机串>
    """
    now = now or datetime.utcnow()
    return "-".join([
        "CERT",
        class_id.replace("-", "")[:8],
        student_id.replace("-", "")[:8],
        now.strftime("%Y%m%d%H%M%S"),
        secrets.token_hex(4),
    ]).upper()


class CertificateEvaluator:
    """证书资格判断与签发"""

    def __init__(self, store: ProgressStore):
        self.store = store

    @staticmethod
    def is_eligible(class_progress: ClassProgress) -> bool:
        """全部模块完成、全部作业已评分，且班级至少有一个作业"""
        return is_certificate_eligible(
            class_progress.completed_modules,
            class_progress.total_modules,
            class_progress.graded_assignments,
            class_progress.total_assignments,
        )

    def get_certificate(self, student_id: str, class_id: str) -> Optional[Certificate]:
        return self.store.get_certificate(student_id, class_id)

    def issue_or_fetch(
        self,
        student_id: str,
        class_id: str,
        class_progress: ClassProgress,
        average_grade: Optional[float],
    ) -> Certificate:
        """
        签发证书或返回已有证书

        已有证书原样返回，不会用新的进度覆盖。

        Raises:
            NotEligibleError: 尚未满足签发条件
        """
        existing = self.store.get_certificate(student_id, class_id)
        if existing:
            return existing

        if not self.is_eligible(class_progress):
            raise NotEligibleError(
                f"尚未满足证书条件：模块 {class_progress.completed_modules}/{class_progress.total_modules}，"
                f"作业 {class_progress.graded_assignments}/{class_progress.total_assignments}"
            )

        now = datetime.utcnow()
        try:
            certificate = self.store.create_certificate(
                student_id=student_id,
                class_id=class_id,
                completion_date=now,
                modules_completed=class_progress.completed_modules,
                total_modules=class_progress.total_modules,
                assignments_graded=class_progress.graded_assignments,
                total_assignments=class_progress.total_assignments,
                average_grade=average_grade,
                certificate_code=generate_certificate_code(class_id, student_id, now),
            )
        except ConflictError:
            # 并发签发时另一请求已写入，返回已写入的那份
            existing = self.store.get_certificate(student_id, class_id)
            if existing is None:
                raise
            return existing

        logger.info(f"签发证书 {certificate.certificate_code}: student={student_id} class={class_id}")
        return certificate

    def average_grade(self, student_id: str, class_id: str) -> Optional[float]:
        """班级内已评分作业的平均分（每个提交取最新评分），无评分时返回 None"""
        assignment_ids = {a.id for a in self.store.list_assignments(class_id)}
        scores = []
        for submission in self.store.list_submissions(student_id=student_id, status=SubmissionStatus.GRADED):
            if submission.assignment_id not in assignment_ids:
                continue
            grade = self.store.get_latest_grade(submission.id)
            if grade:
                scores.append(grade.score)
        if not scores:
            return None
        return round(sum(scores) / len(scores), 2)

    def issue_certificate(self, engine: ProgressEngine, class_id: str) -> Certificate:
        """
        根据当前进度为引擎所属用户签发（或获取）证书

        Raises:
            NotEnrolledError: 用户没有该班级的有效选课（未选课或已退课）
            NotEligibleError: 尚未满足签发条件
        """
        existing = self.store.get_certificate(engine.user_id, class_id)
        if existing:
            return existing
        if not self.store.is_enrolled(engine.user_id, class_id):
            raise NotEnrolledError(f"用户 {engine.user_id} 未选修班级 {class_id}，不能签发证书")
        class_progress = engine.get_class_progress(class_id)
        return self.issue_or_fetch(
            engine.user_id,
            class_id,
            class_progress,
            self.average_grade(engine.user_id, class_id),
        )

"""
作业提交生命周期服务

状态机：
    pending → grading → graded
    grading → pending（评分失败时回滚，允许重新评分）

设计说明：
- 提交状态只在这里修改
- pending → grading 使用条件更新，同一提交的并发评分请求只有一个会真正执行
- 评分记录与 graded 状态同一次提交落库
- 重新提交：pending 状态下覆盖原提交；grading / graded 状态下拒绝
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

from classroom.core.exceptions import ConflictError, NotFoundError, ValidationError
from classroom.models import Grade, Submission, SubmissionStatus, SubmissionType
from classroom.services.grading_service import GradeResult, GradingContext, GradingOracleClient
from classroom.services.progress_store import ProgressStore

logger = logging.getLogger(__name__)


def _blank_to_none(value: Optional[str]) -> Optional[str]:
    if value is None or not value.strip():
        return None
    return value.strip()


@dataclass
class SubmissionPayload:
    """学生提交的内容，file_ref 与 submission_url 至少一个"""
    file_ref: Optional[str] = None
    submission_url: Optional[str] = None
    notes: Optional[str] = None

    def __post_init__(self):
        # 空白字符串视为未填写
        self.file_ref = _blank_to_none(self.file_ref)
        self.submission_url = _blank_to_none(self.submission_url)

    def submission_type(self) -> SubmissionType:
        """
        根据提交内容推断类型

        Raises:
            ValidationError: 文件与链接都为空
        """
        has_file = self.file_ref is not None
        has_url = self.submission_url is not None
        if has_file and has_url:
            return SubmissionType.BOTH
        if has_file:
            return SubmissionType.FILE
        if has_url:
            return SubmissionType.URL
        raise ValidationError("请上传文件或填写作品链接")


@dataclass
class SubmitResult:
    """
    提交结果

    自动 AI 评分失败不会让提交失败：grading_error 记录失败原因，提交保持 pending。
    """
    submission: Submission
    grade: Optional[Grade] = None
    grading_error: Optional[Exception] = None


class SubmissionManager:
    """作业提交生命周期管理"""

    def __init__(self, store: ProgressStore, oracle: Optional[GradingOracleClient] = None):
        self.store = store
        self._oracle = oracle

    @property
    def oracle(self) -> GradingOracleClient:
        if self._oracle is None:
            self._oracle = GradingOracleClient()
        return self._oracle

    # ==================== 查询 ====================

    def get_submission(self, submission_id: str) -> Submission:
        submission = self.store.get_submission(submission_id)
        if not submission:
            raise NotFoundError(f"提交 {submission_id} 不存在")
        return submission

    def get_latest_grade(self, submission_id: str) -> Optional[Grade]:
        return self.store.get_latest_grade(submission_id)

    def list_grades(self, submission_id: str) -> List[Grade]:
        return self.store.list_grades(submission_id)

    def list_submissions(
        self,
        assignment_id: Optional[str] = None,
        student_id: Optional[str] = None
    ) -> List[Submission]:
        return self.store.list_submissions(assignment_id=assignment_id, student_id=student_id)

    # ==================== 提交 ====================

    async def submit(self, assignment_id: str, student_id: str, payload: SubmissionPayload) -> SubmitResult:
        """
        提交作业

        作业开启了 AI 评分时，提交后立即评分；评分失败只记录在结果中，提交仍保持 pending。

        Raises:
            ValidationError: 文件与链接都为空（不会创建提交）
            NotFoundError: 作业不存在或已停用
            ConflictError: 已有提交正在评分或已评分
        """
        submission_type = payload.submission_type()

        assignment = self.store.get_assignment(assignment_id)
        if not assignment or not assignment.is_active:
            raise NotFoundError(f"作业 {assignment_id} 不存在")

        fields = {
            "submission_type": submission_type.value,
            "file_ref": payload.file_ref,
            "submission_url": payload.submission_url,
            "notes": payload.notes,
            "status": SubmissionStatus.PENDING.value,
            "submitted_at": datetime.utcnow(),
        }

        existing = self.store.find_submission(assignment_id, student_id)
        if existing:
            if existing.status != SubmissionStatus.PENDING.value:
                raise ConflictError(f"作业 {assignment_id} 的提交状态为 {existing.status}，不能重新提交")
            submission = self.store.update_submission(existing, **fields)
            logger.info(f"学生 {student_id} 重新提交作业 {assignment_id}")
        else:
            submission = self.store.create_submission(
                assignment_id=assignment_id,
                student_id=student_id,
                **fields
            )
            logger.info(f"学生 {student_id} 提交作业 {assignment_id}: {submission.id}")

        result = SubmitResult(submission=submission)
        if assignment.ai_grading_enabled:
            try:
                result.submission = await self.request_grading(submission.id)
                result.grade = self.store.get_latest_grade(submission.id)
            except Exception as e:
                logger.warning(f"提交 {submission.id} 自动评分失败，保持 pending: {e}")
                result.submission = self.get_submission(submission.id)
                result.grading_error = e
        return result

    # ==================== 评分 ====================

    def build_grading_context(self, submission: Submission) -> GradingContext:
        assignment = submission.assignment
        return GradingContext(
            assignment_title=assignment.title,
            instructions=assignment.instructions,
            rubric=assignment.rubric,
            submission_url=submission.submission_url,
            file_ref=submission.file_ref,
            student_notes=submission.notes,
            module_context=assignment.module.title if assignment.module else None,
            step_context=assignment.step.title if assignment.step else None,
        )

    async def request_grading(self, submission_id: str) -> Submission:
        """
        请求 AI 评分

        - graded：直接返回
        - 已在 grading：视为已被处理，返回当前状态
        - pending：置为 grading 后调用评分；成功写入评分并置为 graded，
          任何异常（包括取消）都回滚到 pending 后继续抛出

        Raises:
            NotFoundError: 提交不存在
            GradingOracleError: AI 评分失败（提交已回滚为 pending）
        """
        submission = self.get_submission(submission_id)
        if submission.status == SubmissionStatus.GRADED.value:
            return submission

        acquired = self.store.transition_submission(
            submission_id, SubmissionStatus.PENDING, SubmissionStatus.GRADING
        )
        if not acquired:
            logger.info(f"提交 {submission_id} 已在评分中或已评分，跳过")
            return self.get_submission(submission_id)

        submission = self.get_submission(submission_id)
        logger.info(f"提交 {submission_id} 开始 AI 评分")

        try:
            context = self.build_grading_context(submission)
            result = await self.oracle.request_ai_grade(context)
            self.record(submission, result)
        except BaseException as e:
            # 包括任务被取消（CancelledError），提交不能停留在 grading
            self.store.transition_submission(
                submission_id, SubmissionStatus.GRADING, SubmissionStatus.PENDING
            )
            logger.error(f"提交 {submission_id} 评分失败，已回滚为 pending: {e!r}")
            raise

        return self.get_submission(submission_id)

    def grade_manually(
        self,
        submission_id: str,
        score: int,
        feedback: str,
        strengths: Optional[str] = None,
        improvements: Optional[str] = None,
        grader_id: Optional[str] = None,
    ) -> Grade:
        """
        人工评分

        已评分的提交会追加一条新评分（以最新为准）。

        Raises:
            NotFoundError: 提交不存在
            ValidationError: 分数或评语不合法
            ConflictError: 提交正在进行 AI 评分
        """
        submission = self.get_submission(submission_id)
        result = self.oracle.request_manual_grade(
            score, feedback, strengths=strengths, improvements=improvements, grader_id=grader_id
        )
        if submission.status == SubmissionStatus.GRADING.value:
            raise ConflictError(f"提交 {submission_id} 正在 AI 评分，请稍后再试")

        return self.record(submission, result)

    def record(self, submission: Submission, result: GradeResult) -> Grade:
        """写入评分并将提交置为 graded"""
        grade = self.store.record_grade(submission, **result.to_grade_fields())
        logger.info(f"提交 {submission.id} 已评分: {result.grader_type.value} score={result.score}")
        return grade

"""
作业提交生命周期测试

覆盖提交校验、重新提交、AI 自动评分、评分失败回滚和人工评分
"""
import asyncio

import pytest

from classroom.core.exceptions import ConflictError, GradingOracleError, NotFoundError, ValidationError
from classroom.models import Grade, GraderType, Submission, SubmissionStatus, SubmissionType
from classroom.services import GradingOracleClient, SubmissionManager, SubmissionPayload
from classroom.llm import GradingConfig

from conftest import STUDENT_ID, MockLLMClient, grade_json


class SlowLLMClient(MockLLMClient):
    """每次调用前等待一段时间，用于模拟慢速评分"""

    def __init__(self, delay: float, responses=None):
        super().__init__(responses)
        self.delay = delay

    async def chat(self, messages, **kwargs):
        await asyncio.sleep(self.delay)
        return await super().chat(messages, **kwargs)


@pytest.fixture
def manager(store, catalog, oracle):
    return SubmissionManager(store, oracle)


@pytest.fixture
def failing_manager(store, catalog, failing_oracle):
    return SubmissionManager(store, failing_oracle)


def url_payload(url="https://example.com/portfolio", notes=None):
    return SubmissionPayload(submission_url=url, notes=notes)


class TestSubmissionPayload:
    """提交内容校验"""

    @pytest.mark.parametrize("payload,expected", [
        (SubmissionPayload(file_ref="uploads/essay.pdf"), SubmissionType.FILE),
        (SubmissionPayload(submission_url="https://example.com"), SubmissionType.URL),
        (SubmissionPayload(file_ref="uploads/a.png", submission_url="https://example.com"), SubmissionType.BOTH),
    ])
    def test_submission_type(self, payload, expected):
        assert payload.submission_type() == expected

    @pytest.mark.parametrize("payload", [
        SubmissionPayload(),
        SubmissionPayload(file_ref="", submission_url=""),
        SubmissionPayload(file_ref="   ", notes="only notes"),
    ])
    def test_empty_payload_is_rejected(self, payload):
        with pytest.raises(ValidationError):
            payload.submission_type()

    def test_blank_fields_are_treated_as_missing(self):
        payload = SubmissionPayload(file_ref="   ", submission_url="  https://example.com/work ")

        assert payload.file_ref is None
        assert payload.submission_url == "https://example.com/work"
        assert payload.submission_type() == SubmissionType.URL


class TestSubmit:
    """提交作业"""

    @pytest.mark.asyncio
    async def test_manual_assignment_stays_pending(self, manager, mock_llm):
        result = await manager.submit("A1", STUDENT_ID, url_payload(notes="see link"))

        assert result.submission.status == SubmissionStatus.PENDING.value
        assert result.submission.submission_type == SubmissionType.URL.value
        assert result.submission.notes == "see link"
        assert result.grade is None
        assert result.grading_error is None
        assert mock_llm.call_count == 0

    @pytest.mark.asyncio
    async def test_blank_file_ref_is_not_stored(self, manager):
        payload = SubmissionPayload(file_ref="  \t", submission_url=" https://example.com/work ")

        submission = (await manager.submit("A1", STUDENT_ID, payload)).submission

        assert submission.file_ref is None
        assert submission.submission_url == "https://example.com/work"
        assert submission.submission_type == SubmissionType.URL.value

    @pytest.mark.asyncio
    async def test_empty_submission_creates_nothing(self, manager, db_session):
        with pytest.raises(ValidationError):
            await manager.submit("A1", STUDENT_ID, SubmissionPayload(notes="forgot the link"))

        assert db_session.query(Submission).count() == 0

    @pytest.mark.asyncio
    async def test_unknown_assignment_raises_not_found(self, manager):
        with pytest.raises(NotFoundError):
            await manager.submit("A404", STUDENT_ID, url_payload())

    @pytest.mark.asyncio
    async def test_inactive_assignment_raises_not_found(self, manager, store):
        store.get_assignment("A1").is_active = False
        store.db.commit()

        with pytest.raises(NotFoundError):
            await manager.submit("A1", STUDENT_ID, url_payload())

    @pytest.mark.asyncio
    async def test_resubmit_while_pending_overwrites(self, manager, db_session):
        first = await manager.submit("A1", STUDENT_ID, url_payload("https://example.com/v1"))
        first_id = first.submission.id

        second = await manager.submit("A1", STUDENT_ID, SubmissionPayload(file_ref="uploads/v2.pdf"))

        assert second.submission.id == first_id
        assert second.submission.file_ref == "uploads/v2.pdf"
        assert second.submission.submission_url is None
        assert second.submission.submission_type == SubmissionType.FILE.value
        assert db_session.query(Submission).count() == 1

    @pytest.mark.asyncio
    async def test_resubmit_after_graded_is_rejected(self, manager):
        result = await manager.submit("A1", STUDENT_ID, url_payload())
        manager.grade_manually(result.submission.id, 4, "Good work")

        with pytest.raises(ConflictError):
            await manager.submit("A1", STUDENT_ID, url_payload("https://example.com/v2"))

    @pytest.mark.asyncio
    async def test_ai_assignment_is_graded_on_submit(self, manager, mock_llm):
        result = await manager.submit("A2", STUDENT_ID, url_payload())

        assert result.grading_error is None
        assert result.submission.status == SubmissionStatus.GRADED.value
        assert result.submission.graded_at is not None
        assert result.grade.grader_type == GraderType.AI.value
        assert result.grade.score == 4
        assert mock_llm.call_count == 1

    @pytest.mark.asyncio
    async def test_ai_failure_keeps_submission_pending(self, failing_manager, db_session):
        result = await failing_manager.submit("A2", STUDENT_ID, url_payload())

        assert result.submission.status == SubmissionStatus.PENDING.value
        assert isinstance(result.grading_error, GradingOracleError)
        assert result.grade is None
        assert db_session.query(Grade).count() == 0


class TestRequestGrading:
    """AI 评分请求"""

    @pytest.mark.asyncio
    async def test_oracle_failure_rolls_back_to_pending(self, store, catalog, db_session):
        llm = MockLLMClient(["not json at all"])
        manager = SubmissionManager(store, GradingOracleClient(llm_client=llm, config=GradingConfig(timeout=5.0)))
        submission = (await manager.submit("A1", STUDENT_ID, url_payload())).submission

        with pytest.raises(GradingOracleError):
            await manager.request_grading(submission.id)

        assert manager.get_submission(submission.id).status == SubmissionStatus.PENDING.value
        assert db_session.query(Grade).count() == 0

    @pytest.mark.asyncio
    async def test_retry_after_failure_succeeds(self, store, catalog):
        llm = MockLLMClient(["{broken", grade_json(score=5)])
        manager = SubmissionManager(store, GradingOracleClient(llm_client=llm, config=GradingConfig(timeout=5.0)))
        submission = (await manager.submit("A1", STUDENT_ID, url_payload())).submission

        with pytest.raises(GradingOracleError):
            await manager.request_grading(submission.id)
        graded = await manager.request_grading(submission.id)

        assert graded.status == SubmissionStatus.GRADED.value
        assert manager.get_latest_grade(submission.id).score == 5

    @pytest.mark.asyncio
    async def test_submission_in_grading_returns_current_state(self, manager, store, mock_llm):
        submission = (await manager.submit("A1", STUDENT_ID, url_payload())).submission
        store.transition_submission(submission.id, SubmissionStatus.PENDING, SubmissionStatus.GRADING)

        current = await manager.request_grading(submission.id)

        assert current.status == SubmissionStatus.GRADING.value
        assert mock_llm.call_count == 0

    @pytest.mark.asyncio
    async def test_graded_submission_is_returned_as_is(self, manager, mock_llm):
        submission = (await manager.submit("A1", STUDENT_ID, url_payload())).submission
        manager.grade_manually(submission.id, 3, "Fine")

        current = await manager.request_grading(submission.id)

        assert current.status == SubmissionStatus.GRADED.value
        assert mock_llm.call_count == 0
        assert len(manager.list_grades(submission.id)) == 1

    @pytest.mark.asyncio
    async def test_concurrent_requests_grade_once(self, store, catalog, db_session):
        llm = SlowLLMClient(delay=0.05)
        manager = SubmissionManager(store, GradingOracleClient(llm_client=llm, config=GradingConfig(timeout=5.0)))
        submission = (await manager.submit("A1", STUDENT_ID, url_payload())).submission

        await asyncio.gather(
            manager.request_grading(submission.id),
            manager.request_grading(submission.id),
        )

        assert llm.call_count == 1
        assert db_session.query(Grade).count() == 1
        assert manager.get_submission(submission.id).status == SubmissionStatus.GRADED.value

    @pytest.mark.asyncio
    async def test_cancelled_grading_rolls_back_to_pending(self, store, catalog, db_session, oracle, mock_llm):
        """评分任务被取消时提交回到 pending，之后可以重新评分"""
        llm = SlowLLMClient(delay=10)
        manager = SubmissionManager(store, GradingOracleClient(llm_client=llm, config=GradingConfig(timeout=5.0)))
        submission = (await manager.submit("A1", STUDENT_ID, url_payload())).submission

        task = asyncio.create_task(manager.request_grading(submission.id))
        await asyncio.sleep(0.01)
        assert manager.get_submission(submission.id).status == SubmissionStatus.GRADING.value
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert manager.get_submission(submission.id).status == SubmissionStatus.PENDING.value
        assert db_session.query(Grade).count() == 0

        graded = await SubmissionManager(store, oracle).request_grading(submission.id)

        assert graded.status == SubmissionStatus.GRADED.value
        assert mock_llm.call_count == 1

    @pytest.mark.asyncio
    async def test_unknown_submission_raises_not_found(self, manager):
        with pytest.raises(NotFoundError):
            await manager.request_grading("missing")

    @pytest.mark.asyncio
    async def test_grading_context_carries_assignment_details(self, manager):
        submission = (await manager.submit("A1", STUDENT_ID, url_payload(notes="draft"))).submission

        context = manager.build_grading_context(submission)

        assert context.assignment_title == "Token essay"
        assert context.instructions == "Explain tokenization"
        assert context.module_context == "Basics"
        assert context.step_context == "Tokens"
        assert context.student_notes == "draft"


class TestManualGrading:
    """人工评分"""

    @pytest.mark.asyncio
    async def test_manual_grade_marks_submission_graded(self, manager, db_session):
        submission = (await manager.submit("A1", STUDENT_ID, url_payload())).submission

        grade = manager.grade_manually(submission.id, 4, "Good work", grader_id="trainer-1")

        assert grade.score == 4
        assert grade.feedback == "Good work"
        assert grade.grader_type == GraderType.MANUAL.value
        assert grade.graded_by == "trainer-1"
        assert db_session.query(Grade).count() == 1
        assert manager.get_submission(submission.id).status == SubmissionStatus.GRADED.value

    @pytest.mark.asyncio
    async def test_regrade_appends_and_latest_wins(self, manager):
        submission = (await manager.submit("A1", STUDENT_ID, url_payload())).submission
        manager.grade_manually(submission.id, 2, "Needs work")

        manager.grade_manually(submission.id, 5, "Much better")

        grades = manager.list_grades(submission.id)
        assert [g.score for g in grades] == [2, 5]
        assert manager.get_latest_grade(submission.id).score == 5

    @pytest.mark.asyncio
    @pytest.mark.parametrize("score,feedback", [
        (0, "Too low"),
        (6, "Too high"),
        (3.5, "Not an integer"),
        (True, "Boolean"),
        (3, "   "),
    ])
    async def test_invalid_manual_grade_is_rejected(self, manager, db_session, score, feedback):
        submission = (await manager.submit("A1", STUDENT_ID, url_payload())).submission

        with pytest.raises(ValidationError):
            manager.grade_manually(submission.id, score, feedback)

        assert db_session.query(Grade).count() == 0
        assert manager.get_submission(submission.id).status == SubmissionStatus.PENDING.value

    @pytest.mark.asyncio
    async def test_manual_grade_during_ai_grading_conflicts(self, manager, store):
        submission = (await manager.submit("A1", STUDENT_ID, url_payload())).submission
        store.transition_submission(submission.id, SubmissionStatus.PENDING, SubmissionStatus.GRADING)

        with pytest.raises(ConflictError):
            manager.grade_manually(submission.id, 4, "Good work")

    def test_unknown_submission_raises_not_found(self, manager):
        with pytest.raises(NotFoundError):
            manager.grade_manually("missing", 4, "Good work")

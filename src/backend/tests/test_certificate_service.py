"""
结业证书测试
"""
import re
from datetime import datetime

import pytest

from classroom.core.exceptions import NotEligibleError, NotEnrolledError
from classroom.models import Certificate, ClassEnrollment, EnrollmentStatus
from classroom.services import CertificateEvaluator, ClassProgress, ProgressEngine, SubmissionManager, SubmissionPayload
from classroom.services.certificate_service import generate_certificate_code

from conftest import CLASS_ID, OTHER_STUDENT_ID, STUDENT_ID


def class_progress(completed_modules=2, total_modules=2, graded=2, total_assignments=2) -> ClassProgress:
    return ClassProgress(
        class_id=CLASS_ID,
        total_modules=total_modules,
        completed_modules=completed_modules,
        total_assignments=total_assignments,
        graded_assignments=graded,
        completion_percentage=100,
        certificate_eligible=False,
    )


@pytest.fixture
def evaluator(store, catalog):
    return CertificateEvaluator(store)


@pytest.fixture
def manager(store, catalog, oracle):
    return SubmissionManager(store, oracle)


async def finish_class(engine, manager, scores=(4, 5)):
    """完成全部步骤并为两个作业评分"""
    for module_id, step_id in [("M1", "S1"), ("M1", "S2"), ("M2", "S3")]:
        engine.complete_step(module_id, step_id)
    for assignment_id, score in zip(["A1", "A2"], scores):
        submission = manager.store.find_submission(assignment_id, STUDENT_ID)
        if submission is None:
            payload = SubmissionPayload(submission_url=f"https://example.com/{assignment_id}")
            submission = (await manager.submit(assignment_id, STUDENT_ID, payload)).submission
        manager.grade_manually(submission.id, score, "Well done")


class TestEligibility:
    """签发条件"""

    def test_all_done_is_eligible(self):
        assert CertificateEvaluator.is_eligible(class_progress())

    @pytest.mark.parametrize("progress", [
        class_progress(completed_modules=1),
        class_progress(graded=1),
        class_progress(graded=0, total_assignments=0),
    ])
    def test_not_eligible(self, progress):
        assert not CertificateEvaluator.is_eligible(progress)

    def test_not_eligible_raises(self, evaluator):
        with pytest.raises(NotEligibleError):
            evaluator.issue_or_fetch(STUDENT_ID, CLASS_ID, class_progress(graded=1), None)

        assert evaluator.get_certificate(STUDENT_ID, CLASS_ID) is None


class TestIssueCertificate:
    """证书签发"""

    def test_issue_snapshot(self, evaluator):
        certificate = evaluator.issue_or_fetch(STUDENT_ID, CLASS_ID, class_progress(), 4.5)

        assert certificate.modules_completed == 2
        assert certificate.total_modules == 2
        assert certificate.assignments_graded == 2
        assert certificate.total_assignments == 2
        assert certificate.average_grade == 4.5
        assert certificate.completion_date is not None

    def test_issue_is_idempotent(self, evaluator, db_session):
        first = evaluator.issue_or_fetch(STUDENT_ID, CLASS_ID, class_progress(), 4.5)
        first_id, first_code = first.id, first.certificate_code

        # 之后的进度变化不影响已签发的证书
        second = evaluator.issue_or_fetch(
            STUDENT_ID, CLASS_ID, class_progress(completed_modules=3, total_modules=3), 2.0
        )

        assert second.id == first_id
        assert second.certificate_code == first_code
        assert second.total_modules == 2
        assert second.average_grade == 4.5
        assert db_session.query(Certificate).count() == 1

    @pytest.mark.asyncio
    async def test_issue_from_engine(self, evaluator, engine, manager):
        await finish_class(engine, manager, scores=(4, 5))

        certificate = evaluator.issue_certificate(engine, CLASS_ID)

        assert certificate.student_id == STUDENT_ID
        assert certificate.class_id == CLASS_ID
        assert certificate.modules_completed == 2
        assert certificate.assignments_graded == 2
        assert certificate.average_grade == 4.5

    def test_engine_without_grades_is_not_eligible(self, evaluator, engine):
        for module_id, step_id in [("M1", "S1"), ("M1", "S2"), ("M2", "S3")]:
            engine.complete_step(module_id, step_id)

        with pytest.raises(NotEligibleError):
            evaluator.issue_certificate(engine, CLASS_ID)

    @pytest.mark.asyncio
    async def test_class_progress_reports_eligibility(self, engine, manager):
        await finish_class(engine, manager)

        progress = engine.get_class_progress(CLASS_ID)

        assert progress.graded_assignments == 2
        assert progress.completion_percentage == 100
        assert progress.certificate_eligible


class TestEnrollmentRequired:
    """未选课或已退课的学生不能获得证书"""

    async def _grade_all(self, manager, student_id):
        for assignment_id in ["A1", "A2"]:
            payload = SubmissionPayload(submission_url=f"https://example.com/{assignment_id}")
            submission = (await manager.submit(assignment_id, student_id, payload)).submission
            manager.grade_manually(submission.id, 5, "Great")

    @pytest.mark.asyncio
    async def test_unenrolled_student_counts_class_modules(self, evaluator, store, manager, db_session):
        await self._grade_all(manager, OTHER_STUDENT_ID)
        outsider = ProgressEngine(store, OTHER_STUDENT_ID)

        progress = outsider.get_class_progress(CLASS_ID)

        assert progress.total_modules == 2
        assert progress.completed_modules == 0
        assert progress.graded_assignments == 2
        assert not progress.certificate_eligible
        with pytest.raises(NotEnrolledError):
            evaluator.issue_certificate(outsider, CLASS_ID)
        assert db_session.query(Certificate).count() == 0

    @pytest.mark.asyncio
    async def test_dropped_student_cannot_get_certificate(self, evaluator, store, engine, manager, db_session):
        await finish_class(engine, manager)
        enrollment = db_session.query(ClassEnrollment).filter(
            ClassEnrollment.student_id == STUDENT_ID
        ).first()
        enrollment.status = EnrollmentStatus.DROPPED.value
        db_session.commit()

        dropped = ProgressEngine(store, STUDENT_ID)

        assert dropped.get_class_progress(CLASS_ID).total_modules == 2
        with pytest.raises(NotEnrolledError):
            evaluator.issue_certificate(dropped, CLASS_ID)
        assert db_session.query(Certificate).count() == 0


class TestAverageGrade:
    """平均分"""

    def test_no_grades_returns_none(self, evaluator):
        assert evaluator.average_grade(STUDENT_ID, CLASS_ID) is None

    @pytest.mark.asyncio
    async def test_uses_latest_grade_per_submission(self, evaluator, engine, manager):
        await finish_class(engine, manager, scores=(2, 4))
        regraded = manager.store.find_submission("A1", STUDENT_ID)
        manager.grade_manually(regraded.id, 5, "Much better")

        assert evaluator.average_grade(STUDENT_ID, CLASS_ID) == 4.5

    @pytest.mark.asyncio
    async def test_rounded_to_two_decimals(self, evaluator, store, catalog, manager, db_session):
        from classroom.models import Assignment

        db_session.add(Assignment(id="A3", class_id=CLASS_ID, title="Reflection", instructions="Reflect"))
        db_session.commit()
        for assignment_id, score in [("A1", 4), ("A2", 4), ("A3", 5)]:
            payload = SubmissionPayload(file_ref=f"uploads/{assignment_id}.pdf")
            submission = (await manager.submit(assignment_id, STUDENT_ID, payload)).submission
            manager.grade_manually(submission.id, score, "ok")

        assert evaluator.average_grade(STUDENT_ID, CLASS_ID) == 4.33


class TestCertificateCode:
    """证书编号"""

    def test_format(self):
        code = generate_certificate_code("class-0001-xxxx", "student-0001-aaaa", datetime(2024, 5, 1, 8, 30, 0))

        assert re.fullmatch(r"CERT-CLASS000-STUDENT0-20240501083000-[0-9A-F]{8}", code)

    def test_codes_are_unique(self):
        now = datetime(2024, 5, 1)
        codes = {generate_certificate_code(CLASS_ID, STUDENT_ID, now) for _ in range(20)}

        assert len(codes) == 20

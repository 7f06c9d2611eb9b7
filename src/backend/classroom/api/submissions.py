"""
作业提交与评分API
"""
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel

from classroom.api.deps import get_grading_oracle, get_store, http_error
from classroom.core.exceptions import ClassroomError
from classroom.models import Grade, Submission
from classroom.services import GradingOracleClient, ProgressStore, SubmissionManager, SubmissionPayload


router = APIRouter(prefix="/submissions", tags=["作业提交"])


# Schemas
class SubmitRequest(BaseModel):
    """提交作业请求"""
    assignment_id: str
    file_ref: Optional[str] = None
    submission_url: Optional[str] = None
    notes: Optional[str] = None


class ManualGradeRequest(BaseModel):
    """人工评分请求"""
    score: int
    feedback: str
    strengths: Optional[str] = None
    improvements: Optional[str] = None


def serialize_grade(grade: Optional[Grade]) -> Optional[dict]:
    if grade is None:
        return None
    return {
        "id": grade.id,
        "submission_id": grade.submission_id,
        "grader_type": grade.grader_type,
        "score": grade.score,
        "feedback": grade.feedback,
        "strengths": grade.strengths,
        "improvements": grade.improvements,
        "analysis": grade.analysis,
        "graded_by": grade.graded_by,
        "created_at": grade.created_at.isoformat() if grade.created_at else None,
    }


def serialize_submission(submission: Submission, grade: Optional[Grade] = None) -> dict:
    return {
        "id": submission.id,
        "assignment_id": submission.assignment_id,
        "student_id": submission.student_id,
        "submission_type": submission.submission_type,
        "file_ref": submission.file_ref,
        "submission_url": submission.submission_url,
        "notes": submission.notes,
        "status": submission.status,
        "submitted_at": submission.submitted_at.isoformat() if submission.submitted_at else None,
        "graded_at": submission.graded_at.isoformat() if submission.graded_at else None,
        "grade": serialize_grade(grade),
    }


def _manager(
    store: ProgressStore = Depends(get_store),
    oracle: GradingOracleClient = Depends(get_grading_oracle),
) -> SubmissionManager:
    return SubmissionManager(store, oracle)


# Endpoints
@router.post("", status_code=status.HTTP_201_CREATED)
async def submit_assignment(
    request: SubmitRequest,
    user_id: str,
    manager: SubmissionManager = Depends(_manager)
):
    """
    提交作业

    作业开启 AI 评分时会立即评分；评分失败时提交仍然成功（状态 pending），
    失败原因放在 grading_error 中，可稍后重新请求评分。

    Raises:
        422: 文件与链接都为空
        404: 作业不存在
        409: 已有提交正在评分或已评分
    """
    payload = SubmissionPayload(
        file_ref=request.file_ref,
        submission_url=request.submission_url,
        notes=request.notes,
    )
    try:
        result = await manager.submit(request.assignment_id, user_id, payload)
    except ClassroomError as e:
        raise http_error(e)

    data = serialize_submission(result.submission, result.grade)
    data["grading_error"] = str(result.grading_error) if result.grading_error else None
    return data


@router.get("")
def list_submissions(
    assignment_id: Optional[str] = None,
    student_id: Optional[str] = None,
    manager: SubmissionManager = Depends(_manager)
):
    """按作业和/或学生查询提交"""
    return [
        serialize_submission(s, manager.get_latest_grade(s.id))
        for s in manager.list_submissions(assignment_id=assignment_id, student_id=student_id)
    ]


@router.get("/{submission_id}")
def get_submission(
    submission_id: str,
    manager: SubmissionManager = Depends(_manager)
):
    """获取提交及最新评分"""
    try:
        submission = manager.get_submission(submission_id)
    except ClassroomError as e:
        raise http_error(e)
    return serialize_submission(submission, manager.get_latest_grade(submission_id))


@router.post("/{submission_id}/grade")
async def request_grading(
    submission_id: str,
    manager: SubmissionManager = Depends(_manager)
):
    """
    请求 AI 评分

    Raises:
        404: 提交不存在
        502: AI 评分失败（提交已回滚为 pending，可重试）
    """
    try:
        submission = await manager.request_grading(submission_id)
    except ClassroomError as e:
        raise http_error(e)
    return serialize_submission(submission, manager.get_latest_grade(submission_id))


@router.post("/{submission_id}/manual-grade", status_code=status.HTTP_201_CREATED)
def manual_grade(
    submission_id: str,
    request: ManualGradeRequest,
    grader_id: str,
    manager: SubmissionManager = Depends(_manager)
):
    """
    人工评分

    Raises:
        404: 提交不存在
        422: 分数不在 1-5 或评语为空
        409: 提交正在 AI 评分
    """
    if not grader_id:
        raise HTTPException(status_code=400, detail="评分人 ID 不能为空")
    try:
        grade = manager.grade_manually(
            submission_id,
            request.score,
            request.feedback,
            strengths=request.strengths,
            improvements=request.improvements,
            grader_id=grader_id,
        )
    except ClassroomError as e:
        raise http_error(e)
    return serialize_submission(manager.get_submission(submission_id), grade)

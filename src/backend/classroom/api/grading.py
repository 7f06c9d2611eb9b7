"""
AI 评分API

直接调用评分服务，不读写数据库。请求与响应字段与评分服务的对外契约一致。
"""
from typing import Optional
from fastapi import APIRouter, Depends
from pydantic import BaseModel

from classroom.api.deps import get_grading_oracle, http_error
from classroom.core.exceptions import ClassroomError
from classroom.services import GradingContext, GradingOracleClient


router = APIRouter(prefix="/grading", tags=["AI评分"])


class AIGradeRequest(BaseModel):
    """AI 评分请求"""
    assignment_title: str
    instructions: str
    rubric: Optional[str] = None
    submission_url: Optional[str] = None
    file_url: Optional[str] = None
    student_notes: Optional[str] = None
    module_context: Optional[str] = None
    step_context: Optional[str] = None
    image_url: Optional[str] = None


class AIGradeResponse(BaseModel):
    """AI 评分响应"""
    score: int
    feedback: str
    strengths: Optional[str] = None
    improvements: Optional[str] = None
    analysis: Optional[str] = None


@router.post("/ai-grade", response_model=AIGradeResponse)
async def ai_grade(
    request: AIGradeRequest,
    oracle: GradingOracleClient = Depends(get_grading_oracle)
):
    """
    AI 评分

    Raises:
        502: 评分服务调用失败或返回结构不合法
    """
    context = GradingContext(
        assignment_title=request.assignment_title,
        instructions=request.instructions,
        rubric=request.rubric,
        submission_url=request.submission_url,
        file_ref=request.file_url,
        student_notes=request.student_notes,
        module_context=request.module_context,
        step_context=request.step_context,
        image_url=request.image_url,
    )
    try:
        result = await oracle.request_ai_grade(context)
    except ClassroomError as e:
        raise http_error(e)
    return AIGradeResponse(**result.model_dump(include={"score", "feedback", "strengths", "improvements", "analysis"}))

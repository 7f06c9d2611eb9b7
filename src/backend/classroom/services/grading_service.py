"""
评分服务

两条评分路径产出同一种 GradeResult：
- AI 评分：把作业上下文发给 LLM，要求返回结构化 JSON（支持文本/链接与图片两种提交）
- 人工评分：校验分数与评语后直接生成结果，不经过 LLM

设计说明：
- LLM 调用失败（网络、超时、非 2xx）或响应不符合结构，统一抛出 GradingOracleError
- 不会用默认分数代替失败的评分
"""

import asyncio
import json
import logging
from dataclasses import dataclass, asdict
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError as PydanticValidationError, field_validator

from classroom.core.exceptions import GradingOracleError, ValidationError
from classroom.llm import (
    GradingConfig,
    LLMClient,
    LLMError,
    MessageRole,
    get_grading_config,
    get_llm_client,
    trace_llm_call,
)
from classroom.models import GraderType
from prompts import PromptLoader, PromptLoadError, PromptRenderError, prompt_loader

logger = logging.getLogger(__name__)

PROMPT_NAME = "assignment_grading"
MIN_SCORE = 1
MAX_SCORE = 5
IMAGE_EXTENSIONS = (".png", ".jpg", ".jpeg", ".gif", ".webp")


@dataclass
class GradingContext:
    """AI 评分所需的作业与提交上下文"""
    assignment_title: str
    instructions: str
    rubric: Optional[str] = None
    submission_url: Optional[str] = None
    file_ref: Optional[str] = None
    student_notes: Optional[str] = None
    module_context: Optional[str] = None
    step_context: Optional[str] = None
    image_url: Optional[str] = None  # 图片类提交的可访问地址

    def to_request(self) -> Dict[str, Any]:
        """评分请求的对外字段（file_ref 对外名为 file_url）"""
        data = asdict(self)
        data["file_url"] = data.pop("file_ref")
        data.pop("image_url")
        return data

    def resolve_image_url(self) -> Optional[str]:
        """图片提交的地址：显式指定的 image_url，或以图片扩展名结尾的文件链接"""
        if self.image_url:
            return self.image_url
        for candidate in (self.file_ref, self.submission_url):
            if candidate and candidate.lower().split("?")[0].endswith(IMAGE_EXTENSIONS) \
                    and candidate.startswith(("http://", "https://")):
                return candidate
        return None


class OracleResponse(BaseModel):
    """LLM 返回的评分结构（边界处严格校验）"""
    model_config = ConfigDict(extra="ignore")

    score: int = Field(..., ge=MIN_SCORE, le=MAX_SCORE, strict=True)
    feedback: str = Field(..., min_length=1)
    strengths: str
    improvements: str
    analysis: str


class GradeResult(BaseModel):
    """统一的评分结果，AI 与人工评分共用"""
    grader_type: GraderType
    score: int = Field(..., ge=MIN_SCORE, le=MAX_SCORE)
    feedback: str
    strengths: Optional[str] = None
    improvements: Optional[str] = None
    analysis: Optional[str] = None
    graded_by: Optional[str] = None

    @field_validator("feedback")
    @classmethod
    def feedback_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("feedback must not be blank")
        return value

    def to_grade_fields(self) -> Dict[str, Any]:
        """转换为 Grade 记录字段"""
        data = self.model_dump()
        data["grader_type"] = self.grader_type.value
        return data


def clean_llm_response(content: str) -> str:
    """清理 LLM 响应中的 Markdown 代码块标记"""
    content = content.strip()
    if content.startswith("```json"):
        content = content[7:]
    if content.startswith("```"):
        content = content[3:]
    if content.endswith("```"):
        content = content[:-3]
    return content.strip()


def parse_oracle_response(content: str) -> GradeResult:
    """
    解析 LLM 的评分响应

    Raises:
        GradingOracleError: 不是 JSON，或字段缺失/类型不符/分数越界
    """
    try:
        payload = json.loads(clean_llm_response(content))
    except json.JSONDecodeError as e:
        raise GradingOracleError(f"评分响应不是合法的 JSON: {content[:200]}", cause=e)

    if not isinstance(payload, dict):
        raise GradingOracleError(f"评分响应不是 JSON 对象: {content[:200]}")

    try:
        parsed = OracleResponse.model_validate(payload)
    except PydanticValidationError as e:
        raise GradingOracleError(f"评分响应结构不符合要求: {e.errors()}", cause=e)

    return GradeResult(grader_type=GraderType.AI, **parsed.model_dump())


class GradingOracleClient:
    """
    评分客户端

    使用示例:
        client = GradingOracleClient()
        result = await client.request_ai_grade(GradingContext(
            assignment_title="Portfolio site",
            instructions="Build a landing page",
            submission_url="https://example.com",
        ))
        manual = client.request_manual_grade(4, "Good work", grader_id="trainer-1")
    """

    def __init__(
        self,
        llm_client: Optional[LLMClient] = None,
        config: Optional[GradingConfig] = None,
        loader: Optional[PromptLoader] = None,
    ):
        self._llm_client = llm_client
        self.config = config or get_grading_config()
        self.loader = loader or prompt_loader

    @property
    def llm_client(self) -> LLMClient:
        """延迟初始化 LLM 客户端"""
        if self._llm_client is None:
            try:
                self._llm_client = get_llm_client()
            except ValueError as e:
                raise GradingOracleError("AI 评分服务未配置", cause=e)
        return self._llm_client

    def build_messages(self, context: GradingContext) -> List[Dict[str, Any]]:
        """
        构建评分消息

        图片提交使用多模态内容（文本 + image_url），其余使用纯文本提示词。

        Raises:
            GradingOracleError: 提示词模板缺失或渲染失败
        """
        variables = context.to_request()
        image_url = context.resolve_image_url()

        try:
            system_prompt = self.loader.render(PROMPT_NAME)
            if image_url:
                text = self.loader.render(PROMPT_NAME, "image_prompt", **variables)
                user_content: Any = [
                    {"type": "text", "text": text},
                    {"type": "image_url", "image_url": {"url": image_url}},
                ]
            else:
                user_content = self.loader.render(PROMPT_NAME, "user_prompt", **variables)
        except (PromptLoadError, PromptRenderError) as e:
            logger.error(f"评分提示词不可用: {e}")
            raise GradingOracleError("评分提示词不可用", cause=e)

        return [
            {"role": MessageRole.SYSTEM.value, "content": system_prompt},
            {"role": MessageRole.USER.value, "content": user_content},
        ]

    @trace_llm_call("ai_grading", tags=["grading"])
    async def request_ai_grade(self, context: GradingContext) -> GradeResult:
        """
        请求 AI 评分

        Args:
            context: 作业与提交上下文

        Returns:
            GradeResult: grader_type = ai

        Raises:
            GradingOracleError: 调用失败、超时或响应结构不合法
        """
        messages = self.build_messages(context)
        llm = self.llm_client

        try:
            response = await asyncio.wait_for(
                llm.chat(
                    messages,
                    model=self.config.model,
                    temperature=self.config.temperature,
                    max_tokens=self.config.max_tokens,
                    response_format={"type": "json_object"},
                ),
                timeout=self.config.timeout,
            )
        except asyncio.TimeoutError as e:
            logger.error(f"AI 评分超时（{self.config.timeout}s）: {context.assignment_title}")
            raise GradingOracleError(f"AI 评分超时（{self.config.timeout}s）", cause=e)
        except LLMError as e:
            logger.error(f"AI 评分调用失败: {e}")
            raise GradingOracleError("AI 评分调用失败", cause=e)

        result = parse_oracle_response(response.content)
        logger.info(f"AI 评分完成: {context.assignment_title} score={result.score}")
        return result

    def request_manual_grade(
        self,
        score: int,
        feedback: str,
        strengths: Optional[str] = None,
        improvements: Optional[str] = None,
        grader_id: Optional[str] = None,
    ) -> GradeResult:
        """
        生成人工评分结果

        Raises:
            ValidationError: 分数不是 1-5 的整数，或评语为空
        """
        if isinstance(score, bool) or not isinstance(score, int) or not MIN_SCORE <= score <= MAX_SCORE:
            raise ValidationError(f"分数必须是 {MIN_SCORE}-{MAX_SCORE} 的整数，收到: {score!r}")
        if not feedback or not feedback.strip():
            raise ValidationError("评语不能为空")

        return GradeResult(
            grader_type=GraderType.MANUAL,
            score=score,
            feedback=feedback.strip(),
            strengths=strengths,
            improvements=improvements,
            graded_by=grader_id,
        )

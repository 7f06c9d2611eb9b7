"""
OpenAI 兼容客户端实现

支持 OpenAI 及其兼容接口（如 DeepSeek、Azure OpenAI 等）。
评分需要视觉输入时，模型必须支持 image_url 内容块。
"""

from typing import List, Dict, Any, Optional
import logging

from .base import (
    LLMClient,
    ChatResponse,
    LLMError,
)
from .config import LLMConfig

logger = logging.getLogger(__name__)


class OpenAIClient(LLMClient):
    """
    OpenAI 兼容客户端

    使用示例:
        config = LLMConfig(api_key="sk-xxx", model="gpt-4o")
        client = OpenAIClient(config)

        response = await client.chat(
            [{"role": "user", "content": "Hello"}],
            response_format={"type": "json_object"},
        )
        print(response.content)
    """

    def __init__(self, config: LLMConfig):
        """
        初始化 OpenAI 客户端

        Args:
            config: LLM 配置对象
        """
        self._config = config
        self._async_client = None

    def _get_async_client(self):
        """获取异步客户端（延迟初始化）"""
        if self._async_client is None:
            from openai import AsyncOpenAI
            self._async_client = AsyncOpenAI(
                api_key=self._config.api_key,
                base_url=self._config.base_url,
                timeout=self._config.timeout,
                max_retries=self._config.max_retries,
            )
        return self._async_client

    async def chat(
        self,
        messages: List[Dict[str, Any]],
        *,
        model: Optional[str] = None,
        temperature: float = 0.7,
        max_tokens: Optional[int] = None,
        **kwargs
    ) -> ChatResponse:
        """
        非流式聊天

        Args:
            messages: 消息列表
            model: 模型名称
            temperature: 温度参数
            max_tokens: 最大 Token 数
            **kwargs: 其他参数（如 response_format, top_p 等）

        Returns:
            ChatResponse 响应对象

        Raises:
            LLMError: 网络错误、非 2xx 响应等 API 调用失败时抛出
        """
        client = self._get_async_client()
        model = model or self._config.model

        # 构建请求参数
        params = {
            "model": model,
            "messages": messages,
            "temperature": temperature,
        }
        if max_tokens is not None:
            params["max_tokens"] = max_tokens

        params.update(kwargs)

        try:
            response = await client.chat.completions.create(**params)

            return ChatResponse(
                content=response.choices[0].message.content or "",
                model=response.model,
                usage={
                    "prompt_tokens": response.usage.prompt_tokens,
                    "completion_tokens": response.usage.completion_tokens,
                    "total_tokens": response.usage.total_tokens,
                } if response.usage else None,
                finish_reason=response.choices[0].finish_reason,
            )

        except Exception as e:
            # APIStatusError 带有 HTTP 状态码，便于排查非 2xx 响应
            status_code = getattr(e, "status_code", None)
            if status_code is not None:
                logger.error(f"LLM 调用失败 (HTTP {status_code}): {e}")
                raise LLMError(f"LLM 调用失败: HTTP {status_code}", cause=e)
            logger.error(f"LLM 调用失败: {e}")
            raise LLMError(f"LLM 调用失败: {str(e)}", cause=e)

    @property
    def default_model(self) -> str:
        """获取默认模型名称"""
        return self._config.model

    @property
    def is_available(self) -> bool:
        """检查客户端是否可用"""
        return bool(self._config.api_key)

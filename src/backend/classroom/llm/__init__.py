"""
LLM 封装模块

提供统一的 LLM 调用接口和 Langfuse 监控功能。

使用示例:
    from classroom.llm import get_llm_client

    llm = get_llm_client()
    response = await llm.chat([
        {"role": "system", "content": "You are a grader"},
        {"role": "user", "content": "..."}
    ], response_format={"type": "json_object"})
    print(response.content)
"""

from typing import Optional

from .base import (
    LLMClient,
    ChatResponse,
    LLMError,
    MessageRole,
)
from .config import (
    LLMConfig,
    GradingConfig,
    LangfuseConfig,
    get_llm_config,
    get_grading_config,
    get_langfuse_config,
)
from .openai_client import OpenAIClient
from .langfuse_wrapper import (
    trace_llm_call,
    is_langfuse_enabled,
    reset_langfuse_client,
)


# 全局 LLM 客户端实例（延迟初始化）
_llm_client: Optional[LLMClient] = None


def get_llm_client(config: Optional[LLMConfig] = None) -> LLMClient:
    """
    获取 LLM 客户端实例（单例模式）

    如果未提供配置，则从环境变量自动加载。

    Args:
        config: LLM 配置对象，为 None 时自动加载

    Returns:
        LLMClient 客户端实例

    Raises:
        ValueError: 当 API Key 未配置时
    """
    global _llm_client

    if _llm_client is not None and config is None:
        return _llm_client

    if config is None:
        config = get_llm_config()

    # 目前只支持 OpenAI 兼容客户端
    _llm_client = OpenAIClient(config)

    return _llm_client


def reset_llm_client():
    """重置 LLM 客户端（用于测试或重新配置）"""
    global _llm_client
    _llm_client = None


__all__ = [
    "LLMClient",
    "OpenAIClient",
    "get_llm_client",
    "reset_llm_client",
    "ChatResponse",
    "LLMError",
    "MessageRole",
    "LLMConfig",
    "GradingConfig",
    "LangfuseConfig",
    "get_llm_config",
    "get_grading_config",
    "get_langfuse_config",
    "trace_llm_call",
    "is_langfuse_enabled",
    "reset_langfuse_client",
]

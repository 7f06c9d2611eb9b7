"""
LLM 配置管理模块

统一管理 LLM 服务与 AI 评分的配置。
配置优先级：环境变量 > 默认值
"""

import os
from dataclasses import dataclass
from typing import Optional


@dataclass
class LLMConfig:
    """
    LLM 服务配置

    Attributes:
        api_key: API 密钥
        base_url: API 基础地址（支持 OpenAI 兼容接口）
        model: 默认使用的模型名称（需支持视觉输入）
        timeout: 单次 HTTP 请求超时时间（秒）
        max_retries: SDK 内部的最大重试次数
    """
    api_key: str
    base_url: str = "https://api.openai.com/v1"
    model: str = "gpt-4o"
    timeout: float = 60.0
    max_retries: int = 2


@dataclass
class GradingConfig:
    """
    AI 评分配置

    Attributes:
        timeout: 整个评分调用的截止时间（秒），超时视为评分失败
        temperature: 评分温度
        max_tokens: 评分响应的最大 Token 数
        model: 评分模型，为 None 时使用 LLM 默认模型
    """
    timeout: float = 90.0
    temperature: float = 0.7
    max_tokens: int = 1000
    model: Optional[str] = None


@dataclass
class LangfuseConfig:
    """
    Langfuse 监控配置

    Attributes:
        public_key: Langfuse 公钥
        secret_key: Langfuse 私钥
        host: Langfuse 服务地址（自托管或云端）
        enabled: 是否启用监控
    """
    public_key: Optional[str] = None
    secret_key: Optional[str] = None
    host: str = "https://cloud.langfuse.com"
    enabled: bool = False

    def is_valid(self) -> bool:
        """检查配置是否有效（启用时需要密钥）"""
        if not self.enabled:
            return True
        return bool(self.public_key and self.secret_key)


def get_llm_config() -> LLMConfig:
    """
    从环境变量获取 LLM 配置

    环境变量：
        LLM_API_KEY: API 密钥（必需，未设置时回退到 OPENAI_API_KEY）
        LLM_BASE_URL: API 基础地址
        LLM_MODEL: 默认模型名称
        LLM_TIMEOUT: 请求超时时间
        LLM_MAX_RETRIES: 最大重试次数

    Returns:
        LLMConfig 配置对象

    Raises:
        ValueError: 当 API Key 未配置时
    """
    api_key = os.getenv("LLM_API_KEY") or os.getenv("OPENAI_API_KEY")
    if not api_key:
        raise ValueError("LLM API Key 未配置，请设置 LLM_API_KEY 环境变量")

    return LLMConfig(
        api_key=api_key,
        base_url=os.getenv("LLM_BASE_URL", "https://api.openai.com/v1"),
        model=os.getenv("LLM_MODEL", "gpt-4o"),
        timeout=float(os.getenv("LLM_TIMEOUT", "60.0")),
        max_retries=int(os.getenv("LLM_MAX_RETRIES", "2")),
    )


def get_grading_config() -> GradingConfig:
    """
    从环境变量获取 AI 评分配置

    环境变量：
        GRADING_TIMEOUT: 评分截止时间（秒）
        GRADING_TEMPERATURE: 评分温度
        GRADING_MAX_TOKENS: 最大 Token 数
        GRADING_MODEL: 评分模型
    """
    return GradingConfig(
        timeout=float(os.getenv("GRADING_TIMEOUT", "90.0")),
        temperature=float(os.getenv("GRADING_TEMPERATURE", "0.7")),
        max_tokens=int(os.getenv("GRADING_MAX_TOKENS", "1000")),
        model=os.getenv("GRADING_MODEL") or None,
    )


def get_langfuse_config() -> LangfuseConfig:
    """
    从环境变量获取 Langfuse 配置

    环境变量：
        LANGFUSE_PUBLIC_KEY: Langfuse 公钥
        LANGFUSE_SECRET_KEY: Langfuse 私钥
        LANGFUSE_HOST: Langfuse 服务地址
        LANGFUSE_ENABLED: 是否启用（默认当密钥存在时启用）

    Returns:
        LangfuseConfig 配置对象
    """
    public_key = os.getenv("LANGFUSE_PUBLIC_KEY")
    secret_key = os.getenv("LANGFUSE_SECRET_KEY")

    # 当密钥存在时默认启用，除非明确设置 LANGFUSE_ENABLED=false
    enabled_env = os.getenv("LANGFUSE_ENABLED", "").lower()
    if enabled_env == "false":
        enabled = False
    elif enabled_env == "true":
        enabled = True
    else:
        enabled = bool(public_key and secret_key)

    return LangfuseConfig(
        public_key=public_key,
        secret_key=secret_key,
        host=os.getenv("LANGFUSE_HOST", "https://cloud.langfuse.com"),
        enabled=enabled,
    )

"""
Langfuse 监控封装模块

提供 LLM 调用（AI 评分）的监控追踪功能。
通过装饰器方式无侵入集成到现有代码。

兼容 Langfuse SDK v2.x
"""

import asyncio
import logging
from functools import wraps
from typing import Optional, List, Dict, Any, Callable, TypeVar, ParamSpec
from datetime import datetime

from .config import get_langfuse_config

logger = logging.getLogger(__name__)

# 类型变量用于装饰器
P = ParamSpec("P")
R = TypeVar("R")

# 全局 Langfuse 客户端（延迟初始化）
_langfuse_client = None
_langfuse_enabled = None


def _get_langfuse_client():
    """
    获取 Langfuse 客户端（延迟初始化）

    Returns:
        Langfuse 客户端实例，如果未配置则返回 None
    """
    global _langfuse_client, _langfuse_enabled

    # 已经确定不可用，直接返回
    if _langfuse_enabled is False:
        return None

    # 已经初始化成功
    if _langfuse_client is not None:
        return _langfuse_client

    config = get_langfuse_config()

    if not config.enabled or not config.is_valid():
        logger.debug("Langfuse 监控未启用或配置无效")
        _langfuse_enabled = False
        return None

    try:
        from langfuse import Langfuse
        _langfuse_client = Langfuse(
            public_key=config.public_key,
            secret_key=config.secret_key,
            host=config.host,
        )
        _langfuse_enabled = True
        logger.info(f"Langfuse 客户端已初始化，地址: {config.host}")
        return _langfuse_client
    except Exception as e:
        logger.error(f"Langfuse 初始化失败: {e}")
        _langfuse_enabled = False
        return None


def reset_langfuse_client():
    """重置 Langfuse 客户端（用于测试或重新配置）"""
    global _langfuse_client, _langfuse_enabled
    _langfuse_client = None
    _langfuse_enabled = None


def _summarize_output(result: Any) -> Optional[Dict[str, Any]]:
    """提取输出信息（截断，避免上报过大内容）"""
    if hasattr(result, "model_dump"):
        return {k: str(v)[:500] for k, v in result.model_dump().items()}
    if hasattr(result, "content"):
        return {"content": str(result.content)[:500]}
    if isinstance(result, str):
        return {"content": result[:500]}
    return None


def trace_llm_call(
    name: str,
    *,
    metadata: Optional[Dict[str, Any]] = None,
    tags: Optional[List[str]] = None,
):
    """
    追踪 LLM 调用的装饰器

    自动记录 LLM 调用的输入、输出和耗时，并上报到 Langfuse。
    Langfuse 未启用时直接执行原函数。

    使用示例:
        @trace_llm_call("ai_grading", tags=["grading"])
        async def request_ai_grade(self, context):
            ...

    Args:
        name: 追踪名称（在 Langfuse 中显示）
        metadata: 额外的元数据
        tags: 标签列表（用于过滤和分类）
    """
    def decorator(func: Callable[P, R]) -> Callable[P, R]:
        def _report(client, input_data, start_time, result=None, error=None):
            duration_ms = (datetime.now() - start_time).total_seconds() * 1000
            if error is not None:
                client.trace(
                    name=name,
                    input=input_data,
                    output={"error": str(error)},
                    metadata={"duration_ms": duration_ms, "error": True, **(metadata or {})},
                    tags=(tags or []) + ["error"],
                )
            else:
                output_data = _summarize_output(result)
                trace = client.trace(
                    name=name,
                    input=input_data,
                    output=output_data,
                    metadata=metadata or {},
                    tags=tags or [],
                )
                trace.span(
                    name=f"{name}_call",
                    input=input_data,
                    output=output_data,
                    start_time=start_time,
                    end_time=datetime.now(),
                    metadata={"duration_ms": duration_ms, **(metadata or {})},
                )
            client.flush()

        def _input_data(args, kwargs) -> Dict[str, Any]:
            return {
                "args": str(args)[:500] if args else None,
                "kwargs": {k: str(v)[:200] for k, v in kwargs.items()},
            }

        @wraps(func)
        async def async_wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
            client = _get_langfuse_client()
            if client is None:
                return await func(*args, **kwargs)

            start_time = datetime.now()
            input_data = _input_data(args, kwargs)
            try:
                result = await func(*args, **kwargs)
            except Exception as e:
                _report(client, input_data, start_time, error=e)
                raise
            _report(client, input_data, start_time, result=result)
            return result

        @wraps(func)
        def sync_wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
            client = _get_langfuse_client()
            if client is None:
                return func(*args, **kwargs)

            start_time = datetime.now()
            input_data = _input_data(args, kwargs)
            try:
                result = func(*args, **kwargs)
            except Exception as e:
                _report(client, input_data, start_time, error=e)
                raise
            _report(client, input_data, start_time, result=result)
            return result

        # 根据函数类型返回对应的包装器
        if asyncio.iscoroutinefunction(func):
            return async_wrapper
        return sync_wrapper

    return decorator


def is_langfuse_enabled() -> bool:
    """检查 Langfuse 监控是否启用且可用"""
    return _get_langfuse_client() is not None

"""
FastAPI应用入口
"""
from dotenv import load_dotenv
from pathlib import Path
import os
import logging
from contextlib import asynccontextmanager

# 加载环境变量 - 优先从根目录加载，回退到当前目录
root_env = Path(__file__).parent.parent.parent / ".env"
if root_env.exists():
    load_dotenv(root_env)
else:
    load_dotenv()

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)

from fastapi import FastAPI  # noqa: E402
from fastapi.middleware.cors import CORSMiddleware  # noqa: E402

from classroom import __version__  # noqa: E402
from classroom.api import progress, submissions, grading, certificates  # noqa: E402
from classroom.llm import is_langfuse_enabled  # noqa: E402


def _get_cors_config() -> tuple[list[str], str | None]:
    """
    获取 CORS 配置

    Returns:
        (allow_origins, allow_origin_regex)
        - 生产环境：使用 ALLOWED_ORIGINS 中精确匹配的源（逗号分隔）
        - 开发环境：使用正则匹配本地端口
    """
    origins_str = os.getenv("ALLOWED_ORIGINS", "")
    if origins_str:
        origins = [origin.strip() for origin in origins_str.split(",") if origin.strip()]
        if origins:
            return origins, None

    if os.getenv("DEV_MODE", "false").lower() == "true":
        return [], r"http://(localhost|127\.0\.0\.1)(:\d+)?"

    logger.warning("未配置 ALLOWED_ORIGINS 且非开发模式，CORS 将拒绝所有跨域请求")
    return [], None


def _check_grading_configured() -> bool:
    """检查 AI 评分是否已配置 API Key"""
    return bool(os.getenv("LLM_API_KEY") or os.getenv("OPENAI_API_KEY"))


@asynccontextmanager
async def lifespan(app: FastAPI):
    """启动时创建数据表（不负责迁移）"""
    if os.getenv("AUTO_CREATE_TABLES", "true").lower() == "true":
        from classroom.models import init_db
        init_db()
    yield


app = FastAPI(
    lifespan=lifespan,
    title="Classroom API",
    description="Classroom learning management - progress, submissions, grading and certificates",
    version=__version__,
)

allow_origins, allow_origin_regex = _get_cors_config()
logger.info(f"CORS 配置: origins={allow_origins}, regex={allow_origin_regex}")

app.add_middleware(
    CORSMiddleware,
    allow_origins=allow_origins,
    allow_origin_regex=allow_origin_regex,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(progress.router, prefix="/api", tags=["学习进度"])
app.include_router(submissions.router, prefix="/api", tags=["作业提交"])
app.include_router(grading.router, prefix="/api", tags=["AI评分"])
app.include_router(certificates.router, prefix="/api", tags=["结业证书"])


@app.get("/")
async def root():
    """根路径"""
    return {"message": "Classroom API", "docs": "/docs"}


@app.get("/health")
async def health():
    """健康检查"""
    return {
        "status": "healthy",
        "grading_configured": _check_grading_configured(),
        "langfuse_enabled": is_langfuse_enabled(),
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)

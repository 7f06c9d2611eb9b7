"""
Pytest 配置和通用 Fixtures

提供内存 SQLite 数据库、课程目录测试数据和 Mock LLM 客户端
"""
import json
import os
import sys
from typing import Any, Dict, List, Optional

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from classroom.llm import ChatResponse, GradingConfig, LLMClient, LLMError  # noqa: E402
from classroom.models import (  # noqa: E402
    Assignment,
    Base,
    ClassEnrollment,
    Classroom,
    EnrollmentStatus,
    Module,
    Step,
)
from classroom.services import GradingOracleClient, ProgressEngine, ProgressStore  # noqa: E402


STUDENT_ID = "student-0001-aaaa"
OTHER_STUDENT_ID = "student-0002-bbbb"
CLASS_ID = "class-0001-xxxx"


# ==================== 数据库 ====================

@pytest.fixture
def db_engine():
    """每个测试独立的内存数据库"""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db_session(db_engine):
    """数据库会话"""
    TestingSession = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)
    session = TestingSession()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def store(db_session):
    return ProgressStore(db_session)


# ==================== 课程目录测试数据 ====================

@pytest.fixture
def catalog(db_session):
    """
    班级目录

    M1: S1(10 分钟), S2(20 分钟)
    M2: S3(30 分钟)
    A1: 人工评分作业（关联 M1/S2）
    A2: 开启 AI 评分的作业（关联 M2）
    """
    db_session.add(Classroom(id=CLASS_ID, name="AI Foundations"))
    db_session.add(ClassEnrollment(
        id="enr-1", class_id=CLASS_ID, student_id=STUDENT_ID, status=EnrollmentStatus.ACTIVE.value
    ))
    # M2 先插入，验证排序依赖 order_number 而不是插入顺序
    db_session.add(Module(id="M2", class_id=CLASS_ID, title="Prompting", order_number=2))
    db_session.add(Module(id="M1", class_id=CLASS_ID, title="Basics", order_number=1))
    db_session.add(Step(id="S2", module_id="M1", title="Tokens", order_number=2, estimated_minutes=20))
    db_session.add(Step(id="S1", module_id="M1", title="What is AI", order_number=1, estimated_minutes=10))
    db_session.add(Step(id="S3", module_id="M2", title="Prompt patterns", order_number=1, estimated_minutes=30))
    db_session.add(Assignment(
        id="A1", class_id=CLASS_ID, module_id="M1", step_id="S2",
        title="Token essay", instructions="Explain tokenization", ai_grading_enabled=False,
    ))
    db_session.add(Assignment(
        id="A2", class_id=CLASS_ID, module_id="M2",
        title="Prompt portfolio", instructions="Write three prompts", rubric="Clarity and creativity",
        ai_grading_enabled=True,
    ))
    db_session.commit()
    return {"class_id": CLASS_ID, "student_id": STUDENT_ID}


@pytest.fixture
def engine(store, catalog):
    """已选课学生的进度引擎"""
    return ProgressEngine(store, STUDENT_ID)


# ==================== Mock LLM ====================

def grade_json(score: Any = 4, **overrides) -> str:
    """构造 LLM 评分响应"""
    payload = {
        "score": score,
        "feedback": "Solid work overall.",
        "strengths": "Clear structure",
        "improvements": "Add more examples",
        "analysis": "The submission covers the main points.",
    }
    payload.update(overrides)
    return json.dumps(payload)


class MockLLMClient(LLMClient):
    """
    Mock LLM 客户端

    按顺序返回预设响应；响应为异常实例时抛出该异常。
    """

    def __init__(self, responses: Optional[List[Any]] = None):
        self.responses = list(responses or [grade_json()])
        self.calls: List[Dict[str, Any]] = []

    async def chat(self, messages, *, model=None, temperature=0.7, max_tokens=None, **kwargs) -> ChatResponse:
        self.calls.append({"messages": messages, "model": model, "temperature": temperature,
                           "max_tokens": max_tokens, **kwargs})
        response = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(response, Exception):
            raise response
        return ChatResponse(content=response, model="mock-model")

    @property
    def call_count(self) -> int:
        return len(self.calls)

    @property
    def default_model(self) -> str:
        return "mock-model"

    @property
    def is_available(self) -> bool:
        return True


@pytest.fixture
def mock_llm():
    return MockLLMClient()


@pytest.fixture
def failing_llm():
    return MockLLMClient([LLMError("LLM 调用失败: HTTP 500")])


@pytest.fixture
def oracle(mock_llm):
    return GradingOracleClient(llm_client=mock_llm, config=GradingConfig(timeout=5.0))


@pytest.fixture
def failing_oracle(failing_llm):
    return GradingOracleClient(llm_client=failing_llm, config=GradingConfig(timeout=5.0))

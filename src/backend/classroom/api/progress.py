"""
学习进度API
"""
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from classroom.api.deps import get_store, http_error
from classroom.core.exceptions import ClassroomError
from classroom.services import ProgressEngine, ProgressStore
from classroom.services.progress_service import serialize_step_progress


router = APIRouter(prefix="/progress", tags=["学习进度"])


class StartStepRequest(BaseModel):
    """开始步骤请求"""
    module_id: str


class CompleteStepRequest(BaseModel):
    """完成步骤请求"""
    module_id: str
    notes: Optional[str] = None


def _engine(store: ProgressStore, user_id: str) -> ProgressEngine:
    if not user_id:
        raise HTTPException(status_code=400, detail="用户 ID 不能为空")
    return ProgressEngine(store, user_id)


@router.post("/steps/{step_id}/start")
def start_step(
    step_id: str,
    request: StartStepRequest,
    user_id: str,
    store: ProgressStore = Depends(get_store)
):
    """
    开始学习步骤

    已完成的步骤再次进入不会改变进度。

    Raises:
        404: 步骤不存在或不属于该模块
        403: 未选修对应班级
    """
    engine = _engine(store, user_id)
    try:
        progress = engine.start_step(request.module_id, step_id)
    except ClassroomError as e:
        raise http_error(e)
    return serialize_step_progress(progress)


@router.post("/steps/{step_id}/complete")
def complete_step(
    step_id: str,
    request: CompleteStepRequest,
    user_id: str,
    store: ProgressStore = Depends(get_store)
):
    """
    完成学习步骤，同时返回所在模块的最新进度
    """
    engine = _engine(store, user_id)
    try:
        progress = engine.complete_step(request.module_id, step_id, notes=request.notes)
    except ClassroomError as e:
        raise http_error(e)

    module_progress = engine.get_module_progress(request.module_id)
    return {
        "progress": serialize_step_progress(progress),
        "module_progress": module_progress.to_dict() if module_progress else None,
    }


@router.get("/modules")
def list_modules(
    user_id: str,
    store: ProgressStore = Depends(get_store)
):
    """获取已选班级的模块列表及各模块进度"""
    engine = _engine(store, user_id)
    return [
        {
            "id": module.id,
            "class_id": module.class_id,
            "title": module.title,
            "order_number": module.order_number,
            "progress": engine.get_module_progress(module.id).to_dict(),
        }
        for module in engine.modules
    ]


@router.get("/modules/{module_id}")
def get_module_progress(
    module_id: str,
    user_id: str,
    store: ProgressStore = Depends(get_store)
):
    """
    获取模块进度

    Raises:
        404: 模块不存在或不在已选班级中
    """
    engine = _engine(store, user_id)
    module_progress = engine.get_module_progress(module_id)
    if module_progress is None:
        raise HTTPException(status_code=404, detail=f"模块 {module_id} 不存在")
    return module_progress.to_dict()


@router.get("/summary")
def get_summary(
    user_id: str,
    store: ProgressStore = Depends(get_store)
):
    """整体进度、推荐的下一步骤和预计剩余时长"""
    engine = _engine(store, user_id)
    next_step = engine.get_next_step()
    return {
        "summary": engine.get_overall_progress().to_dict(),
        "next_step": {
            "module_id": next_step.module.id,
            "module_title": next_step.module.title,
            "step_id": next_step.step.id,
            "step_title": next_step.step.title,
            "is_first_step": next_step.is_first_step,
        } if next_step else None,
        "all_completed": next_step is None,
        "time_remaining": engine.get_time_remaining_summary(),
    }


@router.get("/export")
def export_progress(
    user_id: str,
    store: ProgressStore = Depends(get_store)
):
    """导出完整进度数据"""
    return _engine(store, user_id).export_progress()


@router.get("/classes/{class_id}")
def get_class_progress(
    class_id: str,
    user_id: str,
    store: ProgressStore = Depends(get_store)
):
    """获取班级进度（含证书资格）"""
    return _engine(store, user_id).get_class_progress(class_id).to_dict()

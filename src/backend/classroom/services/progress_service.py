"""
学习进度引擎

以用户为单位的会话对象：
- 缓存用户已选班级的模块/步骤，以及用户的步骤进度
- 负责步骤状态迁移（开始 / 完成）
- 从原始进度记录计算模块、班级、整体的统计数据

缓存只是读穿透缓存，数据库才是唯一可信来源。任何写操作之后都会使进度缓存失效，
下次读取时重新加载。
"""
import logging
from dataclasses import dataclass, asdict
from datetime import datetime
from typing import Dict, List, Optional

from classroom.core.exceptions import NotEnrolledError, NotFoundError
from classroom.models import DEFAULT_STEP_MINUTES, Module, Step, StepProgress, StepStatus, SubmissionStatus
from classroom.services.progress_store import ProgressStore

logger = logging.getLogger(__name__)


@dataclass
class ModuleProgress:
    """模块进度（派生数据，不落库）"""
    module_id: str
    total_steps: int
    completed_steps: int
    in_progress_steps: int
    completion_percentage: int
    is_completed: bool
    is_started: bool

    def to_dict(self) -> Dict:
        return asdict(self)


@dataclass
class ClassProgress:
    """班级进度（派生数据，不落库）"""
    class_id: str
    total_modules: int
    completed_modules: int
    total_assignments: int
    graded_assignments: int
    completion_percentage: int
    certificate_eligible: bool

    def to_dict(self) -> Dict:
        return asdict(self)


@dataclass
class OverallProgress:
    """用户在所有已选班级上的整体进度"""
    total_modules: int = 0
    completed_modules: int = 0
    in_progress_modules: int = 0
    total_steps: int = 0
    completed_steps: int = 0
    overall_percentage: int = 0

    def to_dict(self) -> Dict:
        return asdict(self)


@dataclass
class NextStep:
    """推荐的下一个步骤"""
    module: Module
    step: Step
    is_first_step: bool  # 该步骤还没有任何进度记录


def percentage(done: int, total: int) -> int:
    """完成百分比（四舍五入取整），total 为 0 时返回 0"""
    if total <= 0:
        return 0
    return round(100 * done / total)


def is_certificate_eligible(
    completed_modules: int,
    total_modules: int,
    graded_assignments: int,
    total_assignments: int
) -> bool:
    """全部模块完成、全部作业已评分，且班级至少有一个作业"""
    return (
        completed_modules == total_modules
        and graded_assignments == total_assignments
        and total_assignments > 0
    )


def format_duration(minutes: int) -> str:
    """
    格式化时长

    >>> format_duration(45)
    '45 min'
    >>> format_duration(120)
    '2 hr'
    >>> format_duration(90)
    '1 hr 30 min'
    """
    if minutes < 60:
        return f"{minutes} min"

    hours, mins = divmod(minutes, 60)
    if mins == 0:
        return f"{hours} hr"
    return f"{hours} hr {mins} min"


class ProgressEngine:
    """
    学习进度引擎

    使用示例:
        engine = ProgressEngine(ProgressStore(db), user_id)
        engine.start_step(module_id, step_id)
        engine.complete_step(module_id, step_id, notes="done")
        engine.get_module_progress(module_id)
        engine.get_next_step()
    """

    def __init__(self, store: ProgressStore, user_id: str):
        self.store = store
        self.user_id = user_id
        self._modules: Optional[List[Module]] = None
        self._progress: Optional[Dict[str, StepProgress]] = None

    # ==================== 缓存管理 ====================

    @property
    def modules(self) -> List[Module]:
        """用户已选班级的模块（按模块顺序，步骤按步骤顺序）"""
        if self._modules is None:
            class_ids = self.store.list_active_class_ids(self.user_id)
            self._modules = self.store.list_modules(class_ids)
        return self._modules

    @property
    def progress(self) -> Dict[str, StepProgress]:
        """step_id -> StepProgress"""
        if self._progress is None:
            self._progress = {
                p.step_id: p for p in self.store.list_step_progress(self.user_id)
            }
        return self._progress

    def refresh(self) -> None:
        """立即从存储重新加载模块和进度"""
        self.invalidate()
        _ = self.modules
        _ = self.progress

    def invalidate(self) -> None:
        """丢弃缓存，下次访问时重新加载"""
        self._modules = None
        self._progress = None

    def _invalidate_progress(self) -> None:
        self._progress = None

    def get_step_progress(self, step_id: str) -> Optional[StepProgress]:
        return self.progress.get(step_id)

    def _find_module(self, module_id: str) -> Optional[Module]:
        for module in self.modules:
            if module.id == module_id:
                return module
        return None

    # ==================== 状态迁移 ====================

    def _check_step(self, module_id: str, step_id: str) -> Step:
        """校验步骤存在、属于该模块，且用户已选修模块所在班级"""
        step = self.store.get_step(step_id)
        if not step or step.module_id != module_id:
            raise NotFoundError(f"模块 {module_id} 中不存在步骤 {step_id}")

        module = self.store.get_module(module_id)
        if not module:
            raise NotFoundError(f"模块 {module_id} 不存在")

        if not self.store.is_enrolled(self.user_id, module.class_id):
            raise NotEnrolledError(f"用户 {self.user_id} 未选修班级 {module.class_id}")
        return step

    def start_step(self, module_id: str, step_id: str) -> StepProgress:
        """
        标记步骤为开始学习

        - 无记录：创建 in_progress 记录，started_at = 当前时间
        - in_progress：仅在 started_at 为空时补写
        - completed：不做任何修改，原样返回（复习已完成步骤不会丢失进度）

        Raises:
            NotFoundError: 步骤不存在或不属于该模块
            NotEnrolledError: 用户未选修对应班级
        """
        self._check_step(module_id, step_id)

        existing = self.store.get_step_progress(self.user_id, step_id)

        if existing:
            if existing.status == StepStatus.COMPLETED.value:
                return existing
            if existing.started_at is not None:
                return existing
            progress = self.store.update_step_progress(existing, started_at=datetime.utcnow())
        else:
            progress = self.store.create_step_progress(
                user_id=self.user_id,
                module_id=module_id,
                step_id=step_id,
                status=StepStatus.IN_PROGRESS.value,
                started_at=datetime.utcnow(),
            )
            logger.info(f"用户 {self.user_id} 开始学习步骤 {step_id}")

        self._invalidate_progress()
        return progress

    def complete_step(self, module_id: str, step_id: str, notes: Optional[str] = None) -> StepProgress:
        """
        标记步骤为已完成

        重复完成是幂等的：只刷新 completed_at（以及传入的 notes），不会报错。
        从未开始过的步骤直接创建已完成记录。

        Raises:
            NotFoundError: 步骤不存在或不属于该模块
            NotEnrolledError: 用户未选修对应班级
        """
        self._check_step(module_id, step_id)

        now = datetime.utcnow()
        existing = self.store.get_step_progress(self.user_id, step_id)

        if existing:
            fields = {
                "status": StepStatus.COMPLETED.value,
                "completed_at": now,
            }
            if notes is not None:
                fields["notes"] = notes
            if existing.started_at is None:
                fields["started_at"] = now
            progress = self.store.update_step_progress(existing, **fields)
        else:
            progress = self.store.create_step_progress(
                user_id=self.user_id,
                module_id=module_id,
                step_id=step_id,
                status=StepStatus.COMPLETED.value,
                started_at=now,
                completed_at=now,
                notes=notes,
            )

        logger.info(f"用户 {self.user_id} 完成步骤 {step_id}")
        self._invalidate_progress()
        return progress

    # ==================== 统计 ====================

    def _module_progress(self, module: Module) -> ModuleProgress:
        rows = [self.progress[s.id] for s in module.steps if s.id in self.progress]
        total_steps = len(module.steps)
        completed_steps = sum(1 for p in rows if p.status == StepStatus.COMPLETED.value)
        in_progress_steps = sum(1 for p in rows if p.status == StepStatus.IN_PROGRESS.value)

        return ModuleProgress(
            module_id=module.id,
            total_steps=total_steps,
            completed_steps=completed_steps,
            in_progress_steps=in_progress_steps,
            completion_percentage=percentage(completed_steps, total_steps),
            is_completed=total_steps > 0 and completed_steps == total_steps,
            is_started=len(rows) > 0,
        )

    def get_module_progress(self, module_id: str) -> Optional[ModuleProgress]:
        """获取模块进度，模块不在已选班级中时返回 None"""
        module = self._find_module(module_id)
        if module is None:
            return None
        return self._module_progress(module)

    def get_overall_progress(self) -> OverallProgress:
        """获取整体进度摘要"""
        summary = OverallProgress(total_modules=len(self.modules))

        for module in self.modules:
            module_progress = self._module_progress(module)
            summary.total_steps += module_progress.total_steps
            summary.completed_steps += module_progress.completed_steps

            if module_progress.is_completed:
                summary.completed_modules += 1
            elif module_progress.is_started:
                summary.in_progress_modules += 1

        summary.overall_percentage = percentage(summary.completed_steps, summary.total_steps)
        return summary

    def get_class_progress(self, class_id: str) -> ClassProgress:
        """
        获取用户在某个班级的进度

        模块直接从班级目录读取，不依赖选课状态；作业以班级下启用的作业为准，
        已评分作业为用户提交状态为 graded 的作业。
        """
        modules = self.store.list_modules([class_id])
        completed_modules = sum(1 for m in modules if self._module_progress(m).is_completed)

        assignments = self.store.list_assignments(class_id)
        assignment_ids = {a.id for a in assignments}
        graded = {
            s.assignment_id
            for s in self.store.list_submissions(student_id=self.user_id, status=SubmissionStatus.GRADED)
            if s.assignment_id in assignment_ids
        }

        return ClassProgress(
            class_id=class_id,
            total_modules=len(modules),
            completed_modules=completed_modules,
            total_assignments=len(assignments),
            graded_assignments=len(graded),
            completion_percentage=percentage(completed_modules, len(modules)),
            certificate_eligible=is_certificate_eligible(
                completed_modules, len(modules), len(graded), len(assignments)
            ),
        )

    def get_next_step(self) -> Optional[NextStep]:
        """
        获取推荐的下一个步骤

        按模块顺序、模块内步骤顺序扫描，返回第一个未完成的步骤。
        全部完成时返回 None。
        """
        for module in self.modules:
            for step in module.steps:
                progress = self.get_step_progress(step.id)
                if progress is None or progress.status != StepStatus.COMPLETED.value:
                    return NextStep(module=module, step=step, is_first_step=progress is None)
        return None

    def get_estimated_time_remaining(self) -> int:
        """所有未完成步骤的预计时长之和（分钟）"""
        total_minutes = 0
        for module in self.modules:
            for step in module.steps:
                progress = self.get_step_progress(step.id)
                if progress is None or progress.status != StepStatus.COMPLETED.value:
                    total_minutes += step.estimated_minutes or DEFAULT_STEP_MINUTES
        return total_minutes

    def get_time_remaining_summary(self) -> Dict:
        minutes = self.get_estimated_time_remaining()
        return {
            "minutes": minutes,
            "hours": round(minutes / 60, 1),
            "formatted": format_duration(minutes),
        }

    def export_progress(self) -> Dict:
        """导出用户的完整进度数据"""
        return {
            "user_id": self.user_id,
            "summary": self.get_overall_progress().to_dict(),
            "time_remaining": self.get_time_remaining_summary(),
            "modules": [
                {
                    "id": module.id,
                    "title": module.title,
                    "progress": self._module_progress(module).to_dict(),
                    "steps": [
                        {
                            "id": step.id,
                            "title": step.title,
                            "progress": serialize_step_progress(self.get_step_progress(step.id)),
                        }
                        for step in module.steps
                    ],
                }
                for module in self.modules
            ],
            "exported_at": datetime.utcnow().isoformat(),
        }


def serialize_step_progress(progress: Optional[StepProgress]) -> Optional[Dict]:
    """步骤进度转字典，未开始时返回 None"""
    if progress is None:
        return None
    return {
        "id": progress.id,
        "module_id": progress.module_id,
        "step_id": progress.step_id,
        "status": progress.status,
        "started_at": progress.started_at.isoformat() if progress.started_at else None,
        "completed_at": progress.completed_at.isoformat() if progress.completed_at else None,
        "notes": progress.notes,
    }

"""
班级数据初始化脚本
创建一个示例班级（模块、步骤、作业），并可为指定学生选课

执行方式：
    cd scripts
    python init_class_data.py --student <student_id>

说明：
    1. 脚本会自动添加后端目录到 Python 路径
    2. 脚本会自动切换工作目录到 src/backend/（确保相对路径正常工作）
    3. 班级已存在时跳过创建，只补充选课记录
"""
import argparse
import sys
import os
import uuid

# 添加后端目录到 Python 路径，以便导入 classroom.models 等模块
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src', 'backend'))

# 切换工作目录到后端目录，确保数据库相对路径正常工作
os.chdir(os.path.join(os.path.dirname(__file__), '..', 'src', 'backend'))

from sqlalchemy.orm import Session

from classroom.models import (
    Assignment,
    ClassEnrollment,
    Classroom,
    EnrollmentStatus,
    Module,
    Step,
    init_db,
)

DEMO_CLASS_ID = "demo-class-ai-foundations"

# (模块标题, [(步骤标题, 预计分钟)])
DEMO_MODULES = [
    ("AI Basics", [("What is AI", 10), ("Tokens and context", 20)]),
    ("Prompting", [("Prompt patterns", 30), ("Evaluating outputs", 15)]),
]


def create_demo_class(db: Session) -> Classroom:
    """创建示例班级及其模块、步骤和作业"""
    classroom = Classroom(
        id=DEMO_CLASS_ID,
        name="AI Foundations",
        description="Introductory class covering AI basics and prompting"
    )
    db.add(classroom)

    modules = []
    for module_order, (module_title, steps) in enumerate(DEMO_MODULES, start=1):
        module = Module(
            id=str(uuid.uuid4()),
            class_id=DEMO_CLASS_ID,
            title=module_title,
            order_number=module_order
        )
        db.add(module)
        modules.append(module)
        for step_order, (step_title, minutes) in enumerate(steps, start=1):
            db.add(Step(
                id=str(uuid.uuid4()),
                module_id=module.id,
                title=step_title,
                order_number=step_order,
                estimated_minutes=minutes
            ))

    db.add(Assignment(
        id=str(uuid.uuid4()),
        class_id=DEMO_CLASS_ID,
        module_id=modules[0].id,
        title="Explain tokenization",
        instructions="Write a short essay explaining how LLMs split text into tokens.",
        ai_grading_enabled=False
    ))
    db.add(Assignment(
        id=str(uuid.uuid4()),
        class_id=DEMO_CLASS_ID,
        module_id=modules[1].id,
        title="Prompt portfolio",
        instructions="Share a link to three prompts you designed and the outputs they produced.",
        rubric="Clarity of intent, use of prompt patterns, reflection on results",
        ai_grading_enabled=True
    ))

    db.commit()
    print(f"✅ Created class {classroom.name} with {len(modules)} modules")
    return classroom


def enroll_student(db: Session, student_id: str):
    """为学生选课（已选课则跳过）"""
    existing = db.query(ClassEnrollment).filter(
        ClassEnrollment.class_id == DEMO_CLASS_ID,
        ClassEnrollment.student_id == student_id
    ).first()
    if existing:
        print(f"⚠️  学生 {student_id} 已选课，跳过")
        return

    db.add(ClassEnrollment(
        id=str(uuid.uuid4()),
        class_id=DEMO_CLASS_ID,
        student_id=student_id,
        status=EnrollmentStatus.ACTIVE.value
    ))
    db.commit()
    print(f"✅ Enrolled {student_id} in {DEMO_CLASS_ID}")


def main():
    """
    主函数：初始化班级数据
    """
    from classroom.core.database import SessionLocal

    parser = argparse.ArgumentParser(description="初始化示例班级数据")
    parser.add_argument("--student", action="append", default=[], help="需要选课的学生 ID，可重复指定")
    args = parser.parse_args()

    print("🚀 Initializing class data...")

    print("📋 Creating database tables...")
    init_db()

    db = SessionLocal()
    try:
        if db.query(Classroom).filter(Classroom.id == DEMO_CLASS_ID).first():
            print(f"⚠️  班级 {DEMO_CLASS_ID} 已存在，跳过创建")
        else:
            create_demo_class(db)
        for student_id in args.student:
            enroll_student(db, student_id)
        print("✅ Class data initialization completed!")
    except Exception as e:
        print(f"❌ Error initializing class data: {e}")
        db.rollback()
        raise
    finally:
        db.close()


if __name__ == "__main__":
    main()

#!/usr/bin/env python3
"""
数据库初始化脚本
创建所有数据库表（--reset 时先删除再重建）
"""
import sys
import os
from pathlib import Path

# Add src/backend to path
backend_dir = Path(__file__).parent / ".." / "src" / "backend"
sys.path.insert(0, str(backend_dir))

# Change to backend directory so relative paths work
os.chdir(str(backend_dir))

from classroom.models import drop_all, init_db

if __name__ == "__main__":
    if "--reset" in sys.argv:
        print("删除已有数据表...")
        drop_all()
    print("初始化数据库...")
    init_db()
    print("完成！")

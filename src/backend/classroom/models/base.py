"""
声明式基类
"""
from sqlalchemy.orm import declarative_base

Base = declarative_base()

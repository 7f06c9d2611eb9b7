"""
课堂学习管理后端

学习进度追踪、作业提交与评分生命周期、结业证书签发。
"""

__version__ = "0.1.0"

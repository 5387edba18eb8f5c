"""Background scheduling helpers."""

from .apsched_adapter import APSchedulerAdapter, REFRESH_JOB_ID

__all__ = ["APSchedulerAdapter", "REFRESH_JOB_ID"]

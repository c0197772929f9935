"""
@PURPOSE: 数据模型模块
@OUTLINE:
  - StepStatus, StepOutcome, ErrorRecord: 步骤记录
  - BrowserBundle, TeardownReport, CleanupFailure: 浏览器会话与清理
  - RunSummary, BrowserRunResult: 执行摘要
@DEPENDENCIES:
  - 内部: .result
"""

from .result import (
    PASSING_STATUSES,
    BrowserBundle,
    BrowserRunResult,
    CleanupFailure,
    ErrorRecord,
    RunSummary,
    StepOutcome,
    StepStatus,
    TeardownReport,
)

__all__ = [
    "PASSING_STATUSES",
    "BrowserBundle",
    "BrowserRunResult",
    "CleanupFailure",
    "ErrorRecord",
    "RunSummary",
    "StepOutcome",
    "StepStatus",
    "TeardownReport",
]

"""
@PURPOSE: 定义测试工作流执行结果的数据结构
@OUTLINE:
  - class StepStatus: 步骤状态枚举（success|failed|error|completed）
  - class StepOutcome: 单个节点/步骤的执行记录
  - class ErrorRecord: 失败记录
  - class BrowserBundle: 浏览器/上下文/页面句柄组合
  - class CleanupFailure, TeardownReport: 清理结果
  - class RunSummary: 工作流执行摘要
  - class BrowserRunResult: 多浏览器并行执行的单个结果
@GOTCHAS:
  - StepOutcome / ErrorRecord 创建后不可修改（frozen）
  - BrowserBundle 持有 Playwright 句柄, 不可序列化
@DEPENDENCIES:
  - 外部: pydantic
@RELATED: testforge/core/state.py, testforge/core/workflow_graph.py
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Iterable

from pydantic import BaseModel, ConfigDict, Field


class StepStatus(str, Enum):
    """步骤状态."""

    SUCCESS = "success"
    FAILED = "failed"
    ERROR = "error"
    COMPLETED = "completed"


# teardown 的 completed 视为正常收尾
PASSING_STATUSES = frozenset({StepStatus.SUCCESS, StepStatus.COMPLETED})


def _now() -> str:
    return datetime.now().isoformat()


class StepOutcome(BaseModel):
    """单个节点或场景步骤的执行记录.

    Attributes:
        step: 步骤名称（节点名或 step_<index>）
        status: 执行状态
        details: 附加信息（页面标题、错误汇总等）
        timestamp: 记录时间

    Examples:
        >>> outcome = StepOutcome(step="setup_test_data", status=StepStatus.SUCCESS)
        >>> outcome.passed
        True
    """

    model_config = ConfigDict(frozen=True)

    step: str = Field(..., description="步骤名称")
    status: StepStatus = Field(..., description="执行状态")
    details: dict[str, Any] | None = Field(default=None, description="附加信息")
    timestamp: str = Field(default_factory=_now, description="记录时间")

    @property
    def passed(self) -> bool:
        return self.status in PASSING_STATUSES


class ErrorRecord(BaseModel):
    """失败记录, 追加到 errors 序列而不是抛出.

    Attributes:
        step: 失败的步骤名称
        error: 错误信息
        timestamp: 记录时间
    """

    model_config = ConfigDict(frozen=True)

    step: str = Field(..., description="步骤名称")
    error: str = Field(..., description="错误信息")
    timestamp: str = Field(default_factory=_now, description="记录时间")

    @classmethod
    def from_exception(cls, step: str, exc: BaseException) -> ErrorRecord:
        """由异常构造记录, 异常消息为空时使用异常类型名."""
        return cls(step=step, error=str(exc) or type(exc).__name__)


@dataclass
class BrowserBundle:
    """一次浏览器会话的句柄组合."""

    browser: Any
    context: Any
    page: Any
    browser_type: str = "chromium"


@dataclass(frozen=True)
class CleanupFailure:
    """单个浏览器上下文关闭失败."""

    name: str
    error: str


@dataclass
class TeardownReport:
    """清理结果: 已关闭的上下文与收集到的失败."""

    closed: list[str] = field(default_factory=list)
    failures: list[CleanupFailure] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures

    def to_details(self) -> dict[str, Any]:
        return {
            "closed": list(self.closed),
            "cleanup_failures": [{"name": f.name, "error": f.error} for f in self.failures],
        }


class RunSummary(BaseModel):
    """工作流执行摘要.

    Attributes:
        total_steps: 记录的步骤总数
        success: 是否全部通过且无错误
        errors: 累积的错误记录
    """

    total_steps: int = Field(default=0, description="步骤总数")
    success: bool = Field(default=False, description="是否全部通过")
    errors: list[ErrorRecord] = Field(default_factory=list, description="错误记录")

    @classmethod
    def from_records(
        cls, outcomes: Iterable[StepOutcome], errors: Iterable[ErrorRecord]
    ) -> RunSummary:
        outcomes = list(outcomes)
        errors = list(errors)
        return cls(
            total_steps=len(outcomes),
            success=not errors and all(o.passed for o in outcomes),
            errors=errors,
        )


class BrowserRunResult(BaseModel):
    """多浏览器并行执行时单个浏览器的结果."""

    browser_type: str = Field(..., description="浏览器类型")
    success: bool = Field(..., description="是否成功")
    result: Any = Field(default=None, description="动作返回值")
    error: str | None = Field(default=None, description="错误信息")

"""
@PURPOSE: 自定义测试场景 - 按顺序执行用户步骤, 首个失败即停止
@OUTLINE:
  - class ScenarioRunner: 可复用的场景执行器
  - async def run_scenario(): 执行步骤序列
@GOTCHAS:
  - 步骤返回的裸值直接替换同名字段（浅合并）, 更新变体走字段 reducer
  - 步骤记录标签为 step_<序号>, 序号从 0 开始
  - 步骤可以是同步或异步函数; 接收两个位置参数时额外传入浏览器句柄
@DEPENDENCIES:
  - 外部: loguru
  - 内部: testforge.core.state, testforge.models.result
@RELATED: orchestrator.py
"""

from __future__ import annotations

import inspect
from typing import Any, Callable, Mapping, Sequence

from loguru import logger

from testforge.core.state import merge_state, overlay_state
from testforge.models.result import ErrorRecord, StepOutcome, StepStatus

ScenarioStep = Callable[..., Any]


class ScenarioRunner:
    """场景执行器.

    Examples:
        >>> async def open_home(state, handles):
        ...     await handles["page"].goto(state["test_data"]["base_url"])
        ...     return {"visited": True}
        >>> runner = ScenarioRunner([open_home])
        >>> final = await runner({"test_data": {...}}, {"page": page})
    """

    def __init__(self, steps: Sequence[ScenarioStep]) -> None:
        self.steps = list(steps)

    async def __call__(
        self,
        state: Mapping[str, Any] | None = None,
        handles: Mapping[str, Any] | None = None,
    ) -> dict[str, Any]:
        return await run_scenario(self.steps, state, handles)

    def __len__(self) -> int:
        return len(self.steps)


async def run_scenario(
    steps: Sequence[ScenarioStep],
    state: Mapping[str, Any] | None = None,
    handles: Mapping[str, Any] | None = None,
) -> dict[str, Any]:
    """按顺序执行步骤.

    Args:
        steps: 步骤列表
        state: 初始状态
        handles: 浏览器句柄（page/context/browser）, 传给接收两个参数的步骤

    Returns:
        最终状态; 失败时为失败前的状态加上失败记录
    """
    current = dict(state or {})
    if not steps:
        return current

    handles = dict(handles or {})
    outcomes: list[StepOutcome] = []

    for index, step in enumerate(steps):
        tag = f"step_{index}"
        try:
            delta = await _invoke(step, current, handles)
        except Exception as exc:
            record = ErrorRecord.from_exception(tag, exc)
            logger.error(f"场景步骤 {tag} 失败: {record.error}")
            outcomes.append(
                StepOutcome(step=tag, status=StepStatus.FAILED, details={"error": record.error})
            )
            return merge_state(current, {"test_results": outcomes, "errors": [record]})

        current = overlay_state(current, delta)
        outcomes.append(StepOutcome(step=tag, status=StepStatus.SUCCESS))
        logger.debug(f"场景步骤 {tag} 完成")

    logger.info(f"场景执行完成, 共 {len(outcomes)} 个步骤")
    return merge_state(current, {"test_results": outcomes})


async def _invoke(
    step: ScenarioStep,
    state: dict[str, Any],
    handles: dict[str, Any],
) -> Mapping[str, Any]:
    result = step(state, handles) if _accepts_handles(step) else step(state)
    if inspect.isawaitable(result):
        result = await result

    if result is None:
        return {}
    if not isinstance(result, Mapping):
        raise TypeError(f"步骤必须返回字典, 实际返回: {type(result).__name__}")
    return result


def _accepts_handles(step: ScenarioStep) -> bool:
    try:
        signature = inspect.signature(step)
    except (TypeError, ValueError):
        return False

    positional = 0
    for param in signature.parameters.values():
        if param.kind is inspect.Parameter.VAR_POSITIONAL:
            return True
        if param.kind in (
            inspect.Parameter.POSITIONAL_ONLY,
            inspect.Parameter.POSITIONAL_OR_KEYWORD,
        ):
            positional += 1
    return positional >= 2

"""
@PURPOSE: 工作流状态与合并规则 - 定义 WorkflowState 及按字段的 reducer
@OUTLINE:
  - class Unchanged / Replace / Append: 字段级更新变体
  - def reduce_sequence(): 序列字段 reducer（追加, 保序, 不去重）
  - def reduce_mapping(): 映射字段 reducer（浅覆盖）
  - class WorkflowState: 工作流状态（TypedDict, 带 reducer 注解）
  - class StateDelta: 节点返回的增量构造器
  - def initial_state(): 创建空状态
  - def merge_state(): 按 reducer 合并增量
  - def overlay_state(): 场景步骤使用的浅合并
@GOTCHAS:
  - 节点不得原地修改状态, 只返回增量
  - 增量中缺失的字段保持不变, 不会被重置为默认值
  - reducer 收到裸值时按 Append 处理
@DEPENDENCIES:
  - 内部: testforge.models.result
@RELATED: workflow_graph.py, scenario.py
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from typing import Annotated, Any, Callable, Mapping, Sequence, TypedDict, Union

from testforge.models.result import BrowserBundle, ErrorRecord, StepOutcome


# ========== 字段更新变体 ==========

@dataclass(frozen=True)
class Unchanged:
    """保持字段原值."""


@dataclass(frozen=True)
class Replace:
    """整体替换字段值."""

    value: Any


@dataclass(frozen=True)
class Append:
    """序列字段追加元素, 映射字段浅覆盖键值."""

    items: Any


UNCHANGED = Unchanged()

FieldUpdate = Union[Unchanged, Replace, Append]


def as_field_update(update: Any) -> FieldUpdate:
    """将 reducer 收到的值统一为更新变体, 裸值视为 Append."""
    if isinstance(update, (Unchanged, Replace, Append)):
        return update
    if update is None:
        return UNCHANGED
    return Append(update)


# ========== Reducer ==========

def reduce_sequence(existing: Sequence[Any] | None, update: Any) -> list[Any]:
    """序列字段 reducer: 原序列在前, 增量在后, 不去重.

    Examples:
        >>> reduce_sequence(["a"], ["b"])
        ['a', 'b']
        >>> reduce_sequence(["a"], Replace(["z"]))
        ['z']
    """
    current = list(existing or [])
    change = as_field_update(update)
    if isinstance(change, Unchanged):
        return current
    if isinstance(change, Replace):
        return list(change.value or [])
    return current + list(change.items or [])


def reduce_mapping(existing: Mapping[str, Any] | None, update: Any) -> dict[str, Any]:
    """映射字段 reducer: 浅覆盖, 同名键取增量的值, 嵌套结构不做深合并.

    Examples:
        >>> reduce_mapping({"a": 1, "b": 1}, {"b": 2})
        {'a': 1, 'b': 2}
    """
    current = dict(existing or {})
    change = as_field_update(update)
    if isinstance(change, Unchanged):
        return current
    if isinstance(change, Replace):
        return dict(change.value or {})
    return {**current, **dict(change.items or {})}


# ========== 工作流状态 ==========

class WorkflowState(TypedDict, total=False):
    """工作流状态, 在所有节点间传递.

    Attributes:
        test_results: 步骤执行记录（仅追加）
        test_data: 测试数据（浅合并）
        browser_contexts: 浏览器会话, 名称 -> BrowserBundle（浅合并）
        errors: 错误记录（仅追加）
    """

    test_results: Annotated[list[StepOutcome], reduce_sequence]
    test_data: Annotated[dict[str, Any], reduce_mapping]
    browser_contexts: Annotated[dict[str, BrowserBundle], reduce_mapping]
    errors: Annotated[list[ErrorRecord], reduce_sequence]


FIELD_REDUCERS: dict[str, Callable[[Any, Any], Any]] = {
    "test_results": reduce_sequence,
    "test_data": reduce_mapping,
    "browser_contexts": reduce_mapping,
    "errors": reduce_sequence,
}


def initial_state(test_data: Mapping[str, Any] | None = None) -> WorkflowState:
    """创建一次运行的初始状态."""
    return WorkflowState(
        test_results=[],
        test_data=dict(test_data or {}),
        browser_contexts={},
        errors=[],
    )


@dataclass
class StateDelta:
    """节点返回的增量, 每个字段都是显式的更新变体.

    Examples:
        >>> delta = StateDelta(errors=Append([record]))
        >>> delta.to_update()
        {'errors': Append(items=[...])}
    """

    test_results: FieldUpdate = field(default=UNCHANGED)
    test_data: FieldUpdate = field(default=UNCHANGED)
    browser_contexts: FieldUpdate = field(default=UNCHANGED)
    errors: FieldUpdate = field(default=UNCHANGED)

    def to_update(self) -> dict[str, FieldUpdate]:
        """转换为图引擎可接受的更新字典, Unchanged 字段不输出."""
        return {
            f.name: getattr(self, f.name)
            for f in fields(self)
            if not isinstance(getattr(self, f.name), Unchanged)
        }


def merge_state(state: Mapping[str, Any], delta: Mapping[str, Any] | None) -> dict[str, Any]:
    """按字段 reducer 合并增量, 返回新状态.

    有 reducer 的字段走 reducer（裸值视为 Append）, 其余键直接替换.

    Args:
        state: 当前状态
        delta: 增量

    Returns:
        合并后的新状态（不修改入参）
    """
    merged = dict(state)
    for key, value in (delta or {}).items():
        reducer = FIELD_REDUCERS.get(key)
        if reducer is not None:
            merged[key] = reducer(merged.get(key), value)
        else:
            merged[key] = _apply_generic(merged.get(key), value)
    return merged


def overlay_state(state: Mapping[str, Any], delta: Mapping[str, Any] | None) -> dict[str, Any]:
    """场景步骤使用的浅合并: 裸值直接替换, 更新变体走字段 reducer."""
    merged = dict(state)
    for key, value in (delta or {}).items():
        if isinstance(value, (Unchanged, Replace, Append)):
            reducer = FIELD_REDUCERS.get(key)
            merged[key] = (
                reducer(merged.get(key), value)
                if reducer is not None
                else _apply_generic(merged.get(key), value)
            )
        else:
            merged[key] = value
    return merged


def _apply_generic(existing: Any, update: Any) -> Any:
    if isinstance(update, Unchanged):
        return existing
    if isinstance(update, Replace):
        return update.value
    if isinstance(update, Append):
        if isinstance(update.items, Mapping):
            return reduce_mapping(existing, update)
        return reduce_sequence(existing, update)
    return update

"""
@PURPOSE: 测试编排核心模块
@OUTLINE:
  - TestOrchestrator, summarize: 编排器
  - ScenarioRunner, run_scenario: 自定义场景
  - WorkflowNodes, TitleCheck, CheckResult, build_workflow_graph: 固定工作流
  - WorkflowState, StateDelta, Unchanged, Replace, Append, merge_state: 状态与合并规则
@DEPENDENCIES:
  - 内部: .orchestrator, .scenario, .workflow_graph, .state
"""

from .orchestrator import TestOrchestrator, summarize
from .scenario import ScenarioRunner, run_scenario
from .state import (
    UNCHANGED,
    Append,
    Replace,
    StateDelta,
    Unchanged,
    WorkflowState,
    initial_state,
    merge_state,
    overlay_state,
)
from .workflow_graph import CheckResult, TitleCheck, WorkflowNodes, build_workflow_graph

__all__ = [
    "UNCHANGED",
    "Append",
    "CheckResult",
    "Replace",
    "ScenarioRunner",
    "StateDelta",
    "TestOrchestrator",
    "TitleCheck",
    "Unchanged",
    "WorkflowNodes",
    "WorkflowState",
    "build_workflow_graph",
    "initial_state",
    "merge_state",
    "overlay_state",
    "run_scenario",
    "summarize",
]

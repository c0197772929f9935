"""
@PURPOSE: 固定测试工作流图 - 数据准备 → 浏览器准备 → 执行 → 清理, 失败统一进入错误处理
@OUTLINE:
  - class CheckResult: 测试检查结果
  - class TitleCheck: 默认检查（打开页面, 截图, 校验标题片段）
  - class WorkflowNodes: 五个节点的实现
    - async def setup_test_data(): 加载测试数据
    - async def setup_browser(): 初始化浏览器注册表并打开会话
    - async def execute_test(): 执行检查
    - async def handle_error(): 汇总错误
    - async def teardown(): 关闭所有浏览器会话
  - def build_workflow_graph(): 构建并编译 langgraph 状态图
@GOTCHAS:
  - 节点内部异常不会抛出图外, 只转换为 errors 增量
  - 路由依据: errors 中存在该节点名的记录即走 handle_error
  - teardown 关闭失败只收集和记录, 不影响其他会话的关闭
@DEPENDENCIES:
  - 外部: langgraph, loguru
  - 内部: testforge.core.state, testforge.models.result
@RELATED: orchestrator.py, state.py
"""

from __future__ import annotations

import inspect
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Awaitable, Callable, Mapping

from langgraph.graph import END, START, StateGraph
from loguru import logger

from testforge.core.state import Append, StateDelta, WorkflowState
from testforge.models.result import (
    CleanupFailure,
    ErrorRecord,
    StepOutcome,
    StepStatus,
    TeardownReport,
)

SETUP_TEST_DATA = "setup_test_data"
SETUP_BROWSER = "setup_browser"
EXECUTE_TEST = "execute_test"
HANDLE_ERROR = "handle_error"
TEARDOWN = "teardown"

DEFAULT_CONTEXT = "default"


@dataclass
class CheckResult:
    """测试检查结果."""

    passed: bool
    details: dict[str, Any] = field(default_factory=dict)


TestCheck = Callable[[Any, Mapping[str, Any]], Awaitable[CheckResult | bool]]


class TitleCheck:
    """默认检查: 打开 base_url, 截图, 判断页面标题是否包含指定片段.

    Examples:
        >>> check = TitleCheck(expected_title="Example Domain")
        >>> result = await check(page, {"base_url": "https://example.com"})
        >>> result.passed
        True
    """

    __test__ = False

    def __init__(
        self,
        expected_title: str = "Example",
        default_url: str = "https://example.com",
        screenshot_path: str | Path | None = "test-results/screenshot.png",
    ) -> None:
        self.expected_title = expected_title
        self.default_url = default_url
        self.screenshot_path = Path(screenshot_path) if screenshot_path else None

    async def __call__(self, page: Any, test_data: Mapping[str, Any]) -> CheckResult:
        # MCP 返回的数据使用 camelCase
        url = test_data.get("base_url") or test_data.get("baseUrl") or self.default_url
        await page.goto(url)

        if self.screenshot_path is not None:
            self.screenshot_path.parent.mkdir(parents=True, exist_ok=True)
            await page.screenshot(path=str(self.screenshot_path))

        title = await page.title()
        return CheckResult(
            passed=self.expected_title in title,
            details={"title": title, "url": url},
        )


class WorkflowNodes:
    """工作流节点集合.

    每个节点接收当前状态, 返回字段增量; 失败时返回 errors 增量而不抛出.

    Attributes:
        data_manager: 测试数据获取能力（get_test_data）
        browser_manager: 浏览器控制能力（initialize/open_session/close_browser）
        check: 执行阶段的检查
        data_key: 加载的测试数据 key
        browser_type: 浏览器类型
    """

    def __init__(
        self,
        data_manager: Any,
        browser_manager: Any,
        check: TestCheck | None = None,
        *,
        data_key: str = "test-config",
        browser_type: str = "chromium",
    ) -> None:
        self.data_manager = data_manager
        self.browser_manager = browser_manager
        self.check = check or TitleCheck()
        self.data_key = data_key
        self.browser_type = browser_type

    async def setup_test_data(self, state: WorkflowState) -> dict[str, Any]:
        """加载测试数据, 覆盖到 test_data 上."""
        logger.info(f"准备测试数据: {self.data_key}")
        try:
            data = await self.data_manager.get_test_data(self.data_key, cache=True)
            if not isinstance(data, Mapping):
                data = {self.data_key: data}
            return StateDelta(
                test_data=Append(dict(data)),
                test_results=Append([_success(SETUP_TEST_DATA)]),
            ).to_update()
        except Exception as exc:
            logger.error(f"✗ 测试数据准备失败: {exc}")
            return _failure(SETUP_TEST_DATA, exc)

    async def setup_browser(self, state: WorkflowState) -> dict[str, Any]:
        """初始化浏览器配置注册表（仅首次）, 打开浏览器/上下文/页面."""
        logger.info(f"准备浏览器: {self.browser_type}")
        try:
            if not self.browser_manager.is_initialized:
                await self.browser_manager.initialize()

            bundle = await self.browser_manager.open_session(self.browser_type)
            return StateDelta(
                browser_contexts=Append({DEFAULT_CONTEXT: bundle}),
                test_results=Append([_success(SETUP_BROWSER)]),
            ).to_update()
        except Exception as exc:
            logger.error(f"✗ 浏览器准备失败: {exc}")
            return _failure(SETUP_BROWSER, exc)

    async def execute_test(self, state: WorkflowState) -> dict[str, Any]:
        """用已打开的页面和测试数据执行检查."""
        logger.info("执行测试..")
        try:
            bundle = (state.get("browser_contexts") or {}).get(DEFAULT_CONTEXT)
            if bundle is None:
                raise RuntimeError("没有可用的浏览器会话")

            result = self.check(_handle(bundle, "page"), state.get("test_data") or {})
            if inspect.isawaitable(result):
                result = await result
            if isinstance(result, bool):
                result = CheckResult(passed=result)

            status = StepStatus.SUCCESS if result.passed else StepStatus.FAILED
            logger.info(f"测试检查结果: {status.value}")
            return StateDelta(
                test_results=Append(
                    [StepOutcome(step=EXECUTE_TEST, status=status, details=result.details or None)]
                ),
            ).to_update()
        except Exception as exc:
            logger.error(f"✗ 测试执行失败: {exc}")
            return _failure(EXECUTE_TEST, exc)

    async def handle_error(self, state: WorkflowState) -> dict[str, Any]:
        """汇总已累积的错误, 本节点不会失败."""
        errors = list(state.get("errors") or [])
        for record in errors:
            logger.error(f"步骤 {record.step} 失败: {record.error}")

        outcome = StepOutcome(
            step=HANDLE_ERROR,
            status=StepStatus.ERROR,
            details={"errors": [record.model_dump() for record in errors]},
        )
        return StateDelta(test_results=Append([outcome])).to_update()

    async def teardown(self, state: WorkflowState) -> dict[str, Any]:
        """关闭所有浏览器会话, 总是追加 completed 记录."""
        logger.info("清理测试资源..")
        report = await self.close_browser_contexts(state.get("browser_contexts") or {})
        outcome = StepOutcome(
            step=TEARDOWN,
            status=StepStatus.COMPLETED,
            details=report.to_details(),
        )
        return StateDelta(test_results=Append([outcome])).to_update()

    async def close_browser_contexts(self, contexts: Mapping[str, Any]) -> TeardownReport:
        """逐个关闭浏览器, 收集失败而不中断.

        Args:
            contexts: 名称 -> BrowserBundle

        Returns:
            清理报告
        """
        report = TeardownReport()
        for name, bundle in contexts.items():
            browser = _handle(bundle, "browser")
            if browser is None:
                continue
            try:
                await self.browser_manager.close_browser(browser)
                report.closed.append(name)
            except Exception as exc:
                failure = CleanupFailure(name=name, error=str(exc) or type(exc).__name__)
                report.failures.append(failure)
                logger.warning(f"关闭浏览器会话 {name} 失败: {failure.error}")

        if report.failures:
            logger.warning(f"清理过程中有 {len(report.failures)} 个会话关闭失败")
        else:
            logger.info(f"已关闭 {len(report.closed)} 个浏览器会话")
        return report


def _handle(bundle: Any, name: str) -> Any:
    if isinstance(bundle, Mapping):
        return bundle.get(name)
    return getattr(bundle, name, None)


def _success(step: str) -> StepOutcome:
    logger.success(f"✓ {step} 完成")
    return StepOutcome(step=step, status=StepStatus.SUCCESS)


def _failure(step: str, exc: BaseException) -> dict[str, Any]:
    return StateDelta(errors=Append([ErrorRecord.from_exception(step, exc)])).to_update()


def _route_after(node: str, next_node: str) -> Callable[[WorkflowState], str]:
    def route(state: WorkflowState) -> str:
        if any(record.step == node for record in state.get("errors") or []):
            return HANDLE_ERROR
        return next_node

    route.__name__ = f"route_after_{node}"
    return route


def build_workflow_graph(nodes: WorkflowNodes):
    """构建并编译固定工作流图.

    成功路径: setup_test_data → setup_browser → execute_test → teardown
    失败路径: 前三个节点任一失败 → handle_error → teardown

    Args:
        nodes: 节点实现

    Returns:
        编译后的图（CompiledStateGraph）
    """
    graph = StateGraph(WorkflowState)

    graph.add_node(SETUP_TEST_DATA, nodes.setup_test_data)
    graph.add_node(SETUP_BROWSER, nodes.setup_browser)
    graph.add_node(EXECUTE_TEST, nodes.execute_test)
    graph.add_node(HANDLE_ERROR, nodes.handle_error)
    graph.add_node(TEARDOWN, nodes.teardown)

    graph.add_edge(START, SETUP_TEST_DATA)
    for node, next_node in (
        (SETUP_TEST_DATA, SETUP_BROWSER),
        (SETUP_BROWSER, EXECUTE_TEST),
        (EXECUTE_TEST, TEARDOWN),
    ):
        graph.add_conditional_edges(
            node,
            _route_after(node, next_node),
            {next_node: next_node, HANDLE_ERROR: HANDLE_ERROR},
        )
    graph.add_edge(HANDLE_ERROR, TEARDOWN)
    graph.add_edge(TEARDOWN, END)

    return graph.compile()

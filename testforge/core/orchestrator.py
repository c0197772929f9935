"""
@PURPOSE: 测试编排器 - 持有编译后的工作流图, 负责运行固定工作流和创建自定义场景
@OUTLINE:
  - class TestOrchestrator: 编排器主类
    - async def initialize(): 编译工作流图并初始化浏览器配置注册表
    - async def run_test(): 执行固定工作流
    - def create_test_scenario(): 创建自定义场景
    - async def close(): 释放编排器自行创建的协作者
  - def summarize(): 从最终状态生成执行摘要
@GOTCHAS:
  - initialize() 幂等, 并发调用只执行一次
  - run_test() 在未初始化时会自动初始化
  - 图引擎本身抛出异常时, 先用最后观察到的状态执行 teardown, 再重新抛出
  - close() 只关闭编排器自己创建的 MCP 客户端和浏览器管理器, 外部传入的由调用方负责
@DEPENDENCIES:
  - 外部: loguru
  - 内部: testforge.core.*, testforge.data, testforge.browser, testforge.config, testforge.utils
@RELATED: workflow_graph.py, scenario.py
"""

from __future__ import annotations

import asyncio
import uuid
from typing import Any, Mapping, Sequence

from loguru import logger

from testforge.browser.browser_manager import BrowserManager
from testforge.config.settings import Settings, settings as default_settings
from testforge.core.scenario import ScenarioRunner, ScenarioStep
from testforge.core.state import WorkflowState, initial_state, merge_state
from testforge.core.workflow_graph import TestCheck, TitleCheck, WorkflowNodes, build_workflow_graph
from testforge.data.mcp_client import MCPClient
from testforge.data.test_data_manager import TestDataManager
from testforge.models.result import ErrorRecord, RunSummary
from testforge.utils.logger_setup import get_logger_with_context

RUN_TEST_STEP = "run_test"


def summarize(state: Mapping[str, Any]) -> RunSummary:
    """从工作流最终状态生成执行摘要."""
    return RunSummary.from_records(state.get("test_results") or [], state.get("errors") or [])


class TestOrchestrator:
    """测试编排器.

    Attributes:
        settings: 配置
        data_manager: 测试数据管理器
        browser_manager: 浏览器管理器
        mcp_client: 自行创建的 MCP 客户端, 协作者全部由外部传入时为 None
        nodes: 工作流节点

    Examples:
        >>> orchestrator = TestOrchestrator()
        >>> await orchestrator.initialize()
        >>> state = await orchestrator.run_test({"base_url": "https://example.com"})
        >>> summarize(state).success
        True
    """

    __test__ = False

    def __init__(
        self,
        data_manager: Any | None = None,
        browser_manager: Any | None = None,
        check: TestCheck | None = None,
        *,
        settings: Settings | None = None,
        data_key: str | None = None,
        browser_type: str | None = None,
    ) -> None:
        """初始化编排器.

        Args:
            data_manager: 数据获取能力, 默认 TestDataManager
            browser_manager: 浏览器控制能力, 默认 BrowserManager
            check: execute_test 阶段的检查, 默认 TitleCheck
            settings: 配置, 默认使用全局 settings
            data_key: 加载的测试数据 key, 默认 settings.test_run.data_key
            browser_type: 浏览器类型, 默认 settings.browser.default_type
        """
        self.settings = settings or default_settings

        # 自行创建的协作者由 close() 负责释放
        self.mcp_client: MCPClient | None = None
        self._owns_browser_manager = browser_manager is None
        if data_manager is None or browser_manager is None:
            self.mcp_client = MCPClient(self.settings.mcp)
            data_manager = data_manager or TestDataManager(self.mcp_client)
            browser_manager = browser_manager or BrowserManager(
                self.settings.browser,
                mcp_client=self.mcp_client,
                path_resolver=self.settings.get_absolute_path,
            )

        self.data_manager = data_manager
        self.browser_manager = browser_manager

        if check is None:
            run_config = self.settings.test_run
            check = TitleCheck(
                expected_title=run_config.expected_title,
                default_url=run_config.base_url,
                screenshot_path=self.settings.get_absolute_path(run_config.screenshot_dir)
                / "screenshot.png",
            )

        self.nodes = WorkflowNodes(
            data_manager,
            browser_manager,
            check,
            data_key=data_key or self.settings.test_run.data_key,
            browser_type=browser_type or self.settings.browser.default_type,
        )

        self._graph = None
        self._init_lock = asyncio.Lock()

    @property
    def is_initialized(self) -> bool:
        return self._graph is not None

    async def initialize(self) -> None:
        """编译工作流图并初始化浏览器配置注册表, 已初始化时直接返回."""
        async with self._init_lock:
            if self._graph is not None:
                return

            if not self.browser_manager.is_initialized:
                await self.browser_manager.initialize()
            self._graph = build_workflow_graph(self.nodes)
            logger.info("测试编排器已初始化")

    async def run_test(self, options: Mapping[str, Any] | None = None) -> WorkflowState:
        """执行固定工作流.

        Args:
            options: 初始测试数据, 加载的测试数据会覆盖同名键

        Returns:
            最终状态

        Raises:
            Exception: 图引擎本身的异常（节点内部异常不会抛出）
        """
        if not self.is_initialized:
            await self.initialize()

        run_id = uuid.uuid4().hex
        log = get_logger_with_context(run_id=run_id)
        log.info("开始执行测试工作流")

        state = initial_state(options)
        last_state: Mapping[str, Any] = state
        try:
            async for snapshot in self._graph.astream(state, stream_mode="values"):
                last_state = snapshot
        except Exception as exc:
            log.error(f"工作流执行异常, 强制清理: {exc}")
            forced = merge_state(
                last_state, {"errors": [ErrorRecord.from_exception(RUN_TEST_STEP, exc)]}
            )
            report = await self.nodes.close_browser_contexts(forced.get("browser_contexts") or {})
            for failure in report.failures:
                log.error(f"强制清理时关闭浏览器会话 {failure.name} 失败: {failure.error}")
            raise

        summary = summarize(last_state)
        if summary.success:
            log.success(f"✓ 测试工作流完成, 共 {summary.total_steps} 个步骤")
        else:
            log.warning(
                f"测试工作流完成但存在失败: {summary.total_steps} 个步骤, "
                f"{len(summary.errors)} 个错误"
            )
        return last_state

    def create_test_scenario(self, steps: Sequence[ScenarioStep]) -> ScenarioRunner:
        """创建自定义场景, 可重复调用."""
        return ScenarioRunner(steps)

    async def close(self) -> None:
        """释放编排器自行创建的浏览器管理器和 MCP 客户端.

        清理顺序: BrowserManager → MCPClient
        """
        try:
            if self._owns_browser_manager:
                await self.browser_manager.close()
        finally:
            if self.mcp_client is not None:
                await self.mcp_client.close()
        logger.info("测试编排器已关闭")

    async def __aenter__(self):
        """异步上下文管理器入口."""
        await self.initialize()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """异步上下文管理器出口."""
        await self.close()

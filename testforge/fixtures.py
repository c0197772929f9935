"""
@PURPOSE: 页面操作辅助函数与 pytest fixtures, 在测试项目中通过 pytest_plugins 引入
@OUTLINE:
  - async def safe_click(): 等待元素可见后点击
  - async def safe_type(): 等待元素可见后填充
  - def pytest_configure(): 注册标记并配置日志
  - fixture data_manager: 测试数据管理器
  - fixture browser_manager: 已初始化的浏览器管理器
  - fixture orchestrator: 已初始化的测试编排器
@GOTCHAS:
  - 在 conftest.py 中声明 pytest_plugins = ["testforge.fixtures"] 启用
  - fixtures 会连接真实的 MCP 服务和浏览器
@DEPENDENCIES:
  - 外部: pytest, pytest-asyncio
  - 内部: testforge.core, testforge.data, testforge.browser, testforge.utils
"""

from __future__ import annotations

from typing import Any

import pytest
import pytest_asyncio

from testforge.browser.browser_manager import BrowserManager
from testforge.config.settings import settings
from testforge.core.orchestrator import TestOrchestrator
from testforge.data.mcp_client import MCPClient
from testforge.data.test_data_manager import TestDataManager
from testforge.utils.logger_setup import setup_logger


async def safe_click(page: Any, selector: str, timeout: float | None = None, **options: Any) -> None:
    """等待元素可见后点击.

    Args:
        page: Playwright 页面
        selector: 选择器
        timeout: 等待与点击的超时（毫秒）
        **options: 透传给 page.click
    """
    await page.wait_for_selector(selector, state="visible", timeout=timeout)
    await page.click(selector, timeout=timeout, **options)


async def safe_type(
    page: Any, selector: str, text: str, timeout: float | None = None, **options: Any
) -> None:
    """等待元素可见后填充文本."""
    await page.wait_for_selector(selector, state="visible", timeout=timeout)
    await page.fill(selector, text, timeout=timeout, **options)


def pytest_configure(config):
    """注册标记并配置日志."""
    config.addinivalue_line("markers", "integration: 标记集成测试（需要浏览器环境）")
    config.addinivalue_line("markers", "slow: 标记慢速测试")
    setup_logger(force=True)


@pytest_asyncio.fixture
async def mcp_client():
    client = MCPClient(settings.mcp)
    yield client
    await client.close()


@pytest.fixture
def data_manager(mcp_client):
    """测试数据管理器, 用例结束后清除缓存."""
    manager = TestDataManager(mcp_client)
    yield manager
    manager.clear_cache()


@pytest_asyncio.fixture
async def browser_manager(mcp_client):
    """已初始化的浏览器管理器, 用例结束后关闭所有资源."""
    manager = BrowserManager(settings.browser, mcp_client=mcp_client)
    await manager.initialize()
    yield manager
    await manager.close()


@pytest_asyncio.fixture
async def orchestrator(data_manager, browser_manager):
    """已初始化的测试编排器."""
    instance = TestOrchestrator(data_manager=data_manager, browser_manager=browser_manager)
    await instance.initialize()
    yield instance

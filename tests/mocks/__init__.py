"""
@PURPOSE: 测试 Mock 模块
@OUTLINE:
  - Playwright mocks: MockPage, MockBrowserContext, MockBrowser, MockPlaywright
  - Collaborator mocks: MockDataManager, MockBrowserManager
@DEPENDENCIES:
  - 外部: 无
"""

from .collaborator_mock import MockBrowserManager, MockDataManager
from .playwright_mock import (
    MockAsyncPlaywright,
    MockBrowser,
    MockBrowserContext,
    MockBrowserType,
    MockPage,
    MockPlaywright,
    mock_async_playwright,
)

__all__ = [
    # Playwright mocks
    "MockAsyncPlaywright",
    "MockBrowser",
    "MockBrowserContext",
    "MockBrowserType",
    "MockPage",
    "MockPlaywright",
    "mock_async_playwright",
    # Collaborator mocks
    "MockBrowserManager",
    "MockDataManager",
]

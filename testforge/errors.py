"""
@PURPOSE: 定义测试脚手架相关的自定义异常
@OUTLINE:
  - TestForgeError: 异常基类
  - TestDataNotFoundError: 测试数据获取失败
  - TestDataPathError: 测试数据路径不存在
  - UnsupportedBrowserError: 不支持的浏览器类型
  - BrowserNotLaunchedError: 浏览器尚未启动
  - DeviceNotFoundError: 未知的移动设备
  - McpAuthenticationError: MCP 认证失败
@DEPENDENCIES:
  - 外部: 无
"""

from __future__ import annotations


class TestForgeError(Exception):
    """测试脚手架异常基类."""

    __test__ = False


class TestDataNotFoundError(TestForgeError):
    """按 key 获取测试数据失败时抛出.

    Attributes:
        key: 测试数据 key
    """

    def __init__(self, key: str, message: str | None = None) -> None:
        self.key = key
        self.message = message or f"Test data not found for key: {key}"
        super().__init__(self.message)


class TestDataPathError(TestForgeError):
    """测试数据中不存在指定的点分路径."""

    def __init__(self, key: str, path: str) -> None:
        self.key = key
        self.path = path
        super().__init__(f"Path '{path}' not found in test data '{key}'")


class UnsupportedBrowserError(TestForgeError):
    """浏览器类型不在 chromium/firefox/webkit 之内."""

    def __init__(self, browser_type: str) -> None:
        self.browser_type = browser_type
        super().__init__(f"Unsupported browser type: {browser_type}")


class BrowserNotLaunchedError(TestForgeError):
    """在 launch_browser() 之前创建上下文."""

    def __init__(self, message: str = "Browser not launched. Call launch_browser() first.") -> None:
        super().__init__(message)


class DeviceNotFoundError(TestForgeError):
    """Playwright 设备描述中没有该设备."""

    def __init__(self, device_name: str) -> None:
        self.device_name = device_name
        super().__init__(f"Device '{device_name}' not found in Playwright devices")


class McpAuthenticationError(TestForgeError):
    """MCP 客户端凭证认证失败."""

    def __init__(self, message: str = "Failed to authenticate with MCP") -> None:
        super().__init__(message)

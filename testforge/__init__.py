"""
@PURPOSE: testforge - 基于 Playwright 的端到端测试脚手架, 核心是图驱动的测试编排器
@OUTLINE:
  - TestOrchestrator: 测试编排器
  - ScenarioRunner: 自定义场景
  - TestDataManager, MCPClient: 测试数据
  - BrowserManager, run_across_browsers: 浏览器管理
  - settings: 全局配置
@DEPENDENCIES:
  - 内部: .core, .data, .browser, .config
"""

from .browser import BrowserManager, run_across_browsers
from .config import settings
from .core import ScenarioRunner, TestOrchestrator, summarize
from .data import MCPClient, TestDataManager

__version__ = "0.1.0"

__all__ = [
    "BrowserManager",
    "MCPClient",
    "ScenarioRunner",
    "TestDataManager",
    "TestOrchestrator",
    "__version__",
    "run_across_browsers",
    "settings",
    "summarize",
]

"""
@PURPOSE: 浏览器模块
@OUTLINE:
  - BrowserManager, BrowserProfile: 浏览器管理
  - run_across_browsers: 多浏览器并行执行
@DEPENDENCIES:
  - 内部: .browser_manager, .parallel
"""

from .browser_manager import SUPPORTED_BROWSERS, BrowserManager, BrowserProfile
from .parallel import run_across_browsers

__all__ = ["SUPPORTED_BROWSERS", "BrowserManager", "BrowserProfile", "run_across_browsers"]

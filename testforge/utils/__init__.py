"""
@PURPOSE: 工具模块
@OUTLINE:
  - setup_logger, get_logger_with_context: 日志工具
@DEPENDENCIES:
  - 内部: .logger_setup
"""

from .logger_setup import get_logger_with_context, setup_logger

__all__ = ["get_logger_with_context", "setup_logger"]

"""
@PURPOSE: 测试数据模块
@OUTLINE:
  - MCPClient: MCP 测试数据服务客户端
  - TestDataManager: 测试数据管理器
@DEPENDENCIES:
  - 内部: .mcp_client, .test_data_manager
"""

from .mcp_client import MCPClient
from .test_data_manager import TestDataManager

__all__ = ["MCPClient", "TestDataManager"]

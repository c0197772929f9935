"""
@PURPOSE: MCP 测试数据服务客户端, OAuth2 客户端凭证认证, 获取测试数据与配置
@OUTLINE:
  - class AccessToken: token 响应
  - class MCPClient: MCP 客户端
    - authenticate(): 获取 access token
    - get_test_data(): 获取测试数据
    - get_config(): 获取命名配置
    - get_environment_config(): 获取环境配置
    - close(): 关闭连接
@GOTCHAS:
  - token 过期前自动重新认证, 收到 401 时重新认证并重试一次
  - 只有网络层错误（httpx.TransportError）会按配置重试
  - 需要配置 MCP_CLIENT_ID / MCP_CLIENT_SECRET
@DEPENDENCIES:
  - 外部: httpx, tenacity, pydantic, loguru
  - 内部: testforge.config.settings, testforge.errors
@RELATED: test_data_manager.py, testforge/browser/browser_manager.py
"""

from __future__ import annotations

import asyncio
import time
import uuid
from typing import Any

import httpx
from loguru import logger
from pydantic import BaseModel
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_fixed

from testforge.config.settings import McpConfig, settings
from testforge.errors import McpAuthenticationError

# 提前刷新, 避免 token 在请求途中过期
TOKEN_EXPIRY_MARGIN = 30.0


class AccessToken(BaseModel):
    """OAuth2 token 响应."""

    access_token: str
    token_type: str = "Bearer"
    expires_in: int = 3600


class MCPClient:
    """MCP 测试数据服务客户端.

    Attributes:
        config: MCP 配置
        access_token: 当前 access token
        token_expiry: token 过期时刻（time.monotonic）

    Examples:
        >>> async with MCPClient() as client:
        ...     data = await client.get_test_data("test-config")
    """

    def __init__(
        self,
        config: McpConfig | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """初始化客户端.

        Args:
            config: MCP 配置, 默认使用 settings.mcp
            transport: 自定义 httpx transport
        """
        self.config = config or settings.mcp
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self._auth_lock = asyncio.Lock()

        self.access_token: str | None = None
        self.token_expiry: float = 0.0

    async def _get_client(self) -> httpx.AsyncClient:
        """获取 HTTP 客户端."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.config.test_data_endpoint,
                timeout=self.config.timeout,
                headers={"Content-Type": "application/json"},
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """关闭客户端连接."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    # ========== 认证 ==========

    @property
    def token_valid(self) -> bool:
        return self.access_token is not None and time.monotonic() < self.token_expiry

    async def authenticate(self) -> str:
        """使用客户端凭证获取 access token.

        Returns:
            access token

        Raises:
            McpAuthenticationError: 认证失败
        """
        client = await self._get_client()
        try:
            response = await client.post(
                self.config.auth_endpoint,
                data={
                    "grant_type": "client_credentials",
                    "client_id": self.config.client_id,
                    "client_secret": self.config.client_secret,
                    "scope": self.config.scope,
                },
                headers={"Content-Type": "application/x-www-form-urlencoded"},
            )
            response.raise_for_status()
            token = AccessToken(**response.json())
        except Exception as exc:
            logger.error(f"MCP 认证失败: {exc}")
            raise McpAuthenticationError(f"Failed to authenticate with MCP: {exc}") from exc

        self.access_token = token.access_token
        self.token_expiry = time.monotonic() + max(token.expires_in - TOKEN_EXPIRY_MARGIN, 0)
        logger.info("MCP 认证成功")
        return self.access_token

    async def _ensure_token(self) -> None:
        async with self._auth_lock:
            if not self.token_valid:
                await self.authenticate()

    # ========== 请求 ==========

    async def _send(
        self, client: httpx.AsyncClient, method: str, path: str, params: dict[str, Any] | None
    ) -> httpx.Response:
        response: httpx.Response | None = None
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self.config.retry_attempts),
            wait=wait_fixed(self.config.retry_delay),
            retry=retry_if_exception_type(httpx.TransportError),
            reraise=True,
        ):
            with attempt:
                response = await client.request(
                    method,
                    path,
                    params=params,
                    headers={
                        "Authorization": f"Bearer {self.access_token}",
                        "x-request-id": str(uuid.uuid4()),
                    },
                )
        return response

    async def _request(
        self, method: str, path: str, params: dict[str, Any] | None = None
    ) -> Any:
        client = await self._get_client()
        await self._ensure_token()

        response = await self._send(client, method, path, params)
        if response.status_code == 401:
            logger.info("MCP token 已失效, 重新认证后重试")
            async with self._auth_lock:
                await self.authenticate()
            response = await self._send(client, method, path, params)

        response.raise_for_status()
        return response.json()

    async def get_test_data(self, key: str, **params: Any) -> Any:
        """获取测试数据.

        Args:
            key: 测试数据 key
            **params: 查询参数

        Returns:
            测试数据
        """
        try:
            return await self._request("GET", f"{self.config.test_data_path}/{key}", params or None)
        except Exception as exc:
            logger.error(f"获取测试数据失败: {key}, 错误: {exc}")
            raise

    async def get_config(self, config_name: str, environment: str = "default") -> Any:
        """获取命名配置（例如 browser-configs）."""
        try:
            return await self._request(
                "GET", f"{self.config.configs_path}/{config_name}", {"environment": environment}
            )
        except Exception as exc:
            logger.error(f"获取配置失败: {config_name}, 错误: {exc}")
            raise

    async def get_environment_config(self, environment: str) -> Any:
        """获取环境配置."""
        try:
            return await self._request("GET", f"{self.config.environments_path}/{environment}")
        except Exception as exc:
            logger.error(f"获取环境配置失败: {environment}, 错误: {exc}")
            raise

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

"""
@PURPOSE: 测试 MCP 客户端
@OUTLINE:
  - TestAuthentication: 客户端凭证认证
  - TestRequests: 数据与配置请求
  - TestRetry: 401 重新认证与网络错误重试
@DEPENDENCIES:
  - 外部: pytest, pytest-asyncio, httpx
  - 内部: testforge.data.mcp_client
"""

from urllib.parse import parse_qs

import httpx
import pytest

from testforge.config.settings import McpConfig
from testforge.data.mcp_client import MCPClient
from testforge.errors import McpAuthenticationError

AUTH_URL = "https://login.test/token"


@pytest.fixture
def mcp_config():
    return McpConfig(
        test_data_endpoint="https://mcp.test/api",
        auth_endpoint=AUTH_URL,
        client_id="client",
        client_secret="secret",
        retry_attempts=3,
        retry_delay=0,
    )


class FakeMcpServer:
    """记录请求并按路径返回响应."""

    def __init__(self, responses=None, token_status=200):
        self.responses = responses or {}
        self.token_status = token_status
        self.requests = []
        self.tokens_issued = 0

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if str(request.url) == AUTH_URL:
            if self.token_status != 200:
                return httpx.Response(self.token_status, json={"error": "invalid_client"})
            self.tokens_issued += 1
            return httpx.Response(
                200, json={"access_token": f"token-{self.tokens_issued}", "expires_in": 3600}
            )

        handler = self.responses.get(request.url.path)
        if handler is None:
            return httpx.Response(404, json={"error": "not found"})
        return handler(request) if callable(handler) else httpx.Response(200, json=handler)

    @property
    def api_requests(self):
        return [r for r in self.requests if str(r.url) != AUTH_URL]


def _client(mcp_config, server):
    return MCPClient(mcp_config, transport=httpx.MockTransport(server))


class TestAuthentication:
    """测试认证"""

    @pytest.mark.asyncio
    async def test_authenticate_posts_client_credentials(self, mcp_config):
        server = FakeMcpServer()
        async with _client(mcp_config, server) as client:
            token = await client.authenticate()

        assert token == "token-1"
        assert client.token_valid is True
        form = parse_qs(server.requests[0].content.decode())
        assert form["grant_type"] == ["client_credentials"]
        assert form["client_id"] == ["client"]
        assert form["client_secret"] == ["secret"]

    @pytest.mark.asyncio
    async def test_authentication_failure(self, mcp_config):
        server = FakeMcpServer(token_status=401)
        async with _client(mcp_config, server) as client:
            with pytest.raises(McpAuthenticationError):
                await client.get_test_data("users")

        assert server.api_requests == []

    @pytest.mark.asyncio
    async def test_token_is_reused(self, mcp_config):
        server = FakeMcpServer(responses={"/api/test-data/users": {"id": 1}})
        async with _client(mcp_config, server) as client:
            await client.get_test_data("users")
            await client.get_test_data("users")

        assert server.tokens_issued == 1


class TestRequests:
    """测试请求"""

    @pytest.mark.asyncio
    async def test_get_test_data_sends_bearer_and_request_id(self, mcp_config):
        server = FakeMcpServer(responses={"/api/test-data/users": {"admin": "a@example.com"}})
        async with _client(mcp_config, server) as client:
            data = await client.get_test_data("users", locale="en")

        assert data == {"admin": "a@example.com"}
        request = server.api_requests[0]
        assert request.headers["Authorization"] == "Bearer token-1"
        assert request.headers["x-request-id"]
        assert request.url.params["locale"] == "en"

    @pytest.mark.asyncio
    async def test_get_config_passes_environment(self, mcp_config):
        server = FakeMcpServer(responses={"/api/configs/browser-configs": {"chromium": {}}})
        async with _client(mcp_config, server) as client:
            data = await client.get_config("browser-configs")

        assert data == {"chromium": {}}
        assert server.api_requests[0].url.params["environment"] == "default"

    @pytest.mark.asyncio
    async def test_get_environment_config(self, mcp_config):
        server = FakeMcpServer(responses={"/api/environments/staging": {"base_url": "x"}})
        async with _client(mcp_config, server) as client:
            assert await client.get_environment_config("staging") == {"base_url": "x"}

    @pytest.mark.asyncio
    async def test_http_error_propagates(self, mcp_config):
        server = FakeMcpServer()
        async with _client(mcp_config, server) as client:
            with pytest.raises(httpx.HTTPStatusError):
                await client.get_test_data("missing")


class TestRetry:
    """测试重试"""

    @pytest.mark.asyncio
    async def test_reauthenticates_once_on_401(self, mcp_config):
        statuses = iter([401, 200])

        def handler(request):
            return httpx.Response(next(statuses), json={"ok": True})

        server = FakeMcpServer(responses={"/api/test-data/users": handler})
        async with _client(mcp_config, server) as client:
            data = await client.get_test_data("users")

        assert data == {"ok": True}
        assert server.tokens_issued == 2
        assert server.api_requests[1].headers["Authorization"] == "Bearer token-2"

    @pytest.mark.asyncio
    async def test_second_401_is_raised(self, mcp_config):
        def handler(request):
            return httpx.Response(401, json={"error": "expired"})

        server = FakeMcpServer(responses={"/api/test-data/users": handler})
        async with _client(mcp_config, server) as client:
            with pytest.raises(httpx.HTTPStatusError):
                await client.get_test_data("users")

        assert len(server.api_requests) == 2

    @pytest.mark.asyncio
    async def test_retries_transport_errors(self, mcp_config):
        attempts = []

        def handler(request):
            attempts.append(request)
            if len(attempts) < 3:
                raise httpx.ConnectError("connection refused", request=request)
            return httpx.Response(200, json={"ok": True})

        server = FakeMcpServer(responses={"/api/test-data/users": handler})
        async with _client(mcp_config, server) as client:
            assert await client.get_test_data("users") == {"ok": True}

        assert len(attempts) == 3

    @pytest.mark.asyncio
    async def test_gives_up_after_retry_attempts(self, mcp_config):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        server = FakeMcpServer(responses={"/api/test-data/users": handler})
        async with _client(mcp_config, server) as client:
            with pytest.raises(httpx.ConnectError):
                await client.get_test_data("users")

        assert len(server.api_requests) == 3

"""
@PURPOSE: 浏览器管理器, 使用 Playwright 管理浏览器实例, 维护按浏览器类型的配置注册表
@OUTLINE:
  - class BrowserProfile: 单个浏览器类型的启动配置
  - class BrowserManager: 浏览器管理器主类
  - async def initialize(): 从 MCP 加载浏览器配置注册表（失败回退默认配置）
  - async def start(): 启动 Playwright
  - async def launch_browser(): 启动浏览器
  - async def create_context() / create_page(): 创建上下文和页面
  - async def open_session(): 打开独立的 browser/context/page 组合
  - async def close_browser(): 关闭指定浏览器
  - def get_mobile_device(): 获取 Playwright 设备描述
  - async def close(): 关闭所有资源
@GOTCHAS:
  - initialize() 并发调用时只加载一次
  - open_session() 中途失败会关闭已启动的浏览器
  - close_browser() 的异常会向上抛出, 由调用方决定如何收集
@DEPENDENCIES:
  - 外部: playwright, pydantic, loguru
  - 内部: testforge.config.settings, testforge.errors
@RELATED: parallel.py, testforge/core/workflow_graph.py
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any, Callable

from loguru import logger
from playwright.async_api import (
    Browser,
    BrowserContext,
    BrowserType,
    Page,
    Playwright,
    async_playwright,
)
from pydantic import BaseModel, ConfigDict, Field

from testforge.config.settings import BrowserConfig, settings
from testforge.errors import (
    BrowserNotLaunchedError,
    DeviceNotFoundError,
    UnsupportedBrowserError,
)
from testforge.models.result import BrowserBundle

SUPPORTED_BROWSERS = ("chromium", "firefox", "webkit")

BROWSER_CONFIGS_NAME = "browser-configs"


class BrowserProfile(BaseModel):
    """单个浏览器类型的启动配置.

    MCP 返回的字段使用 camelCase, 通过别名兼容.
    """

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    type: str = Field(default="chromium", description="浏览器类型")
    headless: bool = Field(default=True, description="无头模式")
    viewport: dict[str, int] = Field(
        default_factory=lambda: {"width": 1920, "height": 1080}, description="视口大小"
    )
    default_timeout: int = Field(default=30000, alias="defaultTimeout", description="默认超时（毫秒）")
    slow_mo: int = Field(default=0, alias="slowMo", description="慢速模式（毫秒）")
    launch_options: dict[str, Any] = Field(
        default_factory=dict, alias="launchOptions", description="额外启动参数"
    )


class BrowserManager:
    """浏览器管理器.

    管理 Playwright 实例、浏览器配置注册表, 以及当前的 browser/context/page.

    Attributes:
        config: 浏览器配置
        mcp_client: 用于加载浏览器配置的 MCP 客户端, 为 None 时只使用默认配置
        path_resolver: 相对路径 -> 绝对路径, 用于录屏目录
        browser_configs: 浏览器类型 -> BrowserProfile
        playwright: Playwright 实例
        browser: 当前浏览器
        context: 当前上下文
        page: 当前页面

    Examples:
        >>> async with BrowserManager() as manager:
        ...     await manager.launch_browser("chromium")
        ...     page = await manager.create_page()
        ...     await page.goto("https://example.com")
    """

    def __init__(
        self,
        config: BrowserConfig | None = None,
        mcp_client: Any | None = None,
        playwright_factory: Callable[[], Any] = async_playwright,
        path_resolver: Callable[[str], Path] | None = None,
    ):
        """初始化管理器.

        Args:
            config: 浏览器配置, 默认使用 settings.browser
            mcp_client: MCP 客户端（需提供 get_config）
            playwright_factory: Playwright 上下文管理器工厂
            path_resolver: 路径解析函数, 默认 settings.get_absolute_path
        """
        self.config = config or settings.browser
        self.mcp_client = mcp_client
        self._playwright_factory = playwright_factory
        self.path_resolver = path_resolver or settings.get_absolute_path

        self.browser_configs: dict[str, BrowserProfile] = {}
        self._initialized = False
        self._init_lock = asyncio.Lock()

        self.playwright: Playwright | None = None
        self.browser: Browser | None = None
        self.browser_type: str | None = None
        self.context: BrowserContext | None = None
        self.page: Page | None = None

    # ========== 配置注册表 ==========

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    async def initialize(self) -> None:
        """加载浏览器配置注册表, 已初始化时直接返回."""
        async with self._init_lock:
            if self._initialized:
                return

            if self.mcp_client is None:
                logger.debug("未配置 MCP 客户端, 使用默认浏览器配置")
                self.set_default_configs()
            else:
                try:
                    configs = await self.mcp_client.get_config(BROWSER_CONFIGS_NAME)
                    registry = {
                        name: BrowserProfile.model_validate({"type": name, **cfg})
                        for name, cfg in configs.items()
                    }
                    self.browser_configs = registry
                    logger.info(f"已加载浏览器配置: {', '.join(registry) or '无'}")
                except Exception as exc:
                    logger.warning(f"加载浏览器配置失败, 使用默认配置: {exc}")
                    self.set_default_configs()

            self._initialized = True

    def set_default_configs(self) -> None:
        """根据 settings.browser 生成三种浏览器的默认配置."""
        base = {
            "headless": self.config.headless,
            "viewport": dict(self.config.viewport),
            "default_timeout": self.config.timeout,
            "slow_mo": self.config.slow_mo,
        }
        self.browser_configs = {
            "chromium": BrowserProfile(
                type="chromium",
                launch_options={"args": list(self.config.launch_args)},
                **base,
            ),
            "firefox": BrowserProfile(type="firefox", **base),
            "webkit": BrowserProfile(type="webkit", **base),
        }

    def get_browser_config(self, browser_type: str) -> BrowserProfile | None:
        return self.browser_configs.get(browser_type)

    def _profile(self, browser_type: str) -> BrowserProfile:
        profile = self.get_browser_config(browser_type)
        if profile is None:
            profile = BrowserProfile(
                type=browser_type,
                headless=self.config.headless,
                viewport=dict(self.config.viewport),
                default_timeout=self.config.timeout,
                slow_mo=self.config.slow_mo,
            )
        return profile

    # ========== 启动 ==========

    async def start(self) -> Playwright:
        """启动 Playwright（仅首次）."""
        if self.playwright is None:
            logger.info("启动 Playwright..")
            self.playwright = await self._playwright_factory().start()
        return self.playwright

    def get_browser_launcher(self, browser_type: str = "chromium") -> BrowserType:
        """获取浏览器类型对应的 Playwright launcher.

        Raises:
            UnsupportedBrowserError: 浏览器类型不受支持
            RuntimeError: Playwright 尚未启动
        """
        if browser_type not in SUPPORTED_BROWSERS:
            raise UnsupportedBrowserError(browser_type)
        if self.playwright is None:
            raise RuntimeError("Playwright 尚未启动, 请先调用 start()")
        return getattr(self.playwright, browser_type)

    async def _launch(self, browser_type: str, **options: Any) -> Browser:
        if browser_type not in SUPPORTED_BROWSERS:
            raise UnsupportedBrowserError(browser_type)

        await self.start()
        launcher = self.get_browser_launcher(browser_type)
        profile = self._profile(browser_type)

        launch_options = {
            "headless": profile.headless,
            "slow_mo": profile.slow_mo,
            **profile.launch_options,
            **options,
        }
        logger.info(f"启动浏览器: {browser_type} (headless={launch_options['headless']})")
        return await launcher.launch(**launch_options)

    async def launch_browser(self, browser_type: str = "chromium", **options: Any) -> Browser:
        """启动浏览器并设为当前浏览器.

        Args:
            browser_type: chromium/firefox/webkit
            **options: 覆盖配置中的启动参数

        Returns:
            浏览器实例
        """
        self.browser = await self._launch(browser_type, **options)
        self.browser_type = browser_type
        return self.browser

    async def _new_context(
        self, browser: Browser, browser_type: str, **options: Any
    ) -> BrowserContext:
        profile = self._profile(browser_type)
        context_options: dict[str, Any] = {"viewport": dict(profile.viewport)}
        if self.config.video_dir:
            video_dir = self.path_resolver(self.config.video_dir)
            video_dir.mkdir(parents=True, exist_ok=True)
            context_options["record_video_dir"] = str(video_dir)
        context_options.update(options)

        context = await browser.new_context(**context_options)
        context.set_default_timeout(profile.default_timeout)
        return context

    async def create_context(self, **options: Any) -> BrowserContext:
        """在当前浏览器上创建上下文.

        Raises:
            BrowserNotLaunchedError: 尚未调用 launch_browser()
        """
        if self.browser is None:
            raise BrowserNotLaunchedError()
        self.context = await self._new_context(
            self.browser, self.browser_type or self.config.default_type, **options
        )
        return self.context

    async def create_page(self) -> Page:
        """在当前上下文上创建页面, 没有上下文时先创建."""
        if self.context is None:
            await self.create_context()
        self.page = await self.context.new_page()
        return self.page

    async def open_session(self, browser_type: str | None = None, **options: Any) -> BrowserBundle:
        """打开一组独立的 browser/context/page, 不占用当前浏览器槽位.

        Args:
            browser_type: 浏览器类型, 默认使用配置的 default_type
            **options: 上下文参数

        Returns:
            浏览器会话句柄
        """
        browser_type = browser_type or self.config.default_type
        browser = await self._launch(browser_type)
        try:
            context = await self._new_context(browser, browser_type, **options)
            page = await context.new_page()
        except Exception:
            try:
                await browser.close()
            except Exception as close_exc:
                logger.debug(f"回收浏览器失败: {close_exc}")
            raise

        return BrowserBundle(browser=browser, context=context, page=page, browser_type=browser_type)

    # ========== 设备 ==========

    def get_mobile_device(self, device_name: str) -> dict[str, Any]:
        """获取 Playwright 内置的设备描述.

        Raises:
            DeviceNotFoundError: 设备不存在
        """
        if self.playwright is None:
            raise RuntimeError("Playwright 尚未启动, 请先调用 start()")
        try:
            return self.playwright.devices[device_name]
        except KeyError as exc:
            raise DeviceNotFoundError(device_name) from exc

    # ========== 关闭 ==========

    async def close_page(self) -> None:
        if self.page is not None:
            try:
                await self.page.close()
            finally:
                self.page = None

    async def close_browser(self, browser: Browser | None = None) -> None:
        """关闭浏览器, 默认关闭当前浏览器. 关闭异常会向上抛出.

        Args:
            browser: 要关闭的浏览器, None 表示当前浏览器
        """
        target = browser or self.browser
        if target is None:
            return

        try:
            await target.close()
        finally:
            if target is self.browser:
                self.browser = None
                self.browser_type = None
                self.context = None
                self.page = None

    async def close(self) -> None:
        """关闭所有资源, 单个资源失败不影响其他资源.

        清理顺序: Page → Context → Browser → Playwright
        """
        errors: list[tuple[str, Exception]] = []

        for name in ("page", "context", "browser"):
            resource = getattr(self, name)
            try:
                if resource is not None:
                    await asyncio.wait_for(resource.close(), timeout=10.0)
            except asyncio.TimeoutError:
                errors.append((name, TimeoutError(f"{name}.close() 超时")))
                logger.warning(f"{name}.close() 超时")
            except Exception as exc:
                errors.append((name, exc))
                logger.debug(f"{name}.close() 失败: {exc}")
            finally:
                setattr(self, name, None)
        self.browser_type = None

        try:
            if self.playwright is not None:
                await asyncio.wait_for(self.playwright.stop(), timeout=5.0)
        except asyncio.TimeoutError:
            errors.append(("playwright", TimeoutError("playwright.stop() 超时")))
            logger.warning("playwright.stop() 超时")
        except Exception as exc:
            errors.append(("playwright", exc))
            logger.debug(f"playwright.stop() 失败: {exc}")
        finally:
            self.playwright = None

        if errors:
            error_summary = ", ".join(f"{name}:{type(e).__name__}" for name, e in errors)
            logger.warning(f"浏览器关闭过程中有 {len(errors)} 个错误: {error_summary}")
        else:
            logger.info("浏览器已关闭")

    async def __aenter__(self):
        """异步上下文管理器入口."""
        await self.initialize()
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """异步上下文管理器出口."""
        await self.close()

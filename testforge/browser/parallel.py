"""
@PURPOSE: 多浏览器并行执行 - 每种浏览器一个独立会话, 并发执行同一动作
@OUTLINE:
  - async def run_across_browsers(): 并发执行并收集每个浏览器的结果
@GOTCHAS:
  - 单个浏览器失败只体现在结果中, 不影响其他浏览器
  - 无论成功与否都会关闭该浏览器
@DEPENDENCIES:
  - 外部: loguru
  - 内部: testforge.models.result, testforge.utils
@RELATED: browser_manager.py
"""

from __future__ import annotations

import asyncio
import inspect
from typing import Any, Callable, Iterable

from loguru import logger

from testforge.models.result import BrowserRunResult
from testforge.utils.logger_setup import get_logger_with_context

BrowserAction = Callable[[Any, str], Any]


async def run_across_browsers(
    manager: Any,
    browser_types: Iterable[str],
    action: BrowserAction,
    *,
    max_concurrency: int | None = None,
) -> list[BrowserRunResult]:
    """在多个浏览器上并发执行同一动作.

    Args:
        manager: 浏览器管理器（需提供 open_session/close_browser）
        browser_types: 浏览器类型列表
        action: 动作, 参数为 (page, browser_type), 可以是异步函数
        max_concurrency: 同时打开的浏览器上限, None 表示不限制

    Returns:
        与 browser_types 顺序一致的结果列表

    Examples:
        >>> async def check_title(page, browser_type):
        ...     await page.goto("https://example.com")
        ...     return await page.title()
        >>> results = await run_across_browsers(manager, ["chromium", "firefox"], check_title)
    """
    semaphore = asyncio.Semaphore(max_concurrency) if max_concurrency else None

    async def _run(browser_type: str) -> BrowserRunResult:
        if semaphore is None:
            return await _run_one(manager, browser_type, action)
        async with semaphore:
            return await _run_one(manager, browser_type, action)

    results = await asyncio.gather(*(_run(browser_type) for browser_type in browser_types))
    passed = sum(1 for result in results if result.success)
    logger.info(f"多浏览器执行完成: {passed}/{len(results)} 成功")
    return list(results)


async def _run_one(manager: Any, browser_type: str, action: BrowserAction) -> BrowserRunResult:
    log = get_logger_with_context(browser=browser_type)
    bundle = None
    try:
        bundle = await manager.open_session(browser_type)
        result = action(bundle.page, browser_type)
        if inspect.isawaitable(result):
            result = await result
        log.success(f"✓ {browser_type} 执行成功")
        return BrowserRunResult(browser_type=browser_type, success=True, result=result)
    except Exception as exc:
        log.error(f"✗ {browser_type} 执行失败: {exc}")
        return BrowserRunResult(
            browser_type=browser_type,
            success=False,
            error=str(exc) or type(exc).__name__,
        )
    finally:
        if bundle is not None:
            try:
                await manager.close_browser(bundle.browser)
            except Exception as exc:
                log.warning(f"关闭 {browser_type} 失败: {exc}")

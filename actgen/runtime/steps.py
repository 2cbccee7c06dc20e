"""
ステップ境界 — 生成スクリプトの各ステップを名前付きブロックとして記録する
"""

from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator

logger = logging.getLogger(__name__)


@asynccontextmanager
async def step(title: str) -> AsyncIterator[None]:
    """ステップの開始・完了・失敗をログに記録する。例外はそのまま伝播する。

    使用例::

        async with step("1. ログインページを開く"):
            await page.goto("https://example.com/login")
    """
    logger.info("ステップ開始: %s", title)
    start = time.perf_counter()
    try:
        yield
    except Exception:
        elapsed = (time.perf_counter() - start) * 1000
        logger.error("ステップ失敗: %s (%.0fms)", title, elapsed)
        raise
    elapsed = (time.perf_counter() - start) * 1000
    logger.info("ステップ完了: %s (%.0fms)", title, elapsed)

"""
ネットワークアイドル待機 — 通信中リクエスト数の追跡とアイドル判定

主な構成:
  - RequestTracker: 1ページ分の xhr / fetch リクエスト数を数える
  - BrowserManager: 複数ページのトラッカーをまとめ、アプリのアイドルを待つ

wait_for_app_idle() は例外を送出しない。通信中リクエストが
idle_time の間ずっと 0 であるか、timeout を超えた時点で戻る。
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from playwright.async_api import Page

logger = logging.getLogger(__name__)

# 通信中として数えるリソース種別
_TRACKED_RESOURCE_TYPES = frozenset({"xhr", "fetch"})


# ---------------------------------------------------------------------------
# RequestTracker
# ---------------------------------------------------------------------------

class RequestTracker:
    """1ページ分の通信中リクエスト数を追跡する。

    使用例::

        tracker = RequestTracker(page)
        tracker.attach()
        ...
        tracker.detach()
    """

    def __init__(self, page: Page) -> None:
        self.page = page
        self._pending = 0
        self._attached = False

    @property
    def pending(self) -> int:
        """通信中のリクエスト数。"""
        return self._pending

    def attach(self) -> None:
        if self._attached:
            return
        self.page.on("request", self._on_request)
        self.page.on("requestfinished", self._on_done)
        self.page.on("requestfailed", self._on_done)
        self._attached = True

    def detach(self) -> None:
        if not self._attached:
            return
        self.page.remove_listener("request", self._on_request)
        self.page.remove_listener("requestfinished", self._on_done)
        self.page.remove_listener("requestfailed", self._on_done)
        self._attached = False

    def _on_request(self, request: Any) -> None:
        if request.resource_type in _TRACKED_RESOURCE_TYPES:
            self._pending += 1

    def _on_done(self, request: Any) -> None:
        if request.resource_type in _TRACKED_RESOURCE_TYPES:
            # 追跡開始前に発行されたリクエストの完了で負にならないようにする
            self._pending = max(0, self._pending - 1)


# ---------------------------------------------------------------------------
# BrowserManager
# ---------------------------------------------------------------------------

class BrowserManager:
    """生成スクリプト1回の実行で開かれる全ページのアイドル状態を管理する。"""

    def __init__(self) -> None:
        self._trackers: list[RequestTracker] = []

    @property
    def pending_requests(self) -> int:
        return sum(tracker.pending for tracker in self._trackers)

    def track_requests(self, page: Page) -> RequestTracker:
        """ページのリクエスト追跡を開始する。同じページを2回登録しても1回分になる。"""
        for tracker in self._trackers:
            if tracker.page is page:
                return tracker
        tracker = RequestTracker(page)
        tracker.attach()
        self._trackers.append(tracker)
        return tracker

    async def wait_for_app_idle(
        self,
        timeout: float = 10000,
        idle_time: float = 500,
        poll_interval: float = 100,
    ) -> bool:
        """通信中リクエストが idle_time の間 0 であり続けるまで待つ。

        Args:
            timeout: 全体の待機上限（ミリ秒）
            idle_time: アイドルとみなす無通信の継続時間（ミリ秒）
            poll_interval: ポーリング間隔（ミリ秒）

        Returns:
            アイドルに達したら True、timeout で打ち切ったら False
        """
        start = time.monotonic()
        idle_since: float | None = None
        while True:
            now = time.monotonic()
            if self.pending_requests == 0:
                if idle_since is None:
                    idle_since = now
                elif (now - idle_since) * 1000 >= idle_time:
                    return True
            else:
                idle_since = None
            if (now - start) * 1000 >= timeout:
                logger.warning(
                    "アイドル待機がタイムアウトしました（通信中: %d 件）", self.pending_requests,
                )
                return False
            await asyncio.sleep(poll_interval / 1000)

    def close(self) -> None:
        """全ページのリスナーを解除する。"""
        for tracker in self._trackers:
            tracker.detach()
        self._trackers.clear()

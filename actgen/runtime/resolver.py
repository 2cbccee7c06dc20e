"""
セレクタリゾルバ — 複数のセレクタ候補から再生時のページで要素を1つに絞り込む

記録されたセレクタは候補にすぎず、再生時の DOM では一致数が変わり得る。
選択ルール:
  1. 全候補について先頭一致要素の attach を並行して待つ（失敗は無視）
  2. 候補順に一致数を調べ、最初に一致数がちょうど 1 の候補を採用する
  3. 該当がなければ、一致数が最小（0 を除く）の候補の先頭要素を採用する
  4. すべて 0 件なら SelectorResolutionError

件数の検証では絞り込みをせず、candidate_locator で先頭候補の全一致を使う。
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Sequence

from .selectors import SelectorParseError, describe_selector, parse_selector, to_locator

if TYPE_CHECKING:
    from playwright.async_api import Locator, Page

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# エラー定義
# ---------------------------------------------------------------------------

class SelectorResolutionError(Exception):
    """全てのセレクタ候補で要素を解決できなかった場合のエラー。"""


# ---------------------------------------------------------------------------
# 解決処理
# ---------------------------------------------------------------------------

async def _wait_attached(locator: Locator, timeout: float) -> None:
    try:
        await locator.first.wait_for(state="attached", timeout=timeout)
    except Exception as exc:
        logger.debug("attach 待機を打ち切りました: %s", exc)


async def resolve_unique_selector(
    page: Page,
    selectors: Sequence[str],
    timeout: float = 3000,
) -> Locator:
    """セレクタ候補から要素を1つ選んで Locator を返す。

    Args:
        page: Playwright の Page オブジェクト
        selectors: ロケータ式の候補（優先順）
        timeout: 候補ごとの attach 待機タイムアウト（ミリ秒）

    Returns:
        一致数 1 の候補の Locator、または一致数最小の候補の先頭要素

    Raises:
        SelectorResolutionError: 有効な候補がない、または全候補が 0 件の場合
    """
    if page is None or not selectors:
        raise SelectorResolutionError("ページまたはセレクタが指定されていません")

    candidates: list[tuple[str, Locator]] = []
    for text in selectors:
        try:
            spec = parse_selector(text)
        except SelectorParseError as exc:
            logger.warning("解釈できないセレクタをスキップします: %s", exc)
            continue
        logger.debug("候補: %s", describe_selector(spec))
        candidates.append((text, to_locator(page, spec)))

    await asyncio.gather(*(_wait_attached(locator, timeout) for _, locator in candidates))

    best: tuple[str, Locator] | None = None
    best_count = 0
    counts: list[str] = []
    for text, locator in candidates:
        count = await locator.count()
        counts.append(f"{text} → {count}")
        if count == 1:
            logger.debug("一意に解決しました: %s", text)
            return locator
        if count > 0 and (best is None or count < best_count):
            best, best_count = (text, locator), count

    if best is not None:
        logger.debug("一致数最小の候補を採用します: %s (%d 件)", best[0], best_count)
        return best[1].first

    raise SelectorResolutionError(
        "Invalid selectors: どの候補も要素に一致しませんでした [" + "; ".join(counts) + "]"
    )


def candidate_locator(page: Page, selectors: Sequence[str]) -> Locator:
    """先頭の解釈可能な候補から、一致する全要素を表す Locator を返す。

    件数の検証（to_have_count）用。resolve_unique_selector と異なり
    一致数による絞り込みや .first への縮小はしない。

    Raises:
        SelectorResolutionError: 解釈可能な候補がない場合
    """
    if page is None or not selectors:
        raise SelectorResolutionError("ページまたはセレクタが指定されていません")
    for text in selectors:
        try:
            spec = parse_selector(text)
        except SelectorParseError as exc:
            logger.warning("解釈できないセレクタをスキップします: %s", exc)
            continue
        logger.debug("件数検証の候補: %s", describe_selector(spec))
        return to_locator(page, spec)
    raise SelectorResolutionError(
        "Invalid selectors: 解釈できる候補がありません [" + "; ".join(selectors) + "]"
    )

"""
セレクタリテラル生成 — Element のセレクタ候補を生成コードのリスト式に変換

セレクタ文字列の文法はランタイム（actgen.runtime.selectors）でのみ解釈する。
ここではエスケープしてリストリテラルに埋め込むだけ。
"""

from __future__ import annotations

from typing import Iterable

from ..model.schema import Action, Element
from .literals import quote

# 強制操作フォールバックを生成するアクション種別
FORCE_ACTION_KINDS = frozenset({"click", "double_click", "input", "select"})

# Element の有無に関係なく resolve_unique_selector を呼ぶアクション種別
LOCATOR_KINDS = FORCE_ACTION_KINDS | {
    "right_click", "shift_click", "checkbox", "change", "drag_and_drop", "upload",
}

# ロケータを使わない assert 種別
_PAGE_ASSERTS = frozenset({"pageHasATitle", "pageHasAURL", "ai"})

# 一致した要素をすべて数える assert 種別
_COUNT_ASSERTS = frozenset({"toHaveCount"})


def selector_list(element: Element) -> str:
    """1つの Element のセレクタ候補を Python のリスト式にする。"""
    return "[" + ", ".join(quote(value) for value in element.selector_values()) + "]"


def selector_lists(action: Action) -> list[str]:
    """アクションの全 Element についてリスト式を返す。Element がなければ ["[]"]。"""
    if not action.elements:
        return ["[]"]
    return [selector_list(element) for element in action.elements]


def needs_resolve_unique_selector(actions: Iterable[Action]) -> bool:
    """生成コードが resolve_unique_selector を呼ぶアクションがあるか。"""
    for action in actions:
        if action.action_type != "assert":
            if action.elements or action.action_type in LOCATOR_KINDS:
                return True
            continue
        kind = action.assert_type or ""
        if kind in _COUNT_ASSERTS:
            continue
        if action.elements or kind not in _PAGE_ASSERTS:
            return True
    return False


def needs_candidate_locator(actions: Iterable[Action]) -> bool:
    """生成コードが candidate_locator（絞り込まない Locator）を使うアクションがあるか。"""
    return any(
        action.action_type == "assert" and action.assert_type in _COUNT_ASSERTS
        for action in actions
    )


def needs_force_action(actions: Iterable[Action]) -> bool:
    """強制操作フォールバックの対象となるアクションがあるか。"""
    return any(action.action_type in FORCE_ACTION_KINDS for action in actions)

"""
ペイロード抽出 — Action の action_datas から値を取り出すヘルパー

action_datas は「最初に条件を満たしたエントリが勝つ」規約で参照する。
value ペイロードは {"value": ..., "page_index": ..., ...} 形式の dict を基本とし、
スカラー値が直接入っている場合も value として扱う。
"""

from __future__ import annotations

import re
from typing import Any, Optional

from ..model.schema import Action, ApiRequest, BrowserStorage, FileUpload, Statement


def _value_dicts(action: Action):
    for data in action.action_datas:
        if isinstance(data.value, dict):
            yield data.value


def value_field(action: Action, key: str) -> Any:
    """value dict のうち key が非 None の最初のエントリからその値を返す。"""
    for value in _value_dicts(action):
        if value.get(key) is not None:
            return value[key]
    return None


def first_value(action: Action) -> Any:
    """最初の非 None の value ペイロードを返す。見つからなければ None。"""
    for data in action.action_datas:
        raw = data.value
        if isinstance(raw, dict):
            if raw.get("value") is not None:
                return raw["value"]
        elif raw is not None and not isinstance(raw, list):
            return raw
    return None


def safe_int(value: Any, default: int = 0) -> int:
    """整数に変換できなければ default を返す。"""
    if value is None or isinstance(value, bool):
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        try:
            return int(float(value))
        except (TypeError, ValueError):
            return default


def safe_number(value: Any) -> int | float:
    """数値に変換できなければ 0 を返す。整数で表せる値は int にする。"""
    if value is None or isinstance(value, bool):
        return 0
    try:
        return int(value)
    except (TypeError, ValueError):
        pass
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0
    return int(number) if number.is_integer() else number


def page_index(action: Optional[Action]) -> int:
    """アクションが対象とするページ番号（既定 0）。"""
    if action is None:
        return 0
    return safe_int(value_field(action, "page_index"), 0)


def explicit_page_index(action: Action) -> Optional[int]:
    """page_index が明示されていればその値、なければ None。"""
    raw = value_field(action, "page_index")
    if raw is None:
        return None
    return safe_int(raw, 0)


def opener_index(action: Optional[Action]) -> Optional[int]:
    """ポップアップの親ページ番号。0 も有効値として扱い、未設定なら None。"""
    if action is None:
        return None
    raw = value_field(action, "opener_index")
    if raw is None:
        return None
    return safe_int(raw, 0)


def page_var(index: int) -> str:
    """ページ番号から生成コード上の変数名を返す（0 → page、N → pageN）。"""
    return "page" if index == 0 else f"page{index}"


def promise_var(index: int) -> str:
    return f"{page_var(index)}_promise"


def statements(action: Action) -> list[Statement]:
    return [data.statement for data in action.action_datas if data.statement is not None]


def api_requests(action: Action) -> list[ApiRequest]:
    return [data.api_request for data in action.action_datas if data.api_request is not None]


def api_request_pages(action: Action) -> list[int]:
    """api_request ごとの実行ページ番号（同じエントリの value.page_index、既定 0）。"""
    pages = []
    for data in action.action_datas:
        if data.api_request is None:
            continue
        raw = data.value.get("page_index") if isinstance(data.value, dict) else None
        pages.append(safe_int(raw, 0))
    return pages


def element_targets(action: Action) -> list[tuple[int, int]]:
    """ai アサーションの対象要素ごとの (page_index, element_index) を記録順に返す。

    element_index を持つ value エントリだけを対象にする。
    """
    targets = []
    for value in _value_dicts(action):
        if value.get("element_index") is None:
            continue
        targets.append((safe_int(value.get("page_index"), 0), safe_int(value["element_index"], 0)))
    return targets


def browser_storage(action: Action) -> Optional[BrowserStorage]:
    for data in action.action_datas:
        if data.browser_storage is not None:
            return data.browser_storage
    return None


def file_uploads(action: Action) -> list[FileUpload]:
    return [data.file_upload for data in action.action_datas if data.file_upload is not None]


# ---------------------------------------------------------------------------
# "X:10,Y:20" 形式のパック文字列
# ---------------------------------------------------------------------------

def parse_pair(value: Any, first: str, second: str) -> tuple[int, int]:
    """"First:10,Second:20" 形式の文字列を (10, 20) に分解する。

    dict の場合は小文字化したキーで読み取る。解釈できない値は 0 になる。

    Args:
        value: パック文字列または dict
        first: 1つ目のキー名（例: "X", "Width"）
        second: 2つ目のキー名（例: "Y", "Height"）

    Returns:
        2つの整数のタプル
    """
    if isinstance(value, dict):
        return (
            safe_int(value.get(first.lower(), value.get(first)), 0),
            safe_int(value.get(second.lower(), value.get(second)), 0),
        )
    text = "" if value is None else str(value)
    found = []
    for key in (first, second):
        match = re.search(rf"{key}\s*:\s*(-?\d+(?:\.\d+)?)", text, re.IGNORECASE)
        found.append(safe_int(match.group(1), 0) if match else 0)
    return found[0], found[1]

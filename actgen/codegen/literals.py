"""
リテラル生成ユーティリティ — 生成コードへ安全に埋め込むための文字列処理

主な機能:
  - quote(): Python 文字列リテラル化（決定的なエスケープ）
  - sanitize_inline(): 改行を除去して1行に収める
  - py_literal(): dict / list を Python リテラルとして整形出力
  - enum_to_str(): Enum・任意値の文字列正規化
  - parse_structured(): 文字列ペイロードを JSON / Python リテラルとして解釈
  - repair_cookies(): 記録された cookie を Playwright が受け付ける形に修復
"""

from __future__ import annotations

import ast
import json
import logging
import re
from enum import Enum
from typing import Any, Optional

logger = logging.getLogger(__name__)

_ESCAPES = {
    "\\": "\\\\",
    '"': '\\"',
    "\n": "\\n",
    "\r": "\\r",
    "\t": "\\t",
}

_NEWLINES = re.compile(r"[\r\n]+")

# Playwright の add_cookies が受け付けるキー
_COOKIE_KEYS = (
    "name", "value", "url", "domain", "path", "expires", "httpOnly", "secure", "sameSite",
)

_SAME_SITE = {
    "lax": "Lax",
    "strict": "Strict",
    "none": "None",
    "no_restriction": "None",
    "unspecified": "None",
}


# ---------------------------------------------------------------------------
# 文字列
# ---------------------------------------------------------------------------

def quote(value: Any) -> str:
    """値をダブルクォートの Python 文字列リテラルに変換する。

    None は空文字列として扱う。制御文字は \\xNN 形式でエスケープする。

    Args:
        value: リテラル化する値

    Returns:
        Python ソースにそのまま埋め込める文字列リテラル
    """
    text = "" if value is None else str(value)
    out = []
    for ch in text:
        if ch in _ESCAPES:
            out.append(_ESCAPES[ch])
        elif ord(ch) < 0x20 or ord(ch) == 0x7F:
            out.append(f"\\x{ord(ch):02x}")
        else:
            out.append(ch)
    return '"' + "".join(out) + '"'


def sanitize_inline(raw: Any) -> str:
    """改行を空白1つに置き換え、1行の文字列にする。None は空文字列。"""
    if raw is None:
        return ""
    return _NEWLINES.sub(" ", str(raw))


def sanitize_str(value: Any) -> Optional[str]:
    """None はそのまま、それ以外は str に変換する。"""
    if value is None:
        return None
    return str(value)


def enum_to_str(value: Any, default: Optional[str] = None, lower: bool = True) -> str:
    """Enum・任意値を文字列に正規化する。

    Args:
        value: 変換対象（Enum、{"value": ...} 形式の dict、任意値）
        default: value が None の場合の戻り値
        lower: 小文字化するか

    Returns:
        正規化された文字列
    """
    if value is None:
        return default or ""
    if isinstance(value, Enum):
        value = value.value
    elif isinstance(value, dict) and "value" in value:
        value = value["value"]
    text = str(value)
    return text.lower() if lower else text


# ---------------------------------------------------------------------------
# 構造化リテラル
# ---------------------------------------------------------------------------

def py_literal(obj: Any, indent: int = 0, step: int = 4) -> str:
    """dict / list / スカラー値を整形済みの Python リテラルに変換する。

    キー順は入力順を保持するため、同じ入力からは常に同じ文字列が得られる。

    Args:
        obj: 変換対象
        indent: 現在のインデント幅
        step: 1段あたりのインデント幅

    Returns:
        Python リテラル文字列（複数行になり得る）
    """
    if obj is None:
        return "None"
    if isinstance(obj, bool):
        return "True" if obj else "False"
    if isinstance(obj, (int, float)):
        return repr(obj)
    if isinstance(obj, str):
        return quote(obj)
    if isinstance(obj, Enum):
        return quote(obj.value)
    pad = " " * (indent + step)
    end_pad = " " * indent
    if isinstance(obj, dict):
        if not obj:
            return "{}"
        items = [
            f"{pad}{quote(key)}: {py_literal(val, indent + step, step)},"
            for key, val in obj.items()
        ]
        return "{\n" + "\n".join(items) + f"\n{end_pad}}}"
    if isinstance(obj, (list, tuple)):
        if not obj:
            return "[]"
        items = [f"{pad}{py_literal(val, indent + step, step)}," for val in obj]
        return "[\n" + "\n".join(items) + f"\n{end_pad}]"
    return quote(obj)


def parse_structured(value: Any, default: Any) -> Any:
    """文字列ペイロードを JSON、だめなら Python リテラルとして解釈する。

    dict / list はそのまま返す。解釈できない場合は default を返す。
    """
    if value is None or value == "":
        return default
    if not isinstance(value, str):
        return value
    try:
        return json.loads(value)
    except ValueError:
        pass
    try:
        return ast.literal_eval(value)
    except (ValueError, SyntaxError):
        logger.warning("ペイロードを解釈できません。既定値を使用します: %.80s", value)
        return default


def repair_cookies(value: Any) -> list[dict[str, Any]]:
    """記録された cookie を Playwright の add_cookies が受け付ける形に修復する。

    - 文字列は JSON / Python リテラルとして解釈する
    - sameSite を Strict / Lax / None に正規化する（不明値は削除）
    - expirationDate を expires に読み替える
    - Playwright が受け付けないキーは削除する
    - domain があり path がない場合は "/" を補う

    Args:
        value: 記録された cookie（文字列、dict、dict のリスト）

    Returns:
        修復済み cookie のリスト
    """
    parsed = parse_structured(value, [])
    if isinstance(parsed, dict):
        parsed = [parsed]
    if not isinstance(parsed, (list, tuple)):
        return []

    cookies: list[dict[str, Any]] = []
    for raw in parsed:
        if not isinstance(raw, dict):
            continue
        cookie = dict(raw)
        if "expires" not in cookie and "expirationDate" in cookie:
            cookie["expires"] = cookie["expirationDate"]
        repaired = {key: cookie[key] for key in _COOKIE_KEYS if key in cookie}

        same_site = repaired.pop("sameSite", None)
        if same_site is not None:
            normalized = _SAME_SITE.get(str(same_site).lower())
            if normalized:
                repaired["sameSite"] = normalized

        for flag in ("httpOnly", "secure"):
            if isinstance(repaired.get(flag), str):
                repaired[flag] = repaired[flag].lower() == "true"

        if "domain" in repaired and "path" not in repaired and "url" not in repaired:
            repaired["path"] = "/"
        cookies.append(repaired)
    return cookies

"""
API リクエスト実行 — ページのコンテキストで記録済み HTTP 呼び出しを再現する

api_data（actgen.codegen.api_request.serialize_api_request の出力形式）を受け取り、
page.request.fetch で送信する。ページと同じ cookie / 認証状態が使われる。

認証ヘッダーの解決順:
  1. インラインのトークン / ユーザー名・パスワード
  2. bearer: token_storages の先頭が指すストレージのキー
     basic : basic_auth_storages の先頭が指すストレージのユーザー名・パスワード
ストレージは localStorage / sessionStorage / cookie のいずれか。

パラメータ・ヘッダー・認証の解決失敗は警告ログのみで続行する。
"""

from __future__ import annotations

import base64
import logging
from typing import TYPE_CHECKING, Any, Mapping, Optional
from urllib.parse import urlencode

from playwright.async_api import Error as PlaywrightError

if TYPE_CHECKING:
    from playwright.async_api import APIResponse, Page

logger = logging.getLogger(__name__)

_STORAGE_READERS = {
    "local_storage": "key => window.localStorage.getItem(key) || ''",
    "session_storage": "key => window.sessionStorage.getItem(key) || ''",
    "cookie": (
        "name => { const row = document.cookie.split('; ')"
        ".find(r => r.startsWith(name + '=')); "
        "return row ? decodeURIComponent(row.slice(name.length + 1)) : ''; }"
    ),
}

_STORAGE_ALIASES = {
    "localstorage": "local_storage",
    "local_storage": "local_storage",
    "local": "local_storage",
    "sessionstorage": "session_storage",
    "session_storage": "session_storage",
    "session": "session_storage",
    "cookie": "cookie",
    "cookies": "cookie",
}


# ---------------------------------------------------------------------------
# 組み立てヘルパー
# ---------------------------------------------------------------------------

def _text(value: Any) -> str:
    # 0 や False も値として残す
    return "" if value is None else str(value).strip()


def _trimmed_pairs(items: Any) -> list[tuple[str, str]]:
    pairs = []
    for item in items or []:
        key = _text(item.get("key"))
        value = _text(item.get("value"))
        if key and value:
            pairs.append((key, value))
    return pairs


def build_url(url: str, params: Any) -> str:
    """キー・値ともに空でないパラメータだけをクエリ文字列として付与する。"""
    pairs = _trimmed_pairs(params)
    if not pairs:
        return url
    separator = "&" if "?" in url else "?"
    return f"{url}{separator}{urlencode(pairs)}"


def build_headers(headers: Any) -> dict[str, str]:
    return dict(_trimmed_pairs(headers))


async def _read_storage(page: Page, storage_type: Any, key: str) -> str:
    kind = _STORAGE_ALIASES.get(str(storage_type or "").lower().replace("-", "_"))
    if kind is None or not key:
        return ""
    value = await page.evaluate(_STORAGE_READERS[kind], key)
    return str(value or "").strip()


async def resolve_authorization(page: Page, auth: Optional[Mapping[str, Any]]) -> Optional[str]:
    """Authorization ヘッダーの値を解決する。解決できなければ None。"""
    if not auth:
        return None
    auth_type = str(auth.get("type") or "none").lower()

    if auth_type == "bearer":
        token = str(auth.get("token") or "").strip()
        if not token:
            storages = auth.get("token_storages") or []
            if storages:
                first = storages[0]
                token = await _read_storage(page, first.get("type"), str(first.get("key") or ""))
        return f"Bearer {token}" if token else None

    if auth_type == "basic":
        username = str(auth.get("username") or "")
        password = str(auth.get("password") or "")
        if not (username and password):
            storages = auth.get("basic_auth_storages") or []
            if storages:
                first = storages[0]
                username = await _read_storage(
                    page, first.get("type"), str(first.get("username_key") or ""),
                )
                password = await _read_storage(
                    page, first.get("type"), str(first.get("password_key") or ""),
                )
        if not (username and password):
            return None
        encoded = base64.b64encode(f"{username}:{password}".encode("utf-8")).decode("ascii")
        return f"Basic {encoded}"

    return None


def _body_options(body: Optional[Mapping[str, Any]]) -> dict[str, Any]:
    if not body:
        return {}
    body_type = str(body.get("type") or "none").lower()
    if body_type == "json" and body.get("content") not in (None, ""):
        return {"data": body["content"]}
    if body_type in ("form", "form_data", "x_www_form_urlencoded"):
        form = {
            str(item.get("name")): "" if item.get("value") is None else str(item.get("value"))
            for item in body.get("form_data") or []
            if item.get("name")
        }
        return {"form": form} if form else {}
    return {}


# ---------------------------------------------------------------------------
# 公開 API
# ---------------------------------------------------------------------------

async def execute_api_request(page: Page, api_data: Optional[Mapping[str, Any]] = None) -> APIResponse:
    """記録済み API リクエストをページのコンテキストで送信する。

    Args:
        page: Playwright の Page オブジェクト
        api_data: シリアライズ済みのリクエスト記述

    Returns:
        Playwright の APIResponse
    """
    api_data = api_data or {}
    url = str(api_data.get("url") or "")
    method = str(api_data.get("method") or "get").upper()

    try:
        url = build_url(url, api_data.get("params"))
    except (AttributeError, TypeError, ValueError) as exc:
        logger.warning("クエリパラメータの組み立てに失敗しました: %s", exc)

    headers: dict[str, str] = {}
    try:
        headers.update(build_headers(api_data.get("headers")))
    except (AttributeError, TypeError, ValueError) as exc:
        logger.warning("ヘッダーの組み立てに失敗しました: %s", exc)

    try:
        authorization = await resolve_authorization(page, api_data.get("auth"))
        if authorization:
            headers["Authorization"] = authorization
    except (PlaywrightError, AttributeError, TypeError, ValueError) as exc:
        logger.warning("認証情報の解決に失敗しました: %s", exc)

    options: dict[str, Any] = {}
    try:
        options = _body_options(api_data.get("body"))
    except (AttributeError, TypeError, ValueError) as exc:
        logger.warning("リクエストボディの組み立てに失敗しました: %s", exc)

    logger.info("API リクエスト: %s %s", method, url)
    response = await page.request.fetch(url, method=method, headers=headers, **options)
    logger.info("API レスポンス: %d %s", response.status, response.status_text)
    return response


async def build_api_result(response: APIResponse, api_data: Optional[Mapping[str, Any]] = None) -> dict[str, Any]:
    """レスポンスをエビデンス出力用の dict にまとめる。

    本文は JSON として解釈し、解釈できなければテキストのまま格納する。
    """
    api_data = api_data or {}
    try:
        payload: Any = await response.json()
    except (PlaywrightError, ValueError):
        payload = await response.text()
    return {
        "endpoint": build_url(str(api_data.get("url") or ""), api_data.get("params")) or response.url,
        "method": str(api_data.get("method") or "get").upper(),
        "status": response.status,
        "status_text": response.status_text,
        "request_headers": build_headers(api_data.get("headers")),
        "headers": dict(response.headers),
        "payload": payload,
    }

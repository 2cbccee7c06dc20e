"""
API リクエストのシリアライズ — ApiRequest を生成コードに埋め込む dict へ変換

出力形式はランタイムの execute_api_request が受け取る api_data と一致する。
省略時の既定値:
  - method    : "get"
  - auth.type : "none"
  - body.type : "none"
"""

from __future__ import annotations

from typing import Any, Iterable, Optional

from ..model.schema import Action, ApiAuth, ApiBody, ApiRequest
from .literals import enum_to_str, sanitize_str
from .payload import api_requests


def needs_api_request(actions: Iterable[Action]) -> bool:
    """いずれかのアクションが API リクエストを持つか。"""
    return any(api_requests(action) for action in actions)


def _key_values(items) -> list[dict[str, Any]]:
    return [
        {"key": sanitize_str(item.key) or "", "value": sanitize_str(item.value) or ""}
        for item in items
    ]


def _serialize_auth(auth: Optional[ApiAuth]) -> dict[str, Any]:
    if auth is None:
        return {"type": "none"}
    data: dict[str, Any] = {"type": enum_to_str(auth.type, "none")}
    if auth.storage_enabled is not None:
        data["storage_enabled"] = bool(auth.storage_enabled)
    if auth.username is not None:
        data["username"] = sanitize_str(auth.username)
    if auth.password is not None:
        data["password"] = sanitize_str(auth.password)
    if auth.token is not None:
        data["token"] = sanitize_str(auth.token)
    if auth.token_storages:
        data["token_storages"] = [
            {
                "type": enum_to_str(s.type, lower=False),
                "key": sanitize_str(s.key) or "",
            }
            for s in auth.token_storages
        ]
    if auth.basic_auth_storages:
        data["basic_auth_storages"] = [
            {
                "type": enum_to_str(s.type, lower=False),
                "username_key": sanitize_str(s.username_key) or "",
                "password_key": sanitize_str(s.password_key) or "",
            }
            for s in auth.basic_auth_storages
        ]
    return data


def _serialize_body(body: Optional[ApiBody]) -> dict[str, Any]:
    if body is None:
        return {"type": "none"}
    data: dict[str, Any] = {"type": enum_to_str(body.type, "none")}
    if body.content is not None:
        data["content"] = body.content if isinstance(body.content, (dict, list)) else str(body.content)
    if body.form_data:
        items = sorted(
            body.form_data,
            key=lambda item: item.order_index if item.order_index is not None else 0,
        )
        data["form_data"] = [
            {"name": sanitize_str(item.name) or "", "value": sanitize_str(item.value) or ""}
            for item in items
        ]
    return data


def serialize_api_request(request: ApiRequest) -> dict[str, Any]:
    """ApiRequest を api_data 形式の dict に変換する。

    キー順は固定なので、同じ入力からは同じリテラルが生成される。

    Args:
        request: 記録された API リクエスト

    Returns:
        生成コードに埋め込む dict
    """
    return {
        "url": sanitize_str(request.url) or "",
        "method": enum_to_str(request.method, "get"),
        "params": _key_values(request.params),
        "headers": _key_values(request.headers),
        "auth": _serialize_auth(request.auth),
        "body": _serialize_body(request.body),
    }

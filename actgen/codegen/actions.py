"""
アクションエミッタ — action_type ごとのステップコード生成

各エミッタは (action, context) -> コード断片 の純粋関数。
Element を参照するアクションはすべて resolve_unique_selector を経由して対象を解決する。
記録されたセレクタは「候補」であり、再生時の DOM で一意に決まるとは限らないため。

カテゴリ:
  - navigation : navigate, reload, back, forward, wait
  - action     : click 系, input, select, checkbox, change, drag_and_drop, upload, scroll
  - keyboard   : keydown, keyup, keypress
  - data       : database_execution, api_request
  - storage    : add_browser_storage
  - page       : page_create, page_close, page_focus, window_resize
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from ..model.schema import Action
from .api_request import serialize_api_request
from .database import FALLBACK_DB_VAR, connect_db_code, normalized_statements
from .exports import api_export_call, excel_export_call
from .literals import parse_structured, py_literal, quote, repair_cookies
from .payload import (
    api_requests,
    browser_storage,
    explicit_page_index,
    file_uploads,
    first_value,
    opener_index,
    page_index,
    page_var,
    parse_pair,
    promise_var,
    safe_number,
    value_field,
)
from .registry import EmitContext, EmitterInfo, EmitterRegistry, build_step
from .selectors import FORCE_ACTION_KINDS, selector_lists

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# 共通ヘルパー
# ---------------------------------------------------------------------------

def _resolve(page: str, selectors: str, var: str = "locator") -> str:
    return f"{var} = await resolve_unique_selector({page}, {selectors})"


def _locate_and_act(
    context: EmitContext,
    action: Action,
    call: str,
    payload: Optional[str] = None,
) -> list[str]:
    """対象を解決して操作する行を生成する。

    force_fallback が有効で対象種別の場合は、解決・操作の失敗時に
    force_action へフォールバックする try / except で包む。

    Args:
        context: 生成コンテキスト
        action: 対象アクション
        call: locator に対する操作（例: "click()"）
        payload: force_action に渡すペイロードのリテラル
    """
    page = page_var(page_index(action))
    selectors = selector_lists(action)[0]
    lines = [_resolve(page, selectors), f"await locator.{call}"]
    if not (context.config.force_fallback and action.action_type in FORCE_ACTION_KINDS):
        return lines

    args = [page, selectors, quote(action.action_type)]
    if payload is not None:
        args.append(payload)
    return [
        "try:",
        *(f"    {line}" for line in lines),
        "except (SelectorResolutionError, PlaywrightError):",
        f"    await force_action({', '.join(args)})",
    ]


def _str_value(action: Action) -> str:
    value = first_value(action)
    return "" if value is None else str(value)


# ---------------------------------------------------------------------------
# navigation
# ---------------------------------------------------------------------------

def emit_navigate(action: Action, context: EmitContext) -> str:
    page = page_var(page_index(action))
    return build_step(context, action, [f"await {page}.goto({quote(_str_value(action))})"])


def _emit_page_call(call: str):
    def emit(action: Action, context: EmitContext) -> str:
        page = page_var(page_index(action))
        return build_step(context, action, [f"await {page}.{call}"])
    return emit


emit_reload = _emit_page_call("reload()")
emit_back = _emit_page_call("go_back()")
emit_forward = _emit_page_call("go_forward()")


def emit_wait(action: Action, context: EmitContext) -> str:
    page = page_var(page_index(action))
    duration = safe_number(first_value(action))
    return build_step(
        context, action, [f"await {page}.wait_for_timeout({duration!r})"], wait_idle=False,
    )


# ---------------------------------------------------------------------------
# click 系
# ---------------------------------------------------------------------------

def _popup_index(action: Action, next_action: Optional[Action]) -> Optional[int]:
    """直後の page_create がこのクリックで開くポップアップのページ番号を返す。

    page_create 側で promise を待つのは page_index が明示され 0 以外の場合だけなので、
    それ以外では promise を仕掛けない。
    """
    if next_action is None or next_action.action_type != "page_create":
        return None
    if opener_index(next_action) is None:
        return None
    return explicit_page_index(next_action) or None


def emit_click(action: Action, context: EmitContext) -> str:
    body = []
    popup = _popup_index(action, context.next_action)
    if popup is not None:
        page = page_var(page_index(action))
        body.append(
            f'{promise_var(popup)} = asyncio.ensure_future({page}.wait_for_event("popup"))'
        )
    body.extend(_locate_and_act(context, action, "click()"))
    return build_step(context, action, body)


def emit_double_click(action: Action, context: EmitContext) -> str:
    return build_step(context, action, _locate_and_act(context, action, "dblclick()"))


def emit_right_click(action: Action, context: EmitContext) -> str:
    return build_step(context, action, _locate_and_act(context, action, 'click(button="right")'))


def emit_shift_click(action: Action, context: EmitContext) -> str:
    return build_step(
        context, action, _locate_and_act(context, action, 'click(modifiers=["Shift"])'),
    )


# ---------------------------------------------------------------------------
# フォーム操作
# ---------------------------------------------------------------------------

def emit_input(action: Action, context: EmitContext) -> str:
    text = quote(_str_value(action))
    return build_step(context, action, _locate_and_act(context, action, f"fill({text})", text))


def emit_select(action: Action, context: EmitContext) -> str:
    value = first_value(action)
    option = quote("" if value is None else value)
    payload = "None" if value is None else option
    return build_step(
        context, action, _locate_and_act(context, action, f"select_option({option})", payload),
    )


def emit_checkbox(action: Action, context: EmitContext) -> str:
    return build_step(context, action, _locate_and_act(context, action, "check()"))


def emit_change(action: Action, context: EmitContext) -> str:
    return build_step(
        context, action, _locate_and_act(context, action, 'evaluate("el => el.click()")'),
    )


def emit_drag_and_drop(action: Action, context: EmitContext) -> str:
    page = page_var(page_index(action))
    lists = selector_lists(action)
    target = lists[1] if len(lists) > 1 else "[]"
    return build_step(context, action, [
        _resolve(page, lists[0], "source"),
        _resolve(page, target, "target"),
        "await source.drag_to(target)",
    ])


def emit_silent(action: Action, context: EmitContext) -> str:
    """drag_and_drop に統合済みのドラッグ中間イベント。何も出力しない。"""
    return ""


def _upload_path(upload, file_mapping) -> str:
    if upload.file_upload_id and upload.file_upload_id in file_mapping:
        return file_mapping[upload.file_upload_id]
    if upload.file_path and upload.file_path in file_mapping:
        return file_mapping[upload.file_path]
    if upload.filename and upload.filename in file_mapping:
        return file_mapping[upload.filename]
    return upload.file_path or upload.filename or ""


def emit_upload(action: Action, context: EmitContext) -> str:
    paths = [_upload_path(upload, context.file_mapping) for upload in file_uploads(action)]
    files = "[" + ", ".join(quote(path) for path in paths) + "]"
    return build_step(context, action, _locate_and_act(context, action, f"set_input_files({files})"))


def emit_scroll(action: Action, context: EmitContext) -> str:
    page = page_var(page_index(action))
    x, y = parse_pair(first_value(action), "X", "Y")
    if action.elements:
        body = [
            _resolve(page, selector_lists(action)[0]),
            f'await locator.evaluate("el => el.scrollTo({x}, {y})")',
        ]
    else:
        body = [f'await {page}.evaluate("() => window.scrollTo({x}, {y})")']
    body.append(f'await {page}.wait_for_load_state("networkidle")')
    return build_step(context, action, body)


def emit_window_resize(action: Action, context: EmitContext) -> str:
    page = page_var(page_index(action))
    width, height = parse_pair(first_value(action), "Width", "Height")
    if value_field(action, "width") is not None:
        width, height = parse_pair(
            {"width": value_field(action, "width"), "height": value_field(action, "height")},
            "Width", "Height",
        )
    size = f'{{"width": {width}, "height": {height}}}'
    return build_step(context, action, [f"await {page}.set_viewport_size({size})"])


# ---------------------------------------------------------------------------
# keyboard
# ---------------------------------------------------------------------------

def emit_key(action: Action, context: EmitContext) -> str:
    """要素があればその要素で、なければページ全体でキーを押す。"""
    page = page_var(page_index(action))
    key = quote(_str_value(action))
    if action.elements:
        body = [_resolve(page, selector_lists(action)[0]), f"await locator.press({key})"]
    else:
        body = [f"await {page}.keyboard.press({key})"]
    return build_step(context, action, body)


# ---------------------------------------------------------------------------
# data
# ---------------------------------------------------------------------------

def emit_database_execution(action: Action, context: EmitContext) -> str:
    statements = normalized_statements(action)
    if not statements:
        return build_step(context, action, [])
    statement = statements[0]
    connect, var = connect_db_code(statement.connection)
    body = list(connect)
    body.append(f"result = query_database({var or FALLBACK_DB_VAR}, {quote(statement.query)})")
    if var:
        body.append(excel_export_call("result", context.index, statement.query))
        body.append(f"{var}.close()")
    return build_step(context, action, body)


def _api_call_lines(page: str, api_data: dict[str, Any]) -> list[str]:
    return [
        *f"api_data = {py_literal(api_data)}".split("\n"),
        f"response = await execute_api_request({page}, api_data)",
        "api_result = await build_api_result(response, api_data)",
    ]


def emit_api_request(action: Action, context: EmitContext) -> str:
    requests = api_requests(action)
    if not requests:
        return build_step(context, action, [])
    page = page_var(page_index(action))
    body = _api_call_lines(page, serialize_api_request(requests[0]))
    body.append(api_export_call("api_result", context.index))
    return build_step(context, action, body)


# ---------------------------------------------------------------------------
# storage
# ---------------------------------------------------------------------------

_STORAGE_SCRIPTS = {
    "local_storage": "data => Object.entries(data).forEach(([k, v]) => localStorage.setItem(k, v))",
    "session_storage": "data => Object.entries(data).forEach(([k, v]) => sessionStorage.setItem(k, v))",
}

# 記録側の表記揺れ（camelCase / snake_case / 省略形）を正規化する
_STORAGE_ALIASES = {
    "cookie": "cookie",
    "cookies": "cookie",
    "localstorage": "local_storage",
    "local_storage": "local_storage",
    "local": "local_storage",
    "sessionstorage": "session_storage",
    "session_storage": "session_storage",
    "session": "session_storage",
}


def _storage_kind(storage_type: Optional[str]) -> str:
    """ストレージ種別を "cookie" / "local_storage" / "session_storage" に正規化する。

    未対応の種別は空文字を返す。
    """
    key = (storage_type or "").strip().lower().replace("-", "_")
    return _STORAGE_ALIASES.get(key, "")


def emit_add_browser_storage(action: Action, context: EmitContext) -> str:
    storage = browser_storage(action)
    if storage is None:
        return ""
    page = page_var(page_index(action))
    kind = _storage_kind(storage.storage_type)

    if kind == "cookie":
        cookies = repair_cookies(storage.value)
        body = [
            *f"cookies = {py_literal(cookies)}".split("\n"),
            "await context.add_cookies(cookies)",
            f"await {page}.reload()",
        ]
        return build_step(context, action, body)

    if kind in _STORAGE_SCRIPTS:
        data = parse_structured(storage.value, {})
        if not isinstance(data, dict):
            data = {}
        body = [
            *f"storage_data = {py_literal(data)}".split("\n"),
            f"await {page}.evaluate({quote(_STORAGE_SCRIPTS[kind])}, storage_data)",
            f"await {page}.reload()",
        ]
        return build_step(context, action, body)

    logger.debug("未対応のストレージ種別です: %s", storage.storage_type)
    return ""


# ---------------------------------------------------------------------------
# page
# ---------------------------------------------------------------------------

def emit_page_create(action: Action, context: EmitContext) -> str:
    index = page_index(action)
    page = page_var(index)
    url = value_field(action, "url") or first_value(action)
    url = "" if url is None else str(url)

    if opener_index(action) is not None and index != 0:
        body = [f"{page} = await {promise_var(index)}"]
    elif url and "http" in url:
        body = [f"{page} = await context.new_page()", f"await {page}.goto({quote(url)})"]
    else:
        body = [f"{page} = await context.new_page()"]
    body.append(f"bm.track_requests({page})")
    return build_step(context, action, body)


def emit_page_close(action: Action, context: EmitContext) -> str:
    return build_step(
        context, action, [f"await {page_var(page_index(action))}.close()"], wait_idle=False,
    )


def emit_page_focus(action: Action, context: EmitContext) -> str:
    return build_step(context, action, [f"await {page_var(page_index(action))}.bring_to_front()"])


# ---------------------------------------------------------------------------
# レジストリ生成
# ---------------------------------------------------------------------------

_ACTION_EMITTERS = [
    ("navigate", emit_navigate, "URL へ遷移する", "navigation"),
    ("reload", emit_reload, "ページを再読み込みする", "navigation"),
    ("back", emit_back, "履歴を戻る", "navigation"),
    ("forward", emit_forward, "履歴を進む", "navigation"),
    ("wait", emit_wait, "指定ミリ秒待機する", "navigation"),
    ("click", emit_click, "要素をクリックする（ポップアップ先読みあり）", "action"),
    ("double_click", emit_double_click, "要素をダブルクリックする", "action"),
    ("right_click", emit_right_click, "要素を右クリックする", "action"),
    ("shift_click", emit_shift_click, "Shift を押しながらクリックする", "action"),
    ("input", emit_input, "テキストを入力する", "action"),
    ("select", emit_select, "セレクトボックスの選択肢を選ぶ", "action"),
    ("checkbox", emit_checkbox, "チェックボックスをオンにする", "action"),
    ("change", emit_change, "要素の change 操作を再現する", "action"),
    ("drag_and_drop", emit_drag_and_drop, "要素をドラッグ＆ドロップする", "action"),
    ("upload", emit_upload, "ファイルをアップロードする", "action"),
    ("scroll", emit_scroll, "要素またはウィンドウをスクロールする", "action"),
    ("keydown", emit_key, "キーを押す", "keyboard"),
    ("keyup", emit_key, "キーを押す", "keyboard"),
    ("keypress", emit_key, "キーを押す", "keyboard"),
    ("database_execution", emit_database_execution, "SQL を実行し結果を Excel に出力する", "data"),
    ("api_request", emit_api_request, "API を呼び出し結果を JSON に出力する", "data"),
    ("add_browser_storage", emit_add_browser_storage, "cookie / storage を注入する", "storage"),
    ("page_create", emit_page_create, "新しいページを開く", "page"),
    ("page_close", emit_page_close, "ページを閉じる", "page"),
    ("page_focus", emit_page_focus, "ページを前面に出す", "page"),
    ("window_resize", emit_window_resize, "ビューポートサイズを変更する", "page"),
]

_SILENT_KINDS = ("drag_start", "drag_end", "drag_over", "drag_leave", "drop")


def create_action_registry() -> EmitterRegistry:
    """標準アクションエミッタを登録したレジストリを返す。"""
    registry = EmitterRegistry()
    for name, emitter, description, category in _ACTION_EMITTERS:
        registry.register(name, emitter, info=EmitterInfo(name, description, category))
    for name in _SILENT_KINDS:
        registry.register(
            name, emit_silent,
            info=EmitterInfo(name, "drag_and_drop に統合（出力なし）", "action"),
        )
    return registry

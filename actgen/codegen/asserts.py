"""
アサーションエミッタ — assert_type ごとの検証コード生成

全ての assert は検証前にスクリーンショットを撮る（失敗時のエビデンス）。
期待値の取得元は次の優先順で1つだけ選ぶ:
  1. DB ステートメント（接続 → クエリ → Excel 出力 → 先頭行から項目を抽出）
  2. API リクエスト（実行 → JSON 出力 → レスポンス本文から項目を抽出）
  3. 記録されたリテラル値

ai アサーションは、事前に収集された述語関数に
DOM（outerHTML）→ DB 結果 → API 結果 の順で証拠を渡し、戻り値が True であることを検証する。
"""

from __future__ import annotations

import posixpath
import textwrap
from typing import Callable, Iterable, Optional

from ..model.schema import Action
from ..runtime.evidence import step_file_name
from .api_request import serialize_api_request
from .database import FALLBACK_DB_VAR, connect_db_code, normalized_statements
from .exports import api_export_call, excel_export_call
from .literals import py_literal, quote
from .payload import (
    api_request_pages,
    api_requests,
    element_targets,
    first_value,
    page_index,
    page_var,
    safe_int,
    value_field,
)
from .registry import EmitContext, EmitterInfo, EmitterRegistry, build_step
from .selectors import selector_lists


# ---------------------------------------------------------------------------
# 共通ヘルパー
# ---------------------------------------------------------------------------

def screenshot_file(context: EmitContext, element_index: Optional[int] = None) -> str:
    """スクリーンショットの保存パス（images_dir/Step_N[_i].png）。"""
    return posixpath.join(
        context.config.images_dir, step_file_name(context.index, element_index, ".png"),
    )


def _screenshot(page: str, context: EmitContext, element_index: Optional[int] = None) -> str:
    return f"await {page}.screenshot(path={quote(screenshot_file(context, element_index))})"


def _locate(page: str, action: Action) -> str:
    return f"locator = await resolve_unique_selector({page}, {selector_lists(action)[0]})"


def _str(value) -> str:
    return "" if value is None else str(value)


# ---------------------------------------------------------------------------
# 状態系（期待値なし）
# ---------------------------------------------------------------------------

def _state_emitter(matcher: str, scroll: bool = True) -> Callable[[Action, EmitContext], str]:
    def emit(action: Action, context: EmitContext) -> str:
        page = page_var(page_index(action))
        body = [_screenshot(page, context), _locate(page, action)]
        if scroll:
            body.append("await locator.scroll_into_view_if_needed()")
        body.append(f"await expect(locator).{matcher}()")
        return build_step(context, action, body)
    return emit


# ---------------------------------------------------------------------------
# 期待値ソース付き（DB → API → リテラル）
# ---------------------------------------------------------------------------

def _sourced_expected(action: Action, context: EmitContext, page: str) -> tuple[list[str], str, bool]:
    """期待値を用意するコード行と期待値の式を返す。

    Returns:
        (前処理のコード行, 期待値の式, 式が動的な値か)
    """
    key = _str(first_value(action))

    statements = normalized_statements(action)
    if statements:
        statement = statements[0]
        connect, var = connect_db_code(statement.connection)
        lines = list(connect)
        lines.append(f"result = query_database({var or FALLBACK_DB_VAR}, {quote(statement.query)})")
        if var:
            lines.append(excel_export_call("result", context.index, statement.query))
        lines.append(f"result_text = extract_field(result.rows, {quote(key)})")
        if var:
            lines.append(f"{var}.close()")
        return lines, "result_text", True

    requests = api_requests(action)
    if requests:
        api_data = serialize_api_request(requests[0])
        lines = [
            *f"api_data = {py_literal(api_data)}".split("\n"),
            f"response = await execute_api_request({page}, api_data)",
            "api_result = await build_api_result(response, api_data)",
            api_export_call("api_result", context.index),
            f'response_text = extract_field(api_result["payload"], {quote(key)})',
        ]
        return lines, "response_text", True

    return [], quote(key), False


def _sourced_emitter(matcher: str, as_list: bool = False) -> Callable[[Action, EmitContext], str]:
    def emit(action: Action, context: EmitContext) -> str:
        page = page_var(page_index(action))
        setup, expected, dynamic = _sourced_expected(action, context, page)
        if dynamic:
            expected = f"str({expected})"
        if as_list:
            expected = f"[{expected}]"
        body = [
            _screenshot(page, context),
            *setup,
            _locate(page, action),
            "await locator.scroll_into_view_if_needed()",
            f"await expect(locator).{matcher}({expected})",
        ]
        return build_step(context, action, body)
    return emit


# ---------------------------------------------------------------------------
# リテラル値
# ---------------------------------------------------------------------------

def _literal_emitter(matcher: str) -> Callable[[Action, EmitContext], str]:
    def emit(action: Action, context: EmitContext) -> str:
        page = page_var(page_index(action))
        body = [
            _screenshot(page, context),
            _locate(page, action),
            "await locator.scroll_into_view_if_needed()",
            f"await expect(locator).{matcher}({quote(_str(first_value(action)))})",
        ]
        return build_step(context, action, body)
    return emit


def emit_to_have_count(action: Action, context: EmitContext) -> str:
    page = page_var(page_index(action))
    count = safe_int(first_value(action), 0)
    body = [
        _screenshot(page, context),
        f"locator = candidate_locator({page}, {selector_lists(action)[0]})",
        f"await expect(locator).to_have_count({count})",
    ]
    return build_step(context, action, body)


def emit_to_have_css(action: Action, context: EmitContext) -> str:
    page = page_var(page_index(action))
    prop = quote(_str(value_field(action, "css_property")))
    value = quote(_str(value_field(action, "css_value")))
    body = [
        _screenshot(page, context),
        _locate(page, action),
        "await locator.scroll_into_view_if_needed()",
        f"await expect(locator).to_have_css({prop}, {value})",
    ]
    return build_step(context, action, body)


def _page_emitter(matcher: str) -> Callable[[Action, EmitContext], str]:
    def emit(action: Action, context: EmitContext) -> str:
        page = page_var(page_index(action))
        body = [
            _screenshot(page, context),
            f"await expect({page}).{matcher}({quote(_str(first_value(action)))})",
        ]
        return build_step(context, action, body)
    return emit


# ---------------------------------------------------------------------------
# ai
# ---------------------------------------------------------------------------

def _signature(code: str) -> tuple[Optional[str], bool]:
    for line in code.splitlines():
        stripped = line.strip()
        for prefix in ("async def ", "def "):
            if stripped.startswith(prefix):
                name = stripped[len(prefix):].split("(", 1)[0].strip()
                return name, prefix == "async def "
    return None, False


def function_name(code: str) -> Optional[str]:
    """述語関数ソースから関数名を取り出す。"""
    return _signature(code)[0]


def is_async_function(code: str) -> bool:
    """述語関数が async def で定義されているか。"""
    return _signature(code)[1]


def _function_code(action: Action) -> Optional[str]:
    code = value_field(action, "function_code")
    if not code:
        return None
    return textwrap.dedent(str(code)).strip()


def collect_ai_functions(actions: Iterable[Action]) -> list[str]:
    """ai アサーションの述語関数ソースを重複なく出現順で集める。"""
    seen: set[str] = set()
    functions: list[str] = []
    for action in actions:
        if action.action_type != "assert" or action.assert_type != "ai":
            continue
        code = _function_code(action)
        if code and code not in seen:
            seen.add(code)
            functions.append(code)
    return functions


def emit_ai(action: Action, context: EmitContext) -> str:
    """ai アサーションのステップを生成する。

    対象要素ごとに value エントリの {page_index, element_index} を参照し、
    そのページでスクリーンショット（Step_N_<element_index>.png）と要素解決を行う。
    エントリが足りない要素はアクションのページと要素の並び順を使う。
    API リクエストも各エントリの page_index のページで実行する。
    """
    page = page_var(page_index(action))
    code = _function_code(action)
    name = function_name(code) if code else None
    if name is None:
        return build_step(context, action, [_screenshot(page, context)])

    body: list[str] = []
    available: list[str] = []

    if action.elements:
        targets = element_targets(action)
        body.append("outer_htmls = []")
        for i, selectors in enumerate(selector_lists(action)):
            target_index, element_index = (
                targets[i] if i < len(targets) else (page_index(action), i)
            )
            target = page_var(target_index)
            body.append(_screenshot(target, context, element_index))
            body.append(f"locator = await resolve_unique_selector({target}, {selectors})")
            body.append("await locator.scroll_into_view_if_needed()")
            body.append('outer_htmls.append(await locator.evaluate("el => el.outerHTML"))')
        available.append("outer_htmls")
    else:
        body.append(_screenshot(page, context))

    statements = normalized_statements(action)
    if statements:
        body.append("database_results = []")
        for i, statement in enumerate(statements):
            connect, var = connect_db_code(statement.connection)
            body.extend(connect)
            body.append(f"result = query_database({var or FALLBACK_DB_VAR}, {quote(statement.query)})")
            if var:
                body.append(excel_export_call("result", context.index, statement.query, i))
                body.append(f"{var}.close()")
            body.append("database_results.append(result.rows)")
        available.append("database_results")

    requests = api_requests(action)
    if requests:
        body.append("api_results = []")
        for i, (request, request_page) in enumerate(zip(requests, api_request_pages(action))):
            body.extend(f"api_data = {py_literal(serialize_api_request(request))}".split("\n"))
            body.append(f"response = await execute_api_request({page_var(request_page)}, api_data)")
            body.append("api_result = await build_api_result(response, api_data)")
            body.append(api_export_call("api_result", context.index, i))
            body.append("api_results.append(api_result)")
        available.append("api_results")

    call = f"{name}({', '.join(available)})"
    if is_async_function(code):
        call = f"await {call}"
    body.append(f"expected = {call}")
    body.append("assert expected is True")
    return build_step(context, action, body)


# ---------------------------------------------------------------------------
# レジストリ生成
# ---------------------------------------------------------------------------

_ASSERT_EMITTERS = [
    ("toBeChecked", _state_emitter("to_be_checked"), "チェック済みである"),
    ("toBeUnchecked", _state_emitter("not_to_be_checked"), "未チェックである"),
    ("toBeDisabled", _state_emitter("to_be_disabled"), "無効である"),
    ("toBeEditable", _state_emitter("to_be_editable"), "編集可能である"),
    ("toBeReadOnly", _state_emitter("not_to_be_editable"), "読み取り専用である"),
    ("toBeEmpty", _state_emitter("to_be_empty"), "空である"),
    ("toBeEnabled", _state_emitter("to_be_enabled"), "有効である"),
    ("toBeFocused", _state_emitter("to_be_focused"), "フォーカスされている"),
    ("toBeHidden", _state_emitter("to_be_hidden", scroll=False), "非表示である"),
    ("toBeVisible", _state_emitter("to_be_visible"), "表示されている"),
    ("toContainText", _sourced_emitter("to_contain_text"), "テキストを含む（DB/API/リテラル）"),
    ("toHaveText", _sourced_emitter("to_have_text"), "テキストが一致する（DB/API/リテラル）"),
    ("toHaveValue", _sourced_emitter("to_have_value"), "値が一致する（DB/API/リテラル）"),
    ("toHaveValues", _sourced_emitter("to_have_values", as_list=True), "選択値が一致する（DB/API/リテラル）"),
    ("toHaveAccessibleName", _literal_emitter("to_have_accessible_name"), "アクセシブル名が一致する"),
    ("toHaveAccessibleDescription", _literal_emitter("to_have_accessible_description"), "アクセシブル説明が一致する"),
    ("toHaveRole", _literal_emitter("to_have_role"), "ロールが一致する"),
    ("toHaveCount", emit_to_have_count, "要素数が一致する"),
    ("toHaveCSS", emit_to_have_css, "CSS プロパティ値が一致する"),
    ("pageHasATitle", _page_emitter("to_have_title"), "ページタイトルが一致する"),
    ("pageHasAURL", _page_emitter("to_have_url"), "ページ URL が一致する"),
    ("ai", emit_ai, "生成済み述語関数で検証する"),
]


def create_assert_registry() -> EmitterRegistry:
    """標準アサーションエミッタを登録したレジストリを返す。"""
    registry = EmitterRegistry()
    for name, emitter, description in _ASSERT_EMITTERS:
        registry.register(name, emitter, info=EmitterInfo(name, description, "assert"))
    return registry

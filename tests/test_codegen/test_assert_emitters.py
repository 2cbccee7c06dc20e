"""
アサーションエミッタのテスト

テスト観点:
  - 全 assert で検証前にスクリーンショットを撮ること
  - 期待値ソースの優先順位（DB → API → リテラル）
  - toHaveCount / toHaveValues / toHaveCSS / ページ系
  - ai アサーションの証拠収集順と述語関数の呼び出し
"""

from __future__ import annotations

import ast
from typing import Any, Optional

import pytest

from actgen.codegen import EmitContext, create_assert_registry
from actgen.codegen.asserts import (
    collect_ai_functions,
    function_name,
    is_async_function,
    screenshot_file,
)
from actgen.config import CompilerConfig
from actgen.model import Action


# ---------------------------------------------------------------------------
# ヘルパー
# ---------------------------------------------------------------------------

_STATEMENT = {
    "statement": {
        "query": "SELECT name FROM users",
        "connection": {"db_type": "postgres", "host": "db", "db_name": "app"},
    },
}

_API_REQUEST = {
    "api_request": {"url": "https://api.test/user", "method": "get"},
}

_AI_FUNCTION = """
    def check_total(outer_htmls, database_results, api_results):
        return len(outer_htmls) == 2
"""


def _assert_action(assert_type: str, *, selectors: Optional[list[list[str]]] = None,
                   datas: Optional[list[dict[str, Any]]] = None) -> Action:
    return Action.model_validate({
        "action_type": "assert",
        "assert_type": assert_type,
        "description": assert_type,
        "elements": [{"selectors": [{"value": s} for s in group]} for group in selectors or []],
        "action_datas": datas or [],
    })


def _emit(action: Action, *, index: int = 5, config: Optional[CompilerConfig] = None) -> str:
    context = EmitContext(index=index, config=config or CompilerConfig())
    return create_assert_registry().get(action.assert_type)(action, context)


# ---------------------------------------------------------------------------
# スクリーンショット
# ---------------------------------------------------------------------------

class TestScreenshot:
    """検証前スクリーンショットのテスト。"""

    def test_screenshot_file_names(self) -> None:
        context = EmitContext(index=3, config=CompilerConfig(images_dir="evidence/images"))
        assert screenshot_file(context) == "evidence/images/Step_3.png"
        assert screenshot_file(context, 1) == "evidence/images/Step_3_1.png"

    @pytest.mark.parametrize("assert_type", [
        "toBeVisible", "toHaveText", "toHaveCount", "toHaveCSS", "pageHasATitle", "toHaveRole",
    ])
    def test_screenshot_comes_first(self, assert_type: str) -> None:
        code = _emit(_assert_action(assert_type, selectors=[["locator('#a')"]]))
        assert code.splitlines()[1] == '        await page.screenshot(path="images/Step_5.png")'


# ---------------------------------------------------------------------------
# 状態系
# ---------------------------------------------------------------------------

class TestStateAsserts:
    """期待値を持たない assert のテスト。"""

    @pytest.mark.parametrize("assert_type,matcher", [
        ("toBeChecked", "to_be_checked"),
        ("toBeUnchecked", "not_to_be_checked"),
        ("toBeDisabled", "to_be_disabled"),
        ("toBeEnabled", "to_be_enabled"),
        ("toBeEditable", "to_be_editable"),
        ("toBeReadOnly", "not_to_be_editable"),
        ("toBeEmpty", "to_be_empty"),
        ("toBeFocused", "to_be_focused"),
        ("toBeVisible", "to_be_visible"),
    ])
    def test_matcher(self, assert_type: str, matcher: str) -> None:
        code = _emit(_assert_action(assert_type, selectors=[["getByTestId('t')"]]))

        assert "locator = await resolve_unique_selector(page, [\"getByTestId('t')\"])" in code
        assert "await locator.scroll_into_view_if_needed()" in code
        assert f"await expect(locator).{matcher}()" in code

    def test_hidden_does_not_scroll(self) -> None:
        code = _emit(_assert_action("toBeHidden", selectors=[["locator('#gone')"]]))
        assert "scroll_into_view_if_needed" not in code
        assert "await expect(locator).to_be_hidden()" in code


# ---------------------------------------------------------------------------
# 期待値ソース
# ---------------------------------------------------------------------------

class TestExpectedValueSource:
    """DB → API → リテラルの優先順位のテスト。"""

    def test_literal(self) -> None:
        action = _assert_action(
            "toHaveText", selectors=[["locator('h1')"]], datas=[{"value": {"value": "Welcome"}}],
        )

        code = _emit(action)

        assert 'await expect(locator).to_have_text("Welcome")' in code
        assert "query_database" not in code
        assert "execute_api_request" not in code

    def test_database_wins_over_api(self) -> None:
        """DB ステートメントと API リクエストの両方がある場合は DB を使う。"""
        action = _assert_action(
            "toContainText",
            selectors=[["locator('#name')"]],
            datas=[{"value": {"value": "name"}}, _API_REQUEST, _STATEMENT],
        )

        code = _emit(action)

        assert 'result = query_database(postgres_db, "SELECT name FROM users")' in code
        assert 'export_database_to_excel(result, 5, "SELECT name FROM users")' in code
        assert 'result_text = extract_field(result.rows, "name")' in code
        assert "await expect(locator).to_contain_text(str(result_text))" in code
        assert "execute_api_request" not in code
        assert "postgres_db.close()" in code

    def test_api_source(self) -> None:
        action = _assert_action(
            "toHaveValue",
            selectors=[["locator('#email')"]],
            datas=[{"value": {"value": "email"}}, _API_REQUEST],
        )

        code = _emit(action)

        assert "response = await execute_api_request(page, api_data)" in code
        assert "export_api_to_json(api_result, 5)" in code
        assert 'response_text = extract_field(api_result["payload"], "email")' in code
        assert "await expect(locator).to_have_value(str(response_text))" in code

    def test_to_have_values_wraps_in_list(self) -> None:
        action = _assert_action(
            "toHaveValues", selectors=[["locator('select')"]], datas=[{"value": {"value": "a"}}],
        )
        assert 'await expect(locator).to_have_values(["a"])' in _emit(action)

    def test_sourced_fragment_parses(self) -> None:
        action = _assert_action(
            "toHaveText", selectors=[["locator('#n')"]],
            datas=[{"value": {"value": "n"}}, _STATEMENT],
        )
        ast.parse("async def run():\n" + _emit(action))


# ---------------------------------------------------------------------------
# その他
# ---------------------------------------------------------------------------

class TestOtherAsserts:
    """toHaveCount / toHaveCSS / ページ系 / リテラル系のテスト。"""

    def test_to_have_count_casts_int(self) -> None:
        action = _assert_action(
            "toHaveCount", selectors=[["locator('li')"]], datas=[{"value": {"value": "3"}}],
        )
        assert "await expect(locator).to_have_count(3)" in _emit(action)

    def test_to_have_count_counts_every_match(self) -> None:
        """件数の検証は一意に絞り込まず、先頭候補の全一致を数える。"""
        action = _assert_action(
            "toHaveCount",
            selectors=[["locator('li')", "getByRole('listitem')"]],
            datas=[{"value": {"value": 3, "page_index": 1}}],
        )

        code = _emit(action)

        assert "locator = candidate_locator(page1, [\"locator('li')\", \"getByRole('listitem')\"])" in code
        assert "resolve_unique_selector" not in code
        assert "await expect(locator).to_have_count(3)" in code
        ast.parse("async def run():\n" + code)

    def test_to_have_count_malformed(self) -> None:
        action = _assert_action(
            "toHaveCount", selectors=[["locator('li')"]], datas=[{"value": {"value": "many"}}],
        )
        assert "to_have_count(0)" in _emit(action)

    def test_to_have_css(self) -> None:
        action = _assert_action(
            "toHaveCSS",
            selectors=[["locator('#b')"]],
            datas=[{"value": {"css_property": "color", "css_value": "rgb(0, 0, 0)"}}],
        )
        assert 'await expect(locator).to_have_css("color", "rgb(0, 0, 0)")' in _emit(action)

    @pytest.mark.parametrize("assert_type,matcher", [
        ("pageHasATitle", "to_have_title"), ("pageHasAURL", "to_have_url"),
    ])
    def test_page_asserts(self, assert_type: str, matcher: str) -> None:
        action = _assert_action(assert_type, datas=[{"value": {"value": "x", "page_index": 1}}])

        code = _emit(action)

        assert f'await expect(page1).{matcher}("x")' in code
        assert "resolve_unique_selector" not in code

    @pytest.mark.parametrize("assert_type,matcher", [
        ("toHaveAccessibleName", "to_have_accessible_name"),
        ("toHaveAccessibleDescription", "to_have_accessible_description"),
        ("toHaveRole", "to_have_role"),
    ])
    def test_literal_asserts(self, assert_type: str, matcher: str) -> None:
        action = _assert_action(
            assert_type, selectors=[["locator('#b')"]], datas=[{"value": {"value": "button"}}],
        )
        assert f'await expect(locator).{matcher}("button")' in _emit(action)


# ---------------------------------------------------------------------------
# ai
# ---------------------------------------------------------------------------

class TestAiAssert:
    """ai アサーションのテスト。"""

    def test_function_name(self) -> None:
        assert function_name("def check(a, b):\n    return True") == "check"
        assert function_name("async def run_it():\n    pass") == "run_it"
        assert function_name("x = 1") is None

    def test_collect_dedupes_in_order(self) -> None:
        first = _assert_action("ai", datas=[{"value": {"function_code": _AI_FUNCTION}}])
        second = _assert_action("ai", datas=[{"value": {"function_code": "def other():\n    return True"}}])
        not_ai = _assert_action("toBeVisible", datas=[{"value": {"function_code": "def ignored(): pass"}}])

        functions = collect_ai_functions([first, not_ai, second, first])

        assert len(functions) == 2
        assert functions[0].startswith("def check_total(")
        assert functions[1].startswith("def other(")

    def test_evidence_order(self) -> None:
        """DOM → DB → API の順で証拠を集め、述語関数に渡す。"""
        action = _assert_action(
            "ai",
            selectors=[["locator('#a')"], ["locator('#b')"]],
            datas=[{"value": {"function_code": _AI_FUNCTION}}, _API_REQUEST, _STATEMENT],
        )

        code = _emit(action, index=7)

        assert 'await page.screenshot(path="images/Step_7_0.png")' in code
        assert 'await page.screenshot(path="images/Step_7_1.png")' in code
        assert code.count('outer_htmls.append(await locator.evaluate("el => el.outerHTML"))') == 2
        assert 'export_database_to_excel(result, 7, "SELECT name FROM users", 0)' in code
        assert "export_api_to_json(api_result, 7, 0)" in code
        assert "expected = check_total(outer_htmls, database_results, api_results)" in code
        assert code.index("outer_htmls = []") < code.index("database_results = []")
        assert code.index("database_results = []") < code.index("api_results = []")
        assert "assert expected is True" in code
        ast.parse("async def run():\n" + code)

    def test_only_available_evidence_is_passed(self) -> None:
        action = _assert_action(
            "ai", datas=[{"value": {"function_code": "def f(api_results):\n    return True"}}, _API_REQUEST],
        )

        code = _emit(action)

        assert "expected = f(api_results)" in code
        assert 'await page.screenshot(path="images/Step_5.png")' in code

    def test_without_function_only_screenshots(self) -> None:
        code = _emit(_assert_action("ai"))
        assert "screenshot" in code
        assert "expected" not in code

    def test_async_predicate_is_awaited(self) -> None:
        """async def の述語関数は await して結果を受け取る。"""
        function = "async def check_async(outer_htmls):\n    return True"
        action = _assert_action(
            "ai", selectors=[["locator('#a')"]], datas=[{"value": {"function_code": function}}],
        )

        code = _emit(action)

        assert is_async_function(function)
        assert not is_async_function(_AI_FUNCTION)
        assert "expected = await check_async(outer_htmls)" in code
        ast.parse("async def run():\n" + code)

    def test_sync_predicate_is_called_directly(self) -> None:
        action = _assert_action(
            "ai", selectors=[["locator('#a')"]], datas=[{"value": {"function_code": _AI_FUNCTION}}],
        )
        assert "expected = check_total(outer_htmls)" in _emit(action)

    def test_targets_on_multiple_pages(self) -> None:
        """要素ごと・API リクエストごとに記録されたページで証拠を集める。"""
        action = _assert_action(
            "ai",
            selectors=[["locator('#a')"], ["locator('#b')"], ["locator('#c')"]],
            datas=[
                {"value": {"function_code": _AI_FUNCTION}},
                {"value": {"page_index": 1, "element_index": 3}},
                {"value": {"page_index": 2, "element_index": 4}},
                {"value": {"page_index": 2}, **_API_REQUEST},
                _API_REQUEST,
            ],
        )

        code = _emit(action, index=6)

        assert 'await page1.screenshot(path="images/Step_6_3.png")' in code
        assert "locator = await resolve_unique_selector(page1, [\"locator('#a')\"])" in code
        assert 'await page2.screenshot(path="images/Step_6_4.png")' in code
        assert "locator = await resolve_unique_selector(page2, [\"locator('#b')\"])" in code
        # 対応するエントリのない3つ目の要素はアクションのページと並び順を使う
        assert 'await page1.screenshot(path="images/Step_6_2.png")' in code
        assert "locator = await resolve_unique_selector(page1, [\"locator('#c')\"])" in code
        api_calls = [line.strip() for line in code.splitlines() if "execute_api_request" in line]
        assert api_calls == [
            "response = await execute_api_request(page2, api_data)",
            "response = await execute_api_request(page, api_data)",
        ]
        ast.parse("async def run():\n" + code)

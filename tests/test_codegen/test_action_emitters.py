"""
アクションエミッタのテスト

各エミッタを単体で呼び出し、生成されるステップコードの形を検証する。

テスト観点:
  - ステップの三部構成（async with step → 操作 → アイドル待機）
  - Element を参照する操作は必ず resolve_unique_selector を経由すること
  - click 直後の page_create によるポップアップ promise の先読み
  - 強制操作フォールバックの try / except
  - DB / API / ストレージ注入のインラインコード
"""

from __future__ import annotations

import ast
from typing import Any, Optional

import pytest

from actgen.codegen import EmitContext, build_step, create_action_registry
from actgen.codegen.database import connect_db_code
from actgen.config import CompilerConfig
from actgen.model import Action, Connection


# ---------------------------------------------------------------------------
# ヘルパー
# ---------------------------------------------------------------------------

def _action(action_type: str, *, selectors: Optional[list[str]] = None, value: Any = None,
            **extra: Any) -> Action:
    data: dict[str, Any] = {"action_type": action_type, "description": f"{action_type} step"}
    if selectors is not None:
        data["elements"] = [{"selectors": [{"value": s} for s in selectors]}]
    if value is not None:
        data["action_datas"] = [{"value": value}]
    data.update(extra)
    return Action.model_validate(data)


def _emit(action: Action, *, index: int = 1, next_action: Optional[Action] = None,
          file_mapping: Optional[dict[str, str]] = None,
          config: Optional[CompilerConfig] = None) -> str:
    context = EmitContext(
        index=index,
        next_action=next_action,
        file_mapping=file_mapping or {},
        config=config or CompilerConfig(),
    )
    return create_action_registry().get(action.action_type)(action, context)


def _assert_parses(fragment: str) -> None:
    """ステップ断片が async 関数本体として構文的に正しいこと。"""
    ast.parse("async def run():\n" + fragment)


# ---------------------------------------------------------------------------
# build_step
# ---------------------------------------------------------------------------

class TestBuildStep:
    """ステップブロック組み立てのテスト。"""

    def test_three_part_shape(self) -> None:
        action = _action("reload")
        code = build_step(EmitContext(index=3), action, ["await page.reload()"])

        assert code == (
            '    async with step("3. reload step"):\n'
            "        await page.reload()\n"
            "    await bm.wait_for_app_idle()\n"
        )

    def test_empty_body_uses_pass(self) -> None:
        code = build_step(EmitContext(index=1), _action("x"), [], wait_idle=False)
        assert code == '    async with step("1. x step"):\n        pass\n'

    def test_description_is_single_line(self) -> None:
        action = Action(action_type="reload", description='line1\nline2 "q"')
        code = build_step(EmitContext(index=2), action, ["pass"])
        assert 'step("2. line1 line2 \\"q\\"")' in code


# ---------------------------------------------------------------------------
# navigation
# ---------------------------------------------------------------------------

class TestNavigation:
    """navigate / reload / back / forward / wait のテスト。"""

    def test_navigate(self) -> None:
        code = _emit(_action("navigate", value={"value": "https://example.com"}))
        assert 'await page.goto("https://example.com")' in code
        assert "await bm.wait_for_app_idle()" in code

    def test_navigate_missing_url(self) -> None:
        """URL がない場合は空文字列に縮退する。"""
        code = _emit(_action("navigate"))
        assert 'await page.goto("")' in code

    def test_navigate_on_secondary_page(self) -> None:
        code = _emit(_action("navigate", value={"value": "https://x", "page_index": 2}))
        assert 'await page2.goto("https://x")' in code

    @pytest.mark.parametrize("kind,call", [
        ("reload", "reload()"), ("back", "go_back()"), ("forward", "go_forward()"),
    ])
    def test_history(self, kind: str, call: str) -> None:
        assert f"await page.{call}" in _emit(_action(kind))

    def test_wait_has_no_idle_wait(self) -> None:
        code = _emit(_action("wait", value={"value": "1500"}))
        assert "await page.wait_for_timeout(1500)" in code
        assert "wait_for_app_idle" not in code


# ---------------------------------------------------------------------------
# 要素操作
# ---------------------------------------------------------------------------

class TestElementActions:
    """click / input / select などのテスト。"""

    def test_input_resolves_and_fills(self) -> None:
        """input は resolver で対象を決めてから値を設定する。"""
        action = _action("input", selectors=["locator('#x')"], value={"value": "hello"})

        code = _emit(action)

        assert "locator = await resolve_unique_selector(page, [\"locator('#x')\"])" in code
        assert 'await locator.fill("hello")' in code
        _assert_parses(code)

    def test_input_force_fallback(self) -> None:
        action = _action("input", selectors=["locator('#x')"], value={"value": "hello"})

        code = _emit(action)

        assert "        try:\n" in code
        assert "        except (SelectorResolutionError, PlaywrightError):\n" in code
        assert (
            "            await force_action(page, [\"locator('#x')\"], \"input\", \"hello\")"
            in code
        )

    def test_force_fallback_disabled(self) -> None:
        action = _action("click", selectors=["locator('#b')"])
        code = _emit(action, config=CompilerConfig(force_fallback=False))

        assert "try:" not in code
        assert "force_action" not in code
        assert "await locator.click()" in code

    def test_click_without_elements_still_resolves(self) -> None:
        code = _emit(_action("click"))
        assert "resolve_unique_selector(page, [])" in code

    @pytest.mark.parametrize("kind,call", [
        ("double_click", "dblclick()"),
        ("right_click", 'click(button="right")'),
        ("shift_click", 'click(modifiers=["Shift"])'),
        ("checkbox", "check()"),
    ])
    def test_click_variants(self, kind: str, call: str) -> None:
        code = _emit(_action(kind, selectors=["locator('#c')"]))
        assert f"await locator.{call}" in code
        _assert_parses(code)

    def test_right_click_has_no_force_fallback(self) -> None:
        code = _emit(_action("right_click", selectors=["locator('#c')"]))
        assert "force_action" not in code

    def test_select_value(self) -> None:
        code = _emit(_action("select", selectors=["locator('select')"], value={"value": "JP"}))
        assert 'await locator.select_option("JP")' in code
        assert 'force_action(page, ["locator(\'select\')"], "select", "JP")' in code

    def test_select_without_value_passes_none(self) -> None:
        code = _emit(_action("select", selectors=["locator('select')"]))
        assert '"select", None)' in code

    def test_drag_and_drop_uses_two_elements(self) -> None:
        action = Action.model_validate({
            "action_type": "drag_and_drop",
            "elements": [
                {"selectors": [{"value": "locator('#src')"}]},
                {"selectors": [{"value": "locator('#dst')"}]},
            ],
        })

        code = _emit(action)

        assert "source = await resolve_unique_selector(page, [\"locator('#src')\"])" in code
        assert "target = await resolve_unique_selector(page, [\"locator('#dst')\"])" in code
        assert "await source.drag_to(target)" in code

    @pytest.mark.parametrize("kind", ["drag_start", "drag_end", "drag_over", "drag_leave", "drop"])
    def test_drag_sub_events_are_silent(self, kind: str) -> None:
        assert _emit(_action(kind, selectors=["locator('#a')"])) == ""

    def test_upload_uses_file_mapping(self) -> None:
        action = Action.model_validate({
            "action_type": "upload",
            "elements": [{"selectors": [{"value": "locator('input[type=file]')"}]}],
            "action_datas": [
                {"file_upload": {"file_upload_id": "f1", "filename": "a.pdf"}},
                {"file_upload": {"file_path": "/tmp/b.png", "filename": "b.png"}},
            ],
        })

        code = _emit(action, file_mapping={"f1": "/data/a.pdf"})

        assert 'await locator.set_input_files(["/data/a.pdf", "/tmp/b.png"])' in code

    def test_change(self) -> None:
        code = _emit(_action("change", selectors=["locator('#c')"]))
        assert "await locator.evaluate(\"el => el.click()\")" in code


# ---------------------------------------------------------------------------
# ポップアップ先読み
# ---------------------------------------------------------------------------

class TestPopupLookahead:
    """click 直後の page_create による promise 先読みのテスト。"""

    def test_click_arms_popup_promise(self) -> None:
        click = _action("click", selectors=["locator('#open')"])
        page_create = _action("page_create", value={"page_index": 1, "opener_index": 0})

        code = _emit(click, next_action=page_create)

        lines = code.splitlines()
        assert lines[1] == '        page1_promise = asyncio.ensure_future(page.wait_for_event("popup"))'
        assert "await locator.click()" in code

    def test_page_create_awaits_promise(self) -> None:
        page_create = _action("page_create", value={"page_index": 1, "opener_index": 0})

        code = _emit(page_create, index=2)

        assert "page1 = await page1_promise" in code
        assert "bm.track_requests(page1)" in code

    def test_popup_promise_on_opener_page(self) -> None:
        click = _action("click", selectors=["locator('#open')"], value={"page_index": 1})
        page_create = _action("page_create", value={"page_index": 2, "opener_index": 1})

        code = _emit(click, next_action=page_create)

        assert 'page2_promise = asyncio.ensure_future(page1.wait_for_event("popup"))' in code

    def test_no_promise_without_page_index(self) -> None:
        """page_index のない page_create は new_page で開くため、promise を仕掛けない。"""
        click = _action("click", selectors=["locator('#open')"], value={"page_index": 1})
        page_create = _action("page_create", value={"opener_index": 1})

        click_code = _emit(click, next_action=page_create)
        create_code = _emit(page_create, index=2)

        assert "_promise" not in click_code
        assert "_promise" not in create_code
        assert "page = await context.new_page()" in create_code

    def test_no_promise_for_page_zero(self) -> None:
        click = _action("click", selectors=["locator('#open')"])
        page_create = _action("page_create", value={"page_index": 0, "opener_index": 0})

        assert "_promise" not in _emit(click, next_action=page_create)

    def test_no_promise_without_opener(self) -> None:
        click = _action("click", selectors=["locator('#open')"])
        page_create = _action("page_create", value={"page_index": 1})

        assert "_promise" not in _emit(click, next_action=page_create)

    def test_no_promise_when_next_is_not_page_create(self) -> None:
        click = _action("click", selectors=["locator('#open')"])
        assert "_promise" not in _emit(click, next_action=_action("navigate"))


# ---------------------------------------------------------------------------
# page
# ---------------------------------------------------------------------------

class TestPageLifecycle:
    """page_create / page_close / page_focus / window_resize / scroll のテスト。"""

    def test_page_create_with_url(self) -> None:
        code = _emit(_action("page_create", value={"page_index": 2, "value": "https://x.test"}))
        assert "page2 = await context.new_page()" in code
        assert 'await page2.goto("https://x.test")' in code

    def test_page_create_blank(self) -> None:
        code = _emit(_action("page_create", value={"page_index": 1}))
        assert "page1 = await context.new_page()" in code
        assert "goto" not in code

    def test_page_close_without_idle_wait(self) -> None:
        code = _emit(_action("page_close", value={"page_index": 1}))
        assert "await page1.close()" in code
        assert "wait_for_app_idle" not in code

    def test_page_focus(self) -> None:
        assert "await page1.bring_to_front()" in _emit(_action("page_focus", value={"page_index": 1}))

    def test_window_resize_packed(self) -> None:
        code = _emit(_action("window_resize", value={"value": "Width:1280,Height:720"}))
        assert 'await page.set_viewport_size({"width": 1280, "height": 720})' in code

    def test_window_resize_fields(self) -> None:
        code = _emit(_action("window_resize", value={"width": 800, "height": "600"}))
        assert '{"width": 800, "height": 600}' in code

    def test_scroll_window(self) -> None:
        code = _emit(_action("scroll", value={"value": "X:0,Y:400"}))
        assert 'await page.evaluate("() => window.scrollTo(0, 400)")' in code
        assert 'await page.wait_for_load_state("networkidle")' in code

    def test_scroll_element(self) -> None:
        code = _emit(_action("scroll", selectors=["locator('#list')"], value={"value": "X:5,Y:6"}))
        assert 'await locator.evaluate("el => el.scrollTo(5, 6)")' in code

    def test_keyboard(self) -> None:
        code = _emit(_action("keydown", value={"value": "Enter"}))
        assert 'await page.keyboard.press("Enter")' in code
        assert "resolve_unique_selector" not in code

    @pytest.mark.parametrize("kind", ["keydown", "keyup", "keypress"])
    def test_keyboard_on_element(self, kind: str) -> None:
        """要素付きのキー操作はその要素を解決してから押す。"""
        code = _emit(_action(kind, selectors=["locator('#search')"], value={"value": "Enter"}))

        assert "locator = await resolve_unique_selector(page, [\"locator('#search')\"])" in code
        assert 'await locator.press("Enter")' in code
        assert "keyboard.press" not in code
        _assert_parses(code)


# ---------------------------------------------------------------------------
# data / storage
# ---------------------------------------------------------------------------

class TestConnectDbCode:
    """接続ブートストラップ生成のテスト。"""

    def test_postgres(self) -> None:
        lines, var = connect_db_code(Connection(
            db_type="postgres", host="db", port="5433", db_name="app",
            username="u", password="p", security_type="ssl", ssl_mode="require",
        ))

        assert var == "postgres_db"
        assert lines == [
            "postgres_db = psycopg.connect(",
            '    host="db",',
            "    port=5433,",
            '    dbname="app",',
            '    user="u",',
            '    password="p",',
            '    sslmode="require",',
            ")",
        ]

    def test_mysql_default_port(self) -> None:
        lines, var = connect_db_code(Connection(db_type="mysql", host="h"))
        assert var == "mysql_db"
        assert "    port=3306," in lines
        assert lines[0] == "mysql_db = pymysql.connect("

    def test_mssql(self) -> None:
        lines, _var = connect_db_code(Connection(db_type="MSSQL", host="h"))
        assert lines[0] == "mssql_db = pymssql.connect("
        assert '    server="h",' in lines

    def test_unsupported(self) -> None:
        assert connect_db_code(Connection(db_type="oracle")) == ([], "")
        assert connect_db_code(None) == ([], "")


class TestDataActions:
    """database_execution / api_request / add_browser_storage のテスト。"""

    def test_database_execution_legacy_connection(self) -> None:
        """database_connection（旧形式）も接続として扱われる。"""
        action = Action.model_validate({
            "action_type": "database_execution",
            "action_datas": [{"statement": {
                "statement_text": "UPDATE t SET a = 1",
                "database_connection": {"db_type": "postgres", "host": "db"},
            }}],
        })

        code = _emit(action, index=4)

        assert "postgres_db = psycopg.connect(" in code
        assert 'result = query_database(postgres_db, "UPDATE t SET a = 1")' in code
        assert 'export_database_to_excel(result, 4, "UPDATE t SET a = 1")' in code
        assert "postgres_db.close()" in code
        _assert_parses(code)

    def test_database_execution_without_statement(self) -> None:
        code = _emit(_action("database_execution"))
        assert "pass" in code

    def test_api_request(self) -> None:
        action = Action.model_validate({
            "action_type": "api_request",
            "action_datas": [{"api_request": {
                "url": "https://api.test/items",
                "method": "POST",
                "params": [{"key": "q", "value": "1"}],
                "auth": {"type": "bearer", "token": "t"},
                "body": {"type": "json", "content": '{"a": 1}'},
            }}],
        })

        code = _emit(action, index=2)

        assert '            "url": "https://api.test/items",' in code
        assert '            "method": "post",' in code
        assert "response = await execute_api_request(page, api_data)" in code
        assert "api_result = await build_api_result(response, api_data)" in code
        assert "export_api_to_json(api_result, 2)" in code
        _assert_parses(code)

    def test_cookie_storage(self) -> None:
        action = Action.model_validate({
            "action_type": "add_browser_storage",
            "action_datas": [{"browser_storage": {
                "storage_type": "cookie",
                "value": '[{"name": "sid", "value": "x", "url": "https://a.test", "sameSite": "strict"}]',
            }}],
        })

        code = _emit(action)

        assert '"sameSite": "Strict",' in code
        assert "await context.add_cookies(cookies)" in code
        assert "await page.reload()" in code
        _assert_parses(code)

    def test_local_storage(self) -> None:
        action = Action.model_validate({
            "action_type": "add_browser_storage",
            "action_datas": [{"browser_storage": {
                "storage_type": "local_storage", "value": {"token": "abc"},
            }}],
        })

        code = _emit(action)

        assert '"token": "abc",' in code
        assert "localStorage.setItem" in code
        assert "storage_data)" in code
        _assert_parses(code)

    @pytest.mark.parametrize("storage_type,api", [
        ("localStorage", "localStorage"),
        ("local_storage", "localStorage"),
        ("LOCAL-STORAGE", "localStorage"),
        ("sessionStorage", "sessionStorage"),
        ("session_storage", "sessionStorage"),
    ])
    def test_storage_type_spellings(self, storage_type: str, api: str) -> None:
        """camelCase と snake_case のどちらの表記でも同じコードになる。"""
        action = Action.model_validate({
            "action_type": "add_browser_storage",
            "action_datas": [{"browser_storage": {
                "storage_type": storage_type, "value": '{"lang": "ja"}',
            }}],
        })

        code = _emit(action)

        assert f"{api}.setItem(k, v)" in code
        assert '"lang": "ja",' in code
        _assert_parses(code)

    def test_cookies_alias(self) -> None:
        action = Action.model_validate({
            "action_type": "add_browser_storage",
            "action_datas": [{"browser_storage": {
                "storage_type": "Cookies",
                "value": '[{"name": "sid", "value": "x", "url": "https://a.test"}]',
            }}],
        })
        assert "await context.add_cookies(cookies)" in _emit(action)

    def test_unknown_storage_is_empty(self) -> None:
        action = Action.model_validate({
            "action_type": "add_browser_storage",
            "action_datas": [{"browser_storage": {"storage_type": "indexeddb", "value": {}}}],
        })
        assert _emit(action) == ""


# ---------------------------------------------------------------------------
# 生成コードの構文
# ---------------------------------------------------------------------------

class TestFragmentsParse:
    """全エミッタの出力が構文的に正しいこと。"""

    def test_every_emitter_output_parses(self) -> None:
        registry = create_action_registry()
        for name in registry.names:
            action = _action(name, selectors=["locator('#a')"], value={"value": "v", "page_index": 1})
            fragment = registry.get(name)(action, EmitContext(index=1))
            if fragment:
                _assert_parses(fragment)

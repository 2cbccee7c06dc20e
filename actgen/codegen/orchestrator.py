"""
ScriptCompiler — Action 配列から Playwright スクリプト全体を組み立てるオーケストレータ

処理の流れ:
  1. 入力（dict / Pydantic モデル）を Action モデルに変換する（入力自体は変更しない）
  2. 全アクションを1回ずつ走査して依存関係（DB ドライバ、リゾルバ、強制操作、API、エビデンス出力）を決める
  3. page_create が参照するページ変数・ポップアップ promise 変数を宣言する
  4. 記録順に各アクションのエミッタを呼び出す（直後のアクションのみ先読みとして渡す）
  5. Jinja2 テンプレート（templates/script.py.j2）でスクリプト全体をレンダリングする

同じ入力と同じ設定からは常にバイト単位で同一のスクリプトが生成される。
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable, Mapping, Optional, Sequence, Union

from jinja2 import Environment, FileSystemLoader

from ..config import CompilerConfig
from ..model.schema import Action, BasicAuthentication
from .actions import create_action_registry
from .api_request import needs_api_request
from .asserts import collect_ai_functions, create_assert_registry
from .database import db_import_lines, needs_query_database
from .exports import needs_excel_export
from .literals import py_literal
from .payload import opener_index, page_index, page_var, promise_var
from .registry import EmitContext, EmitterRegistry
from .selectors import needs_candidate_locator, needs_force_action, needs_resolve_unique_selector

logger = logging.getLogger(__name__)

# テンプレートディレクトリのパス
_TEMPLATES_DIR = Path(__file__).parent.parent / "templates"
_TEMPLATE_NAME = "script.py.j2"

ActionLike = Union[Action, Mapping[str, Any]]


# ---------------------------------------------------------------------------
# 結果データクラス
# ---------------------------------------------------------------------------

@dataclass
class Diagnostic:
    """コード生成時に検出された回復可能な問題。

    Attributes:
        index: 1 始まりのステップ番号
        action_type: 対象アクションの種別
        message: 内容
    """

    index: int
    action_type: str
    message: str


@dataclass
class CompileResult:
    """compile_with_diagnostics の戻り値。"""

    code: str
    diagnostics: list[Diagnostic] = field(default_factory=list)


# ---------------------------------------------------------------------------
# ScriptCompiler 本体
# ---------------------------------------------------------------------------

class ScriptCompiler:
    """Action 配列を実行可能な Playwright スクリプトに変換するコンパイラ。

    状態を持たない。compile() は入力を変更せず、副作用もない。

    使用例::

        compiler = ScriptCompiler()
        code = compiler.compile(actions, basic_auth={"username": "u", "password": "p"})
    """

    def __init__(
        self,
        config: Optional[CompilerConfig] = None,
        *,
        action_registry: Optional[EmitterRegistry] = None,
        assert_registry: Optional[EmitterRegistry] = None,
    ) -> None:
        self.config = config or CompilerConfig()
        self.action_registry = action_registry or create_action_registry()
        self.assert_registry = assert_registry or create_assert_registry()
        self._env = Environment(
            loader=FileSystemLoader(str(_TEMPLATES_DIR)),
            autoescape=False,
            trim_blocks=True,
            lstrip_blocks=True,
            keep_trailing_newline=True,
        )

    # ----- 公開 API -----

    def compile(
        self,
        actions: Iterable[ActionLike],
        basic_auth: Optional[Union[BasicAuthentication, Mapping[str, Any]]] = None,
        file_mapping: Optional[Mapping[str, str]] = None,
        title: str = "",
    ) -> str:
        """スクリプト本文を返す。"""
        return self.compile_with_diagnostics(actions, basic_auth, file_mapping, title).code

    def compile_with_diagnostics(
        self,
        actions: Iterable[ActionLike],
        basic_auth: Optional[Union[BasicAuthentication, Mapping[str, Any]]] = None,
        file_mapping: Optional[Mapping[str, str]] = None,
        title: str = "",
    ) -> CompileResult:
        """スクリプト本文と診断情報を返す。

        エミッタが存在しない種別は空出力として扱い、Diagnostic を記録する。
        バッチ全体としては例外を送出しない。

        Args:
            actions: 記録済みアクション（dict または Action）
            basic_auth: スクリプト全体に適用する Basic 認証
            file_mapping: アップロードファイル ID → 実ファイルパス
            title: 生成スクリプトの docstring に入れるタイトル

        Returns:
            CompileResult
        """
        models = [self._to_action(action) for action in actions]
        mapping = dict(file_mapping or {})
        diagnostics: list[Diagnostic] = []

        fragments = []
        for position, action in enumerate(models):
            context = EmitContext(
                index=position + 1,
                next_action=models[position + 1] if position + 1 < len(models) else None,
                file_mapping=mapping,
                config=self.config,
            )
            fragment = self._emit(action, context, diagnostics)
            if fragment:
                fragments.append(fragment)

        code = self._env.get_template(_TEMPLATE_NAME).render(
            title=title or "Generated browser automation script",
            driver_imports=db_import_lines(models),
            force_fallback=self._uses_force_action(models),
            runtime_module=self.config.runtime_module,
            runtime_names=self._runtime_names(models),
            http_credentials=self._http_credentials(basic_auth),
            ai_functions=collect_ai_functions(models),
            default_timeout=self.config.default_timeout,
            declarations=self._declarations(models),
            body="\n".join(fragments),
            browser=self.config.browser,
            headless="True" if self.config.headless else "False",
            viewport_width=self.config.viewport_width,
            viewport_height=self.config.viewport_height,
        )
        logger.debug("%d 件のアクションからスクリプトを生成しました", len(models))
        return CompileResult(code=code, diagnostics=diagnostics)

    def write(
        self,
        actions: Iterable[ActionLike],
        output_path: Path,
        basic_auth: Optional[Union[BasicAuthentication, Mapping[str, Any]]] = None,
        file_mapping: Optional[Mapping[str, str]] = None,
    ) -> CompileResult:
        """スクリプトを生成してファイルに書き出す。"""
        output_path = Path(output_path)
        result = self.compile_with_diagnostics(
            actions, basic_auth, file_mapping, title=output_path.stem,
        )
        output_path.parent.mkdir(parents=True, exist_ok=True)
        with open(output_path, "w", encoding="utf-8") as f:
            f.write(result.code)
        logger.info("スクリプトを出力しました: %s", output_path)
        return result

    # ----- エミッタ呼び出し -----

    def _emit(self, action: Action, context: EmitContext, diagnostics: list[Diagnostic]) -> str:
        if action.action_type == "assert":
            kind = action.assert_type or ""
            registry = self.assert_registry
            label = f"assert:{kind}"
        else:
            kind = action.action_type
            registry = self.action_registry
            label = kind

        if not registry.has(kind):
            logger.warning("ステップ %d: 未対応の種別のため出力を省略します: %s", context.index, label)
            diagnostics.append(Diagnostic(
                index=context.index,
                action_type=label,
                message=f"未対応の種別です: {label or '(空)'}",
            ))
            return ""
        return registry.get(kind)(action, context)

    # ----- 依存関係・宣言 -----

    def _uses_force_action(self, actions: Sequence[Action]) -> bool:
        return self.config.force_fallback and needs_force_action(actions)

    def _runtime_names(self, actions: Sequence[Action]) -> list[str]:
        names = {"BrowserManager", "step"}
        if needs_resolve_unique_selector(actions):
            names.add("resolve_unique_selector")
        if needs_candidate_locator(actions):
            names.add("candidate_locator")
        if self._uses_force_action(actions):
            names.update({"force_action", "SelectorResolutionError"})
        if needs_query_database(actions):
            names.update({"query_database", "extract_field"})
        if needs_excel_export(actions):
            names.add("export_database_to_excel")
        if needs_api_request(actions):
            names.update({
                "execute_api_request", "build_api_result", "export_api_to_json", "extract_field",
            })
        return sorted(names)

    @staticmethod
    def _declarations(actions: Sequence[Action]) -> list[str]:
        """page_create が参照するページ変数と promise 変数の宣言行。"""
        pages: list[int] = []
        promises: list[int] = []
        for action in actions:
            if action.action_type != "page_create":
                continue
            index = page_index(action)
            if index == 0:
                continue
            if index not in pages:
                pages.append(index)
            if opener_index(action) is not None and index not in promises:
                promises.append(index)
        lines = [f"{page_var(i)} = None" for i in pages]
        lines.extend(f"{promise_var(i)} = None" for i in promises)
        return lines

    @staticmethod
    def _http_credentials(
        basic_auth: Optional[Union[BasicAuthentication, Mapping[str, Any]]],
    ) -> str:
        if basic_auth is None:
            return "None"
        if not isinstance(basic_auth, BasicAuthentication):
            basic_auth = BasicAuthentication.model_validate(dict(basic_auth))
        if not basic_auth.username and not basic_auth.password:
            return "None"
        return py_literal({"username": basic_auth.username, "password": basic_auth.password})

    @staticmethod
    def _to_action(action: ActionLike) -> Action:
        if isinstance(action, Action):
            return action
        return Action.model_validate(dict(action))

"""
CLI エントリポイント — Typer ベースのコマンドラインインターフェース

actgen コマンドとして以下のサブコマンドを提供する:
  - compile: アクションファイル → Playwright スクリプト生成
  - validate: アクションファイルのスキーマ検証
  - list-emitters: 登録済みエミッタ一覧
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import typer

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Typer アプリ定義
# ---------------------------------------------------------------------------

app = typer.Typer(
    help=(
        "actgen — 記録済みブラウザ操作から Playwright スクリプトを生成するツール\n\n"
        "基本の流れ:\n"
        "  1. actgen validate actions.json           入力を検証\n"
        "  2. actgen compile actions.json -o test.py スクリプトを生成\n\n"
        "詳しくは各コマンドに --help を付けてください。"
    ),
    no_args_is_help=True,
)


def _parse_file_map(entries: Optional[list[str]]) -> dict[str, str]:
    """"ID=PATH" 形式の指定を dict に変換する。"""
    mapping: dict[str, str] = {}
    for entry in entries or []:
        key, sep, value = entry.partition("=")
        if not sep or not key:
            raise typer.BadParameter(f"ID=PATH 形式で指定してください: {entry}")
        mapping[key] = value
    return mapping


# ---------------------------------------------------------------------------
# compile コマンド
# ---------------------------------------------------------------------------

@app.command("compile")
def compile_actions(
    input_file: Path = typer.Argument(..., help="アクション配列の JSON / YAML ファイル"),
    output: Optional[Path] = typer.Option(
        None, "--output", "-o", help="出力先ファイル（省略時は標準出力）",
    ),
    basic_auth_user: Optional[str] = typer.Option(
        None, "--basic-auth-user", help="Basic 認証ユーザー名（ファイル内の指定より優先）",
    ),
    basic_auth_password: Optional[str] = typer.Option(
        None, "--basic-auth-password", help="Basic 認証パスワード",
    ),
    file_map: Optional[list[str]] = typer.Option(
        None, "--file-map", help="アップロードファイルの対応（ID=PATH、複数指定可）",
    ),
    images_dir: Optional[str] = typer.Option(
        None, "--images-dir", help="スクリーンショット保存先",
    ),
    headless: Optional[bool] = typer.Option(
        None, "--headless/--headed", help="ヘッドレスモードで起動するスクリプトを生成",
    ),
    browser: Optional[str] = typer.Option(
        None, "--browser", help="ブラウザ種別（chromium/firefox/webkit）",
    ),
    no_force_fallback: bool = typer.Option(
        False, "--no-force-fallback", help="強制操作フォールバックを生成しない",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="詳細ログを表示"),
) -> None:
    """アクション配列から Playwright スクリプトを生成する。"""
    from .codegen import ScriptCompiler
    from .config import apply_overrides, load_config_from_env
    from .model import ActionsParser, BasicAuthentication

    if verbose:
        logging.basicConfig(level=logging.DEBUG)

    try:
        document = ActionsParser().load(input_file)

        basic_auth = document.basic_auth
        if basic_auth_user is not None or basic_auth_password is not None:
            basic_auth = BasicAuthentication(
                username=basic_auth_user or "", password=basic_auth_password or "",
            )

        config = apply_overrides(
            load_config_from_env(),
            images_dir=images_dir,
            headless=headless,
            browser=browser,
            force_fallback=False if no_force_fallback else None,
        )
        compiler = ScriptCompiler(config)
        mapping = _parse_file_map(file_map)

        if output is not None:
            result = compiler.write(document.actions, output, basic_auth, mapping)
            typer.echo(f"スクリプトを生成しました: {output}")
        else:
            result = compiler.compile_with_diagnostics(
                document.actions, basic_auth, mapping, title=input_file.stem,
            )
            typer.echo(result.code, nl=False)

        for diag in result.diagnostics:
            typer.echo(f"警告: ステップ {diag.index} ({diag.action_type}): {diag.message}", err=True)
    except typer.BadParameter:
        raise
    except Exception as exc:
        typer.echo(f"エラー: {exc}", err=True)
        raise typer.Exit(code=1)


# ---------------------------------------------------------------------------
# validate コマンド
# ---------------------------------------------------------------------------

@app.command()
def validate(
    input_file: Path = typer.Argument(..., help="検証するアクション配列ファイル"),
) -> None:
    """アクション配列ファイルのスキーマ検証を行う。"""
    from .model import ActionsParser

    errors = ActionsParser().validate(input_file)

    if not errors:
        typer.echo(f"✓ {input_file}: スキーマ検証 OK")
    else:
        for err in errors:
            line_info = f" (行 {err.line})" if err.line else ""
            typer.echo(f"✗ {err.location}{line_info}: {err.message}", err=True)
        raise typer.Exit(code=1)


# ---------------------------------------------------------------------------
# list-emitters コマンド
# ---------------------------------------------------------------------------

@app.command("list-emitters")
def list_emitters() -> None:
    """登録済み全エミッタ（アクション・アサーション）の一覧を表示する。"""
    from .codegen import create_action_registry, create_assert_registry

    all_emitters = create_action_registry().list_all() + create_assert_registry().list_all()

    # カテゴリごとにグループ化して表示
    categories: dict[str, list] = {}
    for info in all_emitters:
        categories.setdefault(info.category, []).append(info)

    for category, emitters in sorted(categories.items()):
        typer.echo(f"\n[{category}]")
        for emitter in emitters:
            typer.echo(f"  {emitter.name:30s} {emitter.description}")

    typer.echo(f"\n合計: {len(all_emitters)} エミッタ")


if __name__ == "__main__":
    app()

"""
テスト共通フィクスチャ定義

全テストモジュールで共有するフィクスチャを提供する。
"""

from __future__ import annotations

from pathlib import Path

import pytest


# ---------------------------------------------------------------------------
# pytest フィクスチャ
# ---------------------------------------------------------------------------

@pytest.fixture
def tmp_dir(tmp_path: Path) -> Path:
    """一時ディレクトリを提供する pytest フィクスチャ。"""
    return tmp_path


@pytest.fixture
def sample_actions() -> list[dict]:
    """ログインフローを表すアクション配列。"""
    return [
        {
            "action_type": "navigate",
            "description": "ログインページを開く",
            "action_datas": [{"value": {"value": "https://example.com/login"}}],
        },
        {
            "action_type": "input",
            "description": "メールアドレスを入力",
            "elements": [{"selectors": [{"value": "locator('#email')"}]}],
            "action_datas": [{"value": {"value": "user@example.com"}}],
        },
        {
            "action_type": "click",
            "description": "ログインボタンを押す",
            "elements": [{"selectors": [
                {"value": "getByRole('button', { name: 'ログイン' })"},
                {"value": "locator('#login')"},
            ]}],
        },
        {
            "action_type": "assert",
            "assert_type": "toBeVisible",
            "description": "ダッシュボードが表示される",
            "elements": [{"selectors": [{"value": "getByTestId('dashboard')"}]}],
        },
    ]


@pytest.fixture
def sample_actions_json() -> str:
    """basic_auth 付きのアクションファイル（JSON）。"""
    return """\
{
  "basic_auth": {"username": "admin", "password": "secret"},
  "actions": [
    {
      "action_type": "navigate",
      "description": "トップを開く",
      "action_datas": [{"value": {"value": "https://example.com/"}}]
    },
    {
      "action_type": "click",
      "description": "メニュー",
      "elements": [{"selectors": [{"value": "locator('#menu')"}]}]
    }
  ]
}
"""


"""
コンパイラ設定 — 環境変数・CLI 引数からの設定読み込み

生成スクリプトの既定値（タイムアウト、スクリーンショット保存先、ブラウザ等）を制御する。
CLI 引数 > 環境変数 > デフォルト値 の優先順位で適用される。

環境変数一覧:
  ACTGEN_DEFAULT_TIMEOUT : page.set_default_timeout の値（ミリ秒, デフォルト: 30000）
  ACTGEN_IMAGES_DIR      : ステップごとのスクリーンショット保存先（デフォルト: images）
  ACTGEN_RUNTIME_MODULE  : 生成スクリプトが import するランタイムモジュール（デフォルト: actgen.runtime）
  ACTGEN_HEADLESS        : ヘッドレス起動（true/false, デフォルト: false）
  ACTGEN_BROWSER         : ブラウザ種別（chromium/firefox/webkit, デフォルト: chromium）
  ACTGEN_FORCE_FALLBACK  : 強制操作フォールバックを生成するか（true/false, デフォルト: true）
  ACTGEN_VIEWPORT_WIDTH  : ビューポート幅（デフォルト: 1920）
  ACTGEN_VIEWPORT_HEIGHT : ビューポート高さ（デフォルト: 1080）
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Literal, Optional

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# 環境変数キー定数
# ---------------------------------------------------------------------------

_ENV_DEFAULT_TIMEOUT = "ACTGEN_DEFAULT_TIMEOUT"
_ENV_IMAGES_DIR = "ACTGEN_IMAGES_DIR"
_ENV_RUNTIME_MODULE = "ACTGEN_RUNTIME_MODULE"
_ENV_HEADLESS = "ACTGEN_HEADLESS"
_ENV_BROWSER = "ACTGEN_BROWSER"
_ENV_FORCE_FALLBACK = "ACTGEN_FORCE_FALLBACK"
_ENV_VIEWPORT_WIDTH = "ACTGEN_VIEWPORT_WIDTH"
_ENV_VIEWPORT_HEIGHT = "ACTGEN_VIEWPORT_HEIGHT"

_BROWSERS = ("chromium", "firefox", "webkit")


# ---------------------------------------------------------------------------
# 設定データクラス
# ---------------------------------------------------------------------------

@dataclass
class CompilerConfig:
    """コード生成時の設定。

    同一の入力と同一の設定からは常にバイト単位で同一のスクリプトが生成される。

    Attributes:
        default_timeout: 生成スクリプトの既定タイムアウト（ミリ秒）
        images_dir: assert 前スクリーンショットの保存先ディレクトリ
        runtime_module: ランタイム支援ライブラリのモジュールパス
        headless: ヘッドレスでブラウザを起動するか
        browser: 起動するブラウザ種別
        force_fallback: click / input / select 系で強制操作フォールバックを生成するか
        viewport_width: ビューポート幅
        viewport_height: ビューポート高さ
    """

    default_timeout: int = 30000
    images_dir: str = "images"
    runtime_module: str = "actgen.runtime"
    headless: bool = False
    browser: Literal["chromium", "firefox", "webkit"] = "chromium"
    force_fallback: bool = True
    viewport_width: int = 1920
    viewport_height: int = 1080


# ---------------------------------------------------------------------------
# 環境変数からの読み込み
# ---------------------------------------------------------------------------

def _parse_bool(value: str) -> bool:
    """文字列を bool に変換する。

    Args:
        value: "true", "1", "yes" → True、それ以外 → False

    Returns:
        変換結果
    """
    return value.lower() in ("true", "1", "yes")


def _parse_int(key: str, default: int) -> int:
    try:
        return int(os.environ[key])
    except ValueError:
        logger.warning("%s の値が不正です: %s", key, os.environ[key])
        return default


def load_config_from_env() -> CompilerConfig:
    """環境変数から CompilerConfig を生成する。

    設定されていない環境変数はデフォルト値を使用する。

    Returns:
        環境変数から読み込んだ設定
    """
    config = CompilerConfig()

    if _ENV_DEFAULT_TIMEOUT in os.environ:
        config.default_timeout = _parse_int(_ENV_DEFAULT_TIMEOUT, config.default_timeout)

    if _ENV_IMAGES_DIR in os.environ:
        config.images_dir = os.environ[_ENV_IMAGES_DIR]

    if _ENV_RUNTIME_MODULE in os.environ:
        config.runtime_module = os.environ[_ENV_RUNTIME_MODULE]

    if _ENV_HEADLESS in os.environ:
        config.headless = _parse_bool(os.environ[_ENV_HEADLESS])

    if _ENV_BROWSER in os.environ:
        val = os.environ[_ENV_BROWSER]
        if val in _BROWSERS:
            config.browser = val  # type: ignore[assignment]
        else:
            logger.warning("%s の値が不正です: %s", _ENV_BROWSER, val)

    if _ENV_FORCE_FALLBACK in os.environ:
        config.force_fallback = _parse_bool(os.environ[_ENV_FORCE_FALLBACK])

    if _ENV_VIEWPORT_WIDTH in os.environ:
        config.viewport_width = _parse_int(_ENV_VIEWPORT_WIDTH, config.viewport_width)

    if _ENV_VIEWPORT_HEIGHT in os.environ:
        config.viewport_height = _parse_int(_ENV_VIEWPORT_HEIGHT, config.viewport_height)

    logger.debug("設定を読み込みました: %s", config)
    return config


def apply_overrides(
    config: CompilerConfig,
    *,
    images_dir: Optional[str] = None,
    headless: Optional[bool] = None,
    browser: Optional[str] = None,
    force_fallback: Optional[bool] = None,
    default_timeout: Optional[int] = None,
) -> CompilerConfig:
    """CLI 引数を CompilerConfig に適用する。

    None 以外が指定された項目のみ上書きする。

    Args:
        config: ベースとなる設定（環境変数から読み込み済み）

    Returns:
        CLI 引数が適用された設定
    """
    if images_dir is not None:
        config.images_dir = images_dir
    if headless is not None:
        config.headless = headless
    if browser is not None:
        if browser in _BROWSERS:
            config.browser = browser  # type: ignore[assignment]
        else:
            logger.warning("--browser の値が不正です: %s", browser)
    if force_fallback is not None:
        config.force_fallback = force_fallback
    if default_timeout is not None:
        config.default_timeout = default_timeout
    return config

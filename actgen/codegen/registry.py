"""
エミッタレジストリ — アクション種別ごとのコード生成関数の登録・検索・一覧

主な構成:
  - Emitter Protocol: (action, context) -> コード断片 を返す純粋関数
  - EmitContext: 生成時のコンテキスト（ステップ番号、先読みアクション、設定）
  - EmitterInfo: エミッタのメタ情報（名前、説明、カテゴリ）
  - EmitterRegistry: エミッタの登録・検索・一覧
  - build_step(): ステップブロック（async with step(...) + アイドル待機）の組み立て
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Mapping, Optional, Protocol, Sequence

from ..config import CompilerConfig
from ..model.schema import Action
from .literals import quote, sanitize_inline

logger = logging.getLogger(__name__)

# run() 本体とステップ本体のインデント
STEP_INDENT = " " * 4
BODY_INDENT = " " * 8

IDLE_WAIT = "await bm.wait_for_app_idle()"


# ---------------------------------------------------------------------------
# 生成コンテキスト
# ---------------------------------------------------------------------------

@dataclass
class EmitContext:
    """エミッタに渡される生成コンテキスト。

    Attributes:
        index: 1 始まりのステップ番号
        next_action: 直後のアクション（ポップアップ先読み用）。末尾なら None
        file_mapping: アップロードファイル ID → 実ファイルパスの対応表
        config: コンパイラ設定
    """

    index: int
    next_action: Optional[Action] = None
    file_mapping: Mapping[str, str] = field(default_factory=dict)
    config: CompilerConfig = field(default_factory=CompilerConfig)


class Emitter(Protocol):
    """アクション1件をコード断片に変換する関数。"""

    def __call__(self, action: Action, context: EmitContext) -> str: ...


# ---------------------------------------------------------------------------
# メタ情報
# ---------------------------------------------------------------------------

@dataclass
class EmitterInfo:
    """エミッタのメタ情報。CLI の list-emitters で一覧表示に使用する。

    Attributes:
        name: action_type または assert_type
        description: 説明文
        category: カテゴリ（navigation, action, keyboard, data, storage, page, assert）
    """

    name: str
    description: str
    category: str


# ---------------------------------------------------------------------------
# EmitterRegistry 本体
# ---------------------------------------------------------------------------

class EmitterRegistry:
    """種別名 → エミッタ関数の対応を管理するレジストリ。

    使用例::

        registry = EmitterRegistry()
        registry.register("click", emit_click, info=EmitterInfo(...))
        emitter = registry.get("click")
    """

    def __init__(self) -> None:
        self._emitters: dict[str, Emitter] = {}
        self._info: dict[str, EmitterInfo] = {}

    def register(self, name: str, emitter: Emitter, *, info: Optional[EmitterInfo] = None) -> None:
        """エミッタを登録する。同名が登録済みの場合は警告を出して上書きする。

        Raises:
            TypeError: emitter が呼び出し可能でない場合
        """
        if not callable(emitter):
            raise TypeError(f"emitter は呼び出し可能である必要があります: {type(emitter).__name__}")

        if name in self._emitters:
            logger.warning("エミッタ '%s' を上書きします", name)

        self._emitters[name] = emitter
        if info is not None:
            self._info[name] = info
        elif name not in self._info:
            self._info[name] = EmitterInfo(name=name, description=f"{name} エミッタ", category="unknown")

    def get(self, name: str) -> Emitter:
        """名前でエミッタを取得する。

        Raises:
            KeyError: 未登録の場合
        """
        if name not in self._emitters:
            registered = ", ".join(sorted(self._emitters))
            raise KeyError(f"エミッタ '{name}' は登録されていません。登録済み: [{registered}]")
        return self._emitters[name]

    def has(self, name: str) -> bool:
        return name in self._emitters

    def list_all(self) -> list[EmitterInfo]:
        """登録済み全エミッタのメタ情報を名前順で返す。"""
        return sorted(self._info.values(), key=lambda i: i.name)

    @property
    def names(self) -> list[str]:
        return sorted(self._emitters)


# ---------------------------------------------------------------------------
# ステップブロックの組み立て
# ---------------------------------------------------------------------------

def step_title(context: EmitContext, action: Action) -> str:
    """"N. 説明" 形式のステップタイトルリテラルを返す。"""
    return quote(f"{context.index}. {sanitize_inline(action.description)}")


def build_step(
    context: EmitContext,
    action: Action,
    body: Sequence[str],
    *,
    wait_idle: bool = True,
) -> str:
    """ステップブロックを組み立てる。

    生成されるコード::

        async with step("3. 説明"):
            <body>
        await bm.wait_for_app_idle()

    Args:
        context: 生成コンテキスト
        action: 対象アクション
        body: ステップ本体のコード行（インデントなし、ネストは各行に含める）
        wait_idle: ステップ後にアプリのアイドル待機を入れるか

    Returns:
        末尾に改行を含むコード断片
    """
    lines = [f"{STEP_INDENT}async with step({step_title(context, action)}):"]
    if body:
        lines.extend(f"{BODY_INDENT}{line}" if line else "" for line in body)
    else:
        lines.append(f"{BODY_INDENT}pass")
    if wait_idle:
        lines.append(f"{STEP_INDENT}{IDLE_WAIT}")
    return "\n".join(lines) + "\n"

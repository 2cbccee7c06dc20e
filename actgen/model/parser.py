"""
入力パーサー — アクション配列ファイルの読み込み・検証

ruamel.yaml（safe モード）で JSON / YAML のどちらも読み込み、
Pydantic の ActionsDocument モデルに変換する。
JSON は YAML のサブセットなので同じローダーで扱える。
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from pydantic import ValidationError as PydanticValidationError
from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError

from .schema import ActionsDocument


# ---------------------------------------------------------------------------
# バリデーションエラー表現
# ---------------------------------------------------------------------------

@dataclass
class ActionsValidationError:
    """入力ファイルの検証で検出されたエラー。

    Attributes:
        message: エラーメッセージ
        location: エラー箇所（フィールドパス等）
        line: ファイル内の行番号（取得可能な場合）
    """

    message: str
    location: str = ""
    line: Optional[int] = None


# ---------------------------------------------------------------------------
# ActionsParser 本体
# ---------------------------------------------------------------------------

class ActionsParser:
    """アクション配列ファイルの読み込み・検証を担当するパーサー。

    トップレベルは次のいずれかを受け付ける:
      - アクションのリスト
      - {"actions": [...], "basic_auth": {...}} 形式のマッピング
    """

    def __init__(self) -> None:
        self._yaml = YAML(typ="safe", pure=True)

    # ----- load -----

    def load(self, path: Path) -> ActionsDocument:
        """ファイルを読み込み、ActionsDocument に変換する。

        Args:
            path: 読み込む JSON / YAML ファイルのパス

        Returns:
            パース済みの ActionsDocument

        Raises:
            FileNotFoundError: ファイルが存在しない場合
            ValueError: 構文エラーまたはスキーマ検証エラーの場合
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"入力ファイルが見つかりません: {path}")

        try:
            data = self._read(path)
        except YAMLError as e:
            line_info = ""
            mark = getattr(e, "problem_mark", None)
            if mark is not None:
                line_info = f" (行 {mark.line + 1}, 列 {mark.column + 1})"
            raise ValueError(f"構文エラー{line_info}: {e}") from e

        if data is None:
            raise ValueError("入力ファイルが空です")

        try:
            return self.from_data(data)
        except PydanticValidationError as e:
            raise ValueError(f"スキーマ検証エラー: {e}") from e

    def loads(self, text: str) -> ActionsDocument:
        """文字列から ActionsDocument を生成する。"""
        data = self._yaml.load(text)
        if data is None:
            raise ValueError("入力が空です")
        return self.from_data(data)

    @staticmethod
    def from_data(data: object) -> ActionsDocument:
        """読み込み済みのデータを ActionsDocument に変換する。

        Raises:
            pydantic.ValidationError: スキーマに合わない場合
        """
        if isinstance(data, list):
            data = {"actions": data}
        return ActionsDocument.model_validate(data)

    # ----- validate -----

    def validate(self, path: Path) -> list[ActionsValidationError]:
        """ファイルのスキーマ検証を行い、違反箇所を報告する。

        エラーがない場合は空リストを返す。

        Args:
            path: 検証するファイルのパス

        Returns:
            検出されたバリデーションエラーのリスト
        """
        path = Path(path)
        errors: list[ActionsValidationError] = []

        if not path.exists():
            errors.append(ActionsValidationError(
                message=f"入力ファイルが見つかりません: {path}",
                location="file",
            ))
            return errors

        try:
            data = self._read(path)
        except YAMLError as e:
            line = None
            mark = getattr(e, "problem_mark", None)
            if mark is not None:
                line = mark.line + 1
            errors.append(ActionsValidationError(
                message=f"構文エラー: {e}",
                location="syntax",
                line=line,
            ))
            return errors

        if data is None:
            errors.append(ActionsValidationError(
                message="入力ファイルが空です",
                location="file",
            ))
            return errors

        try:
            self.from_data(data)
        except PydanticValidationError as e:
            for err in e.errors():
                loc_parts = [str(part) for part in err.get("loc", [])]
                location = " -> ".join(loc_parts) if loc_parts else "unknown"
                errors.append(ActionsValidationError(
                    message=err.get("msg", "不明なエラー"),
                    location=location,
                ))

        return errors

    # ----- ユーティリティ -----

    def _read(self, path: Path) -> object:
        with open(path, "r", encoding="utf-8") as f:
            return self._yaml.load(f)

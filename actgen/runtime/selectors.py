"""
ロケータ式パーサー — 記録されたセレクタ文字列をタグ付きセレクタ型に変換

記録時のロケータ式（Playwright JS API の呼び出し形式）を小さな文法として解釈し、
閉じた種別集合のセレクタモデルに変換する。文字列を式として評価することはしない。

対応する形式:
  - locator('css')                    → CssSelector
  - locator('a').locator('b')         → ChainSelector
  - getByTestId('id')                 → TestIdSelector
  - getByRole('button', { name: 'x', exact: true }) → RoleSelector
  - getByText('x', { exact: true })   → TextSelector
  - getByLabel('x')                   → LabelSelector
  - getByPlaceholder('x')             → PlaceholderSelector
  - getByAltText('x')                 → AltTextSelector
  - getByTitle('x')                   → TitleSelector

先頭の "page." と、Python 形式の関数名（get_by_role 等）も受け付ける。
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING, Annotated, Any, Callable, Literal, Optional, Union

from pydantic import BaseModel, Field

if TYPE_CHECKING:
    from playwright.async_api import Locator, Page


class SelectorParseError(ValueError):
    """ロケータ式を解釈できない場合のエラー。"""


# ---------------------------------------------------------------------------
# セレクタモデル（kind で判別するタグ付き共用体）
# ---------------------------------------------------------------------------

class CssSelector(BaseModel):
    """CSS セレクタ。"""

    kind: Literal["css"] = "css"
    css: str


class ChainSelector(BaseModel):
    """親 CSS → 子 CSS の2段構成。"""

    kind: Literal["chain"] = "chain"
    parent: str
    child: str


class TestIdSelector(BaseModel):
    """data-testid 属性によるセレクタ。"""

    __test__ = False

    kind: Literal["test_id"] = "test_id"
    test_id: str


class RoleSelector(BaseModel):
    """ARIA ロール（+ アクセシブル名）によるセレクタ。"""

    kind: Literal["role"] = "role"
    role: str
    name: Optional[str] = None
    exact: Optional[bool] = None


class TextSelector(BaseModel):
    """表示テキストによるセレクタ。"""

    kind: Literal["text"] = "text"
    text: str
    exact: Optional[bool] = None


class LabelSelector(BaseModel):
    kind: Literal["label"] = "label"
    label: str


class PlaceholderSelector(BaseModel):
    kind: Literal["placeholder"] = "placeholder"
    placeholder: str


class AltTextSelector(BaseModel):
    kind: Literal["alt"] = "alt"
    alt: str


class TitleSelector(BaseModel):
    kind: Literal["title"] = "title"
    title: str


SelectorSpec = Annotated[
    Union[
        CssSelector,
        ChainSelector,
        TestIdSelector,
        RoleSelector,
        TextSelector,
        LabelSelector,
        PlaceholderSelector,
        AltTextSelector,
        TitleSelector,
    ],
    Field(discriminator="kind"),
]


# ---------------------------------------------------------------------------
# 字句・構文解析
# ---------------------------------------------------------------------------

_IDENT = re.compile(r"[A-Za-z_$][\w$]*")
_NUMBER = re.compile(r"-?\d+(?:\.\d+)?")
_PAGE_PREFIX = re.compile(r"^page\s*\.\s*")
_KEYWORD = re.compile(r"([A-Za-z_]\w*)\s*=(?!=)")

_ALIASES = {
    "get_by_test_id": "getByTestId",
    "get_by_role": "getByRole",
    "get_by_text": "getByText",
    "get_by_label": "getByLabel",
    "get_by_placeholder": "getByPlaceholder",
    "get_by_alt_text": "getByAltText",
    "get_by_title": "getByTitle",
}


class _Scanner:
    """ロケータ式の再帰下降パーサー。"""

    def __init__(self, text: str) -> None:
        self.text = text
        self.pos = 0

    def error(self, message: str) -> SelectorParseError:
        return SelectorParseError(f"{message} (位置 {self.pos}): {self.text}")

    def skip_ws(self) -> None:
        while self.pos < len(self.text) and self.text[self.pos].isspace():
            self.pos += 1

    def peek(self) -> str:
        self.skip_ws()
        return self.text[self.pos] if self.pos < len(self.text) else ""

    def expect(self, ch: str) -> None:
        if self.peek() != ch:
            raise self.error(f"'{ch}' が必要です")
        self.pos += 1

    def at_end(self) -> bool:
        return self.peek() == ""

    def ident(self) -> str:
        self.skip_ws()
        match = _IDENT.match(self.text, self.pos)
        if not match:
            raise self.error("識別子が必要です")
        self.pos = match.end()
        return match.group(0)

    def string(self) -> str:
        quote = self.peek()
        if quote not in ("'", '"', "`"):
            raise self.error("文字列リテラルが必要です")
        self.pos += 1
        out = []
        while self.pos < len(self.text):
            ch = self.text[self.pos]
            if ch == "\\" and self.pos + 1 < len(self.text):
                out.append(self.text[self.pos + 1])
                self.pos += 2
                continue
            if ch == quote:
                self.pos += 1
                return "".join(out)
            out.append(ch)
            self.pos += 1
        raise self.error("文字列リテラルが閉じていません")

    def value(self) -> Any:
        ch = self.peek()
        if ch in ("'", '"', "`"):
            return self.string()
        if ch == "{":
            return self.obj()
        match = _NUMBER.match(self.text, self.pos)
        if match:
            self.pos = match.end()
            return float(match.group(0)) if "." in match.group(0) else int(match.group(0))
        word = self.ident()
        if word in ("true", "True"):
            return True
        if word in ("false", "False"):
            return False
        raise self.error(f"未対応の値です: {word}")

    def obj(self) -> dict[str, Any]:
        self.expect("{")
        result: dict[str, Any] = {}
        while self.peek() != "}":
            key = self.string() if self.peek() in ("'", '"') else self.ident()
            self.expect(":")
            result[key] = self.value()
            if self.peek() == ",":
                self.pos += 1
        self.expect("}")
        return result

    def call(self) -> tuple[str, list[Any]]:
        name = self.ident()
        self.expect("(")
        args: list[Any] = []
        keywords: dict[str, Any] = {}
        while self.peek() != ")":
            keyword = _KEYWORD.match(self.text, self.pos)
            if keyword:
                self.pos = keyword.end()
                keywords[keyword.group(1)] = self.value()
            else:
                args.append(self.value())
            if self.peek() == ",":
                self.pos += 1
            elif self.peek() != ")":
                raise self.error("',' または ')' が必要です")
        self.expect(")")
        if keywords:
            # Python 形式のキーワード引数はオプション dict として扱う
            args.append(keywords)
        return _ALIASES.get(name, name), args


def _string_arg(name: str, args: list[Any]) -> str:
    if not args or not isinstance(args[0], str):
        raise SelectorParseError(f"{name} の第1引数は文字列である必要があります")
    return args[0]


def _options(args: list[Any]) -> dict[str, Any]:
    return args[1] if len(args) > 1 and isinstance(args[1], dict) else {}


def _to_spec(name: str, args: list[Any]):
    """1回の呼び出しをセレクタモデルに変換する。"""
    if name == "locator":
        return CssSelector(css=_string_arg(name, args))
    if name == "getByTestId":
        return TestIdSelector(test_id=_string_arg(name, args))
    if name == "getByRole":
        options = _options(args)
        return RoleSelector(
            role=_string_arg(name, args),
            name=options.get("name"),
            exact=options.get("exact"),
        )
    if name == "getByText":
        return TextSelector(text=_string_arg(name, args), exact=_options(args).get("exact"))
    if name == "getByLabel":
        return LabelSelector(label=_string_arg(name, args))
    if name == "getByPlaceholder":
        return PlaceholderSelector(placeholder=_string_arg(name, args))
    if name == "getByAltText":
        return AltTextSelector(alt=_string_arg(name, args))
    if name == "getByTitle":
        return TitleSelector(title=_string_arg(name, args))
    raise SelectorParseError(f"未対応のロケータ関数です: {name}")


def parse_selector(text: str) -> SelectorSpec:
    """ロケータ式文字列をセレクタモデルに変換する。

    Args:
        text: 記録されたロケータ式（例: "getByRole('button', { name: 'Save' })"）

    Returns:
        セレクタモデル

    Raises:
        SelectorParseError: 文法に合わない、または未対応の関数を含む場合
    """
    if not text or not text.strip():
        raise SelectorParseError("ロケータ式が空です")

    scanner = _Scanner(_PAGE_PREFIX.sub("", text.strip()))
    calls: list[tuple[str, list[Any]]] = []
    while True:
        name, args = scanner.call()
        calls.append((name, args))
        if scanner.at_end():
            break
        scanner.expect(".")

    if len(calls) == 1:
        return _to_spec(*calls[0])
    if len(calls) == 2 and calls[0][0] == "locator" and calls[1][0] == "locator":
        return ChainSelector(
            parent=_string_arg("locator", calls[0][1]),
            child=_string_arg("locator", calls[1][1]),
        )
    raise SelectorParseError(f"未対応のロケータ連結です: {text}")


# ---------------------------------------------------------------------------
# Playwright Locator への変換（kind をキーにしたディスパッチテーブル）
# ---------------------------------------------------------------------------

def _exact_kwargs(**values: Any) -> dict[str, Any]:
    return {key: value for key, value in values.items() if value is not None}


_LOCATOR_FACTORIES: dict[str, Callable[[Any, Any], "Locator"]] = {
    "css": lambda target, s: target.locator(s.css),
    "chain": lambda target, s: target.locator(s.parent).locator(s.child),
    "test_id": lambda target, s: target.get_by_test_id(s.test_id),
    "role": lambda target, s: target.get_by_role(s.role, **_exact_kwargs(name=s.name, exact=s.exact)),
    "text": lambda target, s: target.get_by_text(s.text, **_exact_kwargs(exact=s.exact)),
    "label": lambda target, s: target.get_by_label(s.label),
    "placeholder": lambda target, s: target.get_by_placeholder(s.placeholder),
    "alt": lambda target, s: target.get_by_alt_text(s.alt),
    "title": lambda target, s: target.get_by_title(s.title),
}


def to_locator(page: Page, spec: SelectorSpec) -> Locator:
    """セレクタモデルを Playwright Locator に変換する。"""
    return _LOCATOR_FACTORIES[spec.kind](page, spec)


def describe_selector(spec: SelectorSpec) -> str:
    """ログ・エラーメッセージ用にセレクタを文字列化する。"""
    fields = spec.model_dump(exclude={"kind"}, exclude_none=True)
    inner = ", ".join(f"{key}={value!r}" for key, value in fields.items())
    return f"{spec.kind}({inner})"

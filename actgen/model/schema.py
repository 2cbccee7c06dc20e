"""
アクションモデル定義 — 記録済みブラウザ操作の Pydantic モデル

エディタ層が生成する Action 配列をコンパイラに渡すためのモデルを定義する。
ActionData はタグ付き共用体として扱い、どのフィールドが存在するかで
ペイロードの種類（value / statement / api_request / browser_storage / file_upload）を判別する。

モデルは寛容に定義している。未知の action_type や欠損フィールドを含む入力でも
検証は通り、コード生成側で安全なデフォルト値に縮退させる。
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Optional, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


# ---------------------------------------------------------------------------
# 列挙型
# ---------------------------------------------------------------------------

class ActionType(str, Enum):
    """記録されるアクション種別。"""

    navigate = "navigate"
    click = "click"
    double_click = "double_click"
    right_click = "right_click"
    shift_click = "shift_click"
    input = "input"
    select = "select"
    checkbox = "checkbox"
    change = "change"
    drag_and_drop = "drag_and_drop"
    drag_start = "drag_start"
    drag_end = "drag_end"
    drag_over = "drag_over"
    drag_leave = "drag_leave"
    drop = "drop"
    keydown = "keydown"
    keyup = "keyup"
    keypress = "keypress"
    upload = "upload"
    scroll = "scroll"
    connect_db = "connect_db"
    database_execution = "database_execution"
    wait = "wait"
    reload = "reload"
    back = "back"
    forward = "forward"
    window_resize = "window_resize"
    add_browser_storage = "add_browser_storage"
    api_request = "api_request"
    page_create = "page_create"
    page_close = "page_close"
    page_focus = "page_focus"
    assert_ = "assert"


class AssertType(str, Enum):
    """assert アクションの検証種別。"""

    toBeChecked = "toBeChecked"
    toBeUnchecked = "toBeUnchecked"
    toBeDisabled = "toBeDisabled"
    toBeEditable = "toBeEditable"
    toBeReadOnly = "toBeReadOnly"
    toBeEmpty = "toBeEmpty"
    toBeEnabled = "toBeEnabled"
    toBeFocused = "toBeFocused"
    toBeHidden = "toBeHidden"
    toBeVisible = "toBeVisible"
    toContainText = "toContainText"
    toHaveAccessibleDescription = "toHaveAccessibleDescription"
    toHaveAccessibleName = "toHaveAccessibleName"
    toHaveText = "toHaveText"
    toHaveValue = "toHaveValue"
    toHaveValues = "toHaveValues"
    toHaveCount = "toHaveCount"
    toHaveRole = "toHaveRole"
    toHaveCSS = "toHaveCSS"
    pageHasATitle = "pageHasATitle"
    pageHasAURL = "pageHasAURL"
    ai = "ai"


class DbType(str, Enum):
    """サポートするデータベースエンジン。"""

    postgres = "postgres"
    mysql = "mysql"
    mssql = "mssql"


# ---------------------------------------------------------------------------
# 要素・セレクタ
# ---------------------------------------------------------------------------

class _Lenient(BaseModel):
    """未知フィールドを保持する共通ベース。"""

    model_config = ConfigDict(extra="allow", populate_by_name=True)


class Selector(_Lenient):
    """単一のロケータ式。

    文法はランタイム側でのみ解釈する。モデル上は不透明な文字列として扱う。
    """

    value: Optional[str] = Field(default=None, description="ロケータ式文字列")


class Element(_Lenient):
    """1つの論理的な UI ターゲット。

    selectors は優先順（先頭が最優先）のフォールバック候補リスト。
    """

    selectors: list[Selector] = Field(
        default_factory=list,
        validation_alias=AliasChoices("selectors", "selector"),
        description="セレクタ候補（優先順）",
    )
    order_index: Optional[int] = Field(
        default=None,
        validation_alias=AliasChoices("order_index", "orderIndex"),
        description="DOM 順序を再構築するための位置インデックス",
    )

    @field_validator("selectors", mode="before")
    @classmethod
    def _wrap_plain_strings(cls, value: Any) -> Any:
        # 文字列のみのリストも {"value": ...} として受け付ける
        if isinstance(value, list):
            return [{"value": item} if isinstance(item, str) else item for item in value]
        return value

    def selector_values(self) -> list[str]:
        """空でないセレクタ文字列を優先順で返す。"""
        return [s.value for s in self.selectors if s.value]


# ---------------------------------------------------------------------------
# データベース
# ---------------------------------------------------------------------------

class Connection(_Lenient):
    """データベース接続パラメータ。"""

    db_type: Optional[str] = None
    host: Optional[str] = None
    port: Optional[Union[int, str]] = None
    db_name: Optional[str] = None
    username: Optional[str] = None
    password: Optional[str] = None
    security_type: Optional[str] = None
    ssl_mode: Optional[str] = None


class Statement(_Lenient):
    """実行する SQL と接続情報。

    旧形式のペイロードでは接続情報が database_connection に入っている。
    正規化はオーケストレータがコピーに対して行う。
    """

    query: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("query", "statement_text"),
    )
    connection: Optional[Connection] = None
    database_connection: Optional[Connection] = None


# ---------------------------------------------------------------------------
# API リクエスト
# ---------------------------------------------------------------------------

class KeyValue(_Lenient):
    """クエリパラメータ・ヘッダーの1組。"""

    key: Optional[str] = None
    value: Optional[Any] = None


class TokenStorage(_Lenient):
    """Bearer トークンの読み出し元。"""

    key: Optional[str] = None
    type: Optional[str] = None


class BasicAuthStorage(_Lenient):
    """Basic 認証のユーザー名・パスワードの読み出し元。"""

    username_key: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("username_key", "usernameKey"),
    )
    password_key: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("password_key", "passwordKey"),
    )
    type: Optional[str] = None


class ApiAuth(_Lenient):
    """API リクエストの認証設定。"""

    type: Optional[Any] = None
    storage_enabled: Optional[bool] = Field(
        default=None, validation_alias=AliasChoices("storage_enabled", "storageEnabled"),
    )
    username: Optional[str] = None
    password: Optional[str] = None
    token: Optional[str] = None
    token_storages: list[TokenStorage] = Field(default_factory=list)
    basic_auth_storages: list[BasicAuthStorage] = Field(default_factory=list)


class FormDataItem(_Lenient):
    """フォームボディの1項目。"""

    name: Optional[str] = None
    value: Optional[Any] = None
    order_index: Optional[int] = Field(
        default=None, validation_alias=AliasChoices("order_index", "orderIndex"),
    )


class ApiBody(_Lenient):
    """API リクエストのボディ。"""

    type: Optional[Any] = None
    content: Optional[Any] = None
    form_data: list[FormDataItem] = Field(
        default_factory=list, validation_alias=AliasChoices("form_data", "formData"),
    )


class ApiRequest(_Lenient):
    """シリアライズ可能な HTTP 呼び出し記述子。"""

    url: Optional[str] = None
    method: Optional[Any] = None
    params: list[KeyValue] = Field(default_factory=list)
    headers: list[KeyValue] = Field(default_factory=list)
    auth: Optional[ApiAuth] = None
    body: Optional[ApiBody] = None


# ---------------------------------------------------------------------------
# ブラウザストレージ・アップロード
# ---------------------------------------------------------------------------

class BrowserStorage(_Lenient):
    """cookie / localStorage / sessionStorage への注入内容。"""

    storage_type: Optional[str] = None
    value: Optional[Any] = None


class FileUpload(_Lenient):
    """アップロード対象ファイルの参照。"""

    file_upload_id: Optional[str] = None
    file_path: Optional[str] = None
    filename: Optional[str] = None


# ---------------------------------------------------------------------------
# ActionData / Action
# ---------------------------------------------------------------------------

class ActionData(_Lenient):
    """アクションのペイロード（フィールドの有無で種類を判別するタグ付き共用体）。

    value の中身は action_type ごとに異なる慣習に従う
    （value, page_index, opener_index, function_code, css_property など）。
    """

    value: Optional[Any] = None
    statement: Optional[Statement] = None
    api_request: Optional[ApiRequest] = None
    browser_storage: Optional[BrowserStorage] = None
    file_upload: Optional[FileUpload] = None


class Action(_Lenient):
    """記録された1ステップ。

    action_type / assert_type は文字列のまま保持する。
    未知の種別も検証を通し、コンパイラ側で空出力として扱う。
    """

    action_type: str = ""
    description: Optional[str] = None
    elements: list[Element] = Field(default_factory=list)
    action_datas: list[ActionData] = Field(default_factory=list)
    assert_type: Optional[str] = None


class BasicAuthentication(_Lenient):
    """スクリプト全体に適用する HTTP Basic 認証。"""

    username: str = ""
    password: str = ""


class ActionsDocument(_Lenient):
    """コンパイル入力ファイル全体。"""

    actions: list[Action] = Field(default_factory=list)
    basic_auth: Optional[BasicAuthentication] = None

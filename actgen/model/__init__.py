# アクションモデル
# エディタ層から受け取る Action 配列のスキーマと入力パーサーを提供

from .parser import ActionsParser, ActionsValidationError
from .schema import (
    Action,
    ActionData,
    ActionsDocument,
    ActionType,
    ApiRequest,
    AssertType,
    BasicAuthentication,
    BrowserStorage,
    Connection,
    DbType,
    Element,
    FileUpload,
    Selector,
    Statement,
)

__all__ = [
    "Action",
    "ActionData",
    "ActionType",
    "ActionsDocument",
    "ActionsParser",
    "ActionsValidationError",
    "ApiRequest",
    "AssertType",
    "BasicAuthentication",
    "BrowserStorage",
    "Connection",
    "DbType",
    "Element",
    "FileUpload",
    "Selector",
    "Statement",
]

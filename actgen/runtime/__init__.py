# ランタイム支援ライブラリ
# 生成スクリプトが実行時に import する。アイドル待機、セレクタ解決、強制操作、
# API 実行、DB 問い合わせ、エビデンス出力を提供する。

from .api_executor import build_api_result, execute_api_request
from .database import QueryResult, extract_field, query_database
from .evidence import export_api_to_json, export_database_to_excel, screenshot_path
from .force_action import ForceActionError, force_action
from .idle import BrowserManager, RequestTracker
from .resolver import SelectorResolutionError, candidate_locator, resolve_unique_selector
from .selectors import SelectorParseError, parse_selector
from .steps import step

__all__ = [
    "BrowserManager",
    "ForceActionError",
    "QueryResult",
    "RequestTracker",
    "SelectorParseError",
    "SelectorResolutionError",
    "build_api_result",
    "candidate_locator",
    "execute_api_request",
    "export_api_to_json",
    "export_database_to_excel",
    "extract_field",
    "force_action",
    "parse_selector",
    "query_database",
    "resolve_unique_selector",
    "screenshot_path",
    "step",
]

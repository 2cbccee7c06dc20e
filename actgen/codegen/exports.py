"""
エビデンス出力の呼び出し生成 — DB 結果の Excel 出力・API 結果の JSON 出力
"""

from __future__ import annotations

from typing import Iterable, Optional

from ..model.schema import Action
from .database import normalized_statements
from .literals import quote, sanitize_inline


def needs_excel_export(actions: Iterable[Action]) -> bool:
    """接続情報付きのステートメントがあるか。"""
    return any(
        statement.connection is not None
        for action in actions
        for statement in normalized_statements(action)
    )


def excel_export_call(
    result_var: str, step_index: int, query: Optional[str], query_index: Optional[int] = None,
) -> str:
    """export_database_to_excel の呼び出し行を返す。"""
    args = [result_var, str(step_index), quote(sanitize_inline(query))]
    if query_index is not None:
        args.append(str(query_index))
    return f"export_database_to_excel({', '.join(args)})"


def api_export_call(result_var: str, step_index: int, request_index: Optional[int] = None) -> str:
    """export_api_to_json の呼び出し行を返す。"""
    args = [result_var, str(step_index)]
    if request_index is not None:
        args.append(str(request_index))
    return f"export_api_to_json({', '.join(args)})"

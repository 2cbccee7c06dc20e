"""
データベース問い合わせ — DB-API 2.0 接続で SQL を実行し dict 行として返す

psycopg / pymysql / pymssql のいずれの接続でも同じように扱える。
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

logger = logging.getLogger(__name__)


@dataclass
class QueryResult:
    """SQL の実行結果。

    Attributes:
        rows: 列名 → 値 の dict のリスト
        columns: 列名（結果セットを返さない文では空）
        rowcount: 影響行数（ドライバが返さない場合は -1）
    """

    rows: list[dict[str, Any]] = field(default_factory=list)
    columns: list[str] = field(default_factory=list)
    rowcount: int = -1


def query_database(connection: Any, sql: str) -> QueryResult:
    """SQL を実行し、結果行を dict のリストで返す。実行後にコミットする。

    Args:
        connection: DB-API 2.0 準拠の接続
        sql: 実行する SQL

    Returns:
        QueryResult
    """
    cursor = connection.cursor()
    try:
        cursor.execute(sql)
        columns: list[str] = []
        rows: list[dict[str, Any]] = []
        if cursor.description:
            columns = [column[0] for column in cursor.description]
            for row in cursor.fetchall():
                if isinstance(row, Mapping):
                    rows.append(dict(row))
                else:
                    rows.append(dict(zip(columns, row)))
        rowcount = cursor.rowcount if isinstance(cursor.rowcount, int) else -1
        connection.commit()
    finally:
        cursor.close()

    logger.info("SQL を実行しました（%d 行）", len(rows))
    return QueryResult(rows=rows, columns=columns, rowcount=rowcount)


def extract_field(source: Any, key: str) -> Any:
    """行リストまたは JSON 本文から項目を取り出す。

    - dict: そのキーの値
    - list: 先頭要素が dict ならそのキーの値
    - それ以外: None
    """
    if source is None or key is None:
        return None
    if isinstance(source, Mapping):
        return source.get(key)
    if isinstance(source, (list, tuple)):
        if source and isinstance(source[0], Mapping):
            return source[0].get(key)
    return None

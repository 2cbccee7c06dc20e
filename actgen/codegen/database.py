"""
データベース接続コード生成 — エンジン別の接続ブートストラップと import 判定

対応エンジンと生成コードが使うドライバ:
  - postgres : psycopg
  - mysql    : pymysql
  - mssql    : pymssql

接続変数名は "{db_type}_db"。非対応エンジンや接続情報なしの場合は空のコードを返す。
"""

from __future__ import annotations

from typing import Iterable, Optional

from ..model.schema import Action, Connection, Statement
from .literals import quote
from .payload import safe_int, statements

# エンジン名 → (import 行, 既定ポート)。import 行の出力順もこの順序。
_ENGINES: dict[str, tuple[str, int]] = {
    "postgres": ("import psycopg", 5432),
    "mysql": ("import pymysql", 3306),
    "mssql": ("import pymssql", 1433),
}

FALLBACK_DB_VAR = "db"


def normalize_statement(statement: Statement) -> Statement:
    """旧形式の database_connection を connection に読み替えたコピーを返す。

    入力の Statement は変更しない。
    """
    if statement.connection is None and statement.database_connection is not None:
        return statement.model_copy(update={"connection": statement.database_connection})
    return statement


def normalized_statements(action: Action) -> list[Statement]:
    return [normalize_statement(s) for s in statements(action)]


def _db_type(connection: Optional[Connection]) -> str:
    if connection is None or connection.db_type is None:
        return ""
    return str(getattr(connection.db_type, "value", connection.db_type)).lower()


def needs_query_database(actions: Iterable[Action]) -> bool:
    """いずれかのアクションが SQL ステートメントを持つか。"""
    return any(statements(action) for action in actions)


def db_import_lines(actions: Iterable[Action]) -> list[str]:
    """使用されるエンジンのドライバ import 行を固定順で返す。"""
    used = set()
    for action in actions:
        for statement in normalized_statements(action):
            used.add(_db_type(statement.connection))
    return [line for name, (line, _port) in _ENGINES.items() if name in used]


def connect_db_code(connection: Optional[Connection]) -> tuple[list[str], str]:
    """接続ブートストラップのコード行と接続変数名を返す。

    Args:
        connection: 接続パラメータ

    Returns:
        (コード行のリスト, 接続変数名)。非対応の場合は ([], "")。
    """
    db_type = _db_type(connection)
    if connection is None or db_type not in _ENGINES:
        return [], ""

    var = f"{db_type}_db"
    port = safe_int(connection.port, _ENGINES[db_type][1])

    if db_type == "postgres":
        ssl_mode = "disable"
        if (connection.security_type or "").lower() == "ssl" and connection.ssl_mode:
            ssl_mode = connection.ssl_mode
        args = [
            ("host", quote(connection.host)),
            ("port", str(port)),
            ("dbname", quote(connection.db_name)),
            ("user", quote(connection.username)),
            ("password", quote(connection.password)),
            ("sslmode", quote(ssl_mode)),
        ]
        func = "psycopg.connect"
    elif db_type == "mysql":
        args = [
            ("host", quote(connection.host)),
            ("port", str(port)),
            ("database", quote(connection.db_name)),
            ("user", quote(connection.username)),
            ("password", quote(connection.password)),
        ]
        func = "pymysql.connect"
    else:
        args = [
            ("server", quote(connection.host)),
            ("port", str(port)),
            ("database", quote(connection.db_name)),
            ("user", quote(connection.username)),
            ("password", quote(connection.password)),
        ]
        func = "pymssql.connect"

    lines = [f"{var} = {func}("]
    lines.extend(f"    {name}={value}," for name, value in args)
    lines.append(")")
    return lines, var

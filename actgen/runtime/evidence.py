"""
エビデンス出力 — DB 結果の Excel 出力・API 結果の JSON 出力

ファイル名の規約（エビデンスビューアが参照する）:
  - databases/Step_<n>[_<i>].xlsx
  - apis/Step_<n>[_<i>].json
  - <images_dir>/Step_<n>[_<i>].png
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Mapping, Optional, Union
from urllib.parse import parse_qsl, urlsplit

from openpyxl import Workbook
from openpyxl.utils import get_column_letter

from .database import QueryResult

logger = logging.getLogger(__name__)

DATABASES_DIR = "databases"
APIS_DIR = "apis"

_FIRST_COLUMN_WIDTH = 80
_COLUMN_WIDTH = 15


def step_file_name(step_index: int, sub_index: Optional[int], suffix: str) -> str:
    """"Step_<n>[_<i>]<suffix>" 形式のファイル名を返す。"""
    name = f"Step_{step_index}"
    if sub_index is not None:
        name += f"_{sub_index}"
    return name + suffix


def screenshot_path(images_dir: Union[str, Path], step_index: int, element_index: Optional[int] = None) -> Path:
    """スクリーンショットの保存パスを返す。"""
    return Path(images_dir) / step_file_name(step_index, element_index, ".png")


# ---------------------------------------------------------------------------
# DB 結果 → Excel
# ---------------------------------------------------------------------------

def _rows_of(result: Any) -> list[dict[str, Any]]:
    if isinstance(result, QueryResult):
        return result.rows
    if isinstance(result, Mapping):
        return list(result.get("rows") or [])
    if isinstance(result, (list, tuple)):
        return list(result)
    return []


def _cell(value: Any) -> Any:
    if value is None:
        return ""
    if isinstance(value, (str, int, float, bool, datetime)):
        return value
    return str(value)


def export_database_to_excel(
    result: Any,
    step_index: int,
    query_string: str = "",
    query_index: Optional[int] = None,
    output_dir: Union[str, Path] = DATABASES_DIR,
) -> Path:
    """クエリ結果を Excel ファイルに出力する。

    A1 にクエリ、3 行目に列名、4 行目以降にデータを書き込む。

    Args:
        result: QueryResult、{"rows": [...]}、または dict 行のリスト
        step_index: ステップ番号
        query_string: 実行した SQL
        query_index: 同一ステップ内のクエリ番号
        output_dir: 出力先ディレクトリ

    Returns:
        出力したファイルのパス
    """
    rows = _rows_of(result)
    folder = Path(output_dir)
    folder.mkdir(parents=True, exist_ok=True)

    workbook = Workbook()
    sheet = workbook.active
    sheet.title = "Data"
    sheet["A1"] = f"Query: {query_string}"

    headers = list(rows[0].keys()) if rows else []
    for col, header in enumerate(headers, start=1):
        sheet.cell(row=3, column=col, value=str(header))
    for row_offset, row in enumerate(rows):
        for col, header in enumerate(headers, start=1):
            sheet.cell(row=4 + row_offset, column=col, value=_cell(row.get(header)))

    for col in range(max(len(headers), 1)):
        width = _FIRST_COLUMN_WIDTH if col == 0 else _COLUMN_WIDTH
        sheet.column_dimensions[get_column_letter(col + 1)].width = width

    path = folder / step_file_name(step_index, query_index, ".xlsx")
    workbook.save(path)
    logger.info("DB 結果を出力しました: %s", path)
    return path


# ---------------------------------------------------------------------------
# API 結果 → JSON
# ---------------------------------------------------------------------------

def export_api_to_json(
    api_result: Mapping[str, Any],
    step_index: int,
    request_index: Optional[int] = None,
    output_dir: Union[str, Path] = APIS_DIR,
) -> Path:
    """API 結果を JSON ファイルに出力する。

    Args:
        api_result: build_api_result() の戻り値
        step_index: ステップ番号
        request_index: 同一ステップ内のリクエスト番号
        output_dir: 出力先ディレクトリ

    Returns:
        出力したファイルのパス
    """
    folder = Path(output_dir)
    folder.mkdir(parents=True, exist_ok=True)

    full_url = str(api_result.get("endpoint") or "")
    parts = urlsplit(full_url)
    if parts.scheme and parts.netloc:
        base_url = f"{parts.scheme}://{parts.netloc}"
        api_path = parts.path
        query_params = dict(parse_qsl(parts.query))
    else:
        base_url, api_path, query_params = full_url, "", {}

    data = {
        "step_index": step_index,
        "request_index": request_index,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "request": {
            "method": api_result.get("method") or "GET",
            "url": full_url,
            "base_url": base_url,
            "path": api_path,
            "query_params": query_params,
            "headers": api_result.get("request_headers") or {},
        },
        "response": {
            "status": api_result.get("status") or 0,
            "status_text": api_result.get("status_text") or "",
            "headers": api_result.get("headers") or {},
            "body": {"payload": api_result.get("payload")},
            "duration_ms": api_result.get("duration_ms") or 0,
        },
    }

    path = folder / step_file_name(step_index, request_index, ".json")
    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, ensure_ascii=False, indent=2, default=str)
    logger.info("API 結果を出力しました: %s", path)
    return path

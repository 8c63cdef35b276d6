"""
リポジトリ共通ユーティリティ

SQLAlchemy の text() クエリ結果を dict に変換し、
JSONB カラムへのパラメータを整形する。
"""

import json
from typing import Any, Dict, Iterable, List, Optional


def row_to_dict(row) -> Optional[Dict[str, Any]]:
    """Row を dict に変換（None はそのまま返す）"""
    if row is None:
        return None
    return dict(row._mapping)


def rows_to_dicts(rows: Iterable) -> List[Dict[str, Any]]:
    """複数 Row を dict のリストに変換"""
    return [dict(row._mapping) for row in rows]


def json_param(value: Any) -> Optional[str]:
    """JSONB カラムに渡すパラメータ（CAST(:x AS jsonb) と組み合わせて使う）"""
    if value is None:
        return None
    return json.dumps(value, ensure_ascii=False, default=str)


def decode_json(value: Any, default: Any = None) -> Any:
    """
    JSON カラム値をデコード

    旧データで JSON 文字列として保存されている値も扱う。
    """
    if value is None:
        return default
    if isinstance(value, (str, bytes)):
        try:
            return json.loads(value)
        except ValueError:
            return default
    return value

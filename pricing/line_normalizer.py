"""追加行の正規化（ユーザー入力のサニタイズ）"""
import math
from collections.abc import Mapping
from datetime import date, datetime
from typing import Any, Iterable, Union

from models.budget_data import AdditionalLine, ConceptType

RawLine = Union[AdditionalLine, Mapping]


def normalize_line(line: RawLine) -> AdditionalLine:
    """追加行を正規化する（例外は投げない）

    Args:
        line: AdditionalLine またはフォーム由来の dict

    Returns:
        AdditionalLine: 種別確定・金額0以上・概念trim済みの行
    """
    concept_type = resolve_concept_type(_field(line, "concept_type"))
    amount = 0.0 if concept_type == ConceptType.NOTE else resolve_amount(_field(line, "amount"))
    concept = _field(line, "concept")

    # 有効期限は割引のみ保持
    valid_until = None
    if concept_type == ConceptType.DISCOUNT:
        valid_until = _resolve_date(_field(line, "valid_until"))

    return AdditionalLine(
        id=_resolve_id(_field(line, "id")),
        concept=str(concept).strip() if concept is not None else "",
        amount=amount,
        concept_type=concept_type,
        valid_until=valid_until,
    )


def normalize_lines(lines: Iterable[RawLine]) -> list[AdditionalLine]:
    """行リストを順序を保って正規化"""
    return [normalize_line(line) for line in (lines or [])]


def resolve_concept_type(value: Any) -> ConceptType:
    """未指定・未知の種別は adjustment"""
    try:
        return ConceptType(value)
    except (TypeError, ValueError):
        return ConceptType.ADJUSTMENT


def resolve_amount(value: Any) -> float:
    """数値化して絶対値を返す（非有限・解析不能は0）"""
    parsed = parse_number(value)
    return abs(parsed) if parsed is not None else 0.0


def parse_number(value: Any):
    """テキスト入力を float に変換（失敗・非有限は None）

    小数点にカンマを使う入力（"12,5"）も受け付ける。
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        text = value.strip()
        if "," in text and "." not in text:
            text = text.replace(",", ".")
        value = text
    try:
        parsed = float(value)
    except (TypeError, ValueError):
        return None
    return parsed if math.isfinite(parsed) else None


def _field(line: RawLine, name: str):
    if isinstance(line, Mapping):
        return line.get(name)
    return getattr(line, name, None)


def _resolve_id(value: Any):
    # 行IDは int / str のみ
    if isinstance(value, (int, str)) and not isinstance(value, bool):
        return value
    return None


def _resolve_date(value: Any):
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str) and value.strip():
        try:
            return date.fromisoformat(value.strip()[:10])
        except ValueError:
            return None
    return None

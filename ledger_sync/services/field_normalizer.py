import math
import re
from typing import Any, Dict, Mapping, Optional, Sequence

from ledger_sync.schemas.order_schemas import OrderRecord
from ledger_sync.utils.field_aliases import NUMERIC_FIELD_ALIASES, TEXT_FIELD_ALIASES

_NUMBER_NOISE = re.compile(r"[₹$,\s]")


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, float) and math.isnan(value):
        return True
    return isinstance(value, str) and not value.strip()


def parse_number(value: Any) -> Optional[float]:
    """Parse a cell into a finite float, or None when it is not a number."""
    if isinstance(value, bool) or _is_blank(value):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    else:
        try:
            number = float(_NUMBER_NOISE.sub("", str(value)))
        except ValueError:
            return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def resolve_text(row: Mapping[str, Any], aliases: Sequence[str]) -> str:
    for alias in aliases:
        value = row.get(alias)
        if not _is_blank(value):
            return str(value).strip()
    return ""


def resolve_number(row: Mapping[str, Any], aliases: Sequence[str]) -> float:
    for alias in aliases:
        number = parse_number(row.get(alias))
        if number is not None:
            return number
    return 0.0


def has_value(row: Mapping[str, Any], aliases: Sequence[str]) -> bool:
    return any(not _is_blank(row.get(alias)) for alias in aliases)


def _json_safe(value: Any) -> Any:
    if value is None or isinstance(value, (str, bool, int)):
        return value
    if isinstance(value, float):
        return None if math.isnan(value) or math.isinf(value) else value
    return str(value)


def normalize(raw_row: Mapping[str, Any]) -> OrderRecord:
    """Map a source row onto the canonical order shape.

    Never raises for missing or malformed cells: text falls back to "" and
    numbers to 0. The row itself is kept under ``raw``.
    """
    values: Dict[str, Any] = {
        field: resolve_text(raw_row, aliases)
        for field, aliases in TEXT_FIELD_ALIASES.items()
    }
    values.update(
        {
            field: resolve_number(raw_row, aliases)
            for field, aliases in NUMERIC_FIELD_ALIASES.items()
        }
    )
    values["raw"] = {str(key): _json_safe(value) for key, value in raw_row.items()}
    return OrderRecord(**values)

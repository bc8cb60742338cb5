# po_ingest/services/field_normalizer.py
"""
字段归一：把 OCR / 外部系统传来的松散值转成入库形态。

约定：
- 所有函数都不抛异常，解析失败一律降级（None / 0 / 默认单位），并记 warning；
- 金额、数量统一用 Decimal，避免浮点误差进入 NUMERIC 列。
"""

from __future__ import annotations

import logging
import re
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

from dateutil import parser as date_parser
from dateutil.parser import ParserError

log = logging.getLogger("poingest.normalize")

DEFAULT_UNIT = "EACH"

_ISO_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_NUM_PREFIX_RE = re.compile(r"^[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?")
_CURRENCY_RE = re.compile(r"[$€£¥]")

# 通用日期解析的两个补位 default（年、月、日均不同）
_DEFAULT_A = datetime(2000, 1, 1)
_DEFAULT_B = datetime(2004, 2, 2)


def _today() -> date:
    return date.today()


def unwrap_value(v: Any) -> Any:
    """
    去掉 {"value": ...} 包装；未包装的值原样返回。
    只在边界解析层使用，内部类型一律是裸值。
    """
    if isinstance(v, dict):
        return v.get("value")
    return v


def is_blank(v: Any) -> bool:
    return v is None or (isinstance(v, str) and not v.strip())


# ---------------------------------------------------------------------------
# 日期
# ---------------------------------------------------------------------------


def normalize_date(raw: Any, *, field: str = "date") -> Optional[date]:
    """
    支持：
    - 空值 → None
    - "ASAP"（不区分大小写）→ 今天
    - 含 "/"：按 月/日/年 解析（不区分两位/四位年份）
    - 恰好 YYYY-MM-DD → 原值
    - 其它：通用解析（月在前，年和月必须出现）；失败 → None
    """
    if isinstance(raw, datetime):
        return raw.date()
    if isinstance(raw, date):
        return raw
    if is_blank(raw):
        return None
    if not isinstance(raw, str):
        log.warning("Could not parse %s %r: unsupported type %s", field, raw, type(raw).__name__)
        return None

    s = raw.strip()

    if s.upper() == "ASAP":
        return _today()

    if "/" in s:
        parts = [p.strip() for p in s.split("/")]
        if len(parts) == 3:
            month, day, year = parts
            try:
                return date(int(year), int(month), int(day))
            except ValueError as e:
                log.warning("Could not parse %s %r as MM/DD/YYYY: %s", field, raw, e)
                return None

    if _ISO_DATE_RE.match(s):
        try:
            return date.fromisoformat(s)
        except ValueError as e:
            log.warning("Could not parse %s %r: %s", field, raw, e)
            return None

    try:
        return _parse_generic(s)
    except (ParserError, ValueError, OverflowError) as e:
        log.warning("Could not parse %s %r: %s", field, raw, e)
        return None


def _parse_generic(s: str) -> date:
    """
    通用解析，但要求年和月都写在字符串里。

    dateutil 会用 default 补齐缺失部分（"30" → 本月 30 日，"12.50" → 本月 12 日），
    OCR 噪声因此会变成看似合理的日期。这里用两个不同的 default 各解析一次，
    年或月不一致说明是补出来的，按解析失败处理。
    """
    first = date_parser.parse(s, dayfirst=False, default=_DEFAULT_A)
    second = date_parser.parse(s, dayfirst=False, default=_DEFAULT_B)
    if (first.year, first.month) != (second.year, second.month):
        raise ValueError("year or month missing")
    return first.date()


# ---------------------------------------------------------------------------
# 数值
# ---------------------------------------------------------------------------


def _to_decimal(raw: Any) -> Optional[Decimal]:
    """
    宽松浮点解析：取字符串开头的数字部分（"12kg" → 12），与常见 parseFloat 行为一致。
    """
    if raw is None or isinstance(raw, bool):
        return None
    if isinstance(raw, Decimal):
        d = raw
    elif isinstance(raw, (int, float)):
        d = Decimal(str(raw))
    elif isinstance(raw, str):
        m = _NUM_PREFIX_RE.match(raw.strip())
        if not m:
            return None
        try:
            d = Decimal(m.group(0))
        except InvalidOperation:
            return None
    else:
        return None

    if not d.is_finite():
        return None
    return d


def _non_negative(d: Optional[Decimal], *, field: str, raw: Any) -> Decimal:
    if d is None:
        if not is_blank(raw):
            log.warning("Could not parse %s %r, defaulting to 0", field, raw)
        return Decimal("0")
    if d < 0:
        log.warning("Negative %s %r, defaulting to 0", field, raw)
        return Decimal("0")
    return d


def normalize_quantity(raw: Any) -> Decimal:
    return _non_negative(_to_decimal(raw), field="quantity", raw=raw)


def strip_currency(raw: Any) -> Any:
    """去掉货币符号与千分位逗号："$1,250.00" → "1250.00"。非字符串原样返回。"""
    if isinstance(raw, str):
        return _CURRENCY_RE.sub("", raw).replace(",", "").strip()
    return raw


def normalize_unit_price(raw: Any, *, field: str = "unit_price") -> Decimal:
    return _non_negative(_to_decimal(strip_currency(raw)), field=field, raw=raw)


def normalize_optional_price(raw: Any, *, field: str = "foreign_unit_price") -> Optional[Decimal]:
    """可选金额：缺失 → None；有值则与 unit_price 同规则。"""
    if is_blank(raw):
        return None
    return normalize_unit_price(raw, field=field)


def normalize_weight(raw: Any) -> Optional[Decimal]:
    """重量：缺失 / 非法 / 0 → None（0 视为未填写）。"""
    d = _to_decimal(strip_currency(raw))
    if d is None or d == 0:
        return None
    return d


def normalize_rate(raw: Any, default: Decimal = Decimal("1.0")) -> Decimal:
    """汇率：缺失或非法 → 1.0。"""
    d = _to_decimal(raw)
    if d is None or d <= 0:
        if not is_blank(raw):
            log.warning("Could not parse currency_conversion_rate %r, defaulting to %s", raw, default)
        return default
    return d


# ---------------------------------------------------------------------------
# 单位 / 文本
# ---------------------------------------------------------------------------


def normalize_unit(raw: Any, fallback_size: Any = None) -> str:
    """单位：非空字符串原样；否则退到 size；再否则 "EACH"。"""
    if isinstance(raw, str) and raw.strip():
        return raw
    if not is_blank(fallback_size):
        return str(fallback_size)
    return DEFAULT_UNIT


def normalize_text(raw: Any) -> Optional[str]:
    """可选文本：空 → None；数字等转成字符串。"""
    if is_blank(raw):
        return None
    if isinstance(raw, (dict, list)):
        return None
    return str(raw)

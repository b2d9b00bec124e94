"""
Attribute value coercion for rule comparisons.

Profile attributes arrive in whatever shape the host stored them: native
lists, strings holding a JSON list, comma separated strings, or plain
scalars. ``classify`` settles the shape once per comparison so the engine
can pick the matching strategy for ``contains`` rules.
"""

import html
import json
import math
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, List, Mapping, Optional, Union


class ValueShape(str, Enum):
    """Comparison-ready shape of an attribute value."""
    SCALAR = "scalar"
    LIST = "list"
    JSON_LIST = "json_list"
    DELIMITED = "delimited"


@dataclass(frozen=True)
class CoercedValue:
    """A classified attribute value."""
    shape: ValueShape
    value: Union[str, List[Any], Any]

    @property
    def is_list(self) -> bool:
        return self.shape in (ValueShape.LIST, ValueShape.JSON_LIST)


def classify(raw: Any) -> CoercedValue:
    """Classify a raw attribute value. Never raises."""
    if isinstance(raw, (list, tuple)):
        return CoercedValue(ValueShape.LIST, list(raw))

    if isinstance(raw, str):
        try:
            parsed = json.loads(raw)
        except ValueError:
            parsed = None

        if isinstance(parsed, list):
            return CoercedValue(ValueShape.JSON_LIST, parsed)

        return CoercedValue(ValueShape.DELIMITED, [segment.strip() for segment in raw.split(",")])

    return CoercedValue(ValueShape.SCALAR, raw)


def to_string_form(value: Any) -> str:
    """String form used for equality and substring comparisons."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        if math.isfinite(value) and value.is_integer():
            return str(int(value))
        return repr(value)
    if isinstance(value, str):
        return value
    if isinstance(value, (list, tuple)):
        return ",".join("" if item is None else to_string_form(item) for item in value)
    if isinstance(value, Mapping):
        return json.dumps(value, sort_keys=True, default=str)
    return str(value)


_DECIMAL = re.compile(r"[+-]?(?:[0-9]+\.?[0-9]*|\.[0-9]+)(?:[eE][+-]?[0-9]+)?")
_INFINITY = re.compile(r"[+-]?Infinity")
_RADIX_PREFIXES = {"0x": 16, "0o": 8, "0b": 2}


def to_number(text: str) -> Optional[float]:
    """
    Numeric value of a rule value, or None when it is not a number.

    Accepts decimal and exponent notation, ``Infinity`` and ``0x``/``0o``/``0b``
    integers. Digit separators and spellings like ``inf`` or ``nan`` are not
    numbers.
    """
    stripped = text.strip()
    if not stripped:
        return 0.0

    if _DECIMAL.fullmatch(stripped) or _INFINITY.fullmatch(stripped):
        return float(stripped)

    radix = _RADIX_PREFIXES.get(stripped[:2].lower())
    digits = stripped[2:]
    if radix and digits.isascii() and digits.isalnum():
        try:
            return float(int(digits, radix))
        except ValueError:
            return None
        except OverflowError:
            return math.inf

    return None


def is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def decode_html_entities(text: str) -> str:
    """Decode entities a rich text field may have stored (``&amp;`` etc.)."""
    return html.unescape(text)

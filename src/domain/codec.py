"""Type-aware value encoding and decoding.

Stored values are always strings. Decoding is a presentation convenience:
a stored string that does not parse for its type is returned unchanged and
flagged as a raw fallback instead of raising.
"""

import json
import math
from dataclasses import dataclass
from typing import Any

from src.domain.config import ConfigType


@dataclass(frozen=True)
class DecodedValue:
    """Outcome of decoding a stored string."""

    value: Any
    raw_fallback: bool = False


def encode_value(value: Any, type_: ConfigType | str) -> str:  # noqa: ANN401
    """
    Encode a logical value into its stored string form.

    Args:
        value: Logical value (str, int, float, bool, dict, list, None)
        type_: Config type

    Returns:
        Stored string
    """
    if ConfigType(type_) is ConfigType.JSON and (
        value is None or isinstance(value, (dict, list))
    ):
        return json.dumps(value, indent=2, ensure_ascii=False)
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def decode_outcome(stored: str, type_: ConfigType | str) -> DecodedValue:
    """Decode a stored string, reporting whether it fell back to the raw string."""
    config_type = ConfigType(type_)

    if config_type is ConfigType.NUMBER:
        number = _parse_number(stored)
        if number is None:
            return DecodedValue(stored, raw_fallback=True)
        return DecodedValue(number)

    if config_type is ConfigType.BOOLEAN:
        return DecodedValue(stored == "true")

    if config_type is ConfigType.JSON:
        try:
            return DecodedValue(_loads_strict(stored))
        except (ValueError, TypeError):
            return DecodedValue(stored, raw_fallback=True)

    return DecodedValue(stored)


def decode_value(stored: str, type_: ConfigType | str) -> Any:  # noqa: ANN401
    """Decode a stored string into its logical value. Never raises on bad data."""
    return decode_outcome(stored, type_).value


def value_to_text(value: Any) -> str:  # noqa: ANN401
    """String form of a decoded value used for substring search."""
    if isinstance(value, str):
        return value
    return json.dumps(value, ensure_ascii=False, separators=(",", ":"))


def is_valid_json(raw: str) -> bool:
    """Check that a string parses as JSON."""
    try:
        _loads_strict(raw)
    except (ValueError, TypeError):
        return False
    return True


def _parse_number(raw: str) -> int | float | None:
    """Parse int or finite float; None if not a number."""
    text = raw.strip()
    # int()/float() допускают "1_000" и не-ASCII цифры, в хранимых значениях это не число
    if not text or not text.isascii() or "_" in text:
        return None
    try:
        return int(text)
    except ValueError:
        pass
    try:
        number = float(text)
    except ValueError:
        return None
    return number if math.isfinite(number) else None


def _reject_constant(name: str) -> Any:  # noqa: ANN401
    raise ValueError(f"Non-standard JSON constant: {name}")


def _loads_strict(raw: str) -> Any:  # noqa: ANN401
    """json.loads without the NaN/Infinity extension."""
    return json.loads(raw, parse_constant=_reject_constant)

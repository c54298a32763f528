"""Weight and length normalization for shipping calculations."""

from __future__ import annotations

import logging
from decimal import ROUND_HALF_UP, Decimal
from typing import Final

_LOGGER = logging.getLogger(__name__)

_ZERO: Final = Decimal("0")
_GRAMS: Final = Decimal("0.001")
_MILLIGRAMS: Final = Decimal("0.000001")
_CENTIMETRES: Final = Decimal("0.01")

# unit -> (factor to the canonical unit, quantum applied after scaling or None)
_WEIGHT_TO_KG: Final[dict[str, tuple[Decimal, Decimal | None]]] = {
    "kg": (Decimal("1"), None),
    "kgs": (Decimal("1"), None),
    "g": (Decimal("0.001"), _GRAMS),
    "gm": (Decimal("0.001"), _GRAMS),
    "mg": (Decimal("0.000001"), _MILLIGRAMS),
    "lb": (Decimal("0.453592"), _GRAMS),
    "lbs": (Decimal("0.453592"), _GRAMS),
    "oz": (Decimal("0.0283495"), _GRAMS),
}

_LENGTH_TO_CM: Final[dict[str, tuple[Decimal, Decimal | None]]] = {
    "cm": (Decimal("1"), None),
    "mm": (Decimal("0.1"), _CENTIMETRES),
    "m": (Decimal("100"), None),
    "in": (Decimal("2.54"), _CENTIMETRES),
    "inch": (Decimal("2.54"), _CENTIMETRES),
    "inches": (Decimal("2.54"), _CENTIMETRES),
}


def _as_decimal(value: Decimal | int | float | str) -> Decimal:
    if isinstance(value, Decimal):
        return value
    # str() keeps floats like 0.1 from dragging binary noise into the result.
    return Decimal(str(value))


def _convert(
    value: Decimal | int | float | str | None,
    unit: str | None,
    table: dict[str, tuple[Decimal, Decimal | None]],
    quantity: str,
) -> Decimal:
    if value is None or unit is None:
        return _ZERO
    amount = _as_decimal(value)
    key = unit.strip().lower()
    conversion = table.get(key)
    if conversion is None:
        _LOGGER.warning("Unknown %s unit %r; using value %s as-is", quantity, unit, amount)
        return amount
    factor, quantum = conversion
    scaled = amount * factor
    if quantum is not None:
        scaled = scaled.quantize(quantum, rounding=ROUND_HALF_UP)
    return scaled


def weight_to_kg(value: Decimal | int | float | str | None, unit: str | None) -> Decimal:
    """Convert a weight to kilograms.

    Missing value or unit yields zero. Unrecognised units are logged and the
    value is passed through unchanged.
    """

    return _convert(value, unit, _WEIGHT_TO_KG, "weight")


def length_to_cm(value: Decimal | int | float | str | None, unit: str | None) -> Decimal:
    """Convert a length to centimetres with the same lenient rules as :func:`weight_to_kg`."""

    return _convert(value, unit, _LENGTH_TO_CM, "length")

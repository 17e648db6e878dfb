from __future__ import annotations

import math
from typing import Any

__all__ = [
    "coerce_number",
    "coerce_score",
    "parse_names",
    "ValidationError",
]


class ValidationError(ValueError):
    """Raised when user-supplied landmark or config data cannot be normalised safely."""


def coerce_number(
    value: Any,
    *,
    field: str = "value",
    minimum: float | None = None,
    maximum: float | None = None,
) -> float:
    """
    Convert arbitrary input into a finite float with guardrails.

    Booleans are rejected even though they are ints in Python; a landmark
    coordinate of `True` is always a payload bug. The `minimum` and `maximum`
    bounds are inclusive.
    """
    if value is None:
        raise ValidationError(f"{field} is required.")

    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a number; received {value!r}.")

    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{field} is required.")
        try:
            number = float(stripped)
        except ValueError as exc:
            raise ValidationError(f"{field} must be a number; received {value!r}.") from exc
    else:
        try:
            number = float(value)
        except (TypeError, ValueError) as exc:
            raise ValidationError(f"{field} must be a number; received {value!r}.") from exc

    if not math.isfinite(number):
        raise ValidationError(f"{field} must be finite; received {value!r}.")

    if minimum is not None and number < minimum:
        raise ValidationError(f"{field} must be >= {minimum}; received {number}.")

    if maximum is not None and number > maximum:
        raise ValidationError(f"{field} must be <= {maximum}; received {number}.")

    return number


def coerce_score(value: Any, *, field: str = "score", minimum: int = 1, maximum: int | None = None) -> int:
    """Coerce an ordinal joint/table score into a whole number within bounds."""
    number = coerce_number(value, field=field, minimum=minimum, maximum=maximum)
    if number != round(number):
        raise ValidationError(f"{field} must be an integer; received {value!r}.")
    return int(number)


def parse_names(payload: Any, *, field: str = "names") -> list[str]:
    """Normalise comma-separated or sequence names (e.g. risk tiers), lower-cased."""
    if payload is None:
        return []

    if isinstance(payload, str):
        tokens = [token.strip() for token in payload.split(",")]
    elif isinstance(payload, (list, tuple, set)):
        tokens = [str(token).strip() for token in payload]
    else:
        raise ValidationError(
            f"{field} must be a comma-separated list or sequence; received {payload!r}."
        )

    return [token.lower() for token in tokens if token]

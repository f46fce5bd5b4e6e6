"""Request body validation helpers with consistent 400 semantics."""
from __future__ import annotations
from typing import Any, Optional
from flask import abort


def validate_int_range(value: Any, low: int, high: int, field_name: str, default: Optional[int] = None) -> int:
    """Coerce value to an int within [low, high].

    Returns the int (to enable inline usage) or aborts with 400. Booleans are rejected.
    """
    if value is None and default is not None:
        return default
    if isinstance(value, bool):
        abort(400, description=f"{field_name} must be an integer between {low} and {high}")
    try:
        number = int(value)
    except (TypeError, ValueError):
        abort(400, description=f"{field_name} must be an integer between {low} and {high}")
    if number != value and not isinstance(value, str):
        abort(400, description=f"{field_name} must be an integer between {low} and {high}")
    if number < low or number > high:
        abort(400, description=f"{field_name} must be between {low} and {high}")
    return number


def require_json_field(payload: Any, field_name: str) -> Any:
    if not isinstance(payload, dict) or payload.get(field_name) in (None, ''):
        abort(400, description=f"{field_name} required")
    return payload[field_name]

__all__ = ['validate_int_range', 'require_json_field']

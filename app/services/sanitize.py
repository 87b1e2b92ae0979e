from typing import Any


def sanitize(value: Any) -> Any:
    """Recursively drop None-valued keys from dicts before a record is written.

    Lists are mapped element by element and keep their length, so positional
    data such as question options stays aligned with its indices.
    """
    if isinstance(value, dict):
        return {k: sanitize(v) for k, v in value.items() if v is not None}
    if isinstance(value, (list, tuple)):
        return [sanitize(v) for v in value]
    return value

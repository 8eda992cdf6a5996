from typing import Any, Mapping

from ..errors import ConfigurationError
from .models import Override, OverrideKind


def _same_kind(base: Any, result: Any) -> bool:
    if base is None:
        return True
    if isinstance(base, Mapping):
        return isinstance(result, Mapping)
    if isinstance(base, (bytes, bytearray, str)):
        return result is None or isinstance(result, (bytes, bytearray, str))
    return True


def compose(override: Any, base_value: Any, context: Any = None, is_replace: bool = False, field: str = "") -> Any:
    """Apply an override to a value.

    `override` is an Override variant or a raw config value: None keeps the
    value, a function transforms it, a mapping is merged over it, and with
    `is_replace` any non-function value replaces it outright.
    """
    if not isinstance(override, Override):
        override = Override.from_value(override, field, is_replace)
    name = override.field or field or "override"

    if override.kind is OverrideKind.KEEP:
        return base_value

    if override.kind is OverrideKind.TRANSFORM:
        result = override.value(base_value, context)
        if not _same_kind(base_value, result):
            raise ConfigurationError(
                f"{name} should return {type(base_value).__name__}. It has returned {type(result).__name__}.",
                field=name,
            )
        return result

    if override.kind is OverrideKind.REPLACE:
        return override.value

    # MERGE
    if base_value is None:
        return dict(override.value)
    if not isinstance(base_value, Mapping):
        raise ConfigurationError(
            f"{name} can only be merged into a mapping. The value is {type(base_value).__name__}.",
            field=name,
        )
    return {**base_value, **override.value}

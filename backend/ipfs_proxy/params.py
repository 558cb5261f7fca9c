"""
Parameter Translator

Maps client-facing image optimization options (width, format, ...) onto the
dedicated gateway's img-* query dialect.

Each option is validated on its own; an invalid value is dropped and its key
reported as rejected, it never fails the request by itself. Translation is
pure and idempotent: translating the output again yields the same mapping.
"""

import math
import re
from typing import Callable, Dict, Mapping, Set, Tuple

DIALECT_PREFIX = "img-"

# ============================================
# Validators
# ============================================


def _as_number(value: str):
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def _positive(value: str) -> bool:
    number = _as_number(value)
    return number is not None and number > 0


def _in_range(low: float, high: float) -> Callable[[str], bool]:
    def check(value: str) -> bool:
        number = _as_number(value)
        return number is not None and low <= number <= high
    return check


def _one_of(*allowed: str) -> Callable[[str], bool]:
    choices = frozenset(allowed)

    def check(value: str) -> bool:
        return value in choices
    return check


_GRAVITY_SIDES = frozenset({"auto", "left", "right", "top", "bottom", "center"})
_GRAVITY_COORDS = re.compile(r"(0(\.\d+)?|1(\.0+)?)x(0(\.\d+)?|1(\.0+)?)")


def _gravity(value: str) -> bool:
    return value in _GRAVITY_SIDES or bool(_GRAVITY_COORDS.fullmatch(value))


def _boolean(value: str) -> bool:
    return value in ("true", "false")


# ============================================
# Lookup tables
# ============================================

# client key -> dialect key
OPTION_TO_DIALECT: Dict[str, str] = {
    "width": "img-width",
    "height": "img-height",
    "dpr": "img-dpr",
    "fit": "img-fit",
    "gravity": "img-gravity",
    "quality": "img-quality",
    "format": "img-format",
    "animation": "img-anim",
    "sharpen": "img-sharpen",
    "onError": "img-onerror",
    "metadata": "img-metadata",
}

DIALECT_TO_OPTION: Dict[str, str] = {v: k for k, v in OPTION_TO_DIALECT.items()}

FIT_VALUES = ("scale-down", "contain", "cover", "crop", "pad")
FORMAT_VALUES = ("auto", "webp", "avif", "jpeg", "png")
METADATA_VALUES = ("keep", "copyright", "none")
ON_ERROR_VALUES = ("redirect",)

VALIDATORS: Dict[str, Callable[[str], bool]] = {
    "width": _positive,
    "height": _positive,
    "dpr": _positive,
    "quality": _in_range(1, 100),
    "sharpen": _in_range(0, 10),
    "fit": _one_of(*FIT_VALUES),
    "format": _one_of(*FORMAT_VALUES),
    "metadata": _one_of(*METADATA_VALUES),
    "onError": _one_of(*ON_ERROR_VALUES),
    "gravity": _gravity,
    "animation": _boolean,
}


def is_dialect_key(key: str) -> bool:
    return key.startswith(DIALECT_PREFIX)


def is_optimization_key(key: str) -> bool:
    """True for a recognized option name, in client or dialect form."""
    return key in OPTION_TO_DIALECT or is_dialect_key(key)


def _resolve(key: str) -> Tuple[str, str]:
    """Return (dialect_key, option_name); option_name is '' when unvalidated."""
    if key in OPTION_TO_DIALECT:
        return OPTION_TO_DIALECT[key], key
    return key, DIALECT_TO_OPTION.get(key, "")


def translate(query: Mapping[str, str]) -> Tuple[Dict[str, str], Set[str]]:
    """
    Translate client options into dialect parameters.

    Args:
        query: Option name -> raw value; route-level keys (hash, gateway)
            must already be removed

    Returns:
        (dialect_params, rejected_keys). Unknown keys and keys whose value
        failed validation end up in rejected_keys. A client key wins over
        the same option given in dialect form.
    """
    params: Dict[str, str] = {}
    from_client: Set[str] = set()
    rejected: Set[str] = set()

    for key, value in query.items():
        if not is_optimization_key(key):
            rejected.add(key)
            continue

        dialect_key, option = _resolve(key)
        value = "" if value is None else str(value)
        if option and not VALIDATORS[option](value):
            rejected.add(key)
            continue

        if dialect_key in from_client and key not in OPTION_TO_DIALECT:
            continue
        params[dialect_key] = value
        if key in OPTION_TO_DIALECT:
            from_client.add(dialect_key)

    return params, rejected

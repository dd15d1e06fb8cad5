"""Environment-variable helpers for runtime settings.

These helpers centralize parsing/normalization of the ``VSWF_*`` environment
variables read by :meth:`vswfpy.config.Settings.from_env`.

Notes
-----
These are intentionally forgiving: invalid inputs fall back to defaults rather
than raising, so a stray variable never breaks an import.
"""

from __future__ import annotations

import os


def parse_float_env(name: str, *, default: float, minimum: float = 0.0) -> float:
    """Parse a float environment variable with a lower bound.

    Parameters
    ----------
    name:
        Environment variable name.
    default:
        Default value used when the variable is unset or invalid.
    minimum:
        Values below this bound are treated as invalid.

    Returns
    -------
    float
        Parsed value, or ``default``.
    """

    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError:
        return default
    if value < minimum:
        return default
    return value


def parse_bool_env(name: str, *, default: bool) -> bool:
    """Parse a boolean environment variable.

    Parameters
    ----------
    name:
        Environment variable name.
    default:
        Default value used when the variable is unset or invalid.

    Returns
    -------
    bool
        Parsed boolean value.
    """

    raw = os.environ.get(name, "").strip().lower()
    if raw in {"1", "true", "yes", "on"}:
        return True
    if raw in {"0", "false", "no", "off"}:
        return False
    return default


def normalize_severity(value: str, *, default: str = "warn") -> str:
    """Normalize an advisory severity selector.

    Returns
    -------
    str
        One of ``{'ignore', 'warn', 'error'}``.
    """

    value = value.strip().lower()
    if value in {"ignore", "warn", "error"}:
        return value
    return default

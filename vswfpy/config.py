"""Runtime settings.

Numerical defaults shared by resize, translation and field evaluation live in
one validated :class:`Settings` model. Functions accept per-call keyword
overrides and fall back to the process-wide instance returned by
:func:`get_settings`.
"""

from __future__ import annotations

import logging
import os

import numpy as np
from pydantic import BaseModel, ConfigDict, Field

from vswfpy.env import normalize_severity, parse_bool_env, parse_float_env
from vswfpy.errors import Severity

log = logging.getLogger(__name__)


class Settings(BaseModel):
    """Numerical defaults.

    Attributes
    ----------
    power_loss_tolerance:
        Relative power loss tolerated when truncating a coefficient set.
    on_power_loss:
        Severity of the advisory emitted when truncation exceeds the tolerance.
    on_translation_advisory:
        Severity of the advisory emitted when the cumulative axial displacement
        leaves the trusted region of the truncation order.
    zero_radius:
        Scaled radius ``kr`` substituted for points at the origin.
    default_wavenumber:
        Wavenumber in the medium used when a set is created without one.
    validate_rotations:
        Whether rotation matrices are checked for orthonormality.
    """

    model_config = ConfigDict(frozen=True, use_enum_values=False)

    power_loss_tolerance: float = Field(default=1e-6, ge=0.0)
    on_power_loss: Severity = Field(default=Severity.WARN)
    on_translation_advisory: Severity = Field(default=Severity.WARN)
    zero_radius: float = Field(default=1e-15, gt=0.0)
    default_wavenumber: float = Field(default=2 * np.pi, gt=0.0)
    validate_rotations: bool = Field(default=True)

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from ``VSWF_*`` environment variables."""

        defaults = cls()
        settings = cls(
            power_loss_tolerance=parse_float_env(
                "VSWF_POWER_LOSS_TOLERANCE", default=defaults.power_loss_tolerance
            ),
            on_power_loss=normalize_severity(
                os.environ.get("VSWF_ON_POWER_LOSS", ""),
                default=defaults.on_power_loss.value,
            ),
            on_translation_advisory=normalize_severity(
                os.environ.get("VSWF_ON_TRANSLATION_ADVISORY", ""),
                default=defaults.on_translation_advisory.value,
            ),
            zero_radius=parse_float_env(
                "VSWF_ZERO_RADIUS", default=defaults.zero_radius, minimum=1e-300
            ),
            validate_rotations=parse_bool_env(
                "VSWF_VALIDATE_ROTATIONS", default=defaults.validate_rotations
            ),
        )
        log.debug("Settings from environment: %s", settings)
        return settings


_settings: Settings | None = None


def get_settings() -> Settings:
    """Return the process-wide settings, reading the environment on first use."""

    global _settings
    if _settings is None:
        _settings = Settings.from_env()
    return _settings


def set_settings(settings: Settings | None = None, **overrides) -> Settings:
    """Replace the process-wide settings.

    Parameters
    ----------
    settings:
        New settings. ``None`` starts from the current settings.
    **overrides:
        Individual fields to change.

    Returns
    -------
    Settings
        The previous settings, so callers can restore them.
    """

    global _settings
    previous = get_settings()
    base = settings if settings is not None else previous
    _settings = Settings(**{**base.model_dump(), **overrides}) if overrides else base
    return previous

"""Spherical Bessel and Hankel functions for the radial parts of VSWFs."""

from __future__ import annotations

import numpy as np
from scipy.special import spherical_jn, spherical_yn

from vswfpy.basis import Basis


def spherical_bessel_kind(n, x: np.ndarray, kind: str) -> np.ndarray:
    """Spherical Bessel ``j_n`` or Hankel ``h1_n`` / ``h2_n``.

    Args:
        n (int | np.ndarray): Order(s), broadcast against ``x``.
        x (np.ndarray): Real argument.
        kind (str): One of ``"j"``, ``"h1"``, ``"h2"``.

    Returns:
        (np.ndarray): Function values.
    """
    match kind:
        case "j":
            return spherical_jn(n, x).astype(complex)
        case "h1":
            return spherical_jn(n, x) + 1j * spherical_yn(n, x)
        case "h2":
            return spherical_jn(n, x) - 1j * spherical_yn(n, x)
        case _:
            raise ValueError(f"Unknown spherical Bessel kind {kind!r}")


def radial_kind(basis: Basis) -> str:
    """Kernel family used for ``basis``."""
    match Basis(basis):
        case Basis.REGULAR:
            return "j"
        case Basis.OUTGOING:
            return "h1"
        case Basis.INCOMING:
            return "h2"


def spherical_bessel(n: int, x: np.ndarray, basis: Basis):
    """Radial function of degree ``n`` and its Riccati-type derivative.

    Parameters
    ----------
    n:
        Degree, ``n >= 1``.
    x:
        Scaled radius ``kr``.
    basis:
        Selects ``j_n``, ``h1_n / 2`` or ``h2_n / 2``.

    Returns
    -------
    z_n, dz_n:
        ``z_n(x)`` and ``(1/x) d(x z_n)/dx = z_{n-1}(x) - n z_n(x) / x``.
    """
    kind = radial_kind(basis)
    z_n = spherical_bessel_kind(n, x, kind)
    z_nm1 = spherical_bessel_kind(n - 1, x, kind)
    dz_n = z_nm1 - n * z_n / x
    if kind != "j":
        z_n = z_n / 2
        dz_n = dz_n / 2
    return z_n, dz_n

"""Index bookkeeping and coordinate helpers.

Modes ``(n, m)`` with ``n >= 1`` and ``-n <= m <= n`` are addressed by the
combined index ``n(n+1)+m``. Coefficient arrays store mode ``(n, m)`` in row
``n(n+1)+m-1``, so a truncation order ``nmax`` implies ``nmax(nmax+2)`` rows.
"""

from __future__ import annotations

import numpy as np

from vswfpy.errors import InvariantViolation


def combined_index(n, m):
    """Convert degree/order pairs to the combined index ``n(n+1)+m``.

    Args:
        n (int | np.ndarray): Degree, ``n >= 1``.
        m (int | np.ndarray): Order, ``|m| <= n``.

    Returns:
        (int | np.ndarray): The combined index (1-based).
    """
    return n * (n + 1) + m


def combined_index_inverse(ci):
    """Convert combined indices back to degree/order pairs.

    Args:
        ci (int | np.ndarray): Combined index (1-based).

    Returns:
        n (int | np.ndarray): Degree.
        m (int | np.ndarray): Order.
    """
    ci = np.asarray(ci, dtype=int)
    n = np.floor(np.sqrt(ci)).astype(int)
    m = ci - n * (n + 1)
    if n.ndim == 0:
        return int(n), int(m)
    return n, m


def mode_count(nmax: int) -> int:
    """Number of modes for truncation order ``nmax``."""
    return nmax * (nmax + 2)


def nmax_from_length(length: int) -> int:
    """Truncation order implied by a coefficient vector length.

    Raises:
        InvariantViolation: If ``length`` is neither zero nor ``nmax(nmax+2)``.
    """
    if length == 0:
        return 0
    nmax = int(round(np.sqrt(length + 1))) - 1
    if nmax < 1 or mode_count(nmax) != length:
        raise InvariantViolation(
            f"Coefficient length {length} does not match any truncation order "
            "(expected 0 or nmax*(nmax+2))"
        )
    return nmax


def mode_indices(nmax: int) -> tuple[np.ndarray, np.ndarray]:
    """Degrees and orders of every row for truncation order ``nmax``."""
    ci = np.arange(1, mode_count(nmax) + 1)
    n = np.floor(np.sqrt(ci)).astype(int)
    m = ci - n * (n + 1)
    return n, m


def ka2nmax(ka):
    """Truncation order required for size parameter ``ka``.

    Uses the rule ``nmax = ka + 3 (ka)^(1/3)``, rounded up.
    """
    ka = np.abs(np.asarray(ka, dtype=float))
    nmax = np.ceil(ka + 3 * np.cbrt(ka)).astype(int)
    if nmax.ndim == 0:
        return int(nmax)
    return nmax


def nmax2ka(nmax):
    """Size parameter for which truncation order ``nmax`` is sufficient.

    Inverse of :func:`ka2nmax` without rounding: the real root ``t`` of
    ``t^3 + 3t - nmax = 0`` gives ``ka = t^3``.
    """
    nmax = np.asarray(nmax, dtype=float)
    root = np.sqrt(nmax**2 / 4 + 1)
    t = np.cbrt(nmax / 2 + root) + np.cbrt(nmax / 2 - root)
    ka = t**3
    if ka.ndim == 0:
        return float(ka)
    return ka


def xyz2rtp(xyz: np.ndarray) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Cartesian points of shape ``(3, N)`` to ``(r, theta, phi)``."""
    x, y, z = np.asarray(xyz, dtype=float)
    r = np.sqrt(x**2 + y**2 + z**2)
    theta = np.arctan2(np.sqrt(x**2 + y**2), z)
    phi = np.arctan2(y, x)
    return r, theta, phi


def rtp2xyz(r, theta, phi) -> np.ndarray:
    """Spherical coordinates to cartesian points of shape ``(3, N)``."""
    r, theta, phi = np.broadcast_arrays(
        np.asarray(r, dtype=float),
        np.asarray(theta, dtype=float),
        np.asarray(phi, dtype=float),
    )
    return np.stack(
        [
            r * np.sin(theta) * np.cos(phi),
            r * np.sin(theta) * np.sin(phi),
            r * np.cos(theta),
        ]
    )


def rotation_matrix_x(angle: float) -> np.ndarray:
    """Rotation by ``angle`` (radians) about the x axis."""
    c, s = np.cos(angle), np.sin(angle)
    return np.array([[1.0, 0.0, 0.0], [0.0, c, -s], [0.0, s, c]])


def rotation_matrix_y(angle: float) -> np.ndarray:
    """Rotation by ``angle`` (radians) about the y axis."""
    c, s = np.cos(angle), np.sin(angle)
    return np.array([[c, 0.0, s], [0.0, 1.0, 0.0], [-s, 0.0, c]])


def rotation_matrix_z(angle: float) -> np.ndarray:
    """Rotation by ``angle`` (radians) about the z axis."""
    c, s = np.cos(angle), np.sin(angle)
    return np.array([[c, -s, 0.0], [s, c, 0.0], [0.0, 0.0, 1.0]])


def spherical_unit_vectors(theta: np.ndarray, phi: np.ndarray):
    """Cartesian components of ``e_r``, ``e_theta`` and ``e_phi``.

    Returns:
        e_r, e_theta, e_phi (np.ndarray): Each of shape ``(3, N)``.
    """
    ct, st = np.cos(theta), np.sin(theta)
    cp, sp = np.cos(phi), np.sin(phi)
    e_r = np.stack([st * cp, st * sp, ct])
    e_theta = np.stack([ct * cp, ct * sp, -st])
    e_phi = np.stack([-sp, cp, np.zeros_like(phi)])
    return e_r, e_theta, e_phi


def spherical_to_cartesian_field(
    field: np.ndarray, theta: np.ndarray, phi: np.ndarray
) -> np.ndarray:
    """Convert field components ``(F_r, F_theta, F_phi)`` to cartesian.

    Args:
        field (np.ndarray): Spherical components, shape ``(..., 3, N)``.
        theta (np.ndarray): Polar angles, shape ``(N,)``.
        phi (np.ndarray): Azimuthal angles, shape ``(N,)``.

    Returns:
        (np.ndarray): Cartesian components with the shape of ``field``.
    """
    e_r, e_theta, e_phi = spherical_unit_vectors(theta, phi)
    return (
        field[..., 0:1, :] * e_r
        + field[..., 1:2, :] * e_theta
        + field[..., 2:3, :] * e_phi
    )

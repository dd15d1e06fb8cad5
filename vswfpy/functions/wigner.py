"""Wigner-D rotation matrices on the VSWF coefficient space.

The matrix is block diagonal in the degree ``n``. Each block is obtained by
projecting rotated spherical harmonics back onto the unrotated ones,

.. math::
    D^n_{m'm}(R) = \\int Y_{nm'}^*(\\hat r)\\, Y_{nm}(R^T \\hat r)\\, d\\Omega,

with a Gauss-Legendre (polar) by uniform (azimuthal) product rule of
``nmax + 1`` by ``2 nmax + 1`` nodes. The integrand is band limited to
degree ``2 nmax``, so the rule is exact and the blocks are unitary to
machine precision.

The convention is active: coefficients multiplied by ``D`` describe the
field ``R E(R^T r)``.
"""

from __future__ import annotations

import logging
from time import time

import numpy as np

from vswfpy.config import get_settings
from vswfpy.errors import InvariantViolation
from vswfpy.functions.misc import mode_count, xyz2rtp
from vswfpy.functions.spherical_functions_trigon import spherical_harmonics

log = logging.getLogger(__name__)


def sphere_quadrature(n_theta: int, n_phi: int):
    """Product quadrature on the unit sphere.

    Returns
    -------
    theta, phi, weights:
        Flattened node angles and weights (the weights sum to ``4 pi``).
    """
    x, w = np.polynomial.legendre.leggauss(n_theta)
    theta = np.arccos(x)
    phi = 2 * np.pi * np.arange(n_phi) / n_phi
    theta_grid, phi_grid = np.meshgrid(theta, phi, indexing="ij")
    weights = np.repeat(w * 2 * np.pi / n_phi, n_phi)
    return theta_grid.ravel(), phi_grid.ravel(), weights


def check_rotation(rotation: np.ndarray) -> np.ndarray:
    rotation = np.asarray(rotation, dtype=float)
    if rotation.shape != (3, 3):
        raise InvariantViolation(
            f"Rotation matrix must have shape (3, 3), got {rotation.shape}"
        )
    if get_settings().validate_rotations and not np.allclose(
        rotation @ rotation.T, np.eye(3), atol=1e-8
    ):
        raise InvariantViolation("Rotation matrix is not orthonormal")
    return rotation


def wigner_rotation_matrix(nmax: int, rotation: np.ndarray) -> np.ndarray:
    """Wigner-D matrix for all degrees up to ``nmax``.

    Parameters
    ----------
    nmax:
        Truncation order.
    rotation:
        Orthonormal ``(3, 3)`` rotation matrix.

    Returns
    -------
    numpy.ndarray
        Complex matrix of shape ``(nmax(nmax+2), nmax(nmax+2))``.
    """
    rotation = check_rotation(rotation)
    size = mode_count(nmax)
    d = np.zeros((size, size), dtype=complex)
    if nmax == 0:
        return d

    start = time()
    theta, phi, weights = sphere_quadrature(nmax + 1, 2 * nmax + 1)
    points = np.stack(
        [np.sin(theta) * np.cos(phi), np.sin(theta) * np.sin(phi), np.cos(theta)]
    )
    _, theta_rot, phi_rot = xyz2rtp(rotation.T @ points)

    for n in range(1, nmax + 1):
        y, _, _ = spherical_harmonics(n, theta, phi)
        y_rot, _, _ = spherical_harmonics(n, theta_rot, phi_rot)
        block = (np.conj(y) * weights) @ y_rot.T
        lo = (n - 1) * (n + 1)
        hi = n * (n + 2)
        d[lo:hi, lo:hi] = block

    log.debug("Wigner-D matrix for nmax = %d took %f s", nmax, time() - start)
    return d

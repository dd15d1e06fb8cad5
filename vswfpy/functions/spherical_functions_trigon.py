"""Orthonormal spherical harmonics and their angular derivatives.

The harmonics carry the Condon-Shortley phase and satisfy
``Y_n^{-m} = (-1)^m conj(Y_n^m)``. The azimuthal derivative is returned as
``Yphi = i m Y / sin(theta)``, evaluated through a degree ``n+1`` recurrence
so it stays finite on the poles.
"""

from __future__ import annotations

import numpy as np
from scipy.special import gammaln, lpmv


def legendre_normalized_trigon(n: int, theta: np.ndarray):
    r"""Normalized associated Legendre functions of degree ``n``.

    Parameters
    ----------
    n:
        Degree.
    theta:
        Polar angles of shape ``(N,)``.

    Returns
    -------
    p_nm, pi_nm, tau_nm:
        Arrays of shape ``(n + 1, N)`` for ``m = 0 .. n`` holding
        :math:`\bar P_n^m(\cos\theta)`, :math:`m \bar P_n^m / \sin\theta` and
        :math:`d \bar P_n^m / d\theta`.

    Notes
    -----
    The pole-safe form of :math:`m P_n^m / \sin\theta` uses

    .. math::
        2 m P_n^m / \sin\theta = -\left(P_{n+1}^{m+1}
        + (n-m+1)(n-m+2) P_{n+1}^{m-1}\right),

    and the derivative uses
    :math:`2\,dP_n^m/d\theta = P_n^{m+1} - (n+m)(n-m+1) P_n^{m-1}`.
    """
    theta = np.atleast_1d(np.asarray(theta, dtype=float))
    x = np.cos(theta)[np.newaxis, :]
    m = np.arange(n + 1)[:, np.newaxis]

    norm = np.exp(
        0.5
        * (
            np.log(2 * n + 1)
            - np.log(4 * np.pi)
            + gammaln(n - m + 1)
            - gammaln(n + m + 1)
        )
    )

    p = lpmv(m, n, x)
    p_up = np.where(m + 1 <= n, lpmv(m + 1, n, x), 0.0)
    p_down = np.where(m >= 1, lpmv(np.maximum(m - 1, 0), n, x), 0.0)

    tau = np.where(m == 0, p_up, 0.5 * (p_up - (n + m) * (n - m + 1) * p_down))

    q_up = lpmv(m + 1, n + 1, x)
    q_down = lpmv(np.maximum(m - 1, 0), n + 1, x)
    pi = np.where(m == 0, 0.0, -0.5 * (q_up + (n - m + 1) * (n - m + 2) * q_down))

    return norm * p, norm * pi, norm * tau


def spherical_harmonics(n: int, theta: np.ndarray, phi: np.ndarray):
    """Spherical harmonics of degree ``n`` for all orders.

    Parameters
    ----------
    n:
        Degree.
    theta, phi:
        Polar and azimuthal angles of shape ``(N,)``.

    Returns
    -------
    Y, Ytheta, Yphi:
        Complex arrays of shape ``(2n + 1, N)``; row ``m + n`` holds order
        ``m``. ``Ytheta`` is ``dY/dtheta`` and ``Yphi`` is
        ``(1/sin theta) dY/dphi``.
    """
    phi = np.atleast_1d(np.asarray(phi, dtype=float))
    p_nm, pi_nm, tau_nm = legendre_normalized_trigon(n, theta)

    m = np.arange(-n, n + 1)
    am = np.abs(m)
    parity = np.where(m < 0, (-1.0) ** am, 1.0)[:, np.newaxis]
    sign = np.sign(m)[:, np.newaxis]

    e_j_m_phi = np.exp(1j * m[:, np.newaxis] * phi[np.newaxis, :])

    y = parity * p_nm[am] * e_j_m_phi
    y_theta = parity * tau_nm[am] * e_j_m_phi
    y_phi = 1j * sign * parity * pi_nm[am] * e_j_m_phi

    return y, y_theta, y_phi

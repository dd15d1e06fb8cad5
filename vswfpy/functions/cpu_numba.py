"""Compiled kernels for the ladder-operator moment sums.

Every kernel accumulates over modes in ascending row order inside one beam,
and beams are independent, so the parallel loop over beams gives the same
result as a sequential run.
"""

import math

import numpy as np
from numba import jit, prange


@jit(nopython=True, nogil=True, cache=True)
def _neighbour(x: np.ndarray, n: int, m: int, nmax: int, beam: int) -> complex:
    # Modes beyond the truncation order are zero.
    if n > nmax or m > n or m < -n:
        return 0j
    return x[n * (n + 1) + m - 1, beam]


@jit(nopython=True, parallel=True, nogil=True, cache=True)
def compute_moments(
    nmax: int,
    a: np.ndarray,
    b: np.ndarray,
    p: np.ndarray,
    q: np.ndarray,
):
    """
    Force, torque and spin transfer between incoming and outgoing waves.

    Parameters:
    - nmax (int): Common truncation order.
    - a, b (np.ndarray): Incoming coefficients, shape ``(modes, beams)``, with
      ``b`` already multiplied by ``1j``.
    - p, q (np.ndarray): Outgoing coefficients, same layout, ``q`` multiplied
      by ``1j``.

    Returns:
    - moments (np.ndarray): Shape ``(9, beams)`` holding
      ``fx, fy, fz, tx, ty, tz, sx, sy, sz``.
    """
    beams = a.shape[1]
    moments = np.zeros((9, beams), dtype=np.float64)

    for beam in prange(beams):
        fz = 0.0
        fxy = 0j
        tz = 0.0
        txy = 0j
        sz = 0.0
        sxy = 0j

        for n in range(1, nmax + 1):
            for m in range(-n, n + 1):
                ci = n * (n + 1) + m - 1
                a0 = a[ci, beam]
                b0 = b[ci, beam]
                p0 = p[ci, beam]
                q0 = q[ci, beam]

                anp1 = _neighbour(a, n + 1, m, nmax, beam)
                bnp1 = _neighbour(b, n + 1, m, nmax, beam)
                pnp1 = _neighbour(p, n + 1, m, nmax, beam)
                qnp1 = _neighbour(q, n + 1, m, nmax, beam)

                amp1 = _neighbour(a, n, m + 1, nmax, beam)
                bmp1 = _neighbour(b, n, m + 1, nmax, beam)
                pmp1 = _neighbour(p, n, m + 1, nmax, beam)
                qmp1 = _neighbour(q, n, m + 1, nmax, beam)

                anp1mp1 = _neighbour(a, n + 1, m + 1, nmax, beam)
                bnp1mp1 = _neighbour(b, n + 1, m + 1, nmax, beam)
                pnp1mp1 = _neighbour(p, n + 1, m + 1, nmax, beam)
                qnp1mp1 = _neighbour(q, n + 1, m + 1, nmax, beam)

                anp1mm1 = _neighbour(a, n + 1, m - 1, nmax, beam)
                bnp1mm1 = _neighbour(b, n + 1, m - 1, nmax, beam)
                pnp1mm1 = _neighbour(p, n + 1, m - 1, nmax, beam)
                qnp1mm1 = _neighbour(q, n + 1, m - 1, nmax, beam)

                nn1 = n * (n + 1.0)
                ladder = math.sqrt((n - m) * (n + m + 1.0))
                axial = math.sqrt(
                    n
                    * (n - m + 1.0)
                    * (n + m + 1.0)
                    * (n + 2.0)
                    / (2 * n + 3.0)
                    / (2 * n + 1.0)
                ) / (n + 1.0)
                transverse = (
                    math.sqrt(n * (n + 2.0))
                    / math.sqrt((2 * n + 1.0) * (2 * n + 3.0))
                    / (n + 1.0)
                )
                up = math.sqrt((n + m + 1.0) * (n + m + 2.0))
                down = math.sqrt((n - m + 1.0) * (n - m + 2.0))

                # force
                fz += 2 * (
                    m / nn1 * (-a0 * np.conj(b0) + np.conj(q0) * p0).imag
                    + axial
                    * (
                        anp1 * np.conj(a0)
                        + bnp1 * np.conj(b0)
                        - pnp1 * np.conj(p0)
                        - qnp1 * np.conj(q0)
                    ).imag
                )
                fxy += 1j / nn1 * ladder * (
                    np.conj(pmp1) * q0
                    - np.conj(amp1) * b0
                    - np.conj(qmp1) * p0
                    + np.conj(bmp1) * a0
                ) + 1j * transverse * (
                    up
                    * (
                        p0 * np.conj(pnp1mp1)
                        + q0 * np.conj(qnp1mp1)
                        - a0 * np.conj(anp1mp1)
                        - b0 * np.conj(bnp1mp1)
                    )
                    + down
                    * (
                        pnp1mm1 * np.conj(p0)
                        + qnp1mm1 * np.conj(q0)
                        - anp1mm1 * np.conj(a0)
                        - bnp1mm1 * np.conj(b0)
                    )
                )

                # torque
                tz += m * (
                    abs(a0) ** 2 + abs(b0) ** 2 - abs(p0) ** 2 - abs(q0) ** 2
                )
                txy += ladder * (
                    a0 * np.conj(amp1)
                    + b0 * np.conj(bmp1)
                    - p0 * np.conj(pmp1)
                    - q0 * np.conj(qmp1)
                )

                # spin
                sz += m / nn1 * (
                    -abs(a0) ** 2 + abs(q0) ** 2 - abs(b0) ** 2 + abs(p0) ** 2
                ) - 2 * axial * (
                    anp1 * np.conj(b0)
                    - bnp1 * np.conj(a0)
                    - pnp1 * np.conj(q0)
                    + qnp1 * np.conj(p0)
                ).real
                sxy += 1j / nn1 * ladder * (
                    np.conj(pmp1) * p0
                    - np.conj(amp1) * a0
                    + np.conj(qmp1) * q0
                    - np.conj(bmp1) * b0
                ) + 1j * transverse * (
                    up
                    * (
                        p0 * np.conj(qnp1mp1)
                        - q0 * np.conj(pnp1mp1)
                        - a0 * np.conj(bnp1mp1)
                        + b0 * np.conj(anp1mp1)
                    )
                    + down
                    * (
                        pnp1mm1 * np.conj(q0)
                        - qnp1mm1 * np.conj(p0)
                        - anp1mm1 * np.conj(b0)
                        + bnp1mm1 * np.conj(a0)
                    )
                )

        moments[0, beam] = fxy.real
        moments[1, beam] = fxy.imag
        moments[2, beam] = fz
        moments[3, beam] = txy.real
        moments[4, beam] = txy.imag
        moments[5, beam] = tz
        moments[6, beam] = sxy.imag
        moments[7, beam] = sxy.real
        moments[8, beam] = sz

    return moments

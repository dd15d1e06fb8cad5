"""Rotation and translation of coefficient sets.

All transformations are active: ``rotate(cs, R)`` describes the field
``R E(R^T r)`` and ``translate(cs, d)`` describes ``E(r - d)``. Translating
an outgoing or incoming set re-expands it as a regular set about the new
origin, which describes ``E(r - d)`` for ``|r| < |d|``.

Batched parameters pair with the beams of a set (or the members of an
ensemble): the parameter count and the beam count must be 1 or equal.
"""

from __future__ import annotations

import logging

import numpy as np

from vswfpy.basis import Basis
from vswfpy.coefficients import CoefficientSet, broadcast_beams, stack_beams
from vswfpy.config import get_settings
from vswfpy.ensemble import Ensemble
from vswfpy.errors import BasisError, InvariantViolation, Severity, advise
from vswfpy.functions.misc import (
    mode_count,
    nmax2ka,
    nmax_from_length,
    rotation_matrix_x,
    rotation_matrix_y,
    rotation_matrix_z,
    xyz2rtp,
)
from vswfpy.functions.translation import translate_z_matrices
from vswfpy.functions.wigner import wigner_rotation_matrix

log = logging.getLogger(__name__)


def _rotation_batch(rotation) -> tuple[list[np.ndarray], bool]:
    rotation = np.asarray(rotation, dtype=float)
    match rotation.ndim:
        case 2:
            return [rotation], False
        case 3:
            return list(rotation), True
        case _:
            raise InvariantViolation(
                f"Rotations must have shape (3, 3) or (N, 3, 3), got {rotation.shape}"
            )


def _wigner_batch(wigner) -> tuple[list[np.ndarray], bool]:
    if isinstance(wigner, (list, tuple)):
        return [np.asarray(d) for d in wigner], True
    wigner = np.asarray(wigner)
    if wigner.ndim == 3:
        return list(wigner), True
    return [wigner], False


def _apply_columns(cs: CoefficientSet, operators: list, fn) -> CoefficientSet:
    """Apply ``fn(operator, set)`` pairing operators with beams."""
    count = broadcast_beams(len(operators), cs.n_beams, "transformations and beams")
    if len(operators) == 1:
        return fn(operators[0], cs)
    parts = [
        fn(operators[i], cs[i if cs.n_beams > 1 else 0]) for i in range(count)
    ]
    return stack_beams(parts)


def _map_members(ensemble: Ensemble, parameters: list, fn) -> Ensemble:
    count = broadcast_beams(len(parameters), len(ensemble), "transformations and members")
    members = [
        fn(parameters[i if len(parameters) > 1 else 0], ensemble[i if len(ensemble) > 1 else 0])
        for i in range(count)
    ]
    return Ensemble(members, ensemble.array_type)


def rotate(beam, rotation=None, *, wigner=None, nmax: int | None = None):
    """Rotate a beam.

    Parameters
    ----------
    beam:
        :class:`CoefficientSet` or :class:`Ensemble`.
    rotation:
        Orthonormal ``(3, 3)`` matrix or ``(N, 3, 3)`` batch.
    wigner:
        Precomputed Wigner-D matrix (or list of them) used instead of
        ``rotation``.
    nmax:
        Requested truncation order; the result has
        ``max(beam.nmax, nmax)``.

    Returns
    -------
    rotated, D:
        The rotated beam and the Wigner-D matrix used (a list for batches).

    Raises
    ------
    CardinalityMismatch
        If the number of rotations and beams are both larger than one and
        differ.
    """
    if (rotation is None) == (wigner is None):
        raise InvariantViolation("Exactly one of rotation or wigner must be given")

    if isinstance(beam, Ensemble):
        out_nmax = max(beam.nmax, nmax or 0)
        if wigner is None:
            rotations, batched = _rotation_batch(rotation)
            broadcast_beams(len(rotations), len(beam), "rotations and members")
            wigner = [wigner_rotation_matrix(out_nmax, r) for r in rotations]
        else:
            wigner, batched = _wigner_batch(wigner)
        rotated = _map_members(
            beam, wigner, lambda d, member: rotate(member, wigner=d, nmax=nmax)[0]
        )
        return rotated, (wigner if batched else wigner[0])

    out_nmax = max(beam.nmax, nmax or 0)
    if wigner is None:
        rotations, batched = _rotation_batch(rotation)
        broadcast_beams(len(rotations), beam.n_beams, "rotations and beams")
        wigner = [wigner_rotation_matrix(out_nmax, r) for r in rotations]
    else:
        wigner, batched = _wigner_batch(wigner)
        for d in wigner:
            if d.ndim != 2 or d.shape[0] != d.shape[1]:
                raise InvariantViolation(f"Wigner-D matrix must be square, got {d.shape}")
            if nmax_from_length(d.shape[0]) < beam.nmax:
                raise InvariantViolation(
                    f"Wigner-D matrix for nmax {nmax_from_length(d.shape[0])} "
                    f"cannot rotate a set with nmax {beam.nmax}"
                )

    size = beam.a.shape[0]

    def apply(d, cs):
        return cs.copy(a=d[:, :size] @ cs.a, b=d[:, :size] @ cs.b)

    rotated = _apply_columns(beam, wigner, apply)
    return rotated, (wigner if batched else wigner[0])


def rotate_x(beam, angle: float, **kwargs):
    """Rotate about the x axis by ``angle`` radians."""
    return rotate(beam, rotation_matrix_x(angle), **kwargs)


def rotate_y(beam, angle: float, **kwargs):
    """Rotate about the y axis by ``angle`` radians."""
    return rotate(beam, rotation_matrix_y(angle), **kwargs)


def rotate_z(beam, angle: float, **kwargs):
    """Rotate about the z axis by ``angle`` radians."""
    return rotate(beam, rotation_matrix_z(angle), **kwargs)


def translate_z(
    beam,
    z,
    *,
    nmax: int | None = None,
    on_advisory: Severity | str | None = None,
):
    """Translate a beam along its z axis.

    Parameters
    ----------
    beam:
        :class:`CoefficientSet` or :class:`Ensemble`.
    z:
        Displacement, a scalar or 1-D batch, in the units of
        ``1 / beam.wavenumber``.
    nmax:
        Truncation order of the result, defaults to the current order.
    on_advisory:
        Severity of the advisory emitted when the cumulative displacement
        ``absdz`` exceeds ``nmax2ka(nmax) / k``.

    Returns
    -------
    translated, A, B:
        The translated beam and the translation matrices (lists for batches).
        ``a' = A a + B b`` and ``b' = B a + A b``. The translated beam is
        regular: a regular beam describes ``E(r - z e_z)`` everywhere, an
        outgoing or incoming beam only for ``r < |z|``. A zero displacement
        leaves the beam and its basis unchanged.

    Notes
    -----
    ``absdz`` is tracked per set. A batch of displacements gives the result
    ``absdz + max|z|`` for every beam, the bound of its least trusted beam.
    """
    batched = np.ndim(z) > 0
    zs = [float(v) for v in np.atleast_1d(np.asarray(z, dtype=float))]

    if isinstance(beam, Ensemble):
        results = {}

        def member(dz, cs):
            out, a_mat, b_mat = translate_z(cs, dz, nmax=nmax, on_advisory=on_advisory)
            results.setdefault(dz, (a_mat, b_mat))
            return out

        translated = _map_members(beam, zs, member)
        a_mats = [results[dz][0] for dz in zs]
        b_mats = [results[dz][1] for dz in zs]
        if batched:
            return translated, a_mats, b_mats
        return translated, a_mats[0], b_mats[0]

    broadcast_beams(len(zs), beam.n_beams, "displacements and beams")
    severity = (
        get_settings().on_translation_advisory if on_advisory is None else Severity(on_advisory)
    )

    out_nmax = beam.nmax if nmax is None else nmax
    work_nmax = max(out_nmax, beam.nmax)
    rows_out = mode_count(out_nmax)
    rows_in = beam.a.shape[0]
    k = abs(beam.wavenumber)

    absdz = beam.absdz + max(abs(dz) for dz in zs)
    radius = nmax2ka(beam.nmax) / k
    if absdz > radius:
        advise(
            f"Beam translated beyond trusted region: cumulative displacement "
            f"{absdz:g} exceeds radius {radius:g} for nmax {beam.nmax}",
            absdz / radius,
            severity,
        )

    if beam.basis is not Basis.REGULAR and any(dz == 0 for dz in zs):
        if any(dz != 0 for dz in zs):
            raise BasisError(
                f"A batch mixing zero and nonzero displacements of an "
                f"{beam.basis.value} beam has no common basis"
            )
        eye = np.eye(rows_out, rows_in, dtype=complex)
        zero = np.zeros((rows_out, rows_in), dtype=complex)
        kept = _apply_columns(beam, [None] * len(zs), lambda _, cs: cs.resize(out_nmax))
        if batched:
            return kept, [eye] * len(zs), [zero] * len(zs)
        return kept, eye, zero

    matrices = []
    for dz in zs:
        a_mat, b_mat = translate_z_matrices(work_nmax, k * dz, beam.basis)
        matrices.append((a_mat[:rows_out, :rows_in], b_mat[:rows_out, :rows_in]))

    def apply(pair, cs):
        a_mat, b_mat = pair
        return cs.copy(
            a=a_mat @ cs.a + b_mat @ cs.b,
            b=b_mat @ cs.a + a_mat @ cs.b,
            basis=Basis.REGULAR,
            absdz=absdz,
        )

    translated = _apply_columns(beam, matrices, apply)
    a_mats = [pair[0] for pair in matrices]
    b_mats = [pair[1] for pair in matrices]
    if batched:
        return translated, a_mats, b_mats
    return translated, a_mats[0], b_mats[0]


def translate(beam, position, *, nmax: int | None = None, on_advisory=None):
    """Translate a beam by an arbitrary displacement.

    The displacement direction is rotated onto the z axis at the full
    truncation order, the beam is translated along z and rotated back at the
    requested order.

    Parameters
    ----------
    beam:
        :class:`CoefficientSet` or :class:`Ensemble`.
    position:
        Displacement of shape ``(3,)`` or a ``(N, 3)`` batch.
    nmax:
        Truncation order of the result, defaults to the current order.
    """
    position = np.asarray(position, dtype=float)
    if position.shape[-1] != 3 or position.ndim > 2:
        raise InvariantViolation(
            f"Positions must have shape (3,) or (N, 3), got {position.shape}"
        )
    positions = list(np.atleast_2d(position))

    def single(p, cs):
        r, theta, phi = (float(v[0]) for v in xyz2rtp(p[:, np.newaxis]))
        if r == 0:
            return cs.resize(cs.nmax if nmax is None else nmax)
        rotation = rotation_matrix_z(phi) @ rotation_matrix_y(theta)
        cs, _ = rotate(cs, rotation.T)
        cs, _, _ = translate_z(cs, r, nmax=nmax, on_advisory=on_advisory)
        cs, _ = rotate(cs, rotation)
        return cs

    if isinstance(beam, Ensemble):
        return _map_members(beam, positions, single)
    return _apply_columns(beam, positions, single)


def apply_transformation(beam, rotation=None, position=None, *, nmax: int | None = None):
    """Rotate, then translate.

    Parameters
    ----------
    beam:
        :class:`CoefficientSet` or :class:`Ensemble`.
    rotation:
        Optional rotation (or batch), applied first.
    position:
        Optional displacement (or batch), applied second.
    nmax:
        Truncation order of the result.
    """
    if rotation is not None:
        beam, _ = rotate(beam, rotation)
    if position is not None:
        beam = translate(beam, position, nmax=nmax)
    elif nmax is not None:
        beam = beam.resize(nmax)
    return beam

"""Optical force, torque and spin transfer.

The incident set provides the incoming wave, the scattered set the outgoing
wave. Both are grown to a common truncation order and the momentum fluxes are
accumulated with the ladder-operator recurrences of :cite:`Nieminen-2014-ID30`
in :func:`vswfpy.functions.cpu_numba.compute_moments`. Modes beyond the
common order are zero.

Values are in units of the beam power over the speed of light (force),
power over angular frequency (torque and spin).
"""

from __future__ import annotations

import logging

import numpy as np

from vswfpy.basis import Basis
from vswfpy.coefficients import CoefficientSet, broadcast_beams
from vswfpy.ensemble import combine, grow_to_common
from vswfpy.errors import BasisError, InvariantViolation
from vswfpy.functions.cpu_numba import compute_moments
from vswfpy.functions.misc import mode_count
from vswfpy.operators import scatter

log = logging.getLogger(__name__)


def _moments_leaf(incident: CoefficientSet, scattered: CoefficientSet) -> np.ndarray:
    if incident.basis is Basis.OUTGOING:
        raise BasisError("The incident beam must be regular or incoming")
    if scattered.basis is Basis.INCOMING:
        raise BasisError("The scattered beam must be regular or outgoing")
    if not np.isclose(abs(incident.wavenumber), abs(scattered.wavenumber)):
        raise InvariantViolation(
            f"Incident wavenumber {incident.wavenumber} differs from scattered "
            f"wavenumber {scattered.wavenumber}"
        )

    incident, scattered = grow_to_common(incident, scattered)
    beams = broadcast_beams(incident.n_beams, scattered.n_beams, "incident and scattered beams")
    shape = (mode_count(incident.nmax), beams)

    def prepared(x, factor=1):
        return np.ascontiguousarray(factor * np.broadcast_to(x, shape), dtype=np.complex128)

    return compute_moments(
        incident.nmax,
        prepared(incident.a),
        prepared(incident.b, 1j),
        prepared(scattered.a),
        prepared(scattered.b, 1j),
    )


def _scattered_for(incident, scattered):
    if scattered is None:
        return _zero_like(incident)
    if not isinstance(scattered, CoefficientSet) and hasattr(scattered, "apply"):
        return scatter(scattered, incident)
    return scattered


def _zero_like(beam):
    if isinstance(beam, CoefficientSet):
        return CoefficientSet.empty(
            beam.nmax,
            beam.n_beams,
            basis=Basis.OUTGOING,
            wavenumber=beam.wavenumber,
            array_type=beam.array_type,
        )
    return beam.map(_zero_like)


def _split(values: np.ndarray, rows: slice, separate: bool):
    part = values[rows]
    if part.shape[-1] == 1:
        part = part[:, 0]
    if separate:
        return tuple(part)
    return part


def force_torque(incident, scattered=None, *, separate: bool = False):
    """Force, torque and spin transferred to a scatterer.

    Parameters
    ----------
    incident:
        Incident beam, a regular or incoming :class:`CoefficientSet` or an
        :class:`~vswfpy.ensemble.Ensemble`.
    scattered:
        Total scattered beam (regular or outgoing), a scattering operator
        applied to ``incident``, or ``None`` for a perfect absorber.
    separate:
        Return the ``x``, ``y`` and ``z`` components separately.

    Returns
    -------
    force, torque, spin:
        Each of shape ``(3,)`` for a single result or ``(3, N)`` for ``N``
        independent beams; tuples of components when ``separate`` is set.

    Raises
    ------
    BasisError
        For an outgoing incident or incoming scattered beam.
    CardinalityMismatch
        If beam or member counts cannot be paired.
    """
    scattered = _scattered_for(incident, scattered)
    values = combine(_moments_leaf, incident, scattered)
    log.debug("Computed moments for %d result(s)", values.shape[-1])
    return (
        _split(values, slice(0, 3), separate),
        _split(values, slice(3, 6), separate),
        _split(values, slice(6, 9), separate),
    )


def force(incident, scattered=None, *, separate: bool = False):
    """Force only, see :func:`force_torque`."""
    return force_torque(incident, scattered, separate=separate)[0]


def torque(incident, scattered=None, *, separate: bool = False):
    """Torque only, see :func:`force_torque`."""
    return force_torque(incident, scattered, separate=separate)[1]


def spin(incident, scattered=None, *, separate: bool = False):
    """Spin transfer only, see :func:`force_torque`."""
    return force_torque(incident, scattered, separate=separate)[2]

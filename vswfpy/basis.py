"""Tags attached to coefficient sets.

:class:`Basis` selects the radial function family of an expansion and
:class:`ArrayType` selects how the beams of a set (or the members of an
ensemble) combine.
"""

from __future__ import annotations

from enum import Enum


class Basis(str, Enum):
    """Radial function family of a VSWF expansion.

    - ``REGULAR``: spherical Bessel ``j_n``, finite at the origin.
    - ``OUTGOING``: ``h1_n / 2``, the outgoing part of a regular wave.
    - ``INCOMING``: ``h2_n / 2``, the incoming part of a regular wave.
    """

    REGULAR = "regular"
    OUTGOING = "outgoing"
    INCOMING = "incoming"


class ArrayType(str, Enum):
    """Combination semantics for multiple beams.

    - ``INDEPENDENT``: element-wise, no implicit reduction.
    - ``COHERENT``: amplitudes are summed before any derived quantity.
    - ``INCOHERENT``: derived scalars are summed, amplitudes never are.
    """

    INDEPENDENT = "independent"
    COHERENT = "coherent"
    INCOHERENT = "incoherent"

    @classmethod
    def _missing_(cls, value):
        if isinstance(value, str) and value.lower() == "array":
            return cls.INDEPENDENT
        return None

"""VSWF coefficient container.

A :class:`CoefficientSet` stores the two coefficient vectors ``a`` (TE / M
modes) and ``b`` (TM / N modes) of one or more beams. Row ``n(n+1)+m-1``
holds mode ``(n, m)`` and column ``j`` holds beam ``j``.

Sets are values: the arrays are read-only and every operation returns a new
set. Attributes not overridden (basis, wavenumber, array type, cumulative
axial displacement) are inherited from the source set.

Truncation order changes go through :func:`resize`, which tracks the power
discarded when the order shrinks.
"""

from __future__ import annotations

import logging
from numbers import Number
from typing import Iterable, Iterator

import numpy as np
import scipy.sparse as sp

from vswfpy.basis import ArrayType, Basis
from vswfpy.config import get_settings
from vswfpy.errors import (
    BasisError,
    CardinalityMismatch,
    InvariantViolation,
    Severity,
    advise,
)
from vswfpy.functions.misc import (
    combined_index,
    mode_count,
    mode_indices,
    nmax_from_length,
)

log = logging.getLogger(__name__)


def _as_columns(x) -> np.ndarray:
    if x is None:
        return np.zeros((0, 1), dtype=complex)
    if sp.issparse(x):
        x = x.toarray()
    x = np.array(x, dtype=complex, copy=True)
    match x.ndim:
        case 0:
            raise InvariantViolation("Coefficients must be a vector or a matrix")
        case 1:
            x = x[:, np.newaxis]
        case 2:
            pass
        case _:
            raise InvariantViolation(
                f"Coefficients must have at most 2 dimensions, got {x.ndim}"
            )
    return x


def _total_power(a: np.ndarray, b: np.ndarray) -> float:
    return float(np.sum(np.abs(a) ** 2) + np.sum(np.abs(b) ** 2))


def broadcast_beams(count_1: int, count_2: int, what: str = "beams") -> int:
    """Common count of two batches that must be 1 or equal.

    Raises:
        CardinalityMismatch: If neither count is 1 and they differ.
    """
    if count_1 == count_2 or count_2 == 1:
        return count_1
    if count_1 == 1:
        return count_2
    raise CardinalityMismatch(
        f"Number of {what} must be 1 or equal, got {count_1} and {count_2}"
    )


class CoefficientSet:
    """Truncated VSWF expansion of one or more beams.

    Parameters
    ----------
    a, b:
        Coefficient vectors of shape ``(modes,)`` or ``(modes, beams)``. Dense
        arrays and ``scipy.sparse`` matrices are accepted. ``modes`` must be
        ``0`` or ``nmax(nmax+2)``.
    basis:
        Radial function family, see :class:`vswfpy.basis.Basis`.
    wavenumber:
        Wavenumber in the medium. Defaults to the configured value.
    array_type:
        How the beams of the set combine, see :class:`vswfpy.basis.ArrayType`.
    absdz:
        Cumulative absolute axial displacement applied by translations.
    """

    __slots__ = ("_a", "_b", "_nmax", "_basis", "_wavenumber", "_array_type", "_absdz")

    def __init__(
        self,
        a=None,
        b=None,
        basis: Basis | str = Basis.REGULAR,
        wavenumber: float | None = None,
        array_type: ArrayType | str = ArrayType.INDEPENDENT,
        absdz: float = 0.0,
    ):
        a = _as_columns(a)
        b = _as_columns(b) if b is not None else np.zeros_like(a)
        if a.shape != b.shape:
            raise InvariantViolation(
                f"Coefficient vectors a {a.shape} and b {b.shape} must have the same shape"
            )
        self._nmax = nmax_from_length(a.shape[0])
        a.flags.writeable = False
        b.flags.writeable = False
        self._a = a
        self._b = b
        self._basis = Basis(basis)
        self._wavenumber = (
            get_settings().default_wavenumber if wavenumber is None else float(wavenumber)
        )
        self._array_type = ArrayType(array_type)
        self._absdz = float(absdz)

    # construction

    @classmethod
    def empty(cls, nmax: int = 0, beams: int = 1, **kwargs) -> "CoefficientSet":
        """Set of zero coefficients."""
        size = mode_count(nmax)
        zeros = np.zeros((size, beams), dtype=complex)
        return cls(zeros, zeros, **kwargs)

    @classmethod
    def from_dense_vectors(cls, a, b, n, m, nmax: int | None = None, **kwargs):
        """Assemble a set from coefficients listed per mode.

        Parameters
        ----------
        a, b:
            Coefficients of shape ``(K,)`` or ``(K, beams)``.
        n, m:
            Degree and order of each of the ``K`` rows. Repeated modes are
            summed.
        nmax:
            Truncation order, defaults to ``max(n)``.
        **kwargs:
            Forwarded to the constructor.
        """
        n = np.asarray(n, dtype=int).ravel()
        m = np.asarray(m, dtype=int).ravel()
        a = _as_columns(a)
        b = _as_columns(b)
        if not (len(n) == len(m) == a.shape[0] == b.shape[0]):
            raise InvariantViolation(
                f"Mode lists (n: {len(n)}, m: {len(m)}) and coefficients "
                f"(a: {a.shape[0]}, b: {b.shape[0]}) must have the same length"
            )
        if np.any(n < 1) or np.any(np.abs(m) > n):
            raise InvariantViolation("Modes must satisfy n >= 1 and |m| <= n")
        if nmax is None:
            nmax = int(n.max()) if len(n) else 0
        elif len(n) and nmax < n.max():
            raise InvariantViolation(
                f"Requested nmax {nmax} is smaller than the largest degree {n.max()}"
            )
        beams = broadcast_beams(a.shape[1], b.shape[1])
        rows = combined_index(n, m) - 1
        full_a = np.zeros((mode_count(nmax), beams), dtype=complex)
        full_b = np.zeros_like(full_a)
        np.add.at(full_a, rows, np.broadcast_to(a, (len(n), beams)))
        np.add.at(full_b, rows, np.broadcast_to(b, (len(n), beams)))
        return cls(full_a, full_b, **kwargs)

    @classmethod
    def from_sparse(cls, a, b=None, **kwargs) -> "CoefficientSet":
        """Set from ``scipy.sparse`` coefficient columns."""
        if not sp.issparse(a) or (b is not None and not sp.issparse(b)):
            raise InvariantViolation("from_sparse expects scipy.sparse matrices")
        return cls(a, b, **kwargs)

    @classmethod
    def from_state(cls, state: dict) -> "CoefficientSet":
        """Rebuild a set from :meth:`to_state` output."""
        cs = cls(state["a"], state["b"], basis=state["basis"])
        if cs.nmax != int(state["nmax"]):
            raise InvariantViolation(
                f"Stored nmax {state['nmax']} does not match coefficient nmax {cs.nmax}"
            )
        return cs

    def copy(self, **overrides) -> "CoefficientSet":
        """New set with the given attributes replaced."""
        fields = {
            "a": self._a,
            "b": self._b,
            "basis": self._basis,
            "wavenumber": self._wavenumber,
            "array_type": self._array_type,
            "absdz": self._absdz,
        }
        fields.update(overrides)
        return CoefficientSet(**fields)

    # attributes

    @property
    def a(self) -> np.ndarray:
        return self._a

    @property
    def b(self) -> np.ndarray:
        return self._b

    @property
    def nmax(self) -> int:
        return self._nmax

    @property
    def n_beams(self) -> int:
        return self._a.shape[1]

    @property
    def basis(self) -> Basis:
        return self._basis

    @property
    def wavenumber(self) -> float:
        return self._wavenumber

    @property
    def array_type(self) -> ArrayType:
        return self._array_type

    @property
    def absdz(self) -> float:
        return self._absdz

    @property
    def is_empty(self) -> bool:
        return self._a.shape[0] == 0

    def with_basis(self, basis: Basis | str) -> "CoefficientSet":
        return self.copy(basis=basis)

    def with_array_type(self, array_type: ArrayType | str) -> "CoefficientSet":
        return self.copy(array_type=array_type)

    def mode_indices(self) -> tuple[np.ndarray, np.ndarray]:
        """Degree and order of every row."""
        return mode_indices(self._nmax)

    def coefficients(self) -> np.ndarray:
        """Packed ``[a; b]`` of shape ``(2 modes, beams)``."""
        return np.vstack([self._a, self._b])

    def occupied_degrees(self) -> np.ndarray:
        """Degrees with at least one nonzero coefficient, ascending."""
        occupied = np.any(self._a != 0, axis=1) | np.any(self._b != 0, axis=1)
        n, _ = self.mode_indices()
        return np.unique(n[occupied])

    def to_sparse(self) -> tuple[sp.csc_matrix, sp.csc_matrix]:
        return sp.csc_matrix(self._a), sp.csc_matrix(self._b)

    def to_state(self) -> dict:
        """Persistable state ``(a, b, nmax, basis)``."""
        return {
            "a": np.array(self._a),
            "b": np.array(self._b),
            "nmax": self._nmax,
            "basis": self._basis.value,
        }

    # power

    @property
    def power(self):
        """Beam power ``sum(|a|^2 + |b|^2)``.

        Independent sets give one value per beam (a float for a single beam),
        coherent sets the power of the summed amplitudes and incoherent sets
        the sum of the beam powers.
        """
        match self._array_type:
            case ArrayType.COHERENT:
                return _total_power(self._a.sum(axis=1), self._b.sum(axis=1))
            case ArrayType.INCOHERENT:
                return _total_power(self._a, self._b)
            case ArrayType.INDEPENDENT:
                powers = np.sum(np.abs(self._a) ** 2 + np.abs(self._b) ** 2, axis=0)
                return float(powers[0]) if self.n_beams == 1 else powers

    def with_power(self, power: float) -> "CoefficientSet":
        """Rescale every beam to the requested power."""
        current = np.sum(np.abs(self._a) ** 2 + np.abs(self._b) ** 2, axis=0)
        scale = np.sqrt(np.divide(power, current, out=np.zeros_like(current), where=current > 0))
        return self.copy(a=self._a * scale, b=self._b * scale)

    # truncation

    def resize(self, nmax: int, **kwargs) -> "CoefficientSet":
        return resize(self, nmax, **kwargs)

    def shrink_to_tolerance(self, tolerance: float | None = None) -> "CoefficientSet":
        return shrink_to_tolerance(self, tolerance)

    # beam dimension

    def __len__(self) -> int:
        return self.n_beams

    def __iter__(self) -> Iterator["CoefficientSet"]:
        for i in range(self.n_beams):
            yield self[i]

    def __getitem__(self, index) -> "CoefficientSet":
        if isinstance(index, (int, np.integer)):
            index = [int(index)]
        return self.copy(a=self._a[:, index], b=self._b[:, index])

    def replace(self, index, value: "CoefficientSet") -> "CoefficientSet":
        """Set with the beams at ``index`` replaced by ``value``.

        ``value`` must not have a larger truncation order than this set; a
        smaller order is zero-padded.
        """
        if value.nmax > self._nmax:
            raise InvariantViolation(
                f"Assigned value nmax {value.nmax} exceeds set nmax {self._nmax}"
            )
        if value.basis is not self._basis:
            raise BasisError(
                f"Cannot assign a {value.basis.value} set into a {self._basis.value} set"
            )
        value = resize(value, self._nmax)
        a = np.array(self._a)
        b = np.array(self._b)
        target = a[:, index]
        if target.ndim == 1:
            if value.n_beams != 1:
                raise CardinalityMismatch(
                    f"Cannot assign {value.n_beams} beams to a single beam"
                )
            a[:, index] = value.a[:, 0]
            b[:, index] = value.b[:, 0]
        else:
            if value.n_beams not in (1, target.shape[1]):
                raise CardinalityMismatch(
                    f"Cannot assign {value.n_beams} beams to {target.shape[1]} beams"
                )
            a[:, index] = np.broadcast_to(value.a, target.shape)
            b[:, index] = np.broadcast_to(value.b, target.shape)
        return self.copy(a=a, b=b)

    def repeat(self, count: int) -> "CoefficientSet":
        """Set with the beams repeated ``count`` times."""
        return self.copy(a=np.tile(self._a, (1, count)), b=np.tile(self._b, (1, count)))

    def sum(self) -> "CoefficientSet":
        """Coherent sum over the beams, in ascending beam order."""
        return self.copy(
            a=self._a.sum(axis=1, keepdims=True), b=self._b.sum(axis=1, keepdims=True)
        )

    # arithmetic

    def _check_compatible(self, other: "CoefficientSet") -> None:
        if other.basis is not self._basis:
            raise BasisError(
                f"Cannot combine {self._basis.value} and {other.basis.value} sets"
            )
        if not np.isclose(other.wavenumber, self._wavenumber):
            raise InvariantViolation(
                f"Wavenumbers {self._wavenumber} and {other.wavenumber} differ"
            )

    def __add__(self, other):
        if not isinstance(other, CoefficientSet):
            return NotImplemented
        for item in (self, other):
            if item.array_type is ArrayType.INCOHERENT:
                raise InvariantViolation("Incoherent sets cannot be added coherently")
        self._check_compatible(other)
        beams = broadcast_beams(self.n_beams, other.n_beams)
        nmax = max(self._nmax, other.nmax)
        x = resize(self, nmax)
        y = resize(other, nmax)
        shape = (mode_count(nmax), beams)
        return self.copy(
            a=np.broadcast_to(x.a, shape) + np.broadcast_to(y.a, shape),
            b=np.broadcast_to(x.b, shape) + np.broadcast_to(y.b, shape),
            absdz=max(self._absdz, other.absdz),
        )

    def __neg__(self) -> "CoefficientSet":
        return self.copy(a=-self._a, b=-self._b)

    def __sub__(self, other):
        if not isinstance(other, CoefficientSet):
            return NotImplemented
        return self + (-other)

    def __mul__(self, other):
        if isinstance(other, (Number, np.number)):
            return self.copy(a=self._a * other, b=self._b * other)
        return NotImplemented

    __rmul__ = __mul__

    def __truediv__(self, other):
        if isinstance(other, (Number, np.number)):
            return self.copy(a=self._a / other, b=self._b / other)
        return NotImplemented

    def apply_matrix(self, matrix) -> "CoefficientSet":
        """Apply a matrix to the packed coefficients ``[a; b]``.

        The matrix has ``2 modes`` columns; its row count sets the truncation
        order of the result.
        """
        matrix = matrix.toarray() if sp.issparse(matrix) else np.asarray(matrix)
        size = self._a.shape[0]
        if matrix.ndim != 2 or matrix.shape[1] != 2 * size or matrix.shape[0] % 2:
            raise InvariantViolation(
                f"Matrix of shape {matrix.shape} cannot act on {2 * size} packed coefficients"
            )
        packed = matrix @ self.coefficients()
        half = matrix.shape[0] // 2
        return self.copy(a=packed[:half], b=packed[half:])

    def __repr__(self) -> str:
        return (
            f"CoefficientSet(nmax={self._nmax}, beams={self.n_beams}, "
            f"basis={self._basis.value}, array_type={self._array_type.value})"
        )


def stack_beams(sets: Iterable[CoefficientSet]) -> CoefficientSet:
    """Concatenate the beams of several sets, grown to a common order."""
    sets = list(sets)
    first = sets[0]
    for other in sets[1:]:
        first._check_compatible(other)
    nmax = max(s.nmax for s in sets)
    grown = [resize(s, nmax) for s in sets]
    return first.copy(
        a=np.hstack([s.a for s in grown]),
        b=np.hstack([s.b for s in grown]),
        absdz=max(s.absdz for s in sets),
    )


def resize(
    cs: CoefficientSet,
    nmax: int,
    tolerance: float | None = None,
    on_power_loss: Severity | str | None = None,
) -> CoefficientSet:
    """Change the truncation order of a set.

    Parameters
    ----------
    cs:
        Source set.
    nmax:
        New truncation order.
    tolerance:
        Relative power loss tolerated when shrinking.
    on_power_loss:
        ``"ignore"``, ``"warn"`` or ``"error"`` when the loss exceeds
        ``tolerance``.

    Returns
    -------
    CoefficientSet
        ``cs`` itself when the order is unchanged, otherwise a new set.
        Growing appends zero rows; shrinking drops the highest degrees.
    """
    if nmax < 0:
        raise InvariantViolation(f"Truncation order must be non-negative, got {nmax}")
    settings = get_settings()
    tolerance = settings.power_loss_tolerance if tolerance is None else tolerance
    severity = settings.on_power_loss if on_power_loss is None else Severity(on_power_loss)

    rows = mode_count(nmax)
    current = cs.a.shape[0]
    if rows == current:
        return cs
    if rows > current:
        pad = ((0, rows - current), (0, 0))
        return cs.copy(a=np.pad(cs.a, pad), b=np.pad(cs.b, pad))

    before = _total_power(cs.a, cs.b)
    a = cs.a[:rows]
    b = cs.b[:rows]
    after = _total_power(a, b)
    error = abs(before - after) / before if before > 0 else 0.0
    if error > tolerance:
        advise(
            f"Apparent power loss truncating from nmax {cs.nmax} to {nmax}",
            error,
            severity,
        )
    return cs.copy(a=a, b=b)


def shrink_to_tolerance(
    cs: CoefficientSet, tolerance: float | None = None
) -> CoefficientSet:
    """Smallest truncation order, found in ascending order, within tolerance.

    Degrees are tried from 1 upwards and the first order for which both the
    ``a`` and the ``b`` power lose less than ``tolerance`` (relative) is
    returned.
    """
    tolerance = get_settings().power_loss_tolerance if tolerance is None else tolerance
    power_a = np.sum(np.abs(cs.a) ** 2)
    power_b = np.sum(np.abs(cs.b) ** 2)

    for nmax in range(1, cs.nmax + 1):
        rows = mode_count(nmax)
        error_a = (
            abs(power_a - np.sum(np.abs(cs.a[:rows]) ** 2)) / power_a if power_a > 0 else 0.0
        )
        error_b = (
            abs(power_b - np.sum(np.abs(cs.b[:rows]) ** 2)) / power_b if power_b > 0 else 0.0
        )
        if error_a < tolerance and error_b < tolerance:
            log.debug(
                "Shrinking nmax %d -> %d (errors %e, %e)", cs.nmax, nmax, error_a, error_b
            )
            return resize(cs, nmax, on_power_loss=Severity.IGNORE)
    return cs

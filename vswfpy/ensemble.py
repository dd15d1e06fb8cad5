"""Ensembles of coefficient sets and their combination rules.

An :class:`Ensemble` is a node holding an ordered sequence of members, each a
:class:`~vswfpy.coefficients.CoefficientSet` leaf or a nested ensemble,
together with an :class:`~vswfpy.basis.ArrayType` tag:

- ``independent`` members are evaluated element by element,
- ``coherent`` members are amplitude-summed before evaluation,
- ``incoherent`` members are evaluated one by one and the resulting scalars
  (power, force, torque, spin, intensity) are summed.

A coherent ensemble may not contain an incoherent descendant; this is checked
when the ensemble is built.

All reductions visit members in ascending order, so results do not depend on
how the per-member work is scheduled.
"""

from __future__ import annotations

import logging
from numbers import Number
from typing import Callable, Iterator, Sequence, Union

import numpy as np

from vswfpy.basis import ArrayType
from vswfpy.coefficients import CoefficientSet, resize, stack_beams
from vswfpy.errors import CardinalityMismatch, InvariantViolation

log = logging.getLogger(__name__)

Beam = Union[CoefficientSet, "Ensemble"]


def contains_incoherent(item: Beam) -> bool:
    """Whether ``item`` or any of its descendants is tagged incoherent."""
    if item.array_type is ArrayType.INCOHERENT:
        return True
    if isinstance(item, Ensemble):
        return any(contains_incoherent(child) for child in item.children)
    return False


def coherent_sum(item: Beam) -> CoefficientSet:
    """Amplitude sum of every beam below ``item`` as a single-beam set."""
    if isinstance(item, CoefficientSet):
        return item.sum()
    total = None
    for child in item.children:
        part = coherent_sum(child).with_array_type(ArrayType.INDEPENDENT)
        total = part if total is None else total + part
    if total is None:
        raise InvariantViolation("Cannot sum an empty ensemble")
    return total.with_array_type(item.array_type)


def flatten(item: Beam) -> list[CoefficientSet]:
    """Leaves below ``item`` in depth-first order."""
    if isinstance(item, CoefficientSet):
        return [item]
    leaves = []
    for child in item.children:
        leaves.extend(flatten(child))
    return leaves


class Ensemble:
    """Ordered collection of beams sharing one combination tag.

    Parameters
    ----------
    children:
        Members, each a :class:`CoefficientSet` or an :class:`Ensemble`.
    array_type:
        Combination tag, ``"independent"`` (alias ``"array"``), ``"coherent"``
        or ``"incoherent"``.

    Raises
    ------
    InvariantViolation
        If a coherent ensemble would contain an incoherent descendant.
    """

    __slots__ = ("_children", "_array_type")

    def __init__(
        self,
        children: Sequence[Beam],
        array_type: ArrayType | str = ArrayType.INDEPENDENT,
    ):
        children = tuple(children)
        for child in children:
            if not isinstance(child, (CoefficientSet, Ensemble)):
                raise TypeError(
                    f"Ensemble members must be CoefficientSet or Ensemble, got {type(child).__name__}"
                )
        self._children = children
        self._array_type = ArrayType(array_type)
        if self._array_type is ArrayType.COHERENT and any(
            contains_incoherent(child) for child in children
        ):
            raise InvariantViolation(
                "A coherent ensemble cannot contain incoherent members"
            )

    @property
    def children(self) -> tuple[Beam, ...]:
        return self._children

    @property
    def array_type(self) -> ArrayType:
        return self._array_type

    @property
    def nmax(self) -> int:
        return max((child.nmax for child in self._children), default=0)

    @property
    def power(self):
        """Power combined according to the ensemble tag."""
        values = combine(
            lambda cs: np.sum(np.abs(cs.a) ** 2 + np.abs(cs.b) ** 2, axis=0)[np.newaxis],
            self,
        )[0]
        return float(values[0]) if values.shape[0] == 1 else values

    def with_array_type(self, array_type: ArrayType | str) -> "Ensemble":
        return Ensemble(self._children, array_type)

    def resize(self, nmax: int, **kwargs) -> "Ensemble":
        return self.map(lambda child: child.resize(nmax, **kwargs))

    def map(self, fn: Callable[[Beam], Beam]) -> "Ensemble":
        """Ensemble with ``fn`` applied to every direct member."""
        return Ensemble([fn(child) for child in self._children], self._array_type)

    def __len__(self) -> int:
        return len(self._children)

    def __iter__(self) -> Iterator[Beam]:
        return iter(self._children)

    def __getitem__(self, index) -> Beam:
        if isinstance(index, (int, np.integer)):
            return self._children[index]
        if isinstance(index, slice):
            selected = self._children[index]
        else:
            selected = tuple(self._children[int(i)] for i in index)
        return Ensemble(selected, self._array_type)

    def replace(self, index: int, value: Beam) -> "Ensemble":
        """Ensemble with member ``index`` replaced by ``value``.

        ``value`` must not exceed the ensemble truncation order; sets of a
        smaller order are zero-padded to it.
        """
        nmax = self.nmax
        if value.nmax > nmax:
            raise InvariantViolation(
                f"Assigned value nmax {value.nmax} exceeds ensemble nmax {nmax}"
            )
        value = value.resize(nmax)
        children = list(self._children)
        children[index] = value
        return Ensemble(children, self._array_type)

    def __add__(self, other):
        if not isinstance(other, (CoefficientSet, Ensemble)):
            return NotImplemented
        return superpose(self, other)

    def __radd__(self, other):
        if not isinstance(other, CoefficientSet):
            return NotImplemented
        return superpose(other, self)

    def __mul__(self, other):
        if isinstance(other, (Number, np.number)):
            return self.map(lambda child: child * other)
        return NotImplemented

    __rmul__ = __mul__

    def __repr__(self) -> str:
        return f"Ensemble({len(self._children)} members, array_type={self._array_type.value})"


def superpose(first: Beam, second: Beam) -> Beam:
    """Coherent superposition of two beams.

    Two sets add their amplitudes, two coherent ensembles merge their members,
    anything else becomes a new two-member coherent ensemble.

    Raises
    ------
    InvariantViolation
        If either operand is incoherent.
    """
    for item in (first, second):
        if item.array_type is ArrayType.INCOHERENT:
            raise InvariantViolation("Incoherent beams cannot be superposed")
    if isinstance(first, CoefficientSet) and isinstance(second, CoefficientSet):
        return first + second
    if (
        isinstance(first, Ensemble)
        and isinstance(second, Ensemble)
        and first.array_type is second.array_type is ArrayType.COHERENT
    ):
        return Ensemble(first.children + second.children, ArrayType.COHERENT)
    return Ensemble((first, second), ArrayType.COHERENT)


def concatenate(*items: Beam) -> Beam:
    """Concatenate beams.

    Items of the same concrete type and tag are merged directly (beam columns
    for sets sharing basis and wavenumber, members for ensembles). Anything
    else becomes a new independent ensemble over the items, so concatenation
    never fails for a non-empty input.
    """
    if not items:
        raise InvariantViolation("Nothing to concatenate")
    first = items[0]
    same_tag = all(item.array_type is first.array_type for item in items)
    if same_tag and all(isinstance(item, CoefficientSet) for item in items):
        if all(
            item.basis is first.basis and np.isclose(item.wavenumber, first.wavenumber)
            for item in items
        ):
            return stack_beams(items)
    if same_tag and all(isinstance(item, Ensemble) for item in items):
        children = tuple(child for item in items for child in item.children)
        return Ensemble(children, first.array_type)
    return Ensemble(items, ArrayType.INDEPENDENT)


def _member(item: Beam, index: int) -> Beam:
    if isinstance(item, Ensemble):
        return item.children[index if len(item) > 1 else 0]
    return item


def _collapse(item: Beam) -> Beam:
    if isinstance(item, Ensemble) and item.array_type is ArrayType.COHERENT:
        return coherent_sum(item)
    return item


def combine(
    fn: Callable[..., np.ndarray],
    *items: Beam,
    incoherent_sum: bool = True,
) -> np.ndarray:
    """Evaluate ``fn`` over beams following the combination tags.

    Parameters
    ----------
    fn:
        Called with one single-level :class:`CoefficientSet` per item and
        returning an array whose last axis runs over beams.
    *items:
        Beams evaluated together (for example incident and scattered). The
        tag of the first ensemble (or of the first set) governs reduction.
    incoherent_sum:
        Whether incoherent results are summed. Field amplitudes are stacked
        instead.

    Returns
    -------
    numpy.ndarray
        Results stacked along the last axis.
    """
    items = tuple(_collapse(item) for item in items)
    nodes = [item for item in items if isinstance(item, Ensemble)]

    if not nodes:
        leaves = [
            item.sum() if item.array_type is ArrayType.COHERENT else item
            for item in items
        ]
        values = np.asarray(fn(*leaves))
        if incoherent_sum and items[0].array_type is ArrayType.INCOHERENT:
            values = values.sum(axis=-1, keepdims=True)
        return values

    count = 1
    for node in nodes:
        count = _broadcast_members(count, len(node))
    results = [
        combine(fn, *[_member(item, i) for item in items], incoherent_sum=incoherent_sum)
        for i in range(count)
    ]
    if incoherent_sum and nodes[0].array_type is ArrayType.INCOHERENT:
        total = results[0].sum(axis=-1, keepdims=True)
        for result in results[1:]:
            total = total + result.sum(axis=-1, keepdims=True)
        return total
    return np.concatenate(results, axis=-1)


def _broadcast_members(count: int, size: int) -> int:
    if count == size or size == 1:
        return count
    if count == 1:
        return size
    raise CardinalityMismatch(
        f"Ensembles with {count} and {size} members cannot be paired"
    )


def grow_to_common(first: CoefficientSet, second: CoefficientSet):
    """Both sets grown to their common truncation order."""
    nmax = max(first.nmax, second.nmax)
    return resize(first, nmax), resize(second, nmax)

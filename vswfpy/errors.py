"""Exception taxonomy for coefficient algebra.

Three classes are always fatal:

- :class:`InvariantViolation` for malformed coefficient data or illegal
  ensemble nesting,
- :class:`CardinalityMismatch` for batch sizes that cannot be paired,
- :class:`BasisError` for operations that are undefined for a basis.

:class:`ConvergenceAdvisory` is the only recoverable condition. It is raised
through :func:`advise`, whose severity is chosen by the caller.
"""

from __future__ import annotations

import logging
import warnings
from enum import Enum

log = logging.getLogger(__name__)


class VswfError(Exception):
    """Base class for all errors raised by vswfpy."""


class InvariantViolation(VswfError, ValueError):
    pass


class CardinalityMismatch(VswfError, ValueError):
    pass


class BasisError(VswfError, ValueError):
    pass


class ConvergenceAdvisory(VswfError, UserWarning):
    """Numerical advisory (power loss, translation beyond trusted region).

    Parameters
    ----------
    message:
        Human readable description.
    error:
        The numeric error magnitude that triggered the advisory.
    """

    def __init__(self, message: str, error: float = 0.0):
        super().__init__(message)
        self.error = float(error)


class Severity(str, Enum):
    IGNORE = "ignore"
    WARN = "warn"
    ERROR = "error"


def advise(message: str, error: float, severity: Severity | str = Severity.WARN) -> None:
    """Dispatch a convergence advisory according to ``severity``.

    Parameters
    ----------
    message:
        Description of the condition.
    error:
        Computed error magnitude, appended to the message.
    severity:
        ``"ignore"`` only logs at debug level, ``"warn"`` issues a
        :class:`ConvergenceAdvisory` warning, ``"error"`` raises it.
    """

    severity = Severity(severity)
    text = f"{message} (error = {error:.3e})"
    match severity:
        case Severity.IGNORE:
            log.debug(text)
        case Severity.WARN:
            log.warning(text)
            warnings.warn(ConvergenceAdvisory(text, error), stacklevel=3)
        case Severity.ERROR:
            raise ConvergenceAdvisory(text, error)

import logging

from .basis import ArrayType, Basis
from .coefficients import CoefficientSet, resize, shrink_to_tolerance
from .config import Settings, get_settings, set_settings
from .ensemble import Ensemble, concatenate, contains_incoherent, superpose
from .errors import (
    BasisError,
    CardinalityMismatch,
    ConvergenceAdvisory,
    InvariantViolation,
    Severity,
    VswfError,
)
from .fields import NearFieldCache, far_field, intensity, near_field, near_field_rtp
from .moments import force, force_torque, spin, torque
from .operators import MatrixOperator, ScatteringOperator, scatter
from .transformations import (
    apply_transformation,
    rotate,
    rotate_x,
    rotate_y,
    rotate_z,
    translate,
    translate_z,
)

__version__ = "0.1.0"

logging.getLogger(__name__).addHandler(logging.NullHandler())

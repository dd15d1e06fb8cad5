"""Low-level numerical kernels and special functions.

This subpackage contains the special functions, the rotation and translation
matrices and the Numba-accelerated moment sums used by the coefficient
algebra.
"""

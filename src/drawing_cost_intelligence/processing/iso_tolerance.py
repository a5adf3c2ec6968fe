"""
ISO general tolerance tables for the Drawing Cost Intelligence System.

ISO 13920 (welded constructions):
    Linear classes A (fine) .. D (very coarse), ± mm
    Flatness/straightness/parallelism classes E (fine) .. H (very coarse), mm

ISO 2768-1 (general linear dimensions):
    Classes f (fine), m (medium), c (coarse), v (very coarse), ± mm

Rows are indexed by the upper bound of the nominal size range; sizes past
the last breakpoint use the last row. Classes are ordered finest first, so a
class is tighter than another when its index is smaller.
"""

from typing import Optional, Sequence

import numpy as np

LINEAR_CLASSES = ("A", "B", "C", "D")
GEOMETRIC_CLASSES = ("E", "F", "G", "H")
ISO2768_CLASSES = ("f", "m", "c", "v")

ISO2768_CLASS_NAMES = {
    "f": "Fine",
    "m": "Medium",
    "c": "Coarse",
    "v": "VeryCoarse",
}

_LINEAR_BREAKPOINTS_MM = np.array(
    [30, 120, 400, 1000, 2000, 4000, 8000, 12000, 16000, 20000], dtype=float
)
# Columns A, B, C, D
_LINEAR_TABLE_MM = np.array(
    [
        [1, 2, 3, 4],
        [1, 2, 4, 7],
        [1, 3, 6, 9],
        [2, 4, 8, 12],
        [3, 6, 11, 16],
        [4, 8, 14, 21],
        [5, 10, 18, 27],
        [6, 12, 21, 32],
        [7, 14, 24, 36],
        [8, 16, 27, 40],
    ],
    dtype=float,
)

_GEOMETRIC_BREAKPOINTS_MM = np.array(
    [120, 400, 1000, 2000, 4000, 8000, 12000, 16000, 20000], dtype=float
)
# Columns E, F, G, H
_GEOMETRIC_TABLE_MM = np.array(
    [
        [0.5, 1, 1.5, 2.5],
        [1, 1.5, 3, 5],
        [1.5, 3, 5.5, 9],
        [2, 4.5, 9, 14],
        [3, 6, 11, 18],
        [4, 8, 16, 26],
        [5, 10, 20, 32],
        [6, 12, 22, 36],
        [7, 14, 25, 40],
    ],
    dtype=float,
)

_ISO2768_BREAKPOINTS_MM = np.array([3, 6, 30, 120, 400, 1000, 2000, 4000], dtype=float)
# Columns f, m, c, v; NaN where the class is undefined for the size range
_ISO2768_TABLE_MM = np.array(
    [
        [0.05, 0.1, 0.2, np.nan],
        [0.05, 0.1, 0.3, 0.5],
        [0.1, 0.2, 0.5, 1.0],
        [0.15, 0.3, 0.8, 1.5],
        [0.2, 0.5, 1.2, 2.5],
        [0.3, 0.8, 2.0, 4.0],
        [0.5, 1.2, 3.0, 6.0],
        [np.nan, 2.0, 4.0, 8.0],
    ],
    dtype=float,
)


def _lookup(
    breakpoints: np.ndarray,
    table: np.ndarray,
    classes: Sequence[str],
    size_mm: float,
    cls: str,
) -> float:
    if cls not in classes:
        raise ValueError(f"Unknown tolerance class {cls!r}, expected one of {classes}")
    row = int(np.searchsorted(breakpoints, size_mm, side="left"))
    row = min(row, len(breakpoints) - 1)
    return float(table[row, classes.index(cls)])


def iso13920_linear(nominal_mm: float, cls: str) -> float:
    """ISO 13920 linear tolerance (± mm) for a nominal size and class A-D."""
    return _lookup(_LINEAR_BREAKPOINTS_MM, _LINEAR_TABLE_MM, LINEAR_CLASSES, nominal_mm, cls)


def iso13920_geometric(length_mm: float, cls: str) -> float:
    """ISO 13920 flatness/straightness tolerance (mm) for a length and class E-H."""
    return _lookup(
        _GEOMETRIC_BREAKPOINTS_MM, _GEOMETRIC_TABLE_MM, GEOMETRIC_CLASSES, length_mm, cls
    )


def iso2768_linear(nominal_mm: float, cls: str) -> float:
    """ISO 2768-1 linear tolerance (± mm); NaN where the class is undefined."""
    return _lookup(
        _ISO2768_BREAKPOINTS_MM, _ISO2768_TABLE_MM, ISO2768_CLASSES, nominal_mm, cls
    )


def is_tighter(a: str, b: str, classes: Sequence[str] = LINEAR_CLASSES) -> bool:
    """
    True when class ``a`` is finer than class ``b``.

    Args:
        a: Candidate class.
        b: Reference class.
        classes: Ordered class names, finest first.

    Raises:
        ValueError: If either class is not in ``classes``.
    """
    if a not in classes or b not in classes:
        raise ValueError(f"Cannot compare classes {a!r} and {b!r} within {classes}")
    return classes.index(a) < classes.index(b)


def is_tighter_linear(a: str, b: str) -> bool:
    return is_tighter(a, b, LINEAR_CLASSES)


def is_tighter_geometric(a: str, b: str) -> bool:
    return is_tighter(a, b, GEOMETRIC_CLASSES)


def classify_linear_13920(nominal_mm: float, band_mm: float) -> Optional[str]:
    """
    Finest ISO 13920 linear class whose tolerance covers a band.

    Args:
        nominal_mm: Nominal size in mm.
        band_mm: Total tolerance band in mm (compared as ± half band).

    Returns:
        Class letter, or None when the band is looser than class D.
    """
    half_band = band_mm / 2.0
    for cls in LINEAR_CLASSES:
        if half_band <= iso13920_linear(nominal_mm, cls):
            return cls
    return None


def classify_geometric_13920(length_mm: float, tolerance_mm: float) -> Optional[str]:
    """Finest ISO 13920 geometric class covering a tolerance, None past class H."""
    for cls in GEOMETRIC_CLASSES:
        if tolerance_mm <= iso13920_geometric(length_mm, cls):
            return cls
    return None

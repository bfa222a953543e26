"""
Affine transforms for 2-D stitch coordinates.

The matrix uses the row-vector convention: a point [x, y, 1] is multiplied
on the left, so

    x' = x·m[0,0] + y·m[1,0] + m[2,0]
    y' = x·m[0,1] + y·m[1,1] + m[2,1]

Every builder method right-multiplies the current matrix, so operations
apply to points in the order they were called:

    AffineTransform().translate(5, 0).rotate(90)   # translate, then rotate
"""

from __future__ import annotations

import math
from typing import Sequence

import numpy as np

from .errors import SingularMatrixError

IDENTITY_TOLERANCE: float = 1e-10
SINGULAR_TOLERANCE: float = 1e-10


class AffineTransform:
    """Mutable 3×3 homogeneous transform, identity by default."""

    def __init__(self) -> None:
        self._m = np.identity(3, dtype=float)

    @classmethod
    def from_values(cls, values: Sequence[float]) -> AffineTransform:
        """Build from nine row-major values."""
        if len(values) != 9:
            raise ValueError(f"expected 9 matrix values, got {len(values)}")
        t = cls()
        t._m = np.array(values, dtype=float).reshape(3, 3)
        return t

    @property
    def values(self) -> tuple[float, ...]:
        """Row-major copy of the nine matrix values."""
        return tuple(float(v) for v in self._m.flat)

    @property
    def determinant(self) -> float:
        return float(np.linalg.det(self._m))

    def copy(self) -> AffineTransform:
        return AffineTransform.from_values(self.values)

    def __repr__(self) -> str:
        return f"AffineTransform({list(self.values)})"

    # ── Builders ───────────────────────────────────────────────────────────────

    def _post(self, other: np.ndarray) -> AffineTransform:
        self._m = self._m @ other
        return self

    def reset(self) -> AffineTransform:
        self._m = np.identity(3, dtype=float)
        return self

    def then(self, other: AffineTransform) -> AffineTransform:
        """Append other so it applies after everything already in this transform."""
        return self._post(other._m)

    def translate(self, dx: float, dy: float) -> AffineTransform:
        m = np.identity(3, dtype=float)
        m[2, 0] = dx
        m[2, 1] = dy
        return self._post(m)

    def scale(
        self,
        sx: float,
        sy: float | None = None,
        origin_x: float = 0.0,
        origin_y: float = 0.0,
    ) -> AffineTransform:
        """Scale about (origin_x, origin_y). sy defaults to sx."""
        if sy is None:
            sy = sx
        self.translate(-origin_x, -origin_y)
        self._post(np.diag([float(sx), float(sy), 1.0]))
        return self.translate(origin_x, origin_y)

    def rotate(self, degrees: float, origin_x: float = 0.0, origin_y: float = 0.0) -> AffineTransform:
        """Rotate counter-clockwise by degrees about (origin_x, origin_y)."""
        theta = math.radians(degrees)
        ct, st = math.cos(theta), math.sin(theta)
        m = np.array([[ct, st, 0.0], [-st, ct, 0.0], [0.0, 0.0, 1.0]])
        self.translate(-origin_x, -origin_y)
        self._post(m)
        return self.translate(origin_x, origin_y)

    # ── Queries ────────────────────────────────────────────────────────────────

    def transform_point(self, x: float, y: float) -> tuple[float, float]:
        nx, ny, _ = np.array([x, y, 1.0]) @ self._m
        return float(nx), float(ny)

    def transform_points(self, points: np.ndarray) -> np.ndarray:
        """Apply to an (n, 2) array of points; returns a new (n, 2) array."""
        pts = np.asarray(points, dtype=float).reshape(-1, 2)
        homogeneous = np.hstack([pts, np.ones((len(pts), 1))])
        return (homogeneous @ self._m)[:, :2]

    def is_identity(self, tolerance: float = IDENTITY_TOLERANCE) -> bool:
        return bool(np.allclose(self._m, np.identity(3), rtol=0.0, atol=tolerance))

    def inverse(self) -> AffineTransform:
        """
        Return a new transform that undoes this one.

        Raises:
            SingularMatrixError: If |det| is below SINGULAR_TOLERANCE.
        """
        det = self.determinant
        if abs(det) < SINGULAR_TOLERANCE:
            raise SingularMatrixError(f"transform is not invertible (det={det:.3g})")
        inv = AffineTransform()
        inv._m = np.linalg.inv(self._m)
        return inv

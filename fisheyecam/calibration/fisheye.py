"""
Fisheye Camera Model Module.

Four-coefficient fisheye distortion on top of the pinhole base model, using
the same law as OpenCV's ``cv2.fisheye`` module.

Mathematical Background:
========================

Equidistant Projection:
-----------------------
A ray at incidence angle θ from the optical axis meets the pinhole normalized
plane at radius r = tan(θ). A fisheye lens instead places it at a radius
proportional to θ itself, bent by an odd polynomial:

    θ   = atan(r),          r = sqrt(x² + y²)
    θ_d = θ + k1·θ³ + k2·θ⁵ + k3·θ⁷ + k4·θ⁹

The distorted point keeps the direction of (x, y) and takes radius θ_d:

    (x_d, y_d) = (x, y) · θ_d / r

Near the axis θ_d / r → 1, so points with r <= EPSILON are returned as is.

Inverse:
--------
The polynomial has no closed-form inverse. Writing it as

    θ_d = θ · (1 + k1·θ² + k2·θ⁴ + k3·θ⁶ + k4·θ⁸)

gives the fixed-point iteration

    θ ← θ_d / (1 + k1·θ² + k2·θ⁴ + k3·θ⁶ + k4·θ⁸)

started at θ = θ_d and run UNDISTORT_ITERATIONS times, after which

    (x, y) = (x_d, y_d) · tan(θ) / θ_d

The iteration count is fixed and convergence is not checked. It converges for
coefficients that keep θ_d(θ) monotonic over the field of view; other
coefficients may give a poor inverse.

Optimizer Interface:
====================
Flat parameter vector (7 values):

    [focal, ppx, ppy, k1, k2, k3, k4]
"""

from dataclasses import dataclass, field
from numbers import Real
from typing import Any, Dict, List, Sequence

import numpy as np

from .camera_types import IntrinsicType, MalformedIntrinsicError
from .intrinsics import Pinhole, _as_points, _restore

# Radius below which distortion is treated as the identity
EPSILON = 1e-8

# Fixed-point iterations used by remove_disto
UNDISTORT_ITERATIONS = 10

NUM_DISTORTION_PARAMS = 4


@dataclass(eq=False)
class PinholeFisheye(Pinhole):
    """
    Pinhole camera with four-coefficient fisheye distortion.

    Attributes:
        distortion_params: Coefficients (k1, k2, k3, k4), float64 array of shape (4,).
            Assigning it directly goes through the same check as
            set_distortion_params(): anything other than 4 values raises
            ValueError and leaves the current coefficients in place.

    Thread safety:
        Every method reads the current parameters without locking. Concurrent
        reads are safe. update_from_params(), set_distortion_params() and
        set_K() are writers: callers must not run them concurrently with
        any other call on the same instance.

    Example:
        >>> cam = PinholeFisheye(width=1280, height=960, focal=350.0,
        ...                      ppx=640.0, ppy=480.0,
        ...                      distortion_params=[-0.02, 0.01, -0.005, 0.001])
        >>> distorted = cam.add_disto([0.3, 0.4])
        >>> np.allclose(cam.remove_disto(distorted), [0.3, 0.4])
        True
    """

    distortion_params: np.ndarray = field(
        default_factory=lambda: np.zeros(NUM_DISTORTION_PARAMS)
    )

    def __setattr__(self, name: str, value: Any) -> None:
        # Every write of the coefficients, including the one in __init__, is checked
        if name == "distortion_params":
            value = self._check_coefficients(value)
        super().__setattr__(name, value)

    @staticmethod
    def _check_coefficients(coefficients: Sequence[float]) -> np.ndarray:
        coefficients = np.asarray(coefficients, dtype=np.float64).flatten()
        if coefficients.shape != (NUM_DISTORTION_PARAMS,):
            raise ValueError(
                f"Expected {NUM_DISTORTION_PARAMS} distortion coefficients, "
                f"got {coefficients.shape[0]}"
            )
        return coefficients

    def get_type(self) -> IntrinsicType:
        return IntrinsicType.PINHOLE_CAMERA_FISHEYE

    def has_disto(self) -> bool:
        return True

    def add_disto(self, point: np.ndarray) -> np.ndarray:
        """
        Apply fisheye distortion to normalized camera-plane point(s).

        Args:
            point: Undistorted point (2,) or points (N, 2).

        Returns:
            np.ndarray: Distorted point(s), same shape as the input.
        """
        pts, single = _as_points(point)
        k1, k2, k3, k4 = self.distortion_params

        r = np.hypot(pts[:, 0], pts[:, 1])
        theta = np.arctan(r)
        theta2 = theta * theta
        theta3 = theta2 * theta
        theta5 = theta3 * theta2
        theta7 = theta5 * theta2
        theta9 = theta7 * theta2
        theta_dist = theta + k1 * theta3 + k2 * theta5 + k3 * theta7 + k4 * theta9

        off_axis = r > EPSILON
        scale = np.ones_like(r)
        scale[off_axis] = theta_dist[off_axis] / r[off_axis]

        return _restore(pts * scale[:, np.newaxis], single)

    def remove_disto(self, point: np.ndarray) -> np.ndarray:
        """
        Remove fisheye distortion from normalized camera-plane point(s).

        Args:
            point: Distorted point (2,) or points (N, 2).

        Returns:
            np.ndarray: Undistorted point(s), same shape as the input.
        """
        pts, single = _as_points(point)
        k1, k2, k3, k4 = self.distortion_params

        theta_dist = np.hypot(pts[:, 0], pts[:, 1])
        theta = theta_dist.copy()
        for _ in range(UNDISTORT_ITERATIONS):
            theta2 = theta * theta
            theta4 = theta2 * theta2
            theta6 = theta4 * theta2
            theta8 = theta6 * theta2
            theta = theta_dist / (1 + k1 * theta2 + k2 * theta4 + k3 * theta6 + k4 * theta8)

        off_axis = theta_dist > EPSILON
        scale = np.ones_like(theta_dist)
        scale[off_axis] = np.tan(theta[off_axis]) / theta_dist[off_axis]

        return _restore(pts * scale[:, np.newaxis], single)

    # Data wrapper for non linear optimization

    def get_params(self) -> List[float]:
        """Return the flat optimizer vector [focal, ppx, ppy, k1, k2, k3, k4]."""
        return super().get_params() + self.get_distortion_params()

    def get_distortion_params(self) -> List[float]:
        """Return [k1, k2, k3, k4]."""
        return [float(k) for k in self.distortion_params]

    def set_distortion_params(self, coefficients: Sequence[float]) -> None:
        """
        Replace the four distortion coefficients.

        Raises:
            ValueError: If the sequence does not hold exactly 4 values.
                The current coefficients are kept.
        """
        self.distortion_params = coefficients

    def update_from_params(self, params: Sequence[float]) -> bool:
        """
        Replace pinhole and distortion parameters from a flat vector.

        Either all seven values are applied or none is.

        Args:
            params: [focal, ppx, ppy, k1, k2, k3, k4].

        Returns:
            bool: True if applied, False (nothing changed) on a length mismatch.
        """
        expected = 3 + NUM_DISTORTION_PARAMS
        if len(params) != expected:
            self.logger.debug(
                f"Rejected parameter update for {self.get_type().type_name}: "
                f"expected {expected} values, got {len(params)}"
            )
            return False

        values = [float(v) for v in params]
        super().update_from_params(values[:3])
        self.distortion_params = values[3:]
        return True

    # Persistence

    def to_dict(self) -> Dict[str, Any]:
        """Pinhole record plus the ``fisheye4`` coefficient list."""
        record = super().to_dict()
        record["fisheye4"] = self.get_distortion_params()
        return record

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PinholeFisheye":
        """
        Create a model from a record produced by to_dict().

        Raises:
            MalformedIntrinsicError: If the pinhole fields are invalid or
                ``fisheye4`` is not a list of exactly 4 numbers.
        """
        kwargs = cls._pinhole_fields(data)

        coefficients = data.get("fisheye4")
        if not isinstance(coefficients, (list, tuple)):
            raise MalformedIntrinsicError(
                f"Field 'fisheye4' must be a list of {NUM_DISTORTION_PARAMS} numbers, "
                f"got {coefficients!r}"
            )
        if len(coefficients) != NUM_DISTORTION_PARAMS:
            raise MalformedIntrinsicError(
                f"Field 'fisheye4' must hold {NUM_DISTORTION_PARAMS} coefficients, "
                f"got {len(coefficients)}"
            )
        if any(isinstance(k, bool) or not isinstance(k, Real) for k in coefficients):
            raise MalformedIntrinsicError(f"Field 'fisheye4' must hold numbers, got {coefficients!r}")

        return cls(distortion_params=coefficients, **kwargs)

    def __repr__(self) -> str:
        """String representation."""
        k1, k2, k3, k4 = self.get_distortion_params()
        return (
            f"{super().__repr__()[:-1]}, "
            f"k1={k1:.6g}, k2={k2:.6g}, k3={k3:.6g}, k4={k4:.6g})"
        )

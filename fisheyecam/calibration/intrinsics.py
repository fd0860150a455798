"""
Pinhole Camera Model Module.

This module implements the pinhole base model shared by every camera variant:
a single focal length, a principal point and the image size.

Mathematical Background:
========================

The camera intrinsic matrix K maps normalized camera-plane coordinates to
pixel coordinates:

    K = | f  0  ppx |
        | 0  f  ppy |
        | 0  0   1  |

Image ↔ camera plane conversion:

    camera = (pixel - pp) / f          (ima2cam)
    pixel  = f * camera + pp           (cam2ima)

A 3D point (X, Y, Z) in the camera frame lands on the normalized plane at
(X/Z, Y/Z). Variants with lens distortion insert their distortion law between
the perspective division and cam2ima:

    pixel = cam2ima(add_disto((X/Z, Y/Z)))

Optimizer Interface:
====================
The pinhole exposes its three tunable scalars as a flat vector

    [focal, ppx, ppy]

through get_params() / update_from_params(). Variants append their own
parameters after these three.
"""

import copy
from dataclasses import dataclass
from numbers import Real
from typing import Any, Dict, List, Sequence, Tuple

import numpy as np

from ..utils.logger import LoggerMixin
from .camera_types import IntrinsicType, MalformedIntrinsicError


def _as_points(points: Any, dim: int = 2) -> Tuple[np.ndarray, bool]:
    """
    Convert a single point or a batch of points to an (N, dim) float array.

    Returns:
        Tuple of the (N, dim) array and whether the input was a single point.

    Raises:
        ValueError: If the input is not (dim,) or (N, dim).
    """
    arr = np.asarray(points, dtype=np.float64)
    pts = np.atleast_2d(arr)
    if pts.ndim != 2 or pts.shape[1] != dim:
        raise ValueError(f"Expected point(s) of shape ({dim},) or (N, {dim}), got {arr.shape}")
    return pts, arr.ndim == 1


def _restore(points: np.ndarray, single: bool) -> np.ndarray:
    """Undo _as_points batching for single-point inputs."""
    return points[0] if single else points


def _as_number(value: Any, key: str) -> float:
    if isinstance(value, bool) or not isinstance(value, Real):
        raise MalformedIntrinsicError(f"Field '{key}' must be a number, got {value!r}")
    return float(value)


@dataclass(eq=False)
class Pinhole(LoggerMixin):
    """
    Pinhole camera model without distortion.

    Attributes:
        width: Image width in pixels.
        height: Image height in pixels.
        focal: Focal length in pixels (same for both axes).
        ppx: Principal point x coordinate (pixels).
        ppy: Principal point y coordinate (pixels).

    Example:
        >>> cam = Pinhole(width=1920, height=1080, focal=700.0, ppx=960.0, ppy=540.0)
        >>> cam.get_params()
        [700.0, 960.0, 540.0]
        >>> cam.ima2cam([1030.0, 540.0])
        array([0.1, 0. ])
    """

    width: int = 0  # Image width (pixels)
    height: int = 0  # Image height (pixels)
    focal: float = 0.0  # Focal length (pixels)
    ppx: float = 0.0  # Principal point x (pixels)
    ppy: float = 0.0  # Principal point y (pixels)

    def get_type(self) -> IntrinsicType:
        return IntrinsicType.PINHOLE_CAMERA

    def has_disto(self) -> bool:
        return False

    @property
    def parameter_count(self) -> int:
        """Length of the flat optimizer vector."""
        return len(self.get_params())

    @property
    def principal_point(self) -> np.ndarray:
        return np.array([self.ppx, self.ppy], dtype=np.float64)

    @property
    def K(self) -> np.ndarray:
        """
        Get camera intrinsic matrix (3x3).

        Note:
            Alias for get_K_matrix() for convenience.
        """
        return self.get_K_matrix()

    def get_K_matrix(self) -> np.ndarray:
        """
        Get the 3x3 camera intrinsic (calibration) matrix.

        Returns:
            np.ndarray: 3x3 intrinsic matrix K with dtype float64.
        """
        return np.array([
            [self.focal, 0, self.ppx],
            [0, self.focal, self.ppy],
            [0, 0, 1]
        ], dtype=np.float64)

    def get_K_inverse(self) -> np.ndarray:
        """
        Get the inverse of the intrinsic matrix.

            K^(-1) = | 1/f    0   -ppx/f |
                     |  0    1/f  -ppy/f |
                     |  0     0      1   |

        Returns:
            np.ndarray: 3x3 inverse intrinsic matrix.
        """
        return np.array([
            [1/self.focal, 0, -self.ppx/self.focal],
            [0, 1/self.focal, -self.ppy/self.focal],
            [0, 0, 1]
        ], dtype=np.float64)

    def set_K(self, focal: float, ppx: float, ppy: float) -> None:
        """
        Replace focal length and principal point.

        Args:
            focal: Focal length in pixels.
            ppx: Principal point x in pixels.
            ppy: Principal point y in pixels.
        """
        self.focal, self.ppx, self.ppy = float(focal), float(ppx), float(ppy)

    def ima2cam(self, pixel: np.ndarray) -> np.ndarray:
        """
        Convert pixel coordinates to normalized camera-plane coordinates.

            camera = (pixel - pp) / f

        Args:
            pixel: Pixel coordinate (2,) or coordinates (N, 2).

        Returns:
            np.ndarray: Camera-plane point(s), same shape as the input.
        """
        pts, single = _as_points(pixel)
        return _restore((pts - self.principal_point) / self.focal, single)

    def cam2ima(self, point: np.ndarray) -> np.ndarray:
        """
        Convert normalized camera-plane coordinates to pixel coordinates.

            pixel = f * camera + pp

        Args:
            point: Camera-plane point (2,) or points (N, 2).

        Returns:
            np.ndarray: Pixel coordinate(s), same shape as the input.
        """
        pts, single = _as_points(point)
        return _restore(self.focal * pts + self.principal_point, single)

    def add_disto(self, point: np.ndarray) -> np.ndarray:
        """Apply lens distortion to camera-plane point(s). Identity for a pinhole."""
        pts, single = _as_points(point)
        return _restore(pts.copy(), single)

    def remove_disto(self, point: np.ndarray) -> np.ndarray:
        """Remove lens distortion from camera-plane point(s). Identity for a pinhole."""
        pts, single = _as_points(point)
        return _restore(pts.copy(), single)

    def get_ud_pixel(self, pixel: np.ndarray) -> np.ndarray:
        """
        Return the undistorted pixel (with distortion removed).

            cam2ima(remove_disto(ima2cam(pixel)))

        Args:
            pixel: Distorted pixel (2,) or pixels (N, 2).

        Returns:
            np.ndarray: Undistorted pixel(s), same shape as the input.
        """
        return self.cam2ima(self.remove_disto(self.ima2cam(pixel)))

    def get_d_pixel(self, pixel: np.ndarray) -> np.ndarray:
        """
        Return the distorted pixel (with distortion added).

            cam2ima(add_disto(ima2cam(pixel)))

        Args:
            pixel: Ideal pixel (2,) or pixels (N, 2).

        Returns:
            np.ndarray: Distorted pixel(s), same shape as the input.
        """
        return self.cam2ima(self.add_disto(self.ima2cam(pixel)))

    def project(self, point_3d: np.ndarray) -> np.ndarray:
        """
        Project 3D point(s) in camera frame to pixel coordinates.

            pixel = cam2ima(add_disto((X/Z, Y/Z)))

        Args:
            point_3d: 3D point (3,) or points (N, 3) in camera coordinates.

        Returns:
            np.ndarray: Pixel coordinate(s) (2,) or (N, 2).

        Warning:
            Points with Z <= 0 (behind camera) will produce invalid results.
            Filter these before projection.
        """
        pts, single = _as_points(point_3d, dim=3)

        # Perspective division
        normalized = pts[:, :2] / pts[:, 2:3]

        pixels = self.cam2ima(self.add_disto(normalized))
        return _restore(pixels, single)

    def unproject(self, pixel: np.ndarray) -> np.ndarray:
        """
        Convert pixel(s) to unit bearing ray(s) in the camera frame.

        Args:
            pixel: Pixel coordinate (2,) or coordinates (N, 2).

        Returns:
            np.ndarray: Unit ray direction(s) (3,) or (N, 3).
        """
        pts, single = _as_points(pixel)
        normalized = self.remove_disto(self.ima2cam(pts))

        rays = np.hstack([normalized, np.ones((len(normalized), 1))])
        rays = rays / np.linalg.norm(rays, axis=1, keepdims=True)

        return _restore(rays, single)

    def is_in_image(
        self,
        points_2d: np.ndarray,
        margin: int = 0,
    ) -> np.ndarray:
        """
        Check if 2D points are within image bounds.

        Args:
            points_2d: 2D points (N, 2) in pixel coordinates.
            margin: Additional margin from image border (pixels).

        Returns:
            np.ndarray: Boolean mask (N,) indicating valid points.
        """
        points_2d, _ = _as_points(points_2d)

        valid = (
            (points_2d[:, 0] >= margin) &
            (points_2d[:, 0] < self.width - margin) &
            (points_2d[:, 1] >= margin) &
            (points_2d[:, 1] < self.height - margin)
        )

        return valid

    def get_fov(self) -> Tuple[float, float]:
        """
        Calculate the pinhole field of view.

            θ_h = 2 * arctan(width / (2 * f))
            θ_v = 2 * arctan(height / (2 * f))

        Returns:
            Tuple[float, float]: (horizontal_fov, vertical_fov) in radians.
        """
        horizontal_fov = 2 * np.arctan(self.width / (2 * self.focal))
        vertical_fov = 2 * np.arctan(self.height / (2 * self.focal))
        return horizontal_fov, vertical_fov

    # Data wrapper for non linear optimization

    def get_params(self) -> List[float]:
        """Return the flat optimizer vector [focal, ppx, ppy]."""
        return [float(self.focal), float(self.ppx), float(self.ppy)]

    def update_from_params(self, params: Sequence[float]) -> bool:
        """
        Replace focal length and principal point from a flat vector.

        Args:
            params: [focal, ppx, ppy].

        Returns:
            bool: True if applied, False (nothing changed) on a length mismatch.
        """
        if len(params) != 3:
            self.logger.debug(
                f"Rejected parameter update for {self.get_type().type_name}: "
                f"expected 3 values, got {len(params)}"
            )
            return False
        self.set_K(*params)
        return True

    def clone(self) -> "Pinhole":
        """Return an independent copy of this model."""
        return copy.deepcopy(self)

    # Persistence

    def to_dict(self) -> Dict[str, Any]:
        """Named-field record of the pinhole parameters."""
        return {
            "width": int(self.width),
            "height": int(self.height),
            "focal_length": float(self.focal),
            "principal_point": [float(self.ppx), float(self.ppy)],
        }

    @classmethod
    def _pinhole_fields(cls, data: Dict[str, Any]) -> Dict[str, Any]:
        """Read the pinhole fields of a record into constructor kwargs."""
        if not isinstance(data, dict):
            raise MalformedIntrinsicError(f"Camera record must be a mapping, got {type(data).__name__}")

        principal_point = data.get("principal_point")
        if not isinstance(principal_point, (list, tuple)) or len(principal_point) != 2:
            raise MalformedIntrinsicError(
                f"Field 'principal_point' must be a list of 2 numbers, got {principal_point!r}"
            )
        ppx, ppy = (_as_number(v, "principal_point") for v in principal_point)

        return {
            "width": int(_as_number(data.get("width"), "width")),
            "height": int(_as_number(data.get("height"), "height")),
            "focal": _as_number(data.get("focal_length"), "focal_length"),
            "ppx": ppx,
            "ppy": ppy,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Pinhole":
        """
        Create a model from a record produced by to_dict().

        Raises:
            MalformedIntrinsicError: If a field is missing or has the wrong type.
        """
        return cls(**cls._pinhole_fields(data))

    def __eq__(self, other: object) -> bool:
        if type(self) is not type(other):
            return NotImplemented
        return (
            self.width == other.width
            and self.height == other.height
            and self.get_params() == other.get_params()
        )

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"{type(self).__name__}(focal={self.focal:.2f}, "
            f"ppx={self.ppx:.2f}, ppy={self.ppy:.2f}, "
            f"width={self.width}, height={self.height})"
        )

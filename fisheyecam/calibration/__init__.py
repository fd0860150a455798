"""
Camera intrinsic models.

This package provides the pinhole base model, the four-coefficient fisheye
distortion model built on it, and their persistence.

Classes:
    Pinhole: Focal length, principal point, image ↔ camera plane conversion.
    PinholeFisheye: Pinhole plus fisheye distortion (k1..k4).
    IntrinsicType: Model discriminant used for persistence.
    MalformedIntrinsicError: Invalid persisted camera record.

Standalone Functions:
    intrinsic_to_dict / intrinsic_from_dict: Record conversion.
    save_intrinsic / load_intrinsic: YAML or JSON camera files.

Example Usage:
    >>> from fisheyecam.calibration import PinholeFisheye, save_intrinsic
    >>>
    >>> cam = PinholeFisheye(width=1280, height=960, focal=350.0, ppx=640.0, ppy=480.0,
    ...                      distortion_params=[-0.02, 0.01, -0.005, 0.001])
    >>> ideal = cam.get_ud_pixel([900.0, 700.0])
    >>>
    >>> # Bundle adjustment round
    >>> params = cam.get_params()       # [focal, ppx, ppy, k1, k2, k3, k4]
    >>> cam.update_from_params(params)
    True
    >>> save_intrinsic(cam, "camera.yaml")
"""

from .camera_types import IntrinsicType, MalformedIntrinsicError
from .intrinsics import Pinhole
from .fisheye import (
    PinholeFisheye,
    EPSILON,
    UNDISTORT_ITERATIONS,
)
from .serialization import (
    intrinsic_to_dict,
    intrinsic_from_dict,
    save_intrinsic,
    load_intrinsic,
)

__all__ = [
    # Classes
    "IntrinsicType",
    "MalformedIntrinsicError",
    "Pinhole",
    "PinholeFisheye",
    # Constants
    "EPSILON",
    "UNDISTORT_ITERATIONS",
    # Standalone functions
    "intrinsic_to_dict",
    "intrinsic_from_dict",
    "save_intrinsic",
    "load_intrinsic",
]

"""Fisheye camera distortion model with pinhole base and optimizer interface."""

__version__ = "0.1.0"

from . import calibration
from . import utils

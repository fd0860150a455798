"""
Camera model discriminant.

Every intrinsic model identifies itself with an ``IntrinsicType`` member. The
member's ``type_name`` is the value stored under the ``type`` key of a
persisted camera record and is used to pick the class on load.
"""

from enum import Enum


class MalformedIntrinsicError(ValueError):
    """Raised when a persisted camera record cannot be turned into a model."""


class IntrinsicType(Enum):
    """Closed set of camera model variants implemented by this package."""

    PINHOLE_CAMERA = 1
    PINHOLE_CAMERA_FISHEYE = 2

    @property
    def type_name(self) -> str:
        """Name used in persisted records (e.g. ``"fisheye4"``)."""
        return _TYPE_NAMES[self]

    @classmethod
    def from_name(cls, name: str) -> "IntrinsicType":
        """
        Look up a variant by its persisted name.

        Args:
            name: Persisted type name, e.g. ``"pinhole"`` or ``"fisheye4"``.

        Returns:
            IntrinsicType: Matching variant.

        Raises:
            ValueError: If no variant uses this name.
        """
        for member, member_name in _TYPE_NAMES.items():
            if member_name == name:
                return member
        raise ValueError(
            f"Unknown camera model type '{name}', "
            f"expected one of {sorted(_TYPE_NAMES.values())}"
        )


_TYPE_NAMES = {
    IntrinsicType.PINHOLE_CAMERA: "pinhole",
    IntrinsicType.PINHOLE_CAMERA_FISHEYE: "fisheye4",
}

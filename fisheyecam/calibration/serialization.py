"""
Camera model persistence.

A camera is stored as a flat named-field record. The ``type`` field holds the
model discriminant, the remaining fields come from the model's ``to_dict()``:

    type: fisheye4
    width: 1280
    height: 960
    focal_length: 350.0
    principal_point: [640.0, 480.0]
    fisheye4: [-0.02, 0.01, -0.005, 0.001]

Records are written as YAML (``.yaml`` / ``.yml``) or JSON (``.json``).
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, Union

import yaml

from ..utils.config_loader import load_yaml, save_yaml
from .camera_types import IntrinsicType, MalformedIntrinsicError
from .fisheye import PinholeFisheye
from .intrinsics import Pinhole

logger = logging.getLogger(__name__)

INTRINSIC_CLASSES = {
    IntrinsicType.PINHOLE_CAMERA: Pinhole,
    IntrinsicType.PINHOLE_CAMERA_FISHEYE: PinholeFisheye,
}

YAML_SUFFIXES = (".yaml", ".yml")
JSON_SUFFIXES = (".json",)


def intrinsic_to_dict(intrinsic: Pinhole) -> Dict[str, Any]:
    """
    Build the persisted record of a camera model.

    Args:
        intrinsic: Any camera model of this package.

    Returns:
        Dict with the ``type`` discriminant followed by the model fields.
    """
    record = {"type": intrinsic.get_type().type_name}
    record.update(intrinsic.to_dict())
    return record


def intrinsic_from_dict(data: Dict[str, Any]) -> Pinhole:
    """
    Rebuild a camera model from its persisted record.

    Args:
        data: Record as produced by intrinsic_to_dict().

    Returns:
        Camera model of the class named by ``data["type"]``.

    Raises:
        MalformedIntrinsicError: If the type is missing or unknown, or the
            model rejects its fields.
    """
    if not isinstance(data, dict):
        raise MalformedIntrinsicError(f"Camera record must be a mapping, got {type(data).__name__}")
    if "type" not in data:
        raise MalformedIntrinsicError("Camera record has no 'type' field")

    try:
        intrinsic_type = IntrinsicType.from_name(data["type"])
    except ValueError as e:
        raise MalformedIntrinsicError(str(e)) from e

    return INTRINSIC_CLASSES[intrinsic_type].from_dict(data)


def _file_format(path: Path) -> str:
    suffix = path.suffix.lower()
    if suffix in YAML_SUFFIXES:
        return "yaml"
    if suffix in JSON_SUFFIXES:
        return "json"
    raise ValueError(
        f"Unsupported camera file extension '{path.suffix}', "
        f"expected one of {YAML_SUFFIXES + JSON_SUFFIXES}"
    )


def save_intrinsic(intrinsic: Pinhole, path: Union[str, Path]) -> None:
    """
    Write a camera model to a YAML or JSON file.

    Args:
        intrinsic: Camera model to save.
        path: Output path; the extension selects the format.

    Raises:
        ValueError: If the extension is not supported.
    """
    path = Path(path)
    file_format = _file_format(path)
    record = intrinsic_to_dict(intrinsic)

    if file_format == "yaml":
        save_yaml(record, path)
    else:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            json.dump(record, f, indent=2)

    logger.debug(f"Saved {record['type']} camera to {path}")


def load_intrinsic(path: Union[str, Path]) -> Pinhole:
    """
    Read a camera model from a YAML or JSON file.

    Args:
        path: Camera file; the extension selects the format.

    Returns:
        Camera model of the persisted type.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If the extension is not supported.
        MalformedIntrinsicError: If the record is invalid (for instance a
            ``fisheye4`` list without exactly 4 coefficients).
    """
    path = Path(path)
    file_format = _file_format(path)

    if not path.exists():
        raise FileNotFoundError(f"Camera file not found: {path}")

    try:
        if file_format == "yaml":
            record = load_yaml(path)
        else:
            with open(path, "r") as f:
                record = json.load(f)
    except (ValueError, yaml.YAMLError) as e:
        raise MalformedIntrinsicError(f"Cannot parse camera file {path}: {e}") from e

    try:
        intrinsic = intrinsic_from_dict(record)
    except MalformedIntrinsicError as e:
        logger.debug(f"Malformed camera file {path}: {e}")
        raise

    logger.debug(f"Loaded {intrinsic!r} from {path}")
    return intrinsic

"""DSL Service - validate, normalize, parse and serialize scene descriptions."""

import json
import logging
from collections.abc import Mapping
from typing import Any

from scene_server.schema import (
    CAMERA_DEFAULTS,
    DEFAULT_BACKGROUND,
    MATERIAL_DEFAULTS,
    OBJECT_DEFAULTS,
    SceneDescription,
)

logger = logging.getLogger(__name__)


class SceneDSLError(ValueError):
    """Base class for scene payloads the parser refuses."""


class ParseError(SceneDSLError):
    """Raised when the payload is not well-formed JSON."""


class StructureError(SceneDSLError):
    """Raised when the payload is JSON but fails the structural check."""


def validate_scene(candidate: Any) -> bool:
    """Shallow structural check of an untrusted scene description.

    Only the presence and container type of ``camera.position``,
    ``camera.lookAt``, ``lights`` and ``objects`` are checked. Element
    types and vector arity are left to the generator's fallbacks.
    """
    if not candidate or not isinstance(candidate, Mapping):
        return False

    camera = candidate.get("camera")
    if not camera or not isinstance(camera, Mapping):
        return False
    if not isinstance(camera.get("position"), list):
        return False
    if not isinstance(camera.get("lookAt"), list):
        return False

    if not isinstance(candidate.get("lights"), list):
        return False
    if not isinstance(candidate.get("objects"), list):
        return False

    return True


def _plain_copy(value: Any) -> Any:
    """Deep copy into plain JSON shapes: mappings become dicts, tuples become lists."""
    if isinstance(value, Mapping):
        return {key: _plain_copy(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_plain_copy(item) for item in value]
    return value


def _with_defaults(explicit: Any, defaults: Mapping[str, Any]) -> dict:
    """Fill each listed field of ``explicit`` that is absent or None, in place.

    Explicit values always win; lists are taken wholesale, never merged.
    """
    merged = explicit if isinstance(explicit, dict) else {}
    for key, default in defaults.items():
        if merged.get(key) is None:
            merged[key] = list(default) if isinstance(default, list) else default
    return merged


def _normalize_object(obj: Any) -> dict:
    normalized = _with_defaults(obj, OBJECT_DEFAULTS)
    normalized["material"] = _with_defaults(normalized.get("material"), MATERIAL_DEFAULTS)
    return normalized


def normalize_scene(scene: Mapping[str, Any]) -> SceneDescription:
    """Fill optional fields of an already validated scene with their defaults.

    The result is a fresh tree sharing nothing with ``scene``. Lights are
    copied untouched: their default positions are applied at code
    generation time.
    """
    normalized = _plain_copy(scene)
    normalized["camera"] = _with_defaults(normalized["camera"], CAMERA_DEFAULTS)
    normalized["background"] = normalized.get("background") or DEFAULT_BACKGROUND
    normalized["objects"] = [_normalize_object(obj) for obj in normalized["objects"]]
    return normalized


def _reject_constant(name: str):
    raise ValueError(f"Invalid numeric constant {name!r}")


def parse_scene(dsl_string: str) -> SceneDescription:
    """Parse a JSON payload into a normalized scene description.

    Raises ParseError for malformed JSON and StructureError when the value
    does not pass ``validate_scene``.
    """
    try:
        parsed = json.loads(dsl_string, parse_constant=_reject_constant)
    except (TypeError, ValueError) as e:
        logger.warning(f"Malformed DSL payload: {e}")
        raise ParseError(f"DSL parsing error: {e}") from e

    if not validate_scene(parsed):
        logger.warning("DSL payload rejected by structure check")
        raise StructureError("Invalid DSL structure")

    return normalize_scene(parsed)


def serialize_scene(scene: Mapping[str, Any]) -> str:
    """Pretty-print a scene description as JSON."""
    return json.dumps(scene, indent=2)

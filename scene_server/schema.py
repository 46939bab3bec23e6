"""Scene DSL schema: variant enums, field shapes and default values."""

import copy
from enum import Enum
from typing import TypedDict

Vector3 = list[float]


class LightType(str, Enum):
    AMBIENT = "ambient"
    DIRECTIONAL = "directional"
    POINT = "point"
    SPOT = "spot"


class MaterialType(str, Enum):
    BASIC = "basic"
    STANDARD = "standard"
    PHONG = "phong"
    LAMBERT = "lambert"


class ObjectType(str, Enum):
    CUBE = "cube"
    SPHERE = "sphere"
    PLANE = "plane"
    CYLINDER = "cylinder"
    CONE = "cone"
    TORUS = "torus"


class _CameraRequired(TypedDict):
    position: Vector3
    lookAt: Vector3


class CameraSpec(_CameraRequired, total=False):
    fov: float


class _LightRequired(TypedDict):
    type: str
    color: str
    intensity: float


class LightSpec(_LightRequired, total=False):
    position: Vector3
    target: Vector3


class _MaterialRequired(TypedDict):
    type: str
    color: str


class MaterialSpec(_MaterialRequired, total=False):
    metalness: float
    roughness: float
    wireframe: bool


class _ObjectRequired(TypedDict):
    type: str
    position: Vector3
    material: MaterialSpec


class ObjectSpec(_ObjectRequired, total=False):
    rotation: Vector3
    scale: Vector3
    # Geometry parameters; which ones apply depends on ``type``
    radius: float
    width: float
    height: float
    depth: float
    segments: int


class _SceneRequired(TypedDict):
    camera: CameraSpec
    lights: list[LightSpec]
    objects: list[ObjectSpec]


class SceneDescription(_SceneRequired, total=False):
    background: str


# ── Defaults ────────────────────────────────────────────────────

DEFAULT_FOV = 75
DEFAULT_BACKGROUND = "#000000"

CAMERA_DEFAULTS = {"fov": DEFAULT_FOV}

OBJECT_DEFAULTS = {
    "rotation": [0, 0, 0],
    "scale": [1, 1, 1],
}

MATERIAL_DEFAULTS = {
    "type": MaterialType.STANDARD.value,
    "metalness": 0.5,
    "roughness": 0.5,
    "wireframe": False,
}

# Applied by the code generator, not the normalizer
LIGHT_DEFAULT_POSITIONS = {
    LightType.DIRECTIONAL: [5, 10, 7.5],
    LightType.POINT: [0, 5, 0],
    LightType.SPOT: [0, 10, 0],
}

_DEFAULT_SCENE: SceneDescription = {
    "camera": {
        "position": [0, 5, 10],
        "lookAt": [0, 0, 0],
        "fov": DEFAULT_FOV,
    },
    "lights": [
        {"type": "ambient", "color": "#ffffff", "intensity": 0.5},
        {
            "type": "directional",
            "color": "#ffffff",
            "intensity": 0.8,
            "position": [5, 10, 7.5],
        },
    ],
    "objects": [],
    "background": DEFAULT_BACKGROUND,
}


def create_default_scene() -> SceneDescription:
    """Return a fresh minimal valid scene: camera, two lights, no objects."""
    return copy.deepcopy(_DEFAULT_SCENE)


def coerce_variant(enum_cls: type[Enum], value) -> Enum | None:
    """Map a raw ``type`` value onto ``enum_cls``, or None if it is not a member."""
    try:
        return enum_cls(value)
    except ValueError:
        return None

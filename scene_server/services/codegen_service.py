"""Codegen Service - emit Three.js module source from a scene description."""

import logging
import math
from decimal import Decimal
from collections.abc import Mapping
from typing import Any, Callable

from scene_server.schema import (
    DEFAULT_BACKGROUND,
    DEFAULT_FOV,
    LIGHT_DEFAULT_POSITIONS,
    LightType,
    MaterialType,
    ObjectType,
    SceneDescription,
    coerce_variant,
)

logger = logging.getLogger(__name__)


# ── Literal formatting ──────────────────────────────────────────


def _js_number(value: float) -> str:
    """Number.prototype.toString() for a finite or non-finite float."""
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "Infinity" if value > 0 else "-Infinity"
    if value == 0:
        return "0"

    sign = "-" if value < 0 else ""
    # repr gives the shortest round-tripping digits, JS uses the same digits
    _, digit_tuple, exponent = Decimal(repr(abs(value))).as_tuple()
    digits = "".join(map(str, digit_tuple)).rstrip("0")
    exponent += len(digit_tuple) - len(digits)
    k = len(digits)
    n = k + exponent

    if k <= n <= 21:
        text = digits + "0" * (n - k)
    elif 0 < n <= 21:
        text = digits[:n] + "." + digits[n:]
    elif -6 < n <= 0:
        text = "0." + "0" * -n + digits
    else:
        e = n - 1
        mantissa = digits if k == 1 else digits[0] + "." + digits[1:]
        text = f"{mantissa}e{'+' if e >= 0 else '-'}{abs(e)}"
    return sign + text


def _raw_literal(value: Any) -> str:
    if value is None:
        return "undefined"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        if abs(value) < 10**21:
            return str(value)
        try:
            return _js_number(float(value))
        except OverflowError:
            return "Infinity" if value > 0 else "-Infinity"
    if isinstance(value, float):
        return _js_number(value)
    return str(value)


def _script_safe(text: str) -> str:
    # Keep the text from closing or re-opening the enclosing <script> element
    return text.replace("</", "<\\/").replace("<!--", "<\\!--")


def js_literal(value: Any) -> str:
    """Render a scalar the way a JavaScript template literal would print it.

    Anything that is not a number is made safe for an inline <script>.
    """
    return _script_safe(_raw_literal(value))


_LINE_TERMINATORS = {
    "\n": "\\n",
    "\r": "\\r",
    "\u2028": "\\u2028",
    "\u2029": "\\u2029",
}


def js_string(value: Any) -> str:
    """Single-quoted JavaScript string literal, safe inside an inline <script>."""
    text = _raw_literal(value).replace("\\", "\\\\").replace("'", "\\'")
    for ch, escaped in _LINE_TERMINATORS.items():
        text = text.replace(ch, escaped)
    return "'" + _script_safe(text) + "'"


def js_args(values: Any) -> str:
    if not isinstance(values, (list, tuple)):
        return js_literal(values)
    return ", ".join(js_literal(v) for v in values)


# ── Static blocks ───────────────────────────────────────────────


def generate_imports() -> str:
    return (
        "import * as THREE from 'three';\n"
        "import { OrbitControls } from 'three/examples/jsm/controls/OrbitControls.js';"
    )


def generate_scene_setup(dsl: SceneDescription) -> str:
    background = dsl.get("background") or DEFAULT_BACKGROUND
    return (
        "// Create scene\n"
        "const scene = new THREE.Scene();\n"
        f"scene.background = new THREE.Color({js_string(background)});"
    )


def generate_camera(dsl: SceneDescription) -> str:
    camera = dsl["camera"]
    fov = camera.get("fov")
    if fov is None:
        fov = DEFAULT_FOV
    return (
        "// Create camera\n"
        "const camera = new THREE.PerspectiveCamera(\n"
        f"  {js_literal(fov)},\n"
        "  window.innerWidth / window.innerHeight,\n"
        "  0.1,\n"
        "  1000\n"
        ");\n"
        f"camera.position.set({js_args(camera['position'])});\n"
        f"camera.lookAt({js_args(camera['lookAt'])});"
    )


def generate_renderer() -> str:
    return """// Create renderer
const renderer = new THREE.WebGLRenderer({ antialias: true });
renderer.setSize(window.innerWidth, window.innerHeight);
renderer.setPixelRatio(window.devicePixelRatio);
document.body.appendChild(renderer.domElement);

// Add orbit controls
const controls = new OrbitControls(camera, renderer.domElement);
controls.enableDamping = true;
controls.dampingFactor = 0.05;

// Handle window resize
window.addEventListener('resize', () => {
  camera.aspect = window.innerWidth / window.innerHeight;
  camera.updateProjectionMatrix();
  renderer.setSize(window.innerWidth, window.innerHeight);
});"""


def generate_animate_function() -> str:
    return """// Animation loop
function animate() {
  requestAnimationFrame(animate);
  controls.update();
  renderer.render(scene, camera);
}

animate();"""


# ── Lights ──────────────────────────────────────────────────────

LIGHT_CONSTRUCTORS = {
    LightType.AMBIENT: "AmbientLight",
    LightType.DIRECTIONAL: "DirectionalLight",
    LightType.POINT: "PointLight",
    LightType.SPOT: "SpotLight",
}


def generate_light(light: Mapping[str, Any], index: int) -> str:
    """Emit one light block; unknown light types produce an empty string."""
    if not isinstance(light, Mapping):
        return ""
    light_type = coerce_variant(LightType, light.get("type"))
    if light_type is None:
        logger.debug(f"Skipping light {index} with unknown type {light.get('type')!r}")
        return ""

    var_name = f"{light_type.value}Light{index}"
    lines = [
        f"const {var_name} = new THREE.{LIGHT_CONSTRUCTORS[light_type]}"
        f"({js_string(light.get('color'))}, {js_literal(light.get('intensity'))});"
    ]
    if light_type is not LightType.AMBIENT:
        position = light.get("position")
        if position is None:
            position = LIGHT_DEFAULT_POSITIONS[light_type]
        lines.append(f"{var_name}.position.set({js_args(position)});")
    lines.append(f"scene.add({var_name});")
    return "\n".join(lines)


def generate_lights(dsl: SceneDescription) -> str:
    lights_code = "\n\n".join(
        generate_light(light, index) for index, light in enumerate(dsl["lights"])
    )
    return f"// Add lights\n{lights_code}"


# ── Geometry ────────────────────────────────────────────────────


def _cube(obj: Mapping[str, Any]) -> str:
    w = obj.get("width") or 1
    h = obj.get("height") or 1
    d = obj.get("depth") or 1
    return f"new THREE.BoxGeometry({js_args([w, h, d])})"


def _sphere(obj: Mapping[str, Any]) -> str:
    r = obj.get("radius") or 1
    seg = obj.get("segments") or 32
    return f"new THREE.SphereGeometry({js_args([r, seg, seg])})"


def _plane(obj: Mapping[str, Any]) -> str:
    w = obj.get("width") or 10
    h = obj.get("height") or 10
    return f"new THREE.PlaneGeometry({js_args([w, h])})"


def _cylinder(obj: Mapping[str, Any]) -> str:
    r = obj.get("radius") or 1
    h = obj.get("height") or 2
    return f"new THREE.CylinderGeometry({js_args([r, r, h, 32])})"


def _cone(obj: Mapping[str, Any]) -> str:
    r = obj.get("radius") or 1
    h = obj.get("height") or 2
    return f"new THREE.ConeGeometry({js_args([r, h, 32])})"


def _torus(obj: Mapping[str, Any]) -> str:
    r = obj.get("radius") or 1
    # Tube (minor) radius is tied to the ring radius
    tube = r * 0.4 if isinstance(r, (int, float)) else "NaN"
    return f"new THREE.TorusGeometry({js_args([r, tube, 16, 100])})"


GEOMETRY_BUILDERS: dict[ObjectType, Callable[[Mapping[str, Any]], str]] = {
    ObjectType.CUBE: _cube,
    ObjectType.SPHERE: _sphere,
    ObjectType.PLANE: _plane,
    ObjectType.CYLINDER: _cylinder,
    ObjectType.CONE: _cone,
    ObjectType.TORUS: _torus,
}

FALLBACK_GEOMETRY = "new THREE.BoxGeometry(1, 1, 1)"


def generate_geometry(obj: Mapping[str, Any]) -> str:
    """Geometry constructor expression; unknown object types become a unit cube."""
    object_type = coerce_variant(ObjectType, obj.get("type"))
    if object_type is None:
        logger.debug(f"Unknown object type {obj.get('type')!r}, using unit cube")
        return FALLBACK_GEOMETRY
    return GEOMETRY_BUILDERS[object_type](obj)


# ── Material ────────────────────────────────────────────────────

MATERIAL_CONSTRUCTORS = {
    MaterialType.BASIC: "MeshBasicMaterial",
    MaterialType.STANDARD: "MeshStandardMaterial",
    MaterialType.PHONG: "MeshPhongMaterial",
    MaterialType.LAMBERT: "MeshLambertMaterial",
}


def generate_material(obj: Mapping[str, Any]) -> str:
    """Material constructor expression carrying only the fields that are set."""
    material = obj.get("material")
    if not isinstance(material, Mapping):
        material = {}

    params = [f"color: {js_string(material.get('color'))}"]
    if material.get("metalness") is not None:
        params.append(f"metalness: {js_literal(material['metalness'])}")
    if material.get("roughness") is not None:
        params.append(f"roughness: {js_literal(material['roughness'])}")
    if material.get("wireframe"):
        params.append(f"wireframe: {js_literal(material['wireframe'])}")

    material_type = coerce_variant(MaterialType, material.get("type")) or MaterialType.STANDARD
    return f"new THREE.{MATERIAL_CONSTRUCTORS[material_type]}({{ {', '.join(params)} }})"


# ── Objects ─────────────────────────────────────────────────────


def generate_object(obj: Mapping[str, Any], index: int) -> str:
    """Emit geometry, material and mesh declarations for one object."""
    if not isinstance(obj, Mapping):
        obj = {}
    var_name = f"mesh{index}"
    rotation = obj.get("rotation")
    if rotation is None:
        rotation = [0, 0, 0]
    scale = obj.get("scale")
    if scale is None:
        scale = [1, 1, 1]

    return "\n".join([
        f"const geometry{index} = {generate_geometry(obj)};",
        f"const material{index} = {generate_material(obj)};",
        f"const {var_name} = new THREE.Mesh(geometry{index}, material{index});",
        f"{var_name}.position.set({js_args(obj.get('position'))});",
        f"{var_name}.rotation.set({js_args(rotation)});",
        f"{var_name}.scale.set({js_args(scale)});",
        f"scene.add({var_name});",
    ])


def generate_objects(dsl: SceneDescription) -> str:
    objects_code = "\n\n".join(
        generate_object(obj, index) for index, obj in enumerate(dsl["objects"])
    )
    return f"// Add objects\n{objects_code}"


# ── Scene ───────────────────────────────────────────────────────


def generate_scene(dsl: SceneDescription) -> str:
    """Generate the complete Three.js module for a normalized scene.

    Blocks are emitted in a fixed order: imports, scene setup, camera,
    lights, objects, renderer, animation loop. Lights and objects are
    numbered by their position in the input lists.
    """
    blocks = [
        generate_imports(),
        generate_scene_setup(dsl),
        generate_camera(dsl),
        generate_lights(dsl),
        generate_objects(dsl),
        generate_renderer(),
        generate_animate_function(),
    ]
    return "\n\n".join(blocks)

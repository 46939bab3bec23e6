"""Few-shot examples for LLM scene DSL generation."""

import json

EXAMPLES = [
    {
        "prompt": "Create a red cube on a white plane with ambient lighting",
        "dsl_json": json.dumps({
            "camera": {"position": [0, 4, 8], "lookAt": [0, 0, 0], "fov": 60},
            "lights": [
                {"type": "ambient", "color": "#ffffff", "intensity": 0.6},
                {"type": "directional", "color": "#ffffff", "intensity": 0.8,
                 "position": [5, 10, 7.5]}
            ],
            "objects": [
                {
                    "type": "plane",
                    "width": 12,
                    "height": 12,
                    "position": [0, 0, 0],
                    "rotation": [-1.5708, 0, 0],
                    "material": {"type": "standard", "color": "#ffffff", "roughness": 0.9}
                },
                {
                    "type": "cube",
                    "position": [0, 0.5, 0],
                    "material": {"type": "standard", "color": "#ff0000"}
                }
            ],
            "background": "#202020"
        })
    },
    {
        "prompt": "A simple solar system with a yellow sun, a small blue Earth and a gray moon",
        "dsl_json": json.dumps({
            "camera": {"position": [0, 6, 14], "lookAt": [0, 0, 0], "fov": 75},
            "lights": [
                {"type": "ambient", "color": "#404040", "intensity": 0.3},
                {"type": "point", "color": "#fff5cc", "intensity": 2.0,
                 "position": [0, 0, 0]}
            ],
            "objects": [
                {
                    "type": "sphere",
                    "radius": 2,
                    "segments": 48,
                    "position": [0, 0, 0],
                    "material": {"type": "basic", "color": "#ffcc00"}
                },
                {
                    "type": "sphere",
                    "radius": 0.6,
                    "position": [6, 0, 0],
                    "material": {"type": "standard", "color": "#2266ff",
                                 "metalness": 0.1, "roughness": 0.7}
                },
                {
                    "type": "sphere",
                    "radius": 0.2,
                    "position": [7.2, 0.3, 0],
                    "material": {"type": "lambert", "color": "#999999"}
                },
                {
                    "type": "torus",
                    "radius": 6,
                    "position": [0, 0, 0],
                    "rotation": [1.5708, 0, 0],
                    "scale": [1, 1, 0.01],
                    "material": {"type": "basic", "color": "#333333", "wireframe": True}
                }
            ],
            "background": "#000010"
        })
    },
    {
        "prompt": "An abstract composition of colorful cubes, spheres and a torus",
        "dsl_json": json.dumps({
            "camera": {"position": [6, 5, 9], "lookAt": [0, 1, 0], "fov": 70},
            "lights": [
                {"type": "ambient", "color": "#ffffff", "intensity": 0.4},
                {"type": "spot", "color": "#ff88ff", "intensity": 1.5,
                 "position": [-4, 8, 2]},
                {"type": "directional", "color": "#88ccff", "intensity": 0.7}
            ],
            "objects": [
                {
                    "type": "torus",
                    "radius": 1.5,
                    "position": [0, 2, 0],
                    "rotation": [0.6, 0.3, 0],
                    "material": {"type": "phong", "color": "#ff3366"}
                },
                {
                    "type": "cube",
                    "width": 1.2,
                    "height": 1.2,
                    "depth": 1.2,
                    "position": [-2.5, 0.6, 1],
                    "rotation": [0, 0.785, 0],
                    "material": {"type": "standard", "color": "#33ddaa",
                                 "metalness": 0.8, "roughness": 0.2}
                },
                {
                    "type": "cone",
                    "radius": 0.8,
                    "height": 2.5,
                    "position": [2.5, 1.25, -1],
                    "material": {"type": "standard", "color": "#ffaa00"}
                },
                {
                    "type": "cylinder",
                    "radius": 0.4,
                    "height": 3,
                    "position": [0, 1.5, -3],
                    "material": {"type": "lambert", "color": "#6644ff"}
                }
            ],
            "background": "#111122"
        })
    },
]


def format_few_shot() -> str:
    """Format examples as few-shot prompt text."""
    parts = []
    for ex in EXAMPLES:
        parts.append(f"User: {ex['prompt']}\nAssistant: {ex['dsl_json']}")
    return "\n\n".join(parts)

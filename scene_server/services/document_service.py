"""Document Service - wrap generated scene code in a standalone HTML page."""

import html

from scene_server.schema import SceneDescription
from scene_server.services.codegen_service import generate_scene

THREE_VERSION = "0.160.0"
THREE_CDN = f"https://cdn.jsdelivr.net/npm/three@{THREE_VERSION}"

DEFAULT_TITLE = "Three.js Scene"

_STYLE = """  <style>
    body {
      margin: 0;
      overflow: hidden;
      font-family: Arial, sans-serif;
    }
    #info {
      position: absolute;
      top: 10px;
      left: 10px;
      color: white;
      background: rgba(0, 0, 0, 0.7);
      padding: 10px;
      border-radius: 5px;
      font-size: 14px;
    }
  </style>"""

_IMPORT_MAP = f"""  <script type="importmap">
    {{
      "imports": {{
        "three": "{THREE_CDN}/build/three.module.js",
        "three/examples/jsm/controls/OrbitControls.js": "{THREE_CDN}/examples/jsm/controls/OrbitControls.js"
      }}
    }}
  </script>"""


def assemble_document(dsl: SceneDescription, title: str = DEFAULT_TITLE) -> str:
    """Build a complete HTML document running the scene as its only module script."""
    scene_code = generate_scene(dsl)
    safe_title = html.escape(title)

    return f"""<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="UTF-8">
  <meta name="viewport" content="width=device-width, initial-scale=1.0">
  <title>{safe_title}</title>
{_STYLE}
</head>
<body>
  <div id="info">
    <strong>{safe_title}</strong><br>
    Left click + drag to rotate<br>
    Right click + drag to pan<br>
    Scroll to zoom
  </div>

{_IMPORT_MAP}

  <script type="module">
{scene_code}
  </script>
</body>
</html>"""

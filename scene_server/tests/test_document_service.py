"""Tests for HTML document assembly."""

import json

from scene_server.schema import create_default_scene
from scene_server.services import codegen_service, document_service
from scene_server.services.dsl_service import normalize_scene, parse_scene


SCENE = normalize_scene({
    **create_default_scene(),
    "objects": [
        {"type": "torus", "position": [0, 1, 0], "material": {"color": "#ff00ff"}},
    ],
})


class TestAssembleDocument:
    def test_complete_document(self):
        doc = document_service.assemble_document(SCENE, "Demo")
        assert doc.startswith("<!DOCTYPE html>")
        assert doc.rstrip().endswith("</html>")
        assert '<meta charset="UTF-8">' in doc
        assert '<meta name="viewport" content="width=device-width, initial-scale=1.0">' in doc

    def test_title_echoed(self):
        doc = document_service.assemble_document(SCENE, "Solar System")
        assert "<title>Solar System</title>" in doc
        assert "<strong>Solar System</strong>" in doc

    def test_default_title(self):
        doc = document_service.assemble_document(SCENE)
        assert "<title>Three.js Scene</title>" in doc

    def test_title_escaped(self):
        doc = document_service.assemble_document(SCENE, "<b>Bold</b> & co")
        assert "<title>&lt;b&gt;Bold&lt;/b&gt; &amp; co</title>" in doc

    def test_import_map_pins_version(self):
        doc = document_service.assemble_document(SCENE)
        assert '<script type="importmap">' in doc
        assert "https://cdn.jsdelivr.net/npm/three@0.160.0/build/three.module.js" in doc
        assert (
            "https://cdn.jsdelivr.net/npm/three@0.160.0/examples/jsm/controls/OrbitControls.js"
            in doc
        )

    def test_single_trailing_module_script(self):
        doc = document_service.assemble_document(SCENE)
        assert doc.count('<script type="module">') == 1
        assert "mesh0.position.set(<\\/script><script>alert(1)//, 0, 0);" in doc
        importmap_at = doc.index('<script type="importmap">')
        module_at = doc.index('<script type="module">')
        assert importmap_at < module_at
        assert "<script" not in doc[module_at + 1:]

    def test_embeds_generated_code(self):
        doc = document_service.assemble_document(SCENE)
        module_at = doc.index('<script type="module">')
        body = doc[module_at:doc.index("</script>", module_at)]
        assert codegen_service.generate_scene(SCENE) in body
        assert "new THREE.TorusGeometry(1, 0.4, 16, 100)" in body

    def test_script_breakout_in_color_neutralized(self):
        scene = normalize_scene({
            **create_default_scene(),
            "background": "</script><script>alert(1)</script>",
        })
        doc = document_service.assemble_document(scene)
        assert doc.count("</script>") == 2

    def test_script_breakout_in_vector_neutralized(self):
        payload = {
            **create_default_scene(),
            "objects": [{
                "type": "cube",
                "position": ["</script><script>alert(1)//", 0, 0],
                "material": {"color": "#ff0000"},
            }],
        }
        doc = document_service.assemble_document(parse_scene(json.dumps(payload)))
        assert doc.count("</script>") == 2
        assert "mesh0.position.set(<\\/script><script>alert(1)//, 0, 0);" in doc

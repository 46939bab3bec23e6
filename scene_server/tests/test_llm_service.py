"""Tests for LLM service (unit tests, no API calls)."""

import asyncio
import copy
import json
import pytest
from scene_server import config
from scene_server.schema import create_default_scene
from scene_server.services import llm_service
from scene_server.services.dsl_service import StructureError, normalize_scene
from scene_server.services.llm_service import (
    _extract_json,
    _lint_scene,
    _repair_json,
    _suggest_fix,
)


_VALID_SCENE = {
    **create_default_scene(),
    "objects": [
        {"type": "cube", "position": [0, 1, 0], "material": {"type": "standard", "color": "#ff0000"}},
    ],
}
VALID_JSON = json.dumps(_VALID_SCENE)


def _valid_scene():
    return copy.deepcopy(_VALID_SCENE)


class TestExtractJson:
    def test_raw_json(self):
        result = _extract_json(VALID_JSON)
        assert json.loads(result)["objects"][0]["type"] == "cube"

    def test_json_with_markdown_fences(self):
        result = _extract_json(f"```json\n{VALID_JSON}\n```")
        assert json.loads(result) == _valid_scene()

    def test_json_with_surrounding_text(self):
        result = _extract_json(f"Here is the scene:\n{VALID_JSON}\nEnjoy!")
        assert json.loads(result) == _valid_scene()

    def test_no_json_raises(self):
        with pytest.raises(ValueError, match="No JSON"):
            _extract_json("This has no JSON at all")

    def test_truncated_json_repaired(self):
        truncated = '{"camera": {"position": [0, 5, 10], "lookAt": [0, 0, 0]}, "lights": [], "objects": ['
        result = _extract_json(truncated)
        assert json.loads(result)["objects"] == []


class TestRepairJson:
    def test_complete_json_unchanged(self):
        raw = '{"a":1,"b":2}'
        assert _repair_json(raw) == raw

    def test_missing_closing_brace(self):
        parsed = json.loads(_repair_json('{"a":{"b":1}'))
        assert parsed["a"]["b"] == 1

    def test_nested_closers_in_order(self):
        parsed = json.loads(_repair_json('{"a":[{"b":[1,2'))
        assert parsed == {"a": [{"b": [1, 2]}]}

    def test_string_braces_ignored(self):
        raw = '{"a":"{{["}'
        assert _repair_json(raw) == raw


class TestLintScene:
    def test_valid_scene(self):
        assert _lint_scene(normalize_scene(_valid_scene())) == []

    def test_missing_lights(self):
        scene = normalize_scene({**_valid_scene(), "lights": []})
        errors = _lint_scene(scene)
        assert errors == ["lights: at least one light source is required"]

    def test_bad_vector(self):
        scene = normalize_scene(_valid_scene())
        scene["objects"][0]["position"] = [0, 1]
        errors = _lint_scene(scene)
        assert len(errors) == 1
        assert errors[0].startswith("objects[0].position: expected 3 numbers")

    def test_unknown_variants(self):
        scene = normalize_scene(_valid_scene())
        scene["lights"][0]["type"] = "ambiant"
        scene["objects"][0]["type"] = "box"
        scene["objects"][0]["material"]["type"] = "metal"
        errors = _lint_scene(scene)
        assert "lights[0].type: unknown light type 'ambiant'" in errors
        assert "objects[0].type: unknown object type 'box'" in errors
        assert "objects[0].material.type: unknown material type 'metal'" in errors

    def test_missing_material_color(self):
        scene = normalize_scene(_valid_scene())
        del scene["objects"][0]["material"]["color"]
        assert _lint_scene(scene) == ["objects[0].material: missing required field 'color'"]

    def test_non_object_elements(self):
        scene = normalize_scene({**_valid_scene(), "lights": ["sun"]})
        assert _lint_scene(scene) == ["lights[0]: expected object, got str"]


class TestSuggestFix:
    def test_close_match(self):
        hint = _suggest_fix("lights[0].type: unknown light type 'ambiant'")
        assert "Did you mean: ambient?" in hint

    def test_no_close_match_lists_valid_types(self):
        hint = _suggest_fix("objects[0].type: unknown object type 'xyz'")
        assert "Valid types: cone, cube, cylinder, plane, sphere, torus." in hint

    def test_structure_hint(self):
        assert "\"camera\"" in _suggest_fix("Invalid DSL structure")

    def test_no_hint(self):
        assert _suggest_fix("something else") == ""


class TestDescribeScene:
    @pytest.fixture(autouse=True)
    def _clear_cache(self, monkeypatch):
        monkeypatch.setattr(config, "DEFAULT_PROVIDER", "claude")
        monkeypatch.setitem(config.DEFAULT_MODELS, "claude", "haiku")
        llm_service.cache_clear()
        yield
        llm_service.cache_clear()

    def _fake_generator(self, monkeypatch, replies):
        calls = []

        async def fake(prompt, model, retry_messages=None):
            calls.append(retry_messages)
            return replies[len(calls) - 1], 0.01

        monkeypatch.setattr(llm_service, "generate_dsl_claude", fake)
        return calls

    def test_success_first_attempt(self, monkeypatch):
        calls = self._fake_generator(monkeypatch, [VALID_JSON])
        dsl_json, meta = asyncio.run(llm_service.describe_scene("a red cube"))
        assert json.loads(dsl_json) == _valid_scene()
        assert meta["retries"] == 0
        assert meta["cache_hit"] is False
        assert meta["model"] == "haiku"
        assert calls == [None]

    def test_retry_after_structure_error(self, monkeypatch):
        calls = self._fake_generator(monkeypatch, ['{"camera": {}}', VALID_JSON])
        dsl_json, meta = asyncio.run(llm_service.describe_scene("a red cube"))
        assert json.loads(dsl_json) == _valid_scene()
        assert meta["retries"] == 1
        retry_messages = calls[1]
        assert retry_messages[1] == {"role": "assistant", "content": '{"camera": {}}'}
        assert "Invalid DSL structure" in retry_messages[2]["content"]

    def test_structure_error_fatal_after_retries(self, monkeypatch):
        self._fake_generator(monkeypatch, ['{"camera": {}}'] * 3)
        with pytest.raises(StructureError):
            asyncio.run(llm_service.describe_scene("a red cube"))

    def test_lint_issues_tolerated_after_retries(self, monkeypatch):
        no_lights = json.dumps({**_valid_scene(), "lights": []})
        self._fake_generator(monkeypatch, [no_lights] * 3)
        dsl_json, meta = asyncio.run(llm_service.describe_scene("a dark room"))
        assert dsl_json == no_lights
        assert meta["retries"] == 3
        assert meta["warnings"] == ["lights: at least one light source is required"]

    def test_cache_hit(self, monkeypatch):
        calls = self._fake_generator(monkeypatch, [VALID_JSON])
        asyncio.run(llm_service.describe_scene("a red cube"))
        dsl_json, meta = asyncio.run(llm_service.describe_scene("a red cube"))
        assert meta["cache_hit"] is True
        assert len(calls) == 1

    def test_unknown_provider(self):
        with pytest.raises(ValueError, match="Unknown provider"):
            asyncio.run(llm_service.describe_scene("a red cube", provider="openai"))

    def test_configured_provider_and_model(self, monkeypatch):
        monkeypatch.setattr(config, "DEFAULT_PROVIDER", "gemini")
        monkeypatch.setitem(config.DEFAULT_MODELS, "gemini", "pro")
        seen = {}

        async def fake(prompt, model, retry_messages=None):
            seen["model"] = model
            return VALID_JSON, 0.01

        monkeypatch.setattr(llm_service, "generate_dsl_gemini", fake)
        _, meta = asyncio.run(llm_service.describe_scene("a red cube"))
        assert seen["model"] == "pro"
        assert meta["provider"] == "gemini"
        assert meta["model"] == "pro"


class TestRefineScene:
    def test_refine_sends_current_scene(self, monkeypatch):
        seen = {}
        refined = {**_valid_scene(), "background": "#ffffff"}

        async def fake(prompt, model, retry_messages=None):
            seen["messages"] = retry_messages
            return json.dumps(refined), 0.02

        monkeypatch.setattr(llm_service, "generate_dsl_claude", fake)
        current = normalize_scene(_valid_scene())
        scene, meta = asyncio.run(
            llm_service.refine_scene(current, "make the background white")
        )
        assert scene["background"] == "#ffffff"
        content = seen["messages"][0]["content"]
        assert content.startswith("Current scene DSL:\n{")
        assert content.endswith("Refinement request: make the background white")
        assert meta["warnings"] == []

"""LLM Service - Claude/Gemini API abstraction for scene DSL generation."""

import asyncio
import difflib
import hashlib
import json
import logging
import re
import time
from collections import OrderedDict
from collections.abc import Mapping
from typing import Any, AsyncIterator

from scene_server.prompts.system_prompt import SYSTEM_PROMPT
from scene_server.prompts.examples import format_few_shot
from scene_server.schema import LightType, MaterialType, ObjectType, SceneDescription
from scene_server.services.dsl_service import SceneDSLError, parse_scene, serialize_scene
from scene_server import config

logger = logging.getLogger(__name__)

# ── Lazy Singleton Clients (connection reuse) ─────────────────
_claude_client = None
_gemini_client = None

def _get_claude_client():
    """Get or create singleton AsyncAnthropic client."""
    global _claude_client
    if _claude_client is None:
        import anthropic
        _claude_client = anthropic.AsyncAnthropic(api_key=config.ANTHROPIC_API_KEY)
        logger.info("Claude client initialized (singleton)")
    return _claude_client

def _get_gemini_client():
    """Get or create singleton genai.Client."""
    global _gemini_client
    if _gemini_client is None:
        from google import genai
        _gemini_client = genai.Client(api_key=config.GOOGLE_API_KEY)
        logger.info("Gemini client initialized (singleton)")
    return _gemini_client

# Variant names per tagged field, used for typo suggestions
KNOWN_VARIANTS = {
    "light": {t.value for t in LightType},
    "object": {t.value for t in ObjectType},
    "material": {t.value for t in MaterialType},
}

MAX_RETRIES = 2


def _suggest_fix(error: str) -> str:
    """Generate a specific fix suggestion based on error pattern."""
    suggestions = []

    for kind, bad_name in re.findall(r"unknown (light|object|material) type '([^']*)'", error):
        close = difflib.get_close_matches(bad_name, KNOWN_VARIANTS[kind], n=3, cutoff=0.6)
        if close:
            suggestions.append(
                f"Unknown {kind} type '{bad_name}'. Did you mean: {', '.join(close)}?"
            )
        else:
            suggestions.append(
                f"Unknown {kind} type '{bad_name}'. Valid types: "
                f"{', '.join(sorted(KNOWN_VARIANTS[kind]))}."
            )

    if "expected 3 numbers" in error:
        suggestions.append(
            "Every vector (position, lookAt, rotation, scale) must be a list of "
            "exactly three literal numbers, e.g. [0, 1.5, -2]."
        )

    if "Invalid DSL structure" in error:
        suggestions.append(
            "The top-level object needs \"camera\" (with \"position\" and \"lookAt\" "
            "arrays), a \"lights\" array and an \"objects\" array."
        )

    if "at least one light" in error:
        suggestions.append("Add an ambient light and a directional light.")

    if "nan" in error.lower() or "infinity" in error.lower():
        suggestions.append(
            "Numeric value is NaN or infinity. All values must be finite numbers."
        )

    return " ".join(suggestions) if suggestions else ""


# ── LLM Response Cache (LRU with TTL + maxsize) ──────────────

_cache: OrderedDict[str, dict] = OrderedDict()
CACHE_TTL = config.CACHE_TTL_SECONDS
CACHE_MAX_SIZE = 256  # Max cached entries to prevent unbounded memory growth


def _cache_key(prompt: str, provider: str, model: str) -> str:
    """Generate a cache key from prompt + provider + model."""
    raw = f"{prompt}|{provider}|{model}"
    return hashlib.sha256(raw.encode()).hexdigest()


def _cache_get(key: str) -> dict | None:
    """Get cached entry if exists and not expired. Promotes to MRU on hit."""
    entry = _cache.get(key)
    if entry is None:
        return None
    if time.time() - entry["timestamp"] > CACHE_TTL:
        del _cache[key]
        return None
    _cache.move_to_end(key)
    return entry


def _cache_set(key: str, dsl_json: str, metadata: dict) -> None:
    """Store result in cache with LRU eviction."""
    _cache[key] = {
        "dsl_json": dsl_json,
        "metadata": metadata,
        "timestamp": time.time(),
    }
    _cache.move_to_end(key)
    while len(_cache) > CACHE_MAX_SIZE:
        _cache.popitem(last=False)


def cache_clear() -> int:
    """Clear all cached entries. Returns number of entries cleared."""
    count = len(_cache)
    _cache.clear()
    return count


# ── Prompt construction ─────────────────────────────────────────


def _system_prompt() -> str:
    return SYSTEM_PROMPT + "\n\n## Examples\n\n" + format_few_shot()


def _build_messages(prompt: str) -> list[dict]:
    return [
        {"role": "user", "content": prompt},
    ]


def _build_retry_messages(prompt: str, error: str, bad_json: str) -> list[dict]:
    """Build messages for retry with error feedback."""
    # Truncate bad_json to avoid token waste
    snippet = bad_json[:500] + "..." if len(bad_json) > 500 else bad_json
    fix_hint = _suggest_fix(error)
    fix_line = f"\n\nSpecific fix: {fix_hint}" if fix_hint else ""
    return [
        {"role": "user", "content": prompt},
        {"role": "assistant", "content": snippet},
        {"role": "user", "content": (
            f"The scene JSON you produced has a structural error:\n{error}\n\n"
            "Please fix the error and output the corrected JSON. "
            "Remember: \"camera\", \"lights\" and \"objects\" are required, and every "
            f"vector has exactly 3 numbers. Output ONLY valid JSON.{fix_line}"
        )},
    ]


def _build_refine_messages(current: SceneDescription, refinement: str) -> list[dict]:
    return [
        {"role": "user", "content": (
            f"Current scene DSL:\n{serialize_scene(current)}\n\n"
            f"Refinement request: {refinement}"
        )},
    ]


# ── Response extraction ─────────────────────────────────────────


def _repair_json(text: str) -> str:
    """Repair incomplete JSON by appending missing closing braces/brackets.

    Closers are appended in reverse order of the unmatched openers, so
    ``{"a":[1,2`` becomes ``{"a":[1,2]}``.
    """
    in_string = False
    escape = False
    stack = []

    for ch in text:
        if escape:
            escape = False
            continue
        if ch == "\\":
            escape = True
            continue
        if ch == '"':
            in_string = not in_string
            continue
        if in_string:
            continue
        if ch in "{[":
            stack.append("}" if ch == "{" else "]")
        elif ch in "}]" and stack:
            stack.pop()

    if stack:
        text += "".join(reversed(stack))

    return text


def _extract_json(text: str) -> str:
    """Extract JSON from LLM response, stripping markdown fences if present."""
    text = text.strip()
    if text.startswith("```"):
        lines = text.split("\n")
        lines = lines[1:]
        if lines and lines[-1].strip() == "```":
            lines = lines[:-1]
        text = "\n".join(lines).strip()

    start = text.find("{")
    if start == -1:
        raise ValueError("No JSON object found in LLM response")

    depth = 0
    in_string = False
    escape = False
    for i in range(start, len(text)):
        ch = text[i]
        if escape:
            escape = False
            continue
        if ch == "\\":
            escape = True
            continue
        if ch == '"':
            in_string = not in_string
            continue
        if in_string:
            continue
        if ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return text[start : i + 1]

    # Brace mismatch: try to repair by appending missing closers
    repaired = _repair_json(text[start:])
    try:
        json.loads(repaired)
        return repaired
    except json.JSONDecodeError:
        raise ValueError(
            f"Incomplete JSON object in LLM response "
            f"(depth={depth}, tried repair but failed)"
        )


def _response_to_json(text: str) -> str:
    # Try direct JSON parse first (structured output), fallback to extraction
    try:
        json.loads(text)
        return text
    except (json.JSONDecodeError, TypeError):
        dsl_json = _extract_json(text)
        json.loads(dsl_json)
        return dsl_json


# ── Advisory checks ─────────────────────────────────────────────


def _is_vec3(value: Any) -> bool:
    if not isinstance(value, list) or len(value) != 3:
        return False
    return all(isinstance(x, (int, float)) and not isinstance(x, bool) for x in value)


def _lint_scene(scene: Mapping[str, Any]) -> list[str]:
    """Deeper checks than the parser's structural gate.

    Issues are fed back to the model as retry hints; they never reject a
    scene on their own.
    """
    errors = []

    def _check_vec(container: Mapping, key: str, path: str, required: bool = False):
        if key not in container or container[key] is None:
            if required:
                errors.append(f"{path}.{key}: missing required vector")
            return
        if not _is_vec3(container[key]):
            errors.append(f"{path}.{key}: expected 3 numbers, got {container[key]!r}")

    def _check_type(container: Mapping, kind: str, path: str):
        value = container.get("type")
        if not isinstance(value, str) or value not in KNOWN_VARIANTS[kind]:
            errors.append(f"{path}.type: unknown {kind} type '{value}'")

    camera = scene.get("camera", {})
    _check_vec(camera, "position", "camera", required=True)
    _check_vec(camera, "lookAt", "camera", required=True)

    lights = scene.get("lights", [])
    if not lights:
        errors.append("lights: at least one light source is required")
    for i, light in enumerate(lights):
        path = f"lights[{i}]"
        if not isinstance(light, Mapping):
            errors.append(f"{path}: expected object, got {type(light).__name__}")
            continue
        _check_type(light, "light", path)
        _check_vec(light, "position", path)

    for i, obj in enumerate(scene.get("objects", [])):
        path = f"objects[{i}]"
        if not isinstance(obj, Mapping):
            errors.append(f"{path}: expected object, got {type(obj).__name__}")
            continue
        _check_type(obj, "object", path)
        _check_vec(obj, "position", path, required=True)
        _check_vec(obj, "rotation", path)
        _check_vec(obj, "scale", path)
        material = obj.get("material")
        if not isinstance(material, Mapping) or "color" not in material:
            errors.append(f"{path}.material: missing required field 'color'")
        else:
            _check_type(material, "material", f"{path}.material")

    return errors


# ── Provider calls ──────────────────────────────────────────────


async def generate_dsl_claude(
    prompt: str, model: str = "haiku",
    retry_messages: list[dict] | None = None,
) -> tuple[str, float]:
    """Generate scene DSL JSON using Claude API.

    Returns (dsl_json, elapsed_seconds).
    """
    model_id = config.CLAUDE_MODELS.get(model, model)
    client = _get_claude_client()

    messages = retry_messages or _build_messages(prompt)

    t0 = time.perf_counter()
    response = await client.messages.create(
        model=model_id,
        max_tokens=4096,
        temperature=config.LLM_TEMPERATURE,
        system=_system_prompt(),
        messages=messages,
    )
    elapsed = time.perf_counter() - t0

    return _response_to_json(response.content[0].text), elapsed


async def generate_dsl_gemini(
    prompt: str, model: str = "flash",
    retry_messages: list[dict] | None = None,
) -> tuple[str, float]:
    """Generate scene DSL JSON using Gemini API.

    Returns (dsl_json, elapsed_seconds).
    """
    model_id = config.GEMINI_MODELS.get(model, model)
    client = _get_gemini_client()

    system = _system_prompt()

    if retry_messages:
        # Build multi-turn prompt for Gemini
        full_prompt = system + "\n\n"
        for msg in retry_messages:
            role = "User" if msg["role"] == "user" else "Assistant"
            full_prompt += f"{role}: {msg['content']}\n"
        full_prompt += "Assistant:"
    else:
        full_prompt = system + "\n\nUser: " + prompt + "\nAssistant:"

    t0 = time.perf_counter()
    response = await client.aio.models.generate_content(
        model=model_id,
        contents=full_prompt,
        config={
            "max_output_tokens": 8192,
            "temperature": config.LLM_TEMPERATURE,
            "response_mime_type": "application/json",
        },
    )
    elapsed = time.perf_counter() - t0

    return _response_to_json(response.text), elapsed


def _select_provider(provider: str, model: str | None):
    """Resolve the generator and model name, falling back to the configured model."""
    if provider == "claude":
        return generate_dsl_claude, model or config.DEFAULT_MODELS["claude"]
    if provider == "gemini":
        return generate_dsl_gemini, model or config.DEFAULT_MODELS["gemini"]
    raise ValueError(f"Unknown provider: {provider}")


async def describe_scene(
    prompt: str,
    provider: str | None = None,
    model: str | None = None,
) -> tuple[str, dict]:
    """Translate a text prompt into scene DSL JSON with retry on bad replies.

    The returned JSON passed ``parse_scene``. Returns (dsl_json, metadata).
    """
    provider = provider or config.DEFAULT_PROVIDER
    gen_fn, model = _select_provider(provider, model)

    key = _cache_key(prompt, provider, model)
    cached = _cache_get(key)
    if cached is not None:
        logger.info(f"Cache hit for prompt: {prompt[:50]}...")
        meta = {**cached["metadata"], "cache_hit": True}
        return cached["dsl_json"], meta

    total_elapsed = 0.0
    last_error = None
    bad_json = ""
    retries_used = 0

    for attempt in range(1 + MAX_RETRIES):
        dsl_json = ""
        try:
            if attempt == 0:
                dsl_json, elapsed = await gen_fn(prompt, model)
            else:
                logger.info(f"Retry {attempt}/{MAX_RETRIES}: {last_error}")
                retry_msgs = _build_retry_messages(prompt, last_error, bad_json)
                dsl_json, elapsed = await gen_fn(prompt, model, retry_messages=retry_msgs)

            total_elapsed += elapsed

            # Step 1: structural gate (fatal after the last retry)
            scene = parse_scene(dsl_json)

            # Step 2: advisory checks (retried, but tolerated at the end)
            warnings = _lint_scene(scene)
            if warnings:
                bad_json = dsl_json
                last_error = "; ".join(warnings)
                retries_used = attempt + 1
                if attempt < MAX_RETRIES:
                    logger.warning(f"Scene issues (attempt {attempt+1}): {last_error}")
                    continue
                logger.warning(f"Scene issues persist after {MAX_RETRIES} retries")

            metadata = {
                "provider": provider,
                "model": model,
                "llm_time_s": round(total_elapsed, 3),
                "retries": retries_used,
                "warnings": warnings,
                "cache_hit": False,
            }
            _cache_set(key, dsl_json, dict(metadata))
            return dsl_json, metadata

        except Exception as e:
            err_str = str(e)
            # Detect rate limiting and sleep before retry
            if "429" in err_str and "RESOURCE_EXHAUSTED" in err_str:
                delay_match = re.search(r"retry in (\d+(?:\.\d+)?)s", err_str, re.IGNORECASE)
                wait_sec = float(delay_match.group(1)) if delay_match else 30.0
                if attempt < MAX_RETRIES:
                    logger.info(f"Rate limited, waiting {wait_sec:.0f}s before retry...")
                    await asyncio.sleep(wait_sec)
                    retries_used = attempt + 1
                    last_error = "rate limited"
                    continue
                raise

            bad_json = dsl_json
            last_error = err_str
            retries_used = attempt + 1
            if attempt < MAX_RETRIES:
                level = logging.WARNING if isinstance(e, SceneDSLError) else logging.ERROR
                logger.log(level, f"Generation failed (attempt {attempt+1}): {e}")
                continue
            raise

    raise RuntimeError(f"Generation failed after {MAX_RETRIES} retries: {last_error}")


async def refine_scene(
    current: SceneDescription,
    refinement: str,
    provider: str | None = None,
    model: str | None = None,
) -> tuple[SceneDescription, dict]:
    """Ask the model to revise an existing scene. Returns (scene, metadata).

    Refinements are not cached and not retried; parser errors propagate.
    """
    provider = provider or config.DEFAULT_PROVIDER
    gen_fn, model = _select_provider(provider, model)
    messages = _build_refine_messages(current, refinement)

    dsl_json, elapsed = await gen_fn(refinement, model, retry_messages=messages)
    scene = parse_scene(dsl_json)
    return scene, {
        "provider": provider,
        "model": model,
        "llm_time_s": round(elapsed, 3),
        "warnings": _lint_scene(scene),
    }


# ── Streaming ───────────────────────────────────────────────────


async def stream_dsl_claude(
    prompt: str, model: str = "haiku"
) -> AsyncIterator[str]:
    """Stream scene DSL tokens from Claude API."""
    model_id = config.CLAUDE_MODELS.get(model, model)
    client = _get_claude_client()

    async with client.messages.stream(
        model=model_id,
        max_tokens=4096,
        temperature=config.LLM_TEMPERATURE,
        system=_system_prompt(),
        messages=_build_messages(prompt),
    ) as stream:
        async for text in stream.text_stream:
            yield text


async def stream_dsl_gemini(
    prompt: str, model: str = "flash"
) -> AsyncIterator[str]:
    """Stream scene DSL tokens from Gemini API."""
    model_id = config.GEMINI_MODELS.get(model, model)
    client = _get_gemini_client()

    full_prompt = _system_prompt() + "\n\nUser: " + prompt + "\nAssistant:"

    async for chunk in await client.aio.models.generate_content_stream(
        model=model_id,
        contents=full_prompt,
    ):
        if chunk.text:
            yield chunk.text

"""Three.js scene generation FastAPI server."""

import base64
import json
import time

from fastapi import FastAPI, HTTPException, WebSocket, WebSocketDisconnect
from fastapi.responses import HTMLResponse, Response

from scene_server.models import (
    CodeResponse,
    GenerateRequest,
    GenerateResponse,
    HealthResponse,
    HtmlRequest,
    RefineRequest,
    SceneRequest,
    ValidateResponse,
)
from scene_server.schema import create_default_scene
from scene_server.services import codegen_service, document_service, dsl_service, llm_service
from scene_server.services.dsl_service import SceneDSLError
from scene_server.prompts.examples import EXAMPLES
from scene_server import config

VERSION = "0.1.0"

app = FastAPI(
    title="Three.js Scene Generator",
    description="Generate Three.js scenes from text descriptions using LLM + scene DSL",
    version=VERSION,
)


# ── REST Endpoints ──────────────────────────────────────────────


@app.get("/api/health", response_model=HealthResponse)
async def health():
    return HealthResponse(
        status="ok",
        version=VERSION,
        providers={
            "claude": bool(config.ANTHROPIC_API_KEY),
            "gemini": bool(config.GOOGLE_API_KEY),
        },
    )


@app.get("/api/default")
async def default_scene():
    return create_default_scene()


@app.post("/api/validate", response_model=ValidateResponse)
async def validate(req: SceneRequest):
    try:
        scene = dsl_service.parse_scene(req.dsl_json)
    except SceneDSLError as e:
        return ValidateResponse(valid=False, error=str(e))
    return ValidateResponse(
        valid=True,
        light_count=len(scene["lights"]),
        object_count=len(scene["objects"]),
    )


@app.post("/api/code", response_model=CodeResponse)
async def code(req: SceneRequest):
    try:
        scene = dsl_service.parse_scene(req.dsl_json)
    except SceneDSLError as e:
        return CodeResponse(error=str(e))
    return CodeResponse(dsl=scene, code=codegen_service.generate_scene(scene))


@app.post("/api/html", response_class=HTMLResponse)
async def html(req: HtmlRequest):
    try:
        scene = dsl_service.parse_scene(req.dsl_json)
    except SceneDSLError as e:
        raise HTTPException(status_code=422, detail=str(e))
    return HTMLResponse(content=document_service.assemble_document(scene, req.title))


@app.post("/api/generate")
async def generate(req: GenerateRequest):
    total_t0 = time.perf_counter()

    try:
        dsl_json, llm_meta = await llm_service.describe_scene(
            req.prompt, req.provider, req.model
        )
        scene = dsl_service.parse_scene(dsl_json)
    except Exception as e:
        return GenerateResponse(error=f"LLM error: {e}")

    warnings = llm_meta.pop("warnings", [])

    if req.format == "dsl":
        return GenerateResponse(dsl=scene, warnings=warnings, timings=llm_meta)

    scene_code = codegen_service.generate_scene(scene)
    total_ms = round((time.perf_counter() - total_t0) * 1000, 2)
    timings = {**llm_meta, "total_ms": total_ms}

    if req.format == "code":
        return GenerateResponse(
            dsl=scene, code=scene_code, warnings=warnings, timings=timings,
        )

    document = document_service.assemble_document(scene, req.title)
    return Response(
        content=document,
        media_type="text/html",
        headers={
            "Content-Disposition": 'attachment; filename="scene.html"',
            "X-Scene-DSL": base64.b64encode(dsl_service.serialize_scene(scene).encode()).decode(),
            "X-Stats": json.dumps(timings),
        },
    )


@app.post("/api/refine", response_model=GenerateResponse)
async def refine(req: RefineRequest):
    try:
        current = dsl_service.parse_scene(req.dsl_json)
    except SceneDSLError as e:
        return GenerateResponse(error=str(e))

    try:
        scene, llm_meta = await llm_service.refine_scene(
            current, req.prompt, req.provider, req.model
        )
    except Exception as e:
        return GenerateResponse(error=f"LLM error: {e}")

    warnings = llm_meta.pop("warnings", [])
    return GenerateResponse(
        dsl=scene,
        code=codegen_service.generate_scene(scene),
        warnings=warnings,
        timings=llm_meta,
    )


@app.get("/api/examples")
async def examples():
    return [
        {"prompt": ex["prompt"], "dsl_json": ex["dsl_json"]}
        for ex in EXAMPLES
    ]


# ── WebSocket Endpoint ──────────────────────────────────────────


@app.websocket("/ws/generate")
async def ws_generate(ws: WebSocket):
    await ws.accept()

    try:
        while True:
            data = await ws.receive_json()
            prompt = data.get("prompt", "")
            provider = data.get("provider", config.DEFAULT_PROVIDER)
            model = data.get("model")
            title = data.get("title", config.DEFAULT_TITLE)

            if not prompt:
                await ws.send_json({"type": "error", "message": "Empty prompt"})
                continue

            total_t0 = time.perf_counter()

            # Phase 1: Stream LLM tokens
            await ws.send_json({"type": "status", "message": "Generating scene DSL..."})

            accumulated = ""
            try:
                if provider == "claude":
                    stream = llm_service.stream_dsl_claude(prompt, model or config.DEFAULT_MODELS["claude"])
                elif provider == "gemini":
                    stream = llm_service.stream_dsl_gemini(prompt, model or config.DEFAULT_MODELS["gemini"])
                else:
                    await ws.send_json(
                        {"type": "error", "message": f"Unknown provider: {provider}"}
                    )
                    continue
                async for token in stream:
                    accumulated += token
                    await ws.send_json({"type": "tokens", "content": token})
            except Exception as e:
                await ws.send_json({"type": "error", "message": f"LLM error: {e}"})
                continue

            try:
                dsl_json = llm_service._extract_json(accumulated)
                scene = dsl_service.parse_scene(dsl_json)
            except ValueError as e:
                await ws.send_json({"type": "error", "message": f"Invalid scene: {e}"})
                continue

            await ws.send_json({"type": "dsl", "dsl": scene})

            # Phase 2: Code generation and document assembly
            await ws.send_json({"type": "status", "message": "Generating scene code..."})
            await ws.send_json({"type": "code", "code": codegen_service.generate_scene(scene)})
            await ws.send_json({
                "type": "html",
                "html": document_service.assemble_document(scene, title),
            })

            total_ms = round((time.perf_counter() - total_t0) * 1000, 2)
            await ws.send_json({"type": "done", "total_time_ms": total_ms})

    except WebSocketDisconnect:
        pass


# ── Main ────────────────────────────────────────────────────────


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "scene_server.main:app",
        host=config.HOST,
        port=config.PORT,
        reload=True,
    )

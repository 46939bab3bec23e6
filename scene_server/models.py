"""Pydantic models for the Three.js scene generation API."""

from pydantic import BaseModel, Field
from typing import Optional, Literal

from scene_server import config


class GenerateRequest(BaseModel):
    prompt: str = Field(..., description="Text description of the 3D scene")
    provider: Literal["claude", "gemini"] = config.DEFAULT_PROVIDER
    model: Optional[str] = None
    format: Literal["dsl", "code", "html"] = "html"
    title: str = config.DEFAULT_TITLE


class RefineRequest(BaseModel):
    dsl_json: str = Field(..., description="Current scene DSL JSON string")
    prompt: str = Field(..., description="Requested change to the scene")
    provider: Literal["claude", "gemini"] = config.DEFAULT_PROVIDER
    model: Optional[str] = None


class SceneRequest(BaseModel):
    dsl_json: str = Field(..., description="Scene DSL JSON string")


class HtmlRequest(SceneRequest):
    title: str = config.DEFAULT_TITLE


class ValidateResponse(BaseModel):
    valid: bool
    light_count: Optional[int] = None
    object_count: Optional[int] = None
    error: Optional[str] = None


class CodeResponse(BaseModel):
    dsl: Optional[dict] = None
    code: Optional[str] = None
    error: Optional[str] = None


class GenerateResponse(BaseModel):
    dsl: Optional[dict] = None
    code: Optional[str] = None
    warnings: list[str] = []
    timings: Optional[dict] = None
    error: Optional[str] = None


class HealthResponse(BaseModel):
    status: str = "ok"
    version: str = ""
    providers: dict = {}

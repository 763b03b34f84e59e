# schemas/request_models.py
from pydantic import BaseModel, Field, StrictStr
from typing import Optional, Dict


class GenerateModelRequest(BaseModel):
    """Body of POST /generate"""
    prompt: Optional[StrictStr] = Field(None, description="Creative prompt for the 3D model")

    class Config:
        json_schema_extra = {
            "example": {"prompt": "a red sports car"}
        }


class GenerateModelResponse(BaseModel):
    success: bool = True
    taskId: str
    message: str = "Generation started with PBR texturing"


class RefineModelRequest(BaseModel):
    """Body of POST /refine"""
    previewTaskId: Optional[StrictStr] = Field(None, description="Task id of a succeeded preview job")

    class Config:
        json_schema_extra = {
            "example": {"previewTaskId": "0189f7e2-preview"}
        }


class RefineModelResponse(BaseModel):
    taskId: str
    previewTaskId: str


class ModelStatusResponse(BaseModel):
    """
    Single-shot snapshot returned by GET /status.

    Non-terminal: status + progress. Success: modelUrl + thumbnail.
    Failure: error.
    """
    status: str
    taskId: str
    progress: Optional[int] = None
    modelUrl: Optional[str] = None
    thumbnail: Optional[str] = None
    error: Optional[str] = None


class GenerateEnvironmentRequest(BaseModel):
    """Body of POST /generate-env"""
    prompt: Optional[StrictStr] = Field(None, description="Description of the 360 environment")

    class Config:
        json_schema_extra = {
            "example": {"prompt": "inside a living cell, soft light"}
        }


class GenerateEnvironmentResponse(BaseModel):
    success: bool = True
    imagePath: str
    thumbnail: Optional[str] = None
    prompt: str
    skyboxId: str


class QuotaResponse(BaseModel):
    clientId: str
    current: int
    limit: int


class HealthResponse(BaseModel):
    """Health check response"""
    status: str
    message: str
    quota_backend: str
    quota_store_status: Optional[str] = None
    providers: Dict[str, str] = Field(default_factory=dict)
    generation_enabled: bool = True

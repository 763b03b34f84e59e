# routers/router.py
"""
FastAPI Router for AI generation endpoints
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, status

from core.config import settings
from core.logger import logger
from core.rate_limiter import get_client_id, limit_param, limiter
from schemas.job_models import JobState
from schemas.request_models import (
    GenerateEnvironmentRequest,
    GenerateEnvironmentResponse,
    GenerateModelRequest,
    GenerateModelResponse,
    HealthResponse,
    ModelStatusResponse,
    QuotaResponse,
    RefineModelRequest,
    RefineModelResponse,
)
from services.generation_service import GenerationService, generation_service


# ============================================================================
# ROUTER CONFIGURATION
# ============================================================================

router = APIRouter(
    prefix="/api/ai",
    tags=["AI Generation"],
    responses={
        400: {"description": "Invalid input"},
        429: {"description": "Too Many Requests / concurrency limit reached"},
        500: {"description": "Provider or configuration error"},
        503: {"description": "Generation disabled"}
    }
)


def get_generation_service() -> GenerationService:
    return generation_service


def require_generation_enabled(
    service: GenerationService = Depends(get_generation_service)
) -> None:
    """Runs before body validation so a disabled service answers 503 first."""
    service.ensure_enabled()


# ============================================================================
# HEALTH CHECK ENDPOINTS
# ============================================================================

@router.get(
    "/health",
    response_model=HealthResponse,
    status_code=status.HTTP_200_OK,
    summary="Service Health Check"
)
@limiter.limit(limit_param)
async def check_health(
    request: Request,
    service: GenerationService = Depends(get_generation_service)
) -> HealthResponse:
    """
    Checks:
    - Quota store reachability (redis backend only)
    - Provider credential presence
    """
    health_status = HealthResponse(
        status="healthy",
        message="Generation gateway is operational",
        quota_backend=settings.QUOTA_BACKEND,
        generation_enabled=not service.disabled,
    )

    store = service.limiter.store
    if hasattr(store, "health_check"):
        if store.health_check():
            health_status.quota_store_status = "connected"
        else:
            health_status.quota_store_status = "error"
            health_status.status = "degraded"
    else:
        health_status.quota_store_status = "in-memory"

    for name, submitter in (("meshy", service.submitter), ("blockade", service.skybox_submitter)):
        configured = submitter.client.configured
        health_status.providers[name] = "configured" if configured else "missing_api_key"
        if not configured:
            health_status.status = "degraded"

    return health_status


# ============================================================================
# 3D MODEL ENDPOINTS
# ============================================================================

@router.post(
    "/generate",
    response_model=GenerateModelResponse,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Start 3D Model Generation",
    description="Admits the job against the per-client quota and starts a preview task",
    dependencies=[Depends(require_generation_enabled)]
)
@limiter.limit(limit_param)
async def generate_model(
    request: Request,
    body: GenerateModelRequest,
    service: GenerationService = Depends(get_generation_service)
) -> GenerateModelResponse:
    client_id = get_client_id(request)
    job = await service.start_model_generation(body.prompt, client_id)
    return GenerateModelResponse(taskId=job.task_id)


@router.get(
    "/status",
    response_model=ModelStatusResponse,
    response_model_exclude_none=True,
    status_code=status.HTTP_200_OK,
    summary="Single-shot Task Status",
    description="One upstream status query; the client owns the polling cadence",
    dependencies=[Depends(require_generation_enabled)]
)
@limiter.limit(limit_param)
async def model_status(
    request: Request,
    taskId: Optional[str] = Query(None, description="Task id returned by /generate or /refine"),
    service: GenerationService = Depends(get_generation_service)
) -> ModelStatusResponse:
    job_status, asset = await service.check_model_status(taskId)

    if job_status.state == JobState.SUCCEEDED:
        return ModelStatusResponse(
            status=JobState.SUCCEEDED.value,
            taskId=taskId,
            modelUrl=asset.asset_url,
            thumbnail=asset.thumbnail_url,
        )

    if job_status.is_terminal:
        return ModelStatusResponse(
            status=job_status.state.value,
            taskId=taskId,
            error=job_status.error,
        )

    return ModelStatusResponse(
        status=job_status.state.value,
        taskId=taskId,
        progress=job_status.progress,
    )


@router.post(
    "/refine",
    response_model=RefineModelResponse,
    status_code=status.HTTP_200_OK,
    summary="Refine a Succeeded Preview",
    description="Starts a texture refinement task chained to a succeeded preview",
    dependencies=[Depends(require_generation_enabled)]
)
@limiter.limit(limit_param)
async def refine_model(
    request: Request,
    body: RefineModelRequest,
    service: GenerationService = Depends(get_generation_service)
) -> RefineModelResponse:
    job = await service.refine_model(body.previewTaskId)
    return RefineModelResponse(taskId=job.task_id, previewTaskId=job.preview_task_id)


@router.get(
    "/quota",
    response_model=QuotaResponse,
    status_code=status.HTTP_200_OK,
    summary="Current Generation Quota"
)
@limiter.limit(limit_param)
async def quota(
    request: Request,
    service: GenerationService = Depends(get_generation_service)
) -> QuotaResponse:
    client_id = get_client_id(request)
    return QuotaResponse(
        clientId=client_id,
        current=service.get_active_count(client_id),
        limit=service.limiter.limit,
    )


# ============================================================================
# SKYBOX ENDPOINTS
# ============================================================================

@router.post(
    "/generate-env",
    response_model=GenerateEnvironmentResponse,
    response_model_exclude_none=True,
    status_code=status.HTTP_200_OK,
    summary="Generate 360 Environment",
    description="Submits a skybox and waits for it server-side (up to the poll budget)",
    dependencies=[Depends(require_generation_enabled)]
)
@limiter.limit(limit_param)
async def generate_environment(
    request: Request,
    body: GenerateEnvironmentRequest,
    service: GenerationService = Depends(get_generation_service)
) -> GenerateEnvironmentResponse:
    client_id = get_client_id(request)
    job, asset = await service.generate_environment(body.prompt, client_id)

    logger.info(f"Environment generated: skybox={job.task_id}, client={client_id}")

    return GenerateEnvironmentResponse(
        imagePath=asset.asset_url,
        thumbnail=asset.thumbnail_url,
        prompt=job.prompt,
        skyboxId=job.task_id,
    )

import time
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from routers.router import router
from routers.proxy_router import router as proxy_router
from core.errors import ServiceError
from core.lifespan import lifespan
from core.config import settings
from core.logger import logger
from core.rate_limiter import limiter, get_client_id

# CORS configuration
if settings.ENABLE_CORS and (settings.FRONTEND_ENDPOINT or settings.BACKEND_ENDPOINT):
    origins = [
        origin for origin in (settings.FRONTEND_ENDPOINT, settings.BACKEND_ENDPOINT) if origin
    ]
else:
    origins = ["*"]

# Initialize FastAPI app
app = FastAPI(
    title=settings.PROJECT_NAME,
    description="""
    Job orchestration gateway for AI asset generation (text-to-3D, text-to-skybox).

    ## Endpoints

    **POST /api/ai/generate** - Start a 3D model preview job (per-client concurrency quota)

    **GET /api/ai/status?taskId=...** - Single status check; poll from the client

    **POST /api/ai/refine** - Chain a texture refinement onto a succeeded preview

    **POST /api/ai/generate-env** - Generate a 360 skybox, waits server-side

    **GET /api/proxy?url=...** - Fetch an allow-listed asset URL

    ### Errors
    Every failure is a JSON body `{"error": "...", ...}`; rate-limit rejections
    carry `current` and `limit`.
    """,
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc"
)

# Configure rate limiting
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload())


def jsonable_errors(exc: RequestValidationError):
    return [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg"), "type": err.get("type")}
        for err in exc.errors()
    ]


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"error": "Invalid request", "details": jsonable_errors(exc)},
    )


# Request/Response logging middleware
@app.middleware("http")
async def log_requests(request: Request, call_next):
    start_time = time.time()
    response = await call_next(request)
    duration = time.time() - start_time

    log_data = {
        "method": request.method,
        "path": request.url.path,
        "status_code": response.status_code,
        "duration_ms": int(duration * 1000),
        "client": get_client_id(request)
    }

    # Only log non-health-check requests
    if not request.url.path.endswith("/health"):
        logger.info(f"Request: {log_data}")

    return response

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=origins != ["*"],
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
)

# Include routers
app.include_router(router)
app.include_router(proxy_router)

# Root endpoint
@app.get("/", tags=["Root"])
async def root():
    return {
        "service": settings.PROJECT_NAME,
        "version": "1.0.0",
        "status": "running",
        "documentation": "/docs"
    }

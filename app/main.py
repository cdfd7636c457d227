import logging
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.openapi.docs import get_swagger_ui_html
from fastapi.openapi.utils import get_openapi

from app.api import grading_scales, lookups, reports, scores
from app.config import settings
from app.middleware.logging import add_logging_middleware, setup_logging
from app.services.errors import (
    RoleViolation, RowNotFound, SaveFailed, SaveInProgress, UpstreamError, ValidationFailed
)

# Initialize FastAPI app
app = FastAPI(
    title="Exam Report API",
    description="Exam scoring, grading scales and report cards on top of the school ORDS backend",
    version="1.0.0",
    docs_url=None,
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Setup logging
setup_logging()
add_logging_middleware(app)
logger = logging.getLogger(__name__)

# Service errors surface as transient messages, never as a crash
def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"detail": message})

@app.exception_handler(ValidationFailed)
async def validation_failed_handler(request: Request, exc: ValidationFailed):
    return _error(status.HTTP_400_BAD_REQUEST, str(exc))

@app.exception_handler(RoleViolation)
async def role_violation_handler(request: Request, exc: RoleViolation):
    return _error(status.HTTP_403_FORBIDDEN, str(exc))

@app.exception_handler(RowNotFound)
async def row_not_found_handler(request: Request, exc: RowNotFound):
    return _error(status.HTTP_404_NOT_FOUND, str(exc))

@app.exception_handler(SaveInProgress)
async def save_in_progress_handler(request: Request, exc: SaveInProgress):
    return _error(status.HTTP_409_CONFLICT, str(exc))

@app.exception_handler(SaveFailed)
async def save_failed_handler(request: Request, exc: SaveFailed):
    return _error(status.HTTP_502_BAD_GATEWAY, f"Save failed: {exc.message}")

@app.exception_handler(UpstreamError)
async def upstream_error_handler(request: Request, exc: UpstreamError):
    logger.error(f"Upstream error on {request.url.path}: {str(exc)}")
    return _error(status.HTTP_502_BAD_GATEWAY, f"Backend request failed: {str(exc)}")

# Custom exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled exception: {str(exc)}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"detail": "An unexpected error occurred. Please try again later."},
    )

# Include routers
app.include_router(lookups.router, prefix="/api", tags=["Lookups"])
app.include_router(reports.router, prefix="/api", tags=["Exam Reports"])
app.include_router(scores.router, prefix="/api", tags=["Scores"])
app.include_router(grading_scales.router, prefix="/api", tags=["Grading Scales"])

# Custom OpenAPI schema for documentation
@app.get("/api/docs", include_in_schema=False)
async def custom_swagger_ui_html():
    return get_swagger_ui_html(
        openapi_url="/api/openapi.json",
        title="Exam Report API Documentation",
        swagger_ui_parameters={"defaultModelsExpandDepth": -1},
    )

@app.get("/api/openapi.json", include_in_schema=False)
async def get_openapi_endpoint():
    return get_openapi(
        title="Exam Report API",
        version="1.0.0",
        description="Exam Report API",
        routes=app.routes,
    )

@app.get("/", tags=["Root"])
async def root():
    return {"message": "Welcome to the Exam Report API. Visit /api/docs for documentation."}

# Run the server
if __name__ == "__main__":
    import uvicorn
    uvicorn.run("app.main:app", host="0.0.0.0", port=5000, reload=True)

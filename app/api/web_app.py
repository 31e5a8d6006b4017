# Standard library
import time
import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timezone

# Third party
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.openapi.utils import get_openapi
from fastapi.responses import JSONResponse, Response
from pydantic import ValidationError
from sqlalchemy import text
import yaml

# Local imports
from app.core.config import settings
from app.core.exceptions import CategoryServiceError
from app.core.logging import get_logger
from app.db.base import get_db_session
from app.events import get_event_publisher
from app.services.cache_service import get_cache_service
import app.api as api


logger = get_logger(__name__)

SENSITIVE_HEADERS = ["authorization", "cookie", "x-api-key"]


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for FastAPI application startup and shutdown events"""
    # Startup
    logger.info("Category service starting up...")

    try:
        session_gen = get_db_session()
        session = next(session_gen)
        session.execute(text("SELECT 1")).fetchone()
        session.close()
        logger.info("Database connection successful")
    except Exception as e:
        logger.error(f"Database connection failed: {e}")
        raise

    yield

    # Shutdown
    pending = get_event_publisher().flush()
    if pending:
        logger.warning(f"{pending} category events were not delivered before shutdown")
    get_event_publisher().close()
    get_cache_service().close()
    logger.info("Category service shutting down...")


def _clean_errors(errors):
    """Drop the non-serializable ctx objects pydantic attaches to errors"""
    cleaned = []
    for error in errors:
        clean_error = {
            "type": error.get("type"),
            "loc": error.get("loc"),
            "msg": error.get("msg"),
        }
        if isinstance(error.get("ctx"), dict) and "error" in error["ctx"]:
            clean_error["ctx"] = {"error": str(error["ctx"]["error"])}
        cleaned.append(clean_error)
    return cleaned


def create_app() -> FastAPI:
    """Create and configure FastAPI application"""

    app = FastAPI(
        title="ProcGrid Category Service",
        description="Manages the hierarchical product category tree for the ProcGrid catalogue.",
        version="1.0.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
        default_response_class=JSONResponse,
    )

    for name, router in api.category_routers:
        app.include_router(router, prefix=f"/api/v1/{name}", tags=[name])

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        request_id = str(uuid.uuid4())
        headers = dict(request.headers)
        for header in SENSITIVE_HEADERS:
            if header in headers:
                headers[header] = "[REDACTED]"

        logger.info(f"[{request_id}] {request.method} {request.url}")
        logger.debug(f"[{request_id}] Headers: {headers}")
        logger.debug(f"[{request_id}] Query Params: {dict(request.query_params)}")

        start_time = time.time()
        try:
            response = await call_next(request)
        except Exception as e:
            process_time = time.time() - start_time
            logger.error(
                f"[{request_id}] Request failed after {process_time:.4f}s: {str(e)}",
                exc_info=True,
            )
            raise

        process_time = time.time() - start_time
        response.headers["X-Request-ID"] = request_id
        response.headers["X-Process-Time"] = str(process_time)
        logger.info(
            f"[{request_id}] Status Code: {response.status_code} ({process_time:.4f}s)"
        )
        return response

    @app.get("/health")
    async def health_check():
        """Health check endpoint for load balancers and monitoring"""
        return {
            "status": "healthy",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "service": "category-service",
        }

    @app.get("/health/detailed")
    async def detailed_health_check():
        """Check database and cache dependencies"""
        health_status = {
            "status": "healthy",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "service": "category-service",
            "dependencies": {},
        }

        try:
            db = next(get_db_session())
            db.execute(text("SELECT 1"))
            db.close()
            health_status["dependencies"]["database"] = {"status": "healthy"}
        except Exception as e:
            health_status["status"] = "unhealthy"
            health_status["dependencies"]["database"] = {
                "status": "unhealthy",
                "message": f"Database connection failed: {str(e)}",
            }

        cache_service = get_cache_service()
        if cache_service.redis_client is None:
            # The cache is optional; reads fall through to the database
            health_status["dependencies"]["cache"] = {
                "status": "degraded",
                "message": "Cache disabled or Redis unavailable",
            }
        else:
            try:
                cache_service.redis_client.ping()
                health_status["dependencies"]["cache"] = {"status": "healthy"}
            except Exception as e:
                health_status["dependencies"]["cache"] = {
                    "status": "degraded",
                    "message": f"Cache ping failed: {str(e)}",
                }

        health_status["dependencies"]["events"] = {"publisher": settings.EVENT_PUBLISHER}
        return health_status

    @app.get("/openapi.yaml")
    async def get_openapi_yaml():
        """Serve OpenAPI specification in YAML format"""
        openapi_schema = get_openapi(
            title=app.title,
            version=app.version,
            description=app.description,
            routes=app.routes,
        )
        yaml_content = yaml.dump(openapi_schema, default_flow_style=False, sort_keys=False)
        return Response(content=yaml_content, media_type="application/x-yaml")

    # Domain errors carry their own status code
    @app.exception_handler(CategoryServiceError)
    async def category_error_handler(request: Request, exc: CategoryServiceError):
        logger.warning(f"{exc.error_code} on {request.method} {request.url.path}: {exc.message}")
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(ValueError)
    async def value_error_handler(request: Request, exc: ValueError):
        logger.error(f"ValueError: {str(exc)}")
        return JSONResponse(status_code=400, content={"detail": str(exc)})

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        errors = _clean_errors(exc.errors())
        logger.error(f"Validation error: {errors}")
        return JSONResponse(
            status_code=422,
            content={"detail": "Validation error", "errors": errors},
        )

    @app.exception_handler(ValidationError)
    async def pydantic_validation_exception_handler(request: Request, exc: ValidationError):
        errors = _clean_errors(exc.errors())
        logger.error(f"Pydantic validation error: {errors}")
        return JSONResponse(
            status_code=422,
            content={"detail": "Validation error", "errors": errors},
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.error(f"Global exception: {exc}", exc_info=True)
        return JSONResponse(status_code=500, content={"detail": "Internal server error"})

    return app


# Create the app instance
app = create_app()

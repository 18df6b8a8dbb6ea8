from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from pathlib import Path
import logging
import uvicorn

from .database import engine, Base
from .routers import auth, documents, ai, workflows, dashboard, widget, realtime
from .config import settings
from .exceptions import LissanError
from .ratelimit import limiter
from .services.event_bus import EventBus
from .services.realtime_service import ConnectionManager

logger = logging.getLogger(__name__)

STATIC_DIR = Path(__file__).parent / "static"

# Create database tables
@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    Base.metadata.create_all(bind=engine)
    logger.info(f"Lissan API started ({settings.environment})")
    yield
    # Shutdown
    pass

# =============================================================================
# ERROR RESPONSES
# =============================================================================

async def lissan_error_handler(request: Request, exc: LissanError):
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})

async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(status_code=exc.status_code, content={"error": exc.detail}, headers=getattr(exc, "headers", None))

async def validation_error_handler(request: Request, exc: RequestValidationError):
    """Report the first failing field as a 400, like every other client error"""
    errors = exc.errors()
    message = "Invalid request"
    if errors:
        message = str(errors[0].get("msg", message)).removeprefix("Value error, ")
    return JSONResponse(status_code=400, content={"error": message})

# =============================================================================
# APPLICATION
# =============================================================================

def create_app() -> FastAPI:
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s"
    )

    production = settings.environment == "production"
    app = FastAPI(
        title="Lissan API",
        description="Bilingual (Amharic/English) document assistant, workflows and chat widget",
        version="1.0.0",
        lifespan=lifespan,
        docs_url=None if production else "/docs",
        redoc_url=None if production else "/redoc"
    )

    # One bus and one set of rooms per application
    app.state.event_bus = EventBus()
    app.state.connections = ConnectionManager()
    app.state.event_bus.subscribe(app.state.connections.handle_event)
    app.state.limiter = limiter

    # Bearer tokens and API keys travel in headers, so no credentials are needed
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=False,  # Must be False when allow_origins=["*"]
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["*"],
    )

    app.add_exception_handler(LissanError, lissan_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    app.include_router(auth.router, prefix="/api/auth", tags=["authentication"])
    app.include_router(documents.router)
    app.include_router(ai.router, prefix="/api/ai", tags=["ai"])
    app.include_router(workflows.router, prefix="/api/workflows", tags=["workflows"])
    app.include_router(dashboard.router, prefix="/api/dashboard", tags=["dashboard"])
    app.include_router(widget.router, prefix="/api/widget", tags=["widget"])
    app.include_router(realtime.router, tags=["realtime"])

    # Embeddable widget assets
    app.mount("/widget", StaticFiles(directory=STATIC_DIR), name="widget")

    @app.get("/")
    async def root():
        return {"message": "Lissan API - Bilingual document assistant", "version": "1.0.0"}

    @app.get("/health")
    async def health_check():
        return {"status": "OK", "timestamp": datetime.now(timezone.utc).isoformat()}

    return app

app = create_app()

if __name__ == "__main__":
    uvicorn.run("lissan.main:app", host="0.0.0.0", port=8000, reload=True)

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
from starlette.middleware.base import BaseHTTPMiddleware
import uvicorn
from dotenv import load_dotenv

# Load .env before settings are read
load_dotenv()

from streamchat.chat.api.route import chat_router
from streamchat.core.bootstrap import build_engine
from streamchat.core.config import Settings, settings
from streamchat.core.logger import configure_logging, get_logger
from streamchat.llm.api.route import provider_router

configure_logging(settings.LOG_LEVEL)
logger = get_logger("streamchat")


def create_app(app_settings: Settings = settings, engine_factory=build_engine) -> FastAPI:
    """Application factory; `engine_factory(settings)` builds the conversation engine."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Lifespan context manager - ensures startup completes before accepting requests"""
        logger.info(f"{app_settings.APP_NAME} starting up (env={app_settings.ENV})...")
        app.state.engine = None
        try:
            engine = await engine_factory(app_settings)
            app.state.engine = engine
            app.state.chat_handler = engine.chat_handler
            app.state.provider_handler = engine.provider_handler
            app.state.startup_complete = True
            app.state.startup_error = None
            logger.info("✓ Startup complete - application is ready!")
        except Exception as e:
            logger.error(f"✗ Startup failed: {e}", exc_info=True)
            logger.error("Application will start in degraded mode - check logs above")
            app.state.chat_handler = None
            app.state.provider_handler = None
            app.state.startup_complete = False
            app.state.startup_error = str(e)

        yield

        logger.info(f"{app_settings.APP_NAME} shutting down...")
        if app.state.engine is not None:
            await app.state.engine.aclose()

    app = FastAPI(
        title=app_settings.APP_NAME,
        description="Local streaming conversation engine",
        version="1.0.0",
        lifespan=lifespan,
    )

    app.add_middleware(StartupCheckMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        """Convert HTTPException to standardized error format"""
        return JSONResponse(
            status_code=exc.status_code,
            content={
                "status": False,
                "message": exc.detail
            },
            headers=exc.headers
        )

    app.include_router(chat_router)
    app.include_router(provider_router)

    @app.get("/health")
    async def health(request: Request):
        """Health check that shows engine status"""
        startup_complete = getattr(request.app.state, "startup_complete", False)
        startup_error = getattr(request.app.state, "startup_error", None)
        if not startup_complete:
            return JSONResponse(
                status_code=200,
                content={
                    "status": "starting" if startup_error is None else "degraded",
                    "service": app_settings.APP_NAME,
                    "message": startup_error or "Application is still starting up...",
                    "startup_complete": False
                }
            )

        engine = request.app.state.engine
        return {
            "status": "ok",
            "service": app_settings.APP_NAME,
            "checks": {
                "storage": type(engine.store).__name__,
                "sessions": len(engine.sessions.list()),
                "available_providers": [d.id for d in engine.router.available_providers()],
                "selected_provider": engine.router.selected_provider_id,
                "selected_model": engine.router.selected_model,
                "last_error": engine.controller.last_error.kind if engine.controller.last_error else None,
                "needs_attention": engine.controller.needs_attention,
            },
            "startup_complete": True
        }

    @app.get("/")
    async def root():
        """Root endpoint - simple check that app is running"""
        return {
            "service": app_settings.APP_NAME,
            "version": "1.0.0",
            "status": "running",
            "health_check": "/health"
        }

    return app


# Startup Check Middleware - ensures no requests processed before startup completes
class StartupCheckMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        if request.url.path in ["/health", "/", "/docs", "/openapi.json"]:
            return await call_next(request)

        if not getattr(request.app.state, "startup_complete", False):
            startup_error = getattr(request.app.state, "startup_error", None)
            message = (
                f"Service initialization failed: {startup_error}" if startup_error
                else "Service is starting up. Please retry in a few seconds."
            )
            return JSONResponse(status_code=503, content={"status": False, "message": message})

        return await call_next(request)


app = create_app()

if __name__ == "__main__":
    uvicorn.run("main:app", host=settings.HOST, port=settings.PORT, reload=False)

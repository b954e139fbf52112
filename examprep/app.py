"""FastAPI application exposing quiz sessions to the front end."""
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from examprep.dependencies import ServiceContainer, build_services
from examprep.logging_setup import setup_console_logging
from examprep.routes import lessons, sessions


def create_app(services: ServiceContainer | None = None) -> FastAPI:
    """
    Build the application.

    Services are created on startup unless given; they are closed on
    shutdown either way.
    """
    app = FastAPI(title="Exam Prep Quiz API")
    app.state.services = services

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.on_event("startup")
    def startup_events() -> None:
        """Create shared caches and the remote client."""
        if app.state.services is None:
            app.state.services = build_services()

    @app.on_event("shutdown")
    async def shutdown_events() -> None:
        """Close sessions, delete cached images and the HTTP client."""
        if app.state.services is not None:
            await app.state.services.aclose()

    @app.get("/api/health")
    def health() -> dict[str, object]:
        open_sessions = len(app.state.services.sessions) if app.state.services else 0
        return {"status": "ok", "sessions": open_sessions}

    # Include routers
    app.include_router(lessons.router)
    app.include_router(sessions.router)
    return app


setup_console_logging()

app = create_app()

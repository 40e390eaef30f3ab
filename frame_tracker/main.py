"""
Main entry point for Frame Tracker.

``uvicorn frame_tracker.main:app`` serves the API; running the module
directly does the same with the configured host, port and worker count.
"""

from .api import app  # noqa: F401

if __name__ == "__main__":
    import uvicorn

    from .config import get_settings

    settings = get_settings()
    uvicorn.run(
        "frame_tracker.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.debug,
        workers=1 if settings.debug else settings.api_workers,
        log_level=settings.log_level.lower(),
    )

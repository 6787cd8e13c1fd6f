"""
FastAPI Production Application

Main entry point for the E-Commerce Rollup API.
"""

from rollup_engine.config import get_settings
from rollup_engine.serving.api import create_app

settings = get_settings()

app = create_app()


@app.get("/api/v1/info")
async def api_info():
    """API information endpoint."""
    return {
        "name": "E-Commerce Rollup API",
        "version": settings.version,
        "environment": settings.app_env,
        "rollups": settings.rollups.enabled,
        "documentation": "/docs",
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=settings.api_host, port=settings.api_port)

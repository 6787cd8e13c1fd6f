"""
API Dependencies
"""

from fastapi import HTTPException, Request

from rollup_engine.rollups import RollupEngine


def get_engine(request: Request) -> RollupEngine:
    """Rollup engine built by the application lifespan"""
    engine = getattr(request.app.state, "rollups", None)
    if engine is None:
        raise HTTPException(status_code=503, detail="Rollup engine not ready")
    return engine

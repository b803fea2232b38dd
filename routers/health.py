# routers/health.py
from fastapi import APIRouter, Request

router = APIRouter(prefix="/health", tags=["health"])


@router.get("/session")
async def health_session(request: Request):
    controller = getattr(request.app.state, "controller", None)
    if controller is None:
        return {"ok": False, "live": False, "phase": None, "generation": None}

    s = controller.session
    return {
        "ok": controller.live and s.load_error is None,
        "live": controller.live,
        "phase": s.phase.value,
        "generation": s.generation,
        "load_error": s.load_error,
    }

from fastapi import HTTPException, Request

from driver import SessionController


def get_controller(request: Request) -> SessionController:
    """
    The controller is built by the app lifespan. Requests that arrive outside
    of it (no lifespan, or after shutdown) get a 503.
    """
    controller = getattr(request.app.state, "controller", None)
    if controller is None or not controller.live:
        raise HTTPException(status_code=503, detail="Quiz engine is not running.")
    return controller

from fastapi import APIRouter, Request

router = APIRouter(prefix="/health", tags=["health"])

@router.get("/ready")
def ready(request: Request):
    return {"status": "ok", "storage": request.app.state.settings.storage_backend}

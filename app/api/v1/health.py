from fastapi import APIRouter, Request

router = APIRouter()


@router.get("/health")
async def health(request: Request):
    rid = getattr(request.state, "request_id", None)
    storage = "dropbox" if request.app.state.settings.dropbox_token else "local"
    return {"status": "ok", "request_id": rid, "storage": storage}

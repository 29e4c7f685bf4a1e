from __future__ import annotations

from fastapi import APIRouter, Depends

from app.core.auth_deps import get_current_principal
from app.core.deps import Services, get_services
from app.schemas.chat import ChatRequest, ChatResponse

router = APIRouter(prefix="/chat")


@router.get("/welcome", response_model=ChatResponse, dependencies=[Depends(get_current_principal)])
def welcome(services: Services = Depends(get_services)):
    return {"reply": services.chat.welcome()}


@router.post("", response_model=ChatResponse, dependencies=[Depends(get_current_principal)])
def chat(req: ChatRequest, services: Services = Depends(get_services)):
    return {"reply": services.chat.ask(req.message)}

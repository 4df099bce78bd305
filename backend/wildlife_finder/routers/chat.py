from fastapi import APIRouter
from fastapi.responses import JSONResponse

from wildlife_finder.models import ChatRequest, ChatResponse, ResetRequest
from wildlife_finder.services.conversation import build_engine

router = APIRouter(prefix="/chat", tags=["chat"])
engine = build_engine()


@router.post("", response_model=ChatResponse)
def chat(request: ChatRequest):
    if not (request.message or "").strip():
        return JSONResponse(status_code=400, content={"error": "Message is required"})

    result = engine.handle_message(message=request.message, session_id=request.session_id)
    if result.failed:
        return JSONResponse(status_code=503, content={"error": result.response})
    return ChatResponse(response=result.response, stage=result.stage, session_id=result.session.id)


@router.post("/reset", response_model=ChatResponse)
def reset(request: ResetRequest):
    result = engine.reset(session_id=request.session_id)
    return ChatResponse(response=result.response, stage=result.stage, session_id=result.session.id)

# routes/ai.py
from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException

from dependencies import get_dispatcher, get_text_generator
from models import ChatRequest, TextGenerationRequest
from request_context import get_request_id
from services.llm_providers import (
    AllProvidersFailedError,
    ChatMessage,
    GenerationOptions,
    HuggingFaceTextGenerator,
    ProviderDispatcher,
    ProviderError,
)

log = logging.getLogger("llm")

router = APIRouter(prefix="/api/ai", tags=["ai"])

@router.post("/chat")
def chat(req: ChatRequest, dispatcher: ProviderDispatcher = Depends(get_dispatcher)):
    if not req.messages:
        raise HTTPException(status_code=400, detail="Messages array is required")

    defaults = GenerationOptions()
    options = GenerationOptions(
        max_tokens=req.max_tokens or defaults.max_tokens,
        temperature=defaults.temperature if req.temperature is None else req.temperature,
    )
    messages = [ChatMessage(role=m.role, content=m.content) for m in req.messages]
    try:
        completion = dispatcher.generate(messages, model_hint=req.model, options=options)
    except AllProvidersFailedError as e:
        log.error("Chat endpoint error", extra={"request_id": get_request_id(), "providers_failed": len(e.errors)})
        raise HTTPException(status_code=500, detail=str(e) or "Failed to generate chat response") from e

    return {"success": True, "data": completion.as_dict()}

@router.post("/generate")
def generate(req: TextGenerationRequest, generator: HuggingFaceTextGenerator = Depends(get_text_generator)):
    if not req.prompt or not isinstance(req.prompt, str):
        raise HTTPException(status_code=400, detail="Prompt is required and must be a string")

    try:
        completion = generator.generate(
            req.prompt,
            model=req.model,
            max_new_tokens=req.max_new_tokens,
            temperature=req.temperature,
        )
    except ProviderError as e:
        log.error("Text generation endpoint error", extra={"request_id": get_request_id(), "status": e.status_code})
        raise HTTPException(status_code=500, detail=e.message or "Failed to generate text") from e

    return {"success": True, "data": completion.as_dict()}

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status

from .chat import ChatDispatcher, CollectingSink
from .config import Settings, get_settings
from .router import ProviderRouter
from .schemas import HealthResponse, InvokeRequest, InvokeResponse, ReplyEnvelope

router = APIRouter()

logger = logging.getLogger(__name__)


def get_provider_router(request: Request) -> ProviderRouter:
    return request.app.state.provider_router


def get_dispatcher(request: Request) -> ChatDispatcher:
    return request.app.state.dispatcher


@router.get("/healthz", response_model=HealthResponse)
def healthcheck() -> HealthResponse:
    return HealthResponse()


@router.post("/invoke", response_model=InvokeResponse)
async def invoke(
    payload: InvokeRequest,
    provider_router: ProviderRouter = Depends(get_provider_router),
):
    sink = CollectingSink()
    await provider_router.dispatch(payload.text, sink)
    return InvokeResponse(
        replies=[ReplyEnvelope(text=m.text, ai_generated=m.ai_generated) for m in sink.messages]
    )


@router.post("/providers/telegram/webhook")
async def telegram_webhook(
    request: Request,
    settings: Settings = Depends(get_settings),
    dispatcher: ChatDispatcher = Depends(get_dispatcher),
):
    if not settings.telegram_bot_token:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Telegram provider is not configured.")

    secret_header = request.headers.get("X-Telegram-Bot-Api-Secret-Token")
    if settings.telegram_webhook_secret and secret_header != settings.telegram_webhook_secret:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid webhook secret.")

    try:
        payload = await request.json()
    except Exception as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid JSON payload.") from exc

    try:
        await dispatcher.handle_update("telegram", payload)
    except Exception as exc:
        logger.exception("Telegram handler failed")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc)) from exc

    return {"ok": True}

from __future__ import annotations

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from chatbot_service.api.deps import ChatbotDep
from chatbot_service.api.v1.schemas.status import StatusResponse

router = APIRouter(tags=["health"])


@router.get("/healthz")
async def healthz() -> dict[str, str]:
    return {"status": "ok"}


@router.get("/readyz")
async def readyz(chatbot: ChatbotDep) -> JSONResponse:
    errors: list[str] = []

    status = chatbot.status()
    if not status.transport_connected:
        errors.append(f"transport: {chatbot.transport.status}")
    if not status.generator_config_valid:
        errors.append("generator: configuration invalid")

    if errors:
        return JSONResponse(
            status_code=503,
            content={"status": "unavailable", "errors": errors},
        )
    return JSONResponse(content={"status": "ready"})


@router.get("/api/v1/status", response_model=StatusResponse)
async def get_status(chatbot: ChatbotDep) -> StatusResponse:
    return StatusResponse.model_validate(chatbot.status())

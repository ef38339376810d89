import os

import uvicorn
from fastapi import FastAPI

from assistant_bridge.config import settings
from assistant_bridge.logging_config import get_logger, setup_logging
from assistant_bridge.routers import webhook
from assistant_bridge.services.assistant import AssistantConfigurationError, AssistantError
from assistant_bridge.services.conversation_service import get_assistant_provider

setup_logging(settings.log_level)

logger = get_logger("main")

app = FastAPI(
    title="WhatsApp Assistant Bridge",
    description="Bridges WhatsApp conversations to an OpenAI assistant",
    version="0.1.0",
)

app.include_router(webhook.router)


def _is_assistant_check_enabled() -> bool:
    if os.environ.get("PYTEST_CURRENT_TEST"):
        return False
    return settings.verify_assistant_on_startup


async def verify_assistant() -> dict:
    """Resolve the configured assistant; the service must not start without it."""
    if not settings.openai_assistant_id:
        raise AssistantConfigurationError("OPENAI_ASSISTANT_ID is not configured")
    try:
        assistant = await get_assistant_provider().retrieve_assistant()
    except AssistantError as exc:
        logger.error(
            "Assistant verification failed",
            extra={"context": {"assistant_id": settings.openai_assistant_id, "error": str(exc)}},
        )
        raise AssistantConfigurationError(f"Assistant {settings.openai_assistant_id} is unavailable: {exc}") from exc
    logger.info(
        "Assistant verified",
        extra={"context": {"assistant_id": assistant.get("id"), "name": assistant.get("name")}},
    )
    return assistant


@app.on_event("startup")
async def check_assistant() -> None:
    if not _is_assistant_check_enabled():
        return
    await verify_assistant()


@app.get("/health")
async def health():
    return {"status": "ok"}


def run() -> None:
    logger.info(f"Webhook is listening on port {settings.port}")
    uvicorn.run(app, host="0.0.0.0", port=settings.port, log_config=None)


if __name__ == "__main__":
    run()

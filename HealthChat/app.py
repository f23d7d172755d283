import logging
from pathlib import Path

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from HealthChat.services.chat_settings import get_chat_settings
from HealthChat.services.errors import ChatError
from HealthChat.subapps.chat_routes import router as chat_router


_ROOT = Path(__file__).resolve().parents[1]
load_dotenv(_ROOT / ".env", override=False)

logger = logging.getLogger(__name__)


def _configure_logging() -> None:
    root_logger = logging.getLogger()
    if root_logger.handlers:
        return
    logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(name)s: %(message)s")


_configure_logging()

# Provider mode is resolved at startup so configuration problems show up once, here
get_chat_settings()

app = FastAPI()
app.include_router(chat_router)


# Renders chat-domain failures with their status code; server errors don't leak internals
@app.exception_handler(ChatError)
async def _chat_error_handler(request: Request, exc: ChatError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("chat.request.failed: path=%s err=%s", request.url.path, exc.message)
        return JSONResponse(status_code=exc.status_code, content={"detail": "Failed to process request"})
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})

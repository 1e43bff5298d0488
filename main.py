import inspect
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from openai import AsyncOpenAI

from config.settings import Settings, get_settings
from routes.chat_route import router as chat_router
from utils.relay_errors import InvalidInput, RelayError

LOGGER = logging.getLogger(__name__)


def _build_openai_client(settings: Settings) -> Optional[AsyncOpenAI]:
    """Create the process-wide OpenAI client, or None when no credential is set."""
    if not settings.openai_api_key:
        LOGGER.error("OPENAI_API_KEY is not set; chat requests will fail until it is configured.")
        return None
    try:
        # Failed calls are surfaced to the user once; they resubmit explicitly.
        return AsyncOpenAI(api_key=settings.openai_api_key, max_retries=0)
    except Exception as exc:
        raise RuntimeError("Failed to initialize OpenAI Async client") from exc


async def _close_client(client) -> None:
    """Gracefully close the OpenAI client if it exposes a close/aclose method."""
    aclose = getattr(client, "aclose", None) or getattr(client, "close", None)
    if aclose is None:
        return
    try:
        if inspect.iscoroutinefunction(aclose):
            await aclose()
        else:
            result = aclose()
            if inspect.isawaitable(result):
                await result
    except Exception as exc:  # pylint: disable=broad-exception-caught
        LOGGER.warning("Error while closing OpenAI client: %s", exc)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan manager that owns the OpenAI async client for the serving process.

    A client injected through `create_app` is used as-is and left open;
    otherwise one is built from settings here and closed on shutdown.
    """
    owns_client = app.state.openai_client is None
    if owns_client:
        app.state.openai_client = _build_openai_client(app.state.settings)

    try:
        yield
    finally:
        if owns_client and app.state.openai_client is not None:
            await _close_client(app.state.openai_client)
            app.state.openai_client = None


async def relay_error_handler(request: Request, exc: RelayError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload())


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    details = "; ".join(str(error.get("msg", "")) for error in exc.errors()) or None
    error = InvalidInput(f"Invalid request: {details}" if details else "Invalid request")
    return JSONResponse(status_code=error.status_code, content=error.to_payload())


def create_app(settings: Optional[Settings] = None, openai_client: Optional[AsyncOpenAI] = None) -> FastAPI:
    """
    Create and configure the FastAPI application instance.

    Args:
        settings: Relay configuration; read from the environment when omitted.
        openai_client: Preconfigured client for dependency injection.
    """
    settings = settings or get_settings()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    app = FastAPI(title="Home Repair Chat Relay", lifespan=lifespan)
    app.state.settings = settings
    app.state.openai_client = openai_client

    app.add_exception_handler(RelayError, relay_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)

    @app.get("/health")
    async def health(request: Request):
        """
        Simple health check that reports OpenAI client presence and the image strategy.
        """
        has_openai = getattr(request.app.state, "openai_client", None) is not None
        return {
            "ok": True,
            "openai_available": has_openai,
            "image_strategy": request.app.state.settings.image_strategy,
        }

    # Register application routers
    app.include_router(chat_router)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="127.0.0.1", port=8000)

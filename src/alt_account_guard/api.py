"""HTTP surface for the alt-account guard.

``POST /check`` runs one check for the calling client; ``GET /health`` is a
liveness check. Infrastructure failures fail open: the response reports
``blocked: false`` with a 5xx status.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from alt_account_guard.config import Settings, get_settings
from alt_account_guard.pipeline import (
    CheckPipeline,
    CheckRequest,
    InvalidInputError,
    StoreUnavailableError,
)

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


class CheckPayload(BaseModel):
    """Request body for ``POST /check``.

    The client's original field names (``user_id``, ``ip_address``,
    ``fingerprint_hash``, ``user_agent``) are accepted as aliases.
    """

    model_config = ConfigDict(extra="ignore")

    account_id: str | None = Field(
        default=None, validation_alias=AliasChoices("account_id", "user_id")
    )
    network_origin: str | None = Field(
        default=None, validation_alias=AliasChoices("network_origin", "ip_address")
    )
    device_signature: str | None = Field(
        default=None, validation_alias=AliasChoices("device_signature", "fingerprint_hash")
    )
    client_string: str | None = Field(
        default=None, validation_alias=AliasChoices("client_string", "user_agent")
    )

    def to_request(self) -> CheckRequest:
        return CheckRequest(
            account_id=self.account_id,
            network_origin=self.network_origin,
            device_signature=self.device_signature,
            client_string=self.client_string,
        )


def create_app(settings: Settings | None = None, *, pipeline: CheckPipeline | None = None) -> FastAPI:
    """Build the FastAPI application.

    Args:
        settings: Application settings. If not provided, uses get_settings().
        pipeline: Pre-built pipeline. If it is not running yet, the app
            starts it on startup and stops it on shutdown.
    """
    settings = settings or get_settings()
    check_pipeline = pipeline or CheckPipeline(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        started_here = not check_pipeline.is_running
        if started_here:
            await check_pipeline.start()
        try:
            yield
        finally:
            if started_here:
                await check_pipeline.stop()

    app = FastAPI(title="Alt-Account Guard", lifespan=lifespan)
    app.state.pipeline = check_pipeline

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.api.allowed_origins,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
    )

    @app.exception_handler(RequestValidationError)
    async def invalid_body(request: Request, exc: RequestValidationError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"error": "Invalid request body"})

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.post("/check")
    async def check(payload: CheckPayload, request: Request) -> JSONResponse:
        active: CheckPipeline = request.app.state.pipeline
        try:
            result = await active.check(payload.to_request())
        except InvalidInputError as e:
            return JSONResponse(status_code=400, content={"error": str(e)})
        except StoreUnavailableError as e:
            return JSONResponse(status_code=503, content={"error": str(e), "blocked": False})
        except Exception as e:
            logger.exception("Unexpected failure during check")
            return JSONResponse(status_code=500, content={"error": str(e), "blocked": False})
        return JSONResponse(status_code=200, content=result.to_dict())

    return app


def main() -> None:
    """Run the check API with uvicorn."""
    settings = get_settings()
    logging.basicConfig(level=settings.get_logging_level(), format=LOG_FORMAT)
    logger.info("Starting alt-account guard: %s", settings.redacted_summary())
    uvicorn.run(
        create_app(settings),
        host=settings.api.host,
        port=settings.api.port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()

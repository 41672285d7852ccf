# ruff: noqa: B008

import hashlib
import hmac
import json
import logging
from pathlib import Path
from typing import AsyncIterator, Optional

from components.answer_service import AnswerService
from components.reindex_coordinator import RebuildStatus, ReindexCoordinator
from fastapi import Depends, FastAPI, Header, HTTPException, Request
from fastapi.responses import StreamingResponse
from fastapi.staticfiles import StaticFiles
from shared.errors import GenerationError

from .models import FileListResponse, PromptRequest, TriggerResponse

logger = logging.getLogger(__name__)

PROMPT_ERROR_MESSAGE = "Error with your prompt"


def verify_signature(secret: str, body: bytes, signature: Optional[str]) -> bool:
    """Check a GitHub `X-Hub-Signature-256` header against the raw body."""
    if not signature:
        return False
    expected = "sha256=" + hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()
    return hmac.compare_digest(expected, signature)


async def error_stream() -> AsyncIterator[str]:
    yield PROMPT_ERROR_MESSAGE


async def relay_tokens(tokens: AsyncIterator[str]) -> AsyncIterator[str]:
    """Forward tokens, closing the provider stream if the client goes away."""
    try:
        async for token in tokens:
            yield token
    except GenerationError as e:
        logger.error(f"Generation failed mid-stream: {e}")
        yield PROMPT_ERROR_MESSAGE
    except Exception as e:
        logger.exception(f"Unexpected error while streaming an answer: {e}")
        yield PROMPT_ERROR_MESSAGE
    finally:
        aclose = getattr(tokens, "aclose", None)
        if aclose is not None:
            await aclose()


def create_app(
    service: AnswerService,
    coordinator: ReindexCoordinator,
    webhook_secret: Optional[str] = None,
    static_dir: Optional[str] = None,
) -> FastAPI:
    """
    Creates and configures the FastAPI application, registering all routes.
    This function returns the app object but does not run it.

    Args:
        service: The answer service serving prompts.
        coordinator: The reindex coordinator that webhooks and admin calls trigger.
        webhook_secret: When set, GitHub payload signatures are enforced.
        static_dir: Directory served at '/' if it exists.

    Returns:
        The configured FastAPI app instance.
    """
    app = FastAPI(title="Docs Assistant API")

    # Dependency providers to make the services available to endpoints
    def get_service() -> AnswerService:
        return service

    def get_coordinator() -> ReindexCoordinator:
        return coordinator

    @app.post("/prompt", tags=["search"], operation_id="prompt")
    async def prompt(
        request: PromptRequest, svc: AnswerService = Depends(get_service)
    ) -> StreamingResponse:
        try:
            tokens = await svc.answer(request.prompt)
        except Exception as e:
            logger.error(f"Error answering prompt: {e}")
            return StreamingResponse(error_stream(), media_type="text/plain")
        return StreamingResponse(relay_tokens(tokens), media_type="text/plain")

    @app.post(
        "/webhooks/github",
        response_model=TriggerResponse,
        tags=["admin"],
        operation_id="github_webhook",
    )
    async def github_webhook(
        request: Request,
        x_github_event: Optional[str] = Header(default=None),
        x_hub_signature_256: Optional[str] = Header(default=None),
        coord: ReindexCoordinator = Depends(get_coordinator),
    ) -> TriggerResponse:
        if not x_github_event:
            raise HTTPException(status_code=400, detail="Incorrect headers")

        body = await request.body()
        if webhook_secret and not verify_signature(
            webhook_secret, body, x_hub_signature_256
        ):
            raise HTTPException(status_code=401, detail="Invalid signature")

        try:
            payload = json.loads(body)
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise HTTPException(
                status_code=400, detail="Failed to deserialize body"
            ) from e
        if not isinstance(payload, dict):
            raise HTTPException(status_code=400, detail="Failed to deserialize body")

        if x_github_event != "push" or "ref" not in payload:
            logger.info(f"Ignoring GitHub event: {x_github_event}")
            raise HTTPException(status_code=400, detail="Unsupported event")

        logger.info(f"Push to {payload['ref']} received, scheduling rebuild")
        coord.trigger()
        return TriggerResponse(triggered=True, message="Rebuild scheduled")

    @app.post(
        "/reindex",
        response_model=TriggerResponse,
        status_code=202,
        tags=["admin"],
        operation_id="reindex",
    )
    async def reindex(
        coord: ReindexCoordinator = Depends(get_coordinator),
    ) -> TriggerResponse:
        coord.trigger()
        return TriggerResponse(triggered=True, message="Rebuild scheduled")

    @app.get(
        "/files",
        response_model=FileListResponse,
        tags=["documents"],
        operation_id="list_files",
    )
    async def list_files(svc: AnswerService = Depends(get_service)) -> FileListResponse:
        files = await svc.corpus.document_ids()
        return FileListResponse(files=files, total_count=len(files))

    @app.get(
        "/status",
        response_model=RebuildStatus,
        tags=["admin"],
        operation_id="rebuild_status",
    )
    async def status(
        coord: ReindexCoordinator = Depends(get_coordinator),
    ) -> RebuildStatus:
        return coord.status()

    # Mounted last so the API routes take precedence
    if static_dir and Path(static_dir).is_dir():
        app.mount("/", StaticFiles(directory=static_dir, html=True), name="static")

    return app

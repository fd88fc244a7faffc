"""
Generate router.
Streams a model reply as raw text for a full conversation history.
"""

import logging
from typing import AsyncIterator

from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse

from config import Settings, get_settings
from errors import AuthError, InvalidRequestError
from llm.gateway import StreamingGateway
from models.message import GenerateRequest
from utils.signature import check_password, verify_signature

logger = logging.getLogger(__name__)
router = APIRouter()

STREAM_HEADERS = {
    "Cache-Control": "no-cache, no-transform",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


def get_gateway(settings: Settings = Depends(get_settings)) -> StreamingGateway:
    """Fresh registry snapshot per request so config edits apply on reload."""
    return StreamingGateway.from_settings(settings)


async def _primed(first: str, stream: AsyncIterator[str]) -> AsyncIterator[str]:
    try:
        if first:
            yield first
        async for fragment in stream:
            if fragment:
                yield fragment
    finally:
        aclose = getattr(stream, "aclose", None)
        if aclose is not None:
            await aclose()


@router.post("/generate")
async def generate(
    request: GenerateRequest,
    settings: Settings = Depends(get_settings),
    gateway: StreamingGateway = Depends(get_gateway),
):
    """
    Stream a reply for the given turns.

    Checks run in order: turn sequence, password, signature, model.
    Errors raised before the first fragment become JSON error responses.
    """
    messages = request.messages
    if not messages or messages[-1].role != "user":
        raise InvalidRequestError("Invalid message history: The last message must be from user role.")

    if not check_password(request.pass_, settings.password_list):
        logger.warning("Rejected generate request: invalid password")
        raise AuthError("Invalid password.")

    secret = settings.signing_secret
    if secret:
        last_text = "".join(part.text for part in messages[-1].parts if part.text)
        if not verify_signature(request.time, last_text, secret, request.sign):
            logger.warning("Rejected generate request: invalid signature")
            raise AuthError("Invalid signature.")

    stream = gateway.start_stream(messages[:-1], messages[-1].parts, request.model_id)

    # Pull the first fragment so adapter errors still produce a JSON body
    try:
        first = await stream.__anext__()
    except StopAsyncIteration:
        first = ""

    return StreamingResponse(
        _primed(first, stream),
        media_type="text/plain; charset=utf-8",
        headers=STREAM_HEADERS,
    )

"""
Model listing router.
Exposes the public view of the model registry.
"""

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from config import Settings, get_settings
from llm.registry import load_registry

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/models")
async def list_models(settings: Settings = Depends(get_settings)):
    """Selectable models (no secrets) plus the server default id."""
    listing = load_registry(settings).listing()
    return JSONResponse(
        content=listing.model_dump(by_alias=True),
        headers={"Cache-Control": "no-cache"},
    )

"""
Authentication router.
Password probe used by clients before they store a site password.
"""

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from config import Settings, get_settings
from models.message import AuthRequest
from utils.signature import check_password

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/auth")
async def check_site_password(request: Request, settings: Settings = Depends(get_settings)):
    """
    Returns {"code": 0} when the password is accepted (or no password is
    configured) and {"code": -1} otherwise.
    """
    try:
        body = AuthRequest.model_validate(await request.json())
    except (ValueError, ValidationError):
        return JSONResponse(status_code=400, content={"code": -1, "error": "Bad Request"})

    ok = check_password(body.pass_, settings.password_list)
    if not ok:
        logger.info("Password probe rejected")
    return JSONResponse(content={"code": 0 if ok else -1}, headers={"Cache-Control": "no-cache"})

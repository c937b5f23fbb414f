from __future__ import annotations

import secrets

from fastapi import FastAPI, Request

from app.config import settings

DEVICE_TOKEN_BYTES = 24
DEVICE_COOKIE_MAX_AGE = 60 * 60 * 24 * 365


def new_device_id() -> str:
    return secrets.token_urlsafe(DEVICE_TOKEN_BYTES)


def install_device_session_middleware(app: FastAPI) -> None:
    @app.middleware('http')
    async def device_session_middleware(request: Request, call_next):
        device_id = request.cookies.get(settings.device_cookie_name)
        if not device_id:
            device_id = new_device_id()
        request.state.device_id = device_id

        response = await call_next(request)
        if request.cookies.get(settings.device_cookie_name) != device_id:
            response.set_cookie(
                key=settings.device_cookie_name,
                value=device_id,
                httponly=True,
                secure=settings.device_cookie_secure,
                samesite=settings.device_cookie_samesite,
                max_age=DEVICE_COOKIE_MAX_AGE,
            )
        return response

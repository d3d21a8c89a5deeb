from __future__ import annotations

import hmac

from fastapi import HTTPException, Request

from chime.config import settings

TOKEN_HEADER = "X-Chime-Token"


def extract_token(request: Request) -> str | None:
    scheme, _, credentials = request.headers.get("Authorization", "").partition(" ")
    if scheme.lower() == "bearer" and credentials.strip():
        return credentials.strip()
    return request.headers.get(TOKEN_HEADER, "").strip() or None


async def require_admin_auth(request: Request) -> None:
    """校验管理令牌；未配置令牌时返回 503，令牌错误返回 401"""
    expected = settings.ADMIN_AUTH_TOKEN
    if not expected:
        raise HTTPException(status_code=503, detail="ADMIN_AUTH_TOKEN 未配置")

    token = extract_token(request)
    if token is None or not hmac.compare_digest(token.encode(), expected.encode()):
        raise HTTPException(status_code=401, detail="未授权")

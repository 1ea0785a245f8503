import hmac

from fastapi import Request, HTTPException, status


async def require_admin_key(request: Request) -> None:
    """Dependency that validates the admin API key header."""
    key = request.headers.get("x-api-key")

    if not key:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="API key missing",
        )

    expected = getattr(request.app.state, "admin_api_key", None)
    if not expected or not hmac.compare_digest(key.encode("utf-8"), expected.encode("utf-8")):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Invalid API key",
        )

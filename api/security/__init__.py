from fastapi import Header, HTTPException, status

from config import get_settings


async def require_admin(x_api_key: str | None = Header(None)):
    api_key = get_settings().env.ADMIN_API_KEY
    if not api_key:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="API key not configured")
    if not x_api_key or x_api_key != api_key:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid admin key")
    return True

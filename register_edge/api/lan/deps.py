import hmac
from typing import Optional

from fastapi import Header, HTTPException, Request


async def require_shared_secret(
    request: Request,
    x_shared_secret: Optional[str] = Header(None),
) -> None:
    secret = request.app.state.container.local_api_config.current.shared_secret
    if secret and not hmac.compare_digest(x_shared_secret or "", secret):
        raise HTTPException(status_code=401, detail="Unauthorized")

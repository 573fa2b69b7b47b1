from __future__ import annotations
import logging, time
from typing import Optional

from fastapi import Depends, Header, HTTPException, Request, status
from jose import jwt, JWTError

from orderfeed.config import ServerConfig
from orderfeed.timetoken import verify_token

# ----- config -----
log = logging.getLogger("auth")
ALGORITHM = "HS256"
TOKEN_MAX_AGE = 60 * 60  # 1 hour
DISPLAY_NAME = "Demo User"


# ----- JWT (WebSocket private feed) -----
def create_token(user_id: str, secret: str, name: str = DISPLAY_NAME,
                 max_age: int = TOKEN_MAX_AGE, now: Optional[float] = None) -> str:
    issued = int(time.time() if now is None else now)
    claims = {
        "sub": user_id,
        "name": name,
        "iat": issued,
        "exp": issued + max_age,
    }
    return jwt.encode(claims, secret, algorithm=ALGORITHM)


def get_claims_from_token(token: str, secret: str) -> Optional[dict]:
    try:
        return jwt.decode(token, secret, algorithms=[ALGORITHM])
    except JWTError as e:
        log.warning("JWT decode failed: %s", e)
        return None


# ----- FastAPI dependencies -----
def get_config(request: Request) -> ServerConfig:
    return request.app.state.config


def require_time_token(
    x_api_token: Optional[str] = Header(default=None),
    cfg: ServerConfig = Depends(get_config),
) -> str:
    if not x_api_token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Token required")
    ok = verify_token(x_api_token, cfg.time_token_secret, cfg.time_window,
                      time.time(), allowed_skew=cfg.allowed_skew)
    if not ok:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid or expired token")
    return x_api_token


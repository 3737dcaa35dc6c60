from datetime import datetime
from typing import Optional

import jwt
import pytz
from fastapi.security import OAuth2PasswordBearer
from pydantic import BaseModel

from core.log import logger
from settings import LOGIN_PATH

oauth2_scheme = OAuth2PasswordBearer(tokenUrl=LOGIN_PATH, auto_error=False)


class AuthSession(BaseModel):
    token: str
    user_id: Optional[str] = None
    expired_at: Optional[datetime] = None


def get_session_from_token(
    token: Optional[str], now: Optional[datetime] = None
) -> Optional[AuthSession]:
    """
    Session of the bearer token issued by the DAME auth provider.

    The signature is not checked here, the DAME API does that on every call.
    JWTs are only read for their exp claim so an expired session is caught
    before anything is sent; opaque tokens are accepted as they are.
    """
    if not token:
        return None

    try:
        payload = jwt.decode(token, options={"verify_signature": False})
    except jwt.InvalidTokenError:
        return AuthSession(token=token)

    expired_at = None
    exp = payload.get("exp")
    if exp is not None:
        try:
            expired_at = datetime.fromtimestamp(float(exp), tz=pytz.UTC)
        except (TypeError, ValueError, OverflowError):
            logger.warning("Bearer token carries an unreadable exp claim")
            return None
        if expired_at <= (now or datetime.now(tz=pytz.UTC)):
            return None

    user_id = payload.get("user_id") or payload.get("id") or payload.get("sub")
    return AuthSession(
        token=token,
        user_id=str(user_id) if user_id is not None else None,
        expired_at=expired_at,
    )

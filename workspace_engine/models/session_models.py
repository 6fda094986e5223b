from datetime import datetime, timezone
from typing import Any, Dict, Optional
import logging

from jose import jwt, JWTError
from pydantic import BaseModel

logger = logging.getLogger(__name__)

class Session(BaseModel):
    """Explicit session context handed to every service that talks to the API.

    The token is only decoded, never verified: signature checks belong to the
    backend. `username` falls back to the token's `sub`/`username` claim.
    """
    token: Optional[str] = None
    username: Optional[str] = None

    def claims(self) -> Dict[str, Any]:
        if not self.token:
            return {}
        try:
            return jwt.get_unverified_claims(self.token)
        except JWTError:
            logger.warning("Could not parse claims from session token")
            return {}

    @property
    def current_username(self) -> Optional[str]:
        if self.username:
            return self.username
        claims = self.claims()
        return claims.get("sub") or claims.get("username")

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        if not self.token:
            return True
        claims = self.claims()
        if not claims:
            return True
        exp = claims.get("exp")
        if exp is None:
            return False
        now = now or datetime.now(timezone.utc)
        return float(exp) < now.timestamp()

    def is_authenticated(self, now: Optional[datetime] = None) -> bool:
        return not self.is_expired(now)

    def authorization_header(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self.token}"} if self.token else {}

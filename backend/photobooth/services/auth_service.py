import logging
from dataclasses import dataclass
from typing import Optional

import anyio
import requests

from photobooth.core.errors import AuthenticationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AuthUser:
    id: str
    email: str


class AuthService:
    """Resolves bearer tokens to users through the Supabase auth REST API."""

    def __init__(self, supabase_url: str, anon_key: str, *, timeout: int = 10, session: Optional[requests.Session] = None):
        self.user_endpoint = f"{supabase_url.rstrip('/')}/auth/v1/user"
        self.anon_key = anon_key
        self.timeout = timeout
        self.session = session or requests.Session()

    @classmethod
    def from_settings(cls, settings) -> "AuthService":
        return cls(settings.SUPABASE_URL, settings.SUPABASE_ANON_KEY)

    async def require_auth(self, authorization: Optional[str]) -> AuthUser:
        if not authorization or not authorization.startswith("Bearer "):
            raise AuthenticationError("Missing or invalid authorization header")
        token = authorization[len("Bearer "):].strip()
        if not token:
            raise AuthenticationError("Missing or invalid authorization header")

        def _get_user() -> requests.Response:
            return self.session.get(
                self.user_endpoint,
                headers={"apikey": self.anon_key, "Authorization": f"Bearer {token}"},
                timeout=self.timeout,
            )

        try:
            resp = await anyio.to_thread.run_sync(_get_user)
        except requests.RequestException as exc:
            logger.warning("Auth provider unreachable: %s", exc)
            raise AuthenticationError("Unable to verify credentials") from exc

        if not resp.ok:
            raise AuthenticationError("Invalid or expired token")

        payload = resp.json()
        if not payload.get("id"):
            raise AuthenticationError("Invalid or expired token")
        return AuthUser(id=payload["id"], email=payload.get("email") or "")

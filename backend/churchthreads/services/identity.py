"""Client for the external identity provider's user management API."""
import logging
from dataclasses import dataclass

import httpx

from churchthreads.config import settings
from churchthreads.errors import ConfigurationError, IdentityProviderError

logger = logging.getLogger(__name__)


@dataclass
class IdentityUser:
    id: str
    email: str


def split_name(name: str) -> tuple[str, str | None]:
    parts = name.split(" ")
    first_name = parts[0] or name
    last_name = " ".join(parts[1:]).strip()
    return first_name, last_name or None


class IdentityClient:
    def __init__(self, secret_key: str | None = None, base_url: str | None = None):
        self.secret_key = secret_key if secret_key is not None else settings.identity_secret_key
        self.base_url = (base_url or settings.identity_api_url).rstrip("/")
        if not self.secret_key:
            raise ConfigurationError("Identity provider secret key is not set")

    async def create_user(self, email: str, name: str, external_id: str) -> IdentityUser:
        first_name, last_name = split_name(name)
        payload = {
            "email_address": [email],
            "first_name": first_name,
            "external_id": external_id,
            "skip_password_requirement": True,
            "skip_password_checks": True,
        }
        if last_name:
            payload["last_name"] = last_name

        async with httpx.AsyncClient(base_url=self.base_url, timeout=10.0) as client:
            try:
                resp = await client.post(
                    "/users",
                    json=payload,
                    headers={"Authorization": f"Bearer {self.secret_key}"},
                )
            except httpx.HTTPError as e:
                raise IdentityProviderError(f"Identity provider unreachable: {e}") from e

        if resp.status_code >= 400:
            raise IdentityProviderError(self._error_message(resp))

        data = resp.json()
        logger.info(f"Identity user {data['id']} created for {email}")
        return IdentityUser(id=data["id"], email=email)

    @staticmethod
    def _error_message(resp: httpx.Response) -> str:
        try:
            errors = resp.json().get("errors") or []
        except ValueError:
            errors = []
        if errors:
            first = errors[0]
            return first.get("long_message") or first.get("message") or "Identity provider error"
        return f"Identity provider returned {resp.status_code}"


def get_identity_client() -> IdentityClient:
    return IdentityClient()

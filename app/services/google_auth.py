"""
Authentification Google par compte de service.

Echange une assertion JWT signee RS256 contre un access token OAuth2
(grant type jwt-bearer).
"""

from __future__ import annotations

import json
import logging
import time
from typing import Optional

import httpx
import jwt

from app.core.error_handler import (
    ConfigurationError,
    UpstreamError,
    response_details,
)

logger = logging.getLogger(__name__)


GOOGLE_SCOPES = (
    "https://www.googleapis.com/auth/documents",
    "https://www.googleapis.com/auth/drive",
)

DEFAULT_TOKEN_URI = "https://oauth2.googleapis.com/token"
JWT_BEARER_GRANT = "urn:ietf:params:oauth:grant-type:jwt-bearer"


class ServiceAccountCredentials:
    """Credentials d'un compte de service Google."""

    TOKEN_LIFETIME = 3600
    # Renouvelle le token un peu avant son expiration
    EXPIRY_MARGIN = 60

    def __init__(
        self,
        info: dict,
        scopes: tuple[str, ...] = GOOGLE_SCOPES,
        timeout: float = 30.0
    ):
        missing = [k for k in ("client_email", "private_key") if not info.get(k)]
        if missing:
            raise ConfigurationError(
                f"Cle du compte de service incomplete: {', '.join(missing)} manquant(s)"
            )

        self.client_email: str = info["client_email"]
        self.private_key: str = info["private_key"]
        self.private_key_id: Optional[str] = info.get("private_key_id")
        self.token_uri: str = info.get("token_uri") or DEFAULT_TOKEN_URI
        self.scopes = scopes
        self.timeout = timeout

        self._token: Optional[str] = None
        self._expires_at: float = 0.0

    @classmethod
    def from_json(cls, raw: str, **kwargs) -> "ServiceAccountCredentials":
        """
        Construit les credentials depuis le JSON de la cle.

        Raises:
            ConfigurationError: JSON absent ou invalide.
        """
        if not raw:
            raise ConfigurationError("GOOGLE_SERVICE_ACCOUNT_KEY doit etre defini")

        try:
            info = json.loads(raw)
        except json.JSONDecodeError as e:
            raise ConfigurationError(
                "Format JSON invalide pour GOOGLE_SERVICE_ACCOUNT_KEY"
            ) from e

        if not isinstance(info, dict):
            raise ConfigurationError("GOOGLE_SERVICE_ACCOUNT_KEY doit etre un objet JSON")

        return cls(info, **kwargs)

    def build_assertion(self, now: Optional[int] = None) -> str:
        """Construit l'assertion JWT signee pour le token endpoint."""
        issued_at = int(now if now is not None else time.time())
        claims = {
            "iss": self.client_email,
            "scope": " ".join(self.scopes),
            "aud": self.token_uri,
            "iat": issued_at,
            "exp": issued_at + self.TOKEN_LIFETIME,
        }
        headers = {"kid": self.private_key_id} if self.private_key_id else None

        try:
            return jwt.encode(claims, self.private_key, algorithm="RS256", headers=headers)
        except (ValueError, TypeError, jwt.PyJWTError) as e:
            raise ConfigurationError(
                "Cle privee du compte de service illisible"
            ) from e

    async def get_access_token(self) -> str:
        """
        Retourne un access token valide.

        Le token est reutilise par l'instance jusqu'a son expiration.
        """
        if self._token and time.time() < self._expires_at - self.EXPIRY_MARGIN:
            return self._token

        assertion = self.build_assertion()

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(
                    self.token_uri,
                    data={"grant_type": JWT_BEARER_GRANT, "assertion": assertion}
                )
        except httpx.HTTPError as e:
            raise UpstreamError("google_auth", f"echange du token: {e}") from e

        if response.status_code >= 400:
            raise UpstreamError(
                "google_auth",
                f"echange du token: HTTP {response.status_code}",
                status_code=response.status_code,
                details=response_details(response)
            )

        data = response.json()
        token = data.get("access_token")
        if not token:
            raise UpstreamError("google_auth", "access_token absent de la reponse")

        self._token = token
        self._expires_at = time.time() + int(data.get("expires_in", self.TOKEN_LIFETIME))
        logger.info(f"Access token Google obtenu pour {self.client_email}")

        return token

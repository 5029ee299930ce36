"""
Service Google Docs / Drive pour la generation des contrats.

Gere:
- Copie du template (copie directe cote Drive, dans le dossier cible)
- Remplacement des placeholders en un seul batchUpdate
- Partage du document (emails + lien public en lecture)
- Export PDF (pour la signature electronique)
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, Optional, TYPE_CHECKING

import httpx
from pydantic import ValidationError as PydanticValidationError

from app.core.error_handler import (
    TemplateAccessError,
    UpstreamError,
    ValidationError,
    response_details,
)
from app.models.google import ContractDocument, DriveFile
from app.services.google_auth import ServiceAccountCredentials

if TYPE_CHECKING:
    from app.core.config import Settings

logger = logging.getLogger(__name__)


VALID_SHARE_ROLES = ("reader", "writer", "commenter")

# Raisons Drive d'un 403 signifiant que le template n'est pas partage
TEMPLATE_ACCESS_REASONS = ("insufficientFilePermissions", "forbidden", "notFound")


class GoogleDocsService:
    """
    Client Google Drive v3 et Google Docs v1.

    Authentifie par un compte de service.
    """

    DRIVE_API = "https://www.googleapis.com/drive/v3"
    DOCS_API = "https://docs.googleapis.com/v1"
    PDF_MIME_TYPE = "application/pdf"

    def __init__(self, credentials: ServiceAccountCredentials, timeout: float = 30.0):
        self.credentials = credentials
        self.timeout = timeout

    @classmethod
    def from_settings(cls, settings: "Settings") -> "GoogleDocsService":
        credentials = ServiceAccountCredentials.from_json(
            settings.google_service_account_key,
            timeout=settings.http_timeout,
        )
        return cls(credentials, timeout=settings.http_timeout)

    async def _send(self, method: str, url: str, service: str, action: str, **kwargs: Any) -> httpx.Response:
        """Envoie une requete authentifiee; les erreurs reseau deviennent UpstreamError."""
        token = await self.credentials.get_access_token()

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                return await client.request(
                    method,
                    url,
                    headers={"Authorization": f"Bearer {token}"},
                    **kwargs
                )
        except httpx.HTTPError as e:
            raise UpstreamError(service, f"{action}: {e}") from e

    @staticmethod
    def _raise_for_status(response: httpx.Response, service: str, action: str) -> None:
        if response.status_code >= 400:
            raise UpstreamError(
                service,
                f"{action}: HTTP {response.status_code}",
                status_code=response.status_code,
                details=response_details(response)
            )

    @staticmethod
    def _error_reason(response: httpx.Response) -> Optional[str]:
        """Premiere raison d'erreur Drive (``error.errors[0].reason``)."""
        try:
            body = response.json()
        except ValueError:
            return None
        error = body.get("error") if isinstance(body, dict) else None
        errors = error.get("errors") if isinstance(error, dict) else None
        if isinstance(errors, list) and errors and isinstance(errors[0], dict):
            return errors[0].get("reason")
        return None

    @classmethod
    def _is_template_access_denied(cls, response: httpx.Response) -> bool:
        """
        404, ou 403 du a un defaut de permission sur le template.

        Un 403 de quota ou de limite de debit reste une UpstreamError.
        """
        if response.status_code == 404:
            return True
        if response.status_code != 403:
            return False
        reason = cls._error_reason(response)
        return reason is None or reason in TEMPLATE_ACCESS_REASONS

    # === Operations unitaires ===

    async def copy_template(
        self,
        template_id: str,
        title: str,
        folder_id: Optional[str] = None
    ) -> str:
        """
        Copie le template directement cote Drive.

        Le dossier de destination est passe comme parent de la copie,
        aucun deplacement n'est donc necessaire ensuite.

        Args:
            template_id: ID du document template.
            title: Titre du nouveau document.
            folder_id: Dossier de destination (optionnel).

        Returns:
            ID du nouveau document.

        Raises:
            TemplateAccessError: Le compte de service ne peut pas lire le template.
            UpstreamError: Autre erreur Drive.
        """
        body: dict[str, Any] = {"name": title}
        if folder_id:
            body["parents"] = [folder_id]

        action = f"copie du template {template_id}"
        response = await self._send(
            "POST",
            f"{self.DRIVE_API}/files/{template_id}/copy",
            service="google_drive",
            action=action,
            params={"supportsAllDrives": "true", "fields": "id,name"},
            json=body
        )

        if self._is_template_access_denied(response):
            raise TemplateAccessError(
                template_id,
                status_code=response.status_code,
                details=response_details(response)
            )
        self._raise_for_status(response, "google_drive", action)

        try:
            new_file = DriveFile.model_validate(response.json())
        except PydanticValidationError as e:
            raise UpstreamError("google_drive", f"{action}: reponse invalide") from e
        if not new_file.id:
            raise UpstreamError("google_drive", f"{action}: ID absent de la reponse")

        logger.info(f"Document cree depuis le template: {new_file.id}")
        return new_file.id

    async def replace_placeholders(self, document_id: str, replacements: dict[str, str]) -> int:
        """
        Remplace tous les placeholders en un seul batchUpdate.

        Chaque entree donne un replaceAllText sensible a la casse. Les valeurs
        vides sont aussi remplacees (par une chaine vide) afin qu'aucun
        placeholder ne reste visible dans le contrat.

        Returns:
            Nombre de remplacements envoyes.
        """
        requests = [
            {
                "replaceAllText": {
                    "containsText": {"text": placeholder, "matchCase": True},
                    "replaceText": "" if value is None else str(value),
                }
            }
            for placeholder, value in replacements.items()
        ]

        if not requests:
            logger.warning(f"Aucun placeholder a remplacer dans {document_id}")
            return 0

        action = f"remplacement des placeholders de {document_id}"
        response = await self._send(
            "POST",
            f"{self.DOCS_API}/documents/{document_id}:batchUpdate",
            service="google_docs",
            action=action,
            json={"requests": requests}
        )
        self._raise_for_status(response, "google_docs", action)

        logger.info(f"{len(requests)} placeholders remplaces dans {document_id}")
        return len(requests)

    async def share_document(
        self,
        document_id: str,
        emails: Iterable[str],
        role: str = "reader"
    ) -> None:
        """
        Partage le document avec des utilisateurs.

        Raises:
            ValidationError: Role inconnu (verifie avant tout appel).
            UpstreamError: Erreur Drive.
        """
        if role not in VALID_SHARE_ROLES:
            raise ValidationError(
                f"Role invalide: {role}. Valeurs possibles: {', '.join(VALID_SHARE_ROLES)}"
            )

        for email in emails:
            email = email.strip()
            if not email:
                continue

            action = f"partage de {document_id} avec {email}"
            response = await self._send(
                "POST",
                f"{self.DRIVE_API}/files/{document_id}/permissions",
                service="google_drive",
                action=action,
                params={"sendNotificationEmail": "true", "supportsAllDrives": "true"},
                json={"type": "user", "role": role, "emailAddress": email}
            )
            self._raise_for_status(response, "google_drive", action)

            logger.info(f"Document {document_id} partage avec {email} ({role})")

    async def get_shareable_link(self, document_id: str) -> str:
        """
        Rend le document lisible par toute personne ayant le lien.

        Returns:
            webViewLink du document.
        """
        action = f"partage public de {document_id}"
        response = await self._send(
            "POST",
            f"{self.DRIVE_API}/files/{document_id}/permissions",
            service="google_drive",
            action=action,
            params={"supportsAllDrives": "true"},
            json={"type": "anyone", "role": "reader"}
        )
        self._raise_for_status(response, "google_drive", action)

        action = f"lecture du lien de {document_id}"
        response = await self._send(
            "GET",
            f"{self.DRIVE_API}/files/{document_id}",
            service="google_drive",
            action=action,
            params={"fields": "webViewLink", "supportsAllDrives": "true"}
        )
        self._raise_for_status(response, "google_drive", action)

        link = DriveFile.model_validate(response.json()).web_view_link
        if not link:
            raise UpstreamError("google_drive", f"{action}: webViewLink absent")

        return link

    async def export_as_pdf(self, document_id: str) -> bytes:
        """Exporte le document en PDF."""
        action = f"export PDF de {document_id}"
        response = await self._send(
            "GET",
            f"{self.DRIVE_API}/files/{document_id}/export",
            service="google_drive",
            action=action,
            params={"mimeType": self.PDF_MIME_TYPE}
        )
        self._raise_for_status(response, "google_drive", action)

        pdf_bytes = response.content
        logger.info(f"PDF exporte: {len(pdf_bytes)} bytes")
        return pdf_bytes

    # === Operation composite ===

    async def create_contract(
        self,
        template_id: str,
        title: str,
        replacements: dict[str, str],
        folder_id: Optional[str] = None,
        share_with: Iterable[str] = (),
        share_role: str = "reader"
    ) -> ContractDocument:
        """
        Cree un contrat complet depuis le template.

        Flux:
        1. Copie du template (dans le dossier cible)
        2. Remplacement des placeholders
        3. Partage avec les emails configures (si liste non vide)
        4. Lien partageable

        Une erreur a n'importe quelle etape interrompt le flux et est
        propagee telle quelle. Le document partiellement cree n'est pas supprime.
        """
        share_with = [email for email in share_with if email and email.strip()]

        logger.info(f"Creation du document '{title}'...")
        document_id = await self.copy_template(template_id, title, folder_id)

        logger.info("Remplacement des placeholders...")
        await self.replace_placeholders(document_id, replacements)

        if share_with:
            logger.info("Partage du document...")
            await self.share_document(document_id, share_with, share_role)

        logger.info("Recuperation du lien partageable...")
        link = await self.get_shareable_link(document_id)

        return ContractDocument(id=document_id, link=link)

"""
Service Autentique pour la signature electronique des contrats.

Gere:
- Export du contrat Google Docs en PDF
- Construction des signataires (entreprise + client)
- Creation du document via la mutation GraphQL createDocument (multipart)
"""

from __future__ import annotations

import json
import logging
from typing import Optional, TYPE_CHECKING

import httpx
from pydantic import ValidationError as PydanticValidationError

from app.core.error_handler import (
    ConfigurationError,
    UpstreamError,
    ValidationError,
    response_details,
)
from app.models.autentique import (
    AutentiqueDocument,
    SignatureDocument,
    Signer,
)

if TYPE_CHECKING:
    from app.core.config import Settings
    from app.services.google_docs_service import GoogleDocsService

logger = logging.getLogger(__name__)


CREATE_DOCUMENT_MUTATION = """
mutation CreateDocument(
  $document: DocumentInput!,
  $signers: [SignerInput!]!,
  $file: Upload!,
  $sandbox: Boolean
) {
  createDocument(
    sandbox: $sandbox,
    document: $document,
    signers: $signers,
    file: $file
  ) {
    id
    name
    created_at
    signatures {
      public_id
      email
      created_at
      action { name }
      user { name email }
      link { short_link }
    }
  }
}
"""


class AutentiqueService:
    """
    Service pour interagir avec Autentique.

    Le flag sandbox est transmis a chaque creation de document.
    """

    API_URL = "https://api.autentique.com.br/v2/graphql"

    def __init__(
        self,
        api_key: str,
        docs_service: "GoogleDocsService",
        sandbox: bool = False,
        company_signer_name: str = "",
        company_signer_email: str = "",
        timeout: float = 30.0
    ):
        """
        Initialise le service Autentique.

        Args:
            api_key: Cle API Autentique.
            docs_service: Service Google Docs utilise pour l'export PDF.
            sandbox: Mode sandbox (ne consomme pas de credits).
            company_signer_name: Nom du signataire de l'entreprise.
            company_signer_email: Email du signataire de l'entreprise.
            timeout: Timeout HTTP en secondes.

        Raises:
            ConfigurationError: Si la cle API est absente.
        """
        if not api_key:
            raise ConfigurationError("AUTENTIQUE_API_KEY doit etre defini")

        self.api_key = api_key
        self.docs_service = docs_service
        self.sandbox = sandbox
        self.company_signer_name = company_signer_name
        self.company_signer_email = company_signer_email
        self.timeout = timeout

    @classmethod
    def from_settings(
        cls,
        settings: "Settings",
        docs_service: "GoogleDocsService"
    ) -> "AutentiqueService":
        return cls(
            api_key=settings.autentique_api_key,
            docs_service=docs_service,
            sandbox=settings.autentique_sandbox,
            company_signer_name=settings.autentique_company_signer_name,
            company_signer_email=settings.autentique_company_signer_email,
            timeout=settings.http_timeout,
        )

    def build_signers(
        self,
        counterparty_email: Optional[str],
        counterparty_name: Optional[str] = None
    ) -> list[Signer]:
        """
        Construit la liste des signataires: entreprise puis client.

        Raises:
            ValidationError: Email du client absent ou invalide.
            ConfigurationError: Email du signataire entreprise non configure.
        """
        if not counterparty_email or not counterparty_email.strip():
            raise ValidationError("Email du contact du lead requis pour la signature")

        if not self.company_signer_email:
            raise ConfigurationError(
                "AUTENTIQUE_COMPANY_SIGNER_EMAIL doit etre defini"
            )

        try:
            return [
                Signer(
                    name=self.company_signer_name or "Company Representative",
                    email=self.company_signer_email,
                ),
                Signer(
                    name=counterparty_name or "Client",
                    email=counterparty_email,
                ),
            ]
        except PydanticValidationError as e:
            raise ValidationError(
                "Email de signataire invalide",
                details={"errors": e.errors(include_url=False, include_context=False)}
            ) from e

    async def create_document(
        self,
        document_name: str,
        pdf_bytes: bytes,
        signers: list[Signer]
    ) -> SignatureDocument:
        """
        Cree le document sur Autentique avec ses signataires.

        Requete GraphQL multipart: ``operations`` (mutation + variables),
        ``map`` (fichier -> variables.file) et la partie fichier ``0``.

        Returns:
            SignatureDocument avec le lien du panel et les liens de signature.
        """
        operations = {
            "query": CREATE_DOCUMENT_MUTATION,
            "variables": {
                "document": {"name": document_name},
                "signers": [signer.to_input() for signer in signers],
                "file": None,
                "sandbox": self.sandbox,
            },
        }

        logger.info(
            f"Creation du document Autentique '{document_name}' "
            f"(sandbox={self.sandbox}, signataires: {', '.join(s.email for s in signers)})"
        )

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(
                    self.API_URL,
                    headers={"Authorization": f"Bearer {self.api_key}"},
                    data={
                        "operations": json.dumps(operations),
                        "map": json.dumps({"0": ["variables.file"]}),
                    },
                    files={"0": (f"{document_name}.pdf", pdf_bytes, "application/pdf")}
                )
        except httpx.HTTPError as e:
            raise UpstreamError("autentique", f"createDocument: {e}") from e

        if response.status_code >= 400:
            raise UpstreamError(
                "autentique",
                f"createDocument: HTTP {response.status_code}",
                status_code=response.status_code,
                details=response_details(response)
            )

        body = response.json()
        if body.get("errors"):
            first = body["errors"][0] or {}
            raise UpstreamError(
                "autentique",
                first.get("message", "erreur GraphQL"),
                details={"errors": body["errors"]}
            )

        raw_document = (body.get("data") or {}).get("createDocument")
        try:
            document = AutentiqueDocument.model_validate(raw_document)
        except PydanticValidationError as e:
            raise UpstreamError(
                "autentique",
                "reponse createDocument invalide",
                details={"errors": e.errors(include_url=False, include_context=False)}
            ) from e

        result = SignatureDocument.from_autentique(document)
        logger.info(f"Document Autentique cree: {result.panel_link}")

        return result

    async def send_for_signature(
        self,
        document_id: str,
        title: str,
        counterparty_email: Optional[str],
        counterparty_name: Optional[str] = None
    ) -> SignatureDocument:
        """
        Envoie un contrat Google Docs en signature.

        Flux:
        1. Valide les signataires (avant tout appel couteux)
        2. Exporte le document en PDF
        3. Cree le document sur Autentique

        Args:
            document_id: ID du document Google Docs.
            title: Nom du document sur Autentique.
            counterparty_email: Email du client.
            counterparty_name: Nom du client (optionnel).
        """
        signers = self.build_signers(counterparty_email, counterparty_name)

        pdf_bytes = await self.docs_service.export_as_pdf(document_id)

        return await self.create_document(title, pdf_bytes, signers)

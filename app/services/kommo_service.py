"""
Client de l'API REST Kommo (v4).

Gère:
- Lecture des leads (avec contacts) et des contacts
- Extraction des valeurs de champs personnalisés
- Mise à jour d'un champ personnalisé
- Ajout de notes
- Liste des champs personnalisés (diagnostic)
"""

from __future__ import annotations

import logging
from typing import Any, Optional, TYPE_CHECKING

import httpx
from pydantic import ValidationError as PydanticValidationError

from app.core.error_handler import (
    ConfigurationError,
    UpstreamError,
    response_details,
)
from app.models.kommo import (
    KommoContact,
    KommoCustomFieldDefinition,
    KommoCustomFieldValue,
    KommoLead,
)

if TYPE_CHECKING:
    from app.core.config import Settings

logger = logging.getLogger(__name__)


class KommoClient:
    """
    Client pour l'API Kommo.

    Toutes les requêtes sont authentifiées par bearer token.
    """

    SERVICE = "kommo"
    CUSTOM_FIELDS_PAGE_LIMIT = 250

    def __init__(self, domain: str, access_token: str, timeout: float = 30.0):
        """
        Initialise le client Kommo.

        Args:
            domain: URL de base du compte, ex: https://empresa.kommo.com
            access_token: Token d'accès longue durée.
            timeout: Timeout HTTP en secondes.

        Raises:
            ConfigurationError: Si le domaine ou le token est absent.
        """
        if not domain or not access_token:
            raise ConfigurationError(
                "KOMMO_DOMAIN et KOMMO_ACCESS_TOKEN doivent être définis"
            )

        self.base_url = f"{domain.rstrip('/')}/api/v4"
        self.access_token = access_token
        self.timeout = timeout

    @classmethod
    def from_settings(cls, settings: "Settings") -> "KommoClient":
        return cls(
            domain=settings.kommo_domain,
            access_token=settings.kommo_access_token,
            timeout=settings.http_timeout,
        )

    @property
    def headers(self) -> dict:
        return {
            "Authorization": f"Bearer {self.access_token}",
            "Content-Type": "application/json",
        }

    async def _request(
        self,
        method: str,
        path: str,
        action: str,
        **kwargs: Any
    ) -> Any:
        """
        Exécute une requête et retourne le JSON décodé.

        Raises:
            UpstreamError: Erreur réseau ou statut HTTP >= 400.
        """
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.request(
                    method,
                    f"{self.base_url}{path}",
                    headers=self.headers,
                    **kwargs
                )
        except httpx.HTTPError as e:
            raise UpstreamError(self.SERVICE, f"{action}: {e}") from e

        if response.status_code >= 400:
            raise UpstreamError(
                self.SERVICE,
                f"{action}: HTTP {response.status_code}",
                status_code=response.status_code,
                details=response_details(response)
            )

        # 204 No Content (ex: page vide de champs personnalisés)
        if response.status_code == 204 or not response.content:
            return {}

        try:
            return response.json()
        except ValueError as e:
            raise UpstreamError(
                self.SERVICE,
                f"{action}: réponse JSON invalide",
                status_code=response.status_code,
                details=response_details(response)
            ) from e

    # === Lecture ===

    async def get_lead(self, lead_id: int | str) -> KommoLead:
        """
        Récupère un lead avec ses contacts embarqués.

        Args:
            lead_id: ID du lead.

        Returns:
            KommoLead valide.
        """
        data = await self._request(
            "GET",
            f"/leads/{lead_id}",
            action=f"lecture du lead {lead_id}",
            params={"with": "contacts"}
        )

        # Certaines réponses encapsulent le lead dans _embedded.leads
        embedded_leads = (data.get("_embedded") or {}).get("leads")
        if isinstance(embedded_leads, list) and embedded_leads:
            data = embedded_leads[0]

        try:
            lead = KommoLead.model_validate(data)
        except PydanticValidationError as e:
            raise UpstreamError(
                self.SERVICE,
                f"réponse lead {lead_id} invalide",
                details={"errors": e.errors(include_url=False, include_context=False)}
            ) from e

        logger.info(f"Lead {lead.id} récupéré: {lead.name}")
        return lead

    async def get_contact(self, contact_id: int | str) -> KommoContact:
        """Récupère un contact par son ID."""
        data = await self._request(
            "GET",
            f"/contacts/{contact_id}",
            action=f"lecture du contact {contact_id}"
        )

        try:
            return KommoContact.model_validate(data)
        except PydanticValidationError as e:
            raise UpstreamError(
                self.SERVICE,
                f"réponse contact {contact_id} invalide",
                details={"errors": e.errors(include_url=False, include_context=False)}
            ) from e

    async def get_main_contact(self, lead: KommoLead) -> Optional[KommoContact]:
        """
        Récupère le contact principal du lead.

        Returns:
            Le contact complet, ou None si le lead n'a aucun contact.
        """
        ref = lead.main_contact_ref
        if ref is None:
            logger.info(f"Lead {lead.id} sans contact associé")
            return None
        return await self.get_contact(ref.id)

    async def get_custom_fields(self) -> list[KommoCustomFieldDefinition]:
        """
        Liste tous les champs personnalisés des leads.

        Suit la pagination Kommo tant qu'un lien ``next`` est présent.
        """
        fields: list[KommoCustomFieldDefinition] = []
        page = 1

        while True:
            data = await self._request(
                "GET",
                "/leads/custom_fields",
                action="liste des champs personnalisés",
                params={"page": page, "limit": self.CUSTOM_FIELDS_PAGE_LIMIT}
            )

            raw_fields = (data.get("_embedded") or {}).get("custom_fields") or []
            try:
                fields.extend(
                    KommoCustomFieldDefinition.model_validate(raw) for raw in raw_fields
                )
            except PydanticValidationError as e:
                raise UpstreamError(
                    self.SERVICE,
                    f"réponse des champs personnalisés invalide (page {page})",
                    details={"errors": e.errors(include_url=False, include_context=False)}
                ) from e

            if not (data.get("_links") or {}).get("next"):
                break
            page += 1

        logger.info(f"{len(fields)} champs personnalisés trouvés")
        return fields

    # === Extraction (sans I/O) ===

    @staticmethod
    def get_custom_field_value(entity: Any, field_id: int | str) -> Optional[Any]:
        """
        Extrait la valeur d'un champ personnalisé d'un lead ou contact.

        Ne leve jamais d'exception: une entite sans champs, un ID absent
        ou non numérique donnent None.

        Args:
            entity: KommoLead, KommoContact (ou dict brut equivalent).
            field_id: ID du champ personnalisé.

        Returns:
            Valeur simple, sinon code d'énumération, sinon libellé, sinon None.
        """
        try:
            wanted = int(field_id)
        except (TypeError, ValueError):
            return None

        if entity is None:
            return None

        if isinstance(entity, dict):
            raw_fields = entity.get("custom_fields_values") or []
        else:
            raw_fields = getattr(entity, "custom_fields_values", None) or []

        for raw in raw_fields:
            if isinstance(raw, dict):
                try:
                    raw = KommoCustomFieldValue.model_validate(raw)
                except PydanticValidationError:
                    continue
            if not isinstance(raw, KommoCustomFieldValue):
                continue
            if raw.field_id == wanted:
                return raw.first_value

        return None

    @staticmethod
    def _system_field_value(contact: Optional[KommoContact], field_code: str) -> Optional[str]:
        if contact is None:
            return None
        for field in contact.custom_fields_values:
            if field.field_code == field_code:
                value = field.values[0].value if field.values else None
                return str(value) if value else None
        return None

    @staticmethod
    def get_contact_email(contact: Optional[KommoContact]) -> Optional[str]:
        """Premier email du contact (champ système EMAIL)."""
        return KommoClient._system_field_value(contact, "EMAIL")

    @staticmethod
    def get_contact_phone(contact: Optional[KommoContact]) -> Optional[str]:
        """Premier téléphone du contact (champ système PHONE)."""
        return KommoClient._system_field_value(contact, "PHONE")

    # === Écriture ===

    async def update_lead_custom_field(
        self,
        lead_id: int | str,
        field_id: int | str,
        value: Any
    ) -> dict:
        """
        Met à jour un champ personnalisé du lead.

        Returns:
            Réponse brute de Kommo.
        """
        payload = {
            "custom_fields_values": [
                {
                    "field_id": int(field_id),
                    "values": [{"value": value}],
                }
            ]
        }

        data = await self._request(
            "PATCH",
            f"/leads/{lead_id}",
            action=f"mise à jour du champ {field_id} du lead {lead_id}",
            json=payload
        )

        logger.info(f"Champ {field_id} du lead {lead_id} mis à jour")
        return data

    async def add_note_to_lead(self, lead_id: int | str, text: str) -> dict:
        """Ajoute une note commune au lead."""
        payload = [
            {
                "entity_id": int(lead_id),
                "note_type": "common",
                "params": {"text": text},
            }
        ]

        data = await self._request(
            "POST",
            "/leads/notes",
            action=f"ajout de note au lead {lead_id}",
            json=payload
        )

        logger.info(f"Note ajoutée au lead {lead_id}")
        return data

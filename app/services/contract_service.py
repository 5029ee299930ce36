"""
Orchestration de la génération de contrats depuis un webhook Kommo.

Flux (séquentiel):
1. Parse de l'événement et évaluation du filtre de déclenchement
2. Lecture du lead et verification d'un contrat existant
3. Construction des remplacements et du titre
4. Creation du document Google Docs
5. Étapes secondaires: signature Autentique, mise à jour du champ, note

Les erreurs du flux principal (étapes 2 à 4) sont rapportées dans la réponse.
Les étapes secondaires ne font jamais échouer le flux: leurs erreurs sont
loguées et rassemblées dans ``warnings``.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, timezone
from typing import Any, Awaitable, Optional, TYPE_CHECKING

from app.core.error_handler import ContractAutomationError, error_handler
from app.models.autentique import SignatureDocument
from app.models.google import ContractDocument
from app.models.kommo import KommoLead, LeadEvent, TriggerFilter
from app.models.webhook import AuxiliaryStepResult, WebhookResponse
from app.services.autentique_service import AutentiqueService
from app.services.google_docs_service import GoogleDocsService
from app.services.kommo_service import KommoClient

if TYPE_CHECKING:
    from app.core.config import Settings

logger = logging.getLogger(__name__)


def build_replacements(lead: Any, field_mapping: dict[str, str]) -> dict[str, str]:
    """
    Construit les remplacements placeholder -> valeur.

    L'ordre suit celui du mapping. Une valeur absente donne "".
    """
    replacements: dict[str, str] = {}

    for field_id, placeholder in field_mapping.items():
        value = KommoClient.get_custom_field_value(lead, field_id)
        replacements[placeholder] = "" if value is None else str(value)
        logger.debug(f'{placeholder} = "{replacements[placeholder]}"')

    return replacements


def build_document_title(
    lead: KommoLead,
    title_field_id: str,
    prefix: str = "Contrato",
    today: Optional[date] = None
) -> str:
    """Titre du document: préfixe, nom (champ configuré ou nom du lead), date ISO."""
    name = KommoClient.get_custom_field_value(lead, title_field_id) or lead.name or f"Lead {lead.id}"
    day = today or datetime.now(timezone.utc).date()
    return f"{prefix} - {name} - {day.isoformat()}"


class ContractAutomationService:
    """
    Orchestrateur du webhook Kommo.

    Reçoit sa configuration explicitement. Les clients non fournis sont
    construits depuis cette configuration à leur première utilisation, de
    sorte qu'un webhook ignoré ne nécessite aucun credential.
    """

    def __init__(
        self,
        settings: "Settings",
        kommo: Optional[KommoClient] = None,
        docs: Optional[GoogleDocsService] = None,
        autentique: Optional[AutentiqueService] = None
    ):
        self.settings = settings
        self._kommo = kommo
        self._docs = docs
        self._autentique = autentique

    @property
    def kommo(self) -> KommoClient:
        if self._kommo is None:
            self._kommo = KommoClient.from_settings(self.settings)
        return self._kommo

    @property
    def docs(self) -> GoogleDocsService:
        if self._docs is None:
            self._docs = GoogleDocsService.from_settings(self.settings)
        return self._docs

    @property
    def autentique(self) -> Optional[AutentiqueService]:
        """Service de signature, None si Autentique n'est pas configuré."""
        if self._autentique is None and self.settings.autentique_enabled:
            self._autentique = AutentiqueService.from_settings(self.settings, self.docs)
        return self._autentique

    @property
    def trigger_filter(self) -> TriggerFilter:
        return TriggerFilter(
            pipeline_id=self.settings.kommo_trigger_pipeline_id,
            status_id=self.settings.kommo_trigger_status_id,
        )

    async def process_webhook(self, payload: dict) -> WebhookResponse:
        """
        Traite un webhook Kommo de changement de statut.

        Args:
            payload: Corps du webhook (JSON imbriqué ou formulaire à plat).

        Returns:
            WebhookResponse, jamais d'exception.
        """
        event = LeadEvent.from_payload(payload)

        if event.lead_id is None:
            logger.info("Aucun ID de lead dans le webhook, ignoré")
            return WebhookResponse.ignored("No lead ID in webhook")

        logger.info(
            f"Lead ID: {event.lead_id}, Status: {event.status_id}, "
            f"Pipeline: {event.pipeline_id}"
        )

        if not self.trigger_filter.should_trigger(event.pipeline_id, event.status_id):
            logger.info("Conditions de déclenchement non remplies, ignorées")
            return WebhookResponse.ignored("Trigger conditions not met", lead_id=event.lead_id)

        try:
            return await self._generate_contract(event.lead_id)

        except ContractAutomationError as e:
            error_handler.handle_error(e)
            return WebhookResponse.failure(e.message, lead_id=event.lead_id)

        except Exception as e:
            logger.exception(f"Erreur inattendue pour le lead {event.lead_id}: {e}")
            error_handler.handle_error(
                e,
                workflow="contract_generation",
                node="process_webhook"
            )
            return WebhookResponse.failure(str(e), lead_id=event.lead_id)

    async def _generate_contract(self, lead_id: int) -> WebhookResponse:
        settings = self.settings

        lead = await self.kommo.get_lead(lead_id)

        if settings.kommo_link_field_id:
            existing = KommoClient.get_custom_field_value(lead, settings.kommo_link_field_id)
            if existing is not None and str(existing).strip():
                logger.info(f"Contrat déjà existant pour le lead {lead_id}: {existing}")
                return WebhookResponse.existing(lead_id, str(existing))

        replacements = build_replacements(lead, settings.field_mapping)
        title = build_document_title(
            lead,
            settings.kommo_title_field_id,
            prefix=settings.document_title_prefix,
        )

        document = await self.docs.create_contract(
            settings.google_template_doc_id,
            title,
            replacements,
            folder_id=settings.google_drive_folder_id,
            share_with=settings.share_with_list,
            share_role=settings.google_share_role,
        )
        logger.info(f"Document créé: {document.link}")

        steps: list[AuxiliaryStepResult] = []
        signature: Optional[SignatureDocument] = None

        if self.autentique is not None:
            signature, step = await self._run_auxiliary(
                "autentique_signature",
                self._request_signature(lead, document, title)
            )
            steps.append(step)

            if signature is not None and settings.kommo_autentique_link_field_id:
                _, step = await self._run_auxiliary(
                    "update_autentique_link_field",
                    self.kommo.update_lead_custom_field(
                        lead_id, settings.kommo_autentique_link_field_id, signature.panel_link
                    )
                )
                steps.append(step)

        if settings.kommo_link_field_id:
            _, step = await self._run_auxiliary(
                "update_link_field",
                self.kommo.update_lead_custom_field(
                    lead_id, settings.kommo_link_field_id, document.link
                )
            )
            steps.append(step)

        if settings.kommo_post_link:
            note = settings.kommo_note_template.replace("{link}", document.link)
            _, step = await self._run_auxiliary(
                "post_note",
                self.kommo.add_note_to_lead(lead_id, note)
            )
            steps.append(step)

        warnings = [step for step in steps if not step.success]

        return WebhookResponse(
            success=True,
            lead_id=lead_id,
            document_id=document.id,
            document_link=document.link,
            autentique=signature,
            warnings=warnings or None,
        )

    async def _request_signature(
        self,
        lead: KommoLead,
        document: ContractDocument,
        title: str
    ) -> SignatureDocument:
        """Envoie le contrat en signature au contact principal du lead."""
        contact = await self.kommo.get_main_contact(lead)
        email = KommoClient.get_contact_email(contact)
        name = contact.name if contact else None

        return await self.autentique.send_for_signature(
            document.id,
            title,
            counterparty_email=email,
            counterparty_name=name,
        )

    @staticmethod
    async def _run_auxiliary(
        step: str,
        operation: Awaitable[Any]
    ) -> tuple[Optional[Any], AuxiliaryStepResult]:
        """Exécute une étape secondaire sans jamais propager son erreur."""
        try:
            result = await operation
        except Exception as e:
            logger.warning(f"Étape secondaire '{step}' en échec: {e}")
            return None, AuxiliaryStepResult.failed(step, e)

        logger.info(f"Étape secondaire '{step}' terminée")
        return result, AuxiliaryStepResult.ok(step)

"""
Endpoint webhook Kommo.

- POST /webhook : changement de statut d'un lead -> génération du contrat

La réponse est toujours HTTP 200 (même en erreur) pour éviter que Kommo
ne rejoue le webhook en boucle.
"""

from __future__ import annotations

import json
import logging
from urllib.parse import parse_qsl

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from app.api.dependencies import get_contract_service
from app.core.error_handler import error_handler
from app.models.webhook import WebhookResponse
from app.services.contract_service import ContractAutomationService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Webhook"])


FORM_CONTENT_TYPES = ("application/x-www-form-urlencoded", "multipart/form-data")


async def read_webhook_payload(request: Request) -> dict:
    """
    Lit le corps du webhook.

    Kommo envoie un formulaire à clés plates (``leads[status][0][id]``);
    un corps JSON imbriqué est aussi accepté.

    Raises:
        ValueError: Corps illisible.
    """
    content_type = request.headers.get("content-type", "").lower()

    if content_type.startswith(FORM_CONTENT_TYPES):
        form = await request.form()
        return {key: value for key, value in form.items()}

    raw = await request.body()
    if not raw.strip():
        return {}

    text = raw.decode("utf-8")
    if "application/json" in content_type or text.lstrip().startswith("{"):
        body = json.loads(text)
        if not isinstance(body, dict):
            raise ValueError("Le corps JSON doit être un objet")
        return body

    return dict(parse_qsl(text, keep_blank_values=True))


@router.post(
    "/webhook",
    summary="Webhook Kommo",
    description="""
    Reçoit les webhooks Kommo de changement de statut des leads.

    Flux:
    1. Extrait lead, statut et pipeline (format imbriqué ou à plat)
    2. Vérifie le filtre de déclenchement
    3. Ignore le lead si un lien de contrat existe déjà
    4. Crée le contrat Google Docs depuis le template
    5. Envoie en signature Autentique (si configuré)
    6. Écrit le lien dans le lead (champ et/ou note)

    Retourne toujours 200; les erreurs sont rapportées dans le corps.
    """,
    response_model=WebhookResponse,
    response_model_by_alias=True,
    response_model_exclude_none=True,
)
async def kommo_webhook(
    request: Request,
    service: ContractAutomationService = Depends(get_contract_service)
):
    """Traite un webhook Kommo."""
    logger.info("Webhook Kommo reçu")

    try:
        payload = await read_webhook_payload(request)
    except (ValueError, UnicodeDecodeError) as e:
        logger.warning(f"Payload webhook illisible: {e}")
        return JSONResponse(
            status_code=200,
            content=WebhookResponse.failure(f"Invalid webhook payload: {e}").to_body()
        )

    logger.debug(f"Payload: {payload}")

    try:
        result = await service.process_webhook(payload)
    except Exception as e:
        # process_webhook rapporte déjà ses erreurs; filet pour le transport
        error_data = error_handler.handle_error(
            e,
            workflow="kommo_webhook",
            node="kommo_webhook"
        )
        result = WebhookResponse.failure(error_data["message"])

    return JSONResponse(status_code=200, content=result.to_body())

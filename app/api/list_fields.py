"""
Endpoint de découverte des champs personnalisés Kommo.

- GET /list-fields?lead_id=123 : champs remplis du lead + schéma complet

Aide a configurer FIELD_MAPPING lors de la mise en place.
"""

from __future__ import annotations

import logging
from typing import Callable, Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse

from app.api.dependencies import get_kommo_factory
from app.core.error_handler import (
    ContractAutomationError,
    ValidationError,
    error_handler,
)
from app.services.kommo_service import KommoClient

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Diagnostic"])


USAGE = "GET /list-fields?lead_id=123456"
HINT = "Use the field IDs from customFieldsInLead to configure FIELD_MAPPING"


async def describe_lead_fields(kommo: KommoClient, lead_id: str) -> dict:
    """
    Décrit les champs personnalisés d'un lead et du compte.

    Raises:
        ValidationError: lead_id absent.
        UpstreamError: Erreur Kommo.
    """
    if not lead_id or not lead_id.strip():
        raise ValidationError("Missing lead_id parameter", details={"usage": USAGE})

    lead = await kommo.get_lead(lead_id.strip())

    fields_in_lead = [
        {
            "id": field.field_id,
            "name": field.field_name,
            "type": field.field_type,
            "value": field.first_value,
            "rawValues": [value.model_dump(exclude_none=True) for value in field.values],
        }
        for field in lead.custom_fields_values
    ]

    logger.info("Récupération du schéma des champs personnalisés...")
    definitions = await kommo.get_custom_fields()

    return {
        "lead": {
            "id": lead.id,
            "name": lead.name,
            "status_id": lead.status_id,
            "pipeline_id": lead.pipeline_id,
        },
        "customFieldsInLead": fields_in_lead,
        "allAvailableFields": [definition.model_dump() for definition in definitions],
        "hint": HINT,
    }


@router.get(
    "/list-fields",
    summary="Liste les champs d'un lead",
    description="Retourne les champs personnalisés remplis d'un lead et le schéma complet des champs.",
    responses={
        200: {"description": "Champs du lead et du compte"},
        400: {"description": "lead_id manquant"},
        500: {"description": "Erreur Kommo ou configuration"},
    }
)
async def list_fields(
    lead_id: Optional[str] = Query(default=None, description="ID du lead Kommo"),
    kommo_factory: Callable[[], KommoClient] = Depends(get_kommo_factory)
):
    """Endpoint de diagnostic en lecture seule."""
    try:
        if not lead_id or not lead_id.strip():
            raise ValidationError("Missing lead_id parameter", details={"usage": USAGE})

        kommo = kommo_factory()
        return await describe_lead_fields(kommo, lead_id)

    except ValidationError as e:
        return JSONResponse(
            status_code=400,
            content={"error": e.message, "usage": USAGE}
        )

    except ContractAutomationError as e:
        error_handler.handle_error(e)
        return JSONResponse(
            status_code=500,
            content={"error": e.message, "details": e.details or None}
        )

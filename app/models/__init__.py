"""
Modèles Pydantic pour Kommo Contracts.

Modules:
- kommo: Leads, contacts, champs personnalisés et événements webhook
- google: Fichiers Drive et contrat généré
- autentique: Signataires et documents de signature
- webhook: Réponse du webhook
"""

from app.models.kommo import (
    KommoLead,
    KommoContact,
    LeadEvent,
    TriggerFilter,
)
from app.models.webhook import WebhookResponse

__all__ = [
    "KommoLead",
    "KommoContact",
    "LeadEvent",
    "TriggerFilter",
    "WebhookResponse",
]

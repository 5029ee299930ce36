"""
Modèles Pydantic pour la réponse du webhook Kommo.

Les clés JSON sont en camelCase (leadId, documentLink...).
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from app.models.autentique import SignatureDocument


class AuxiliaryStepResult(BaseModel):
    """Résultat d'une étape secondaire (note, champ, signature)."""

    step: str
    success: bool
    error: Optional[str] = None

    @classmethod
    def ok(cls, step: str) -> "AuxiliaryStepResult":
        return cls(step=step, success=True)

    @classmethod
    def failed(cls, step: str, error: Exception) -> "AuxiliaryStepResult":
        return cls(step=step, success=False, error=str(error))


class WebhookResponse(BaseModel):
    """Réponse au webhook (toujours HTTP 200)."""

    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    lead_id: Optional[int] = Field(default=None, alias="leadId")
    document_id: Optional[str] = Field(default=None, alias="documentId")
    document_link: Optional[str] = Field(default=None, alias="documentLink")
    existing_link: Optional[str] = Field(default=None, alias="existingLink")
    autentique: Optional[SignatureDocument] = None
    warnings: Optional[list[AuxiliaryStepResult]] = None
    message: Optional[str] = None
    error: Optional[str] = None

    @classmethod
    def ignored(cls, message: str, lead_id: Optional[int] = None) -> "WebhookResponse":
        """Événement sans action (pas de lead, filtre non satisfait)."""
        return cls(success=True, lead_id=lead_id, message=message)

    @classmethod
    def existing(cls, lead_id: int, existing_link: str) -> "WebhookResponse":
        """Contrat déjà généré pour ce lead."""
        return cls(
            success=True,
            lead_id=lead_id,
            existing_link=existing_link,
            message="Contract already exists, skipping creation"
        )

    @classmethod
    def failure(cls, error: str, lead_id: Optional[int] = None) -> "WebhookResponse":
        """Échec du flux principal, rapporté dans le corps."""
        return cls(success=False, lead_id=lead_id, error=error)

    def to_body(self) -> dict:
        """Corps JSON de la réponse (alias camelCase, sans valeurs nulles)."""
        return self.model_dump(by_alias=True, exclude_none=True)

"""
Modèles Pydantic pour Kommo.

Définit les schemas de validation pour:
- Lead et contact (avec champs personnalisés)
- Définitions de champs personnalisés
- Événement webhook (format imbriqué ou à crochets)
- Filtre de déclenchement
"""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


# === Valeurs de champs personnalisés ===
class KommoFieldValue(BaseModel):
    """Une valeur d'un champ personnalisé (valeur simple ou énumération)."""

    model_config = ConfigDict(extra="ignore")

    value: Optional[Any] = None
    enum_id: Optional[int] = None
    enum_code: Optional[str] = None
    enum: Optional[str] = None


class KommoCustomFieldValue(BaseModel):
    """Champ personnalisé rempli sur un lead ou un contact."""

    model_config = ConfigDict(extra="ignore")

    field_id: int
    field_name: Optional[str] = None
    field_code: Optional[str] = None
    field_type: Optional[str] = None
    values: list[KommoFieldValue] = Field(default_factory=list)

    @field_validator("values", mode="before")
    @classmethod
    def none_to_empty(cls, v):
        return v or []

    @property
    def first_value(self) -> Optional[Any]:
        """
        Valeur résolue de la première entrée.

        Ordre: valeur simple, puis code d'énumération, puis libellé.
        """
        if not self.values:
            return None

        entry = self.values[0]
        if entry.value is not None:
            return entry.value
        if entry.enum_code:
            return entry.enum_code
        if entry.enum:
            return entry.enum
        return None


class KommoEntity(BaseModel):
    """Base commune aux leads et contacts."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: int
    name: Optional[str] = None
    custom_fields_values: list[KommoCustomFieldValue] = Field(default_factory=list)

    @field_validator("custom_fields_values", mode="before")
    @classmethod
    def none_to_empty(cls, v):
        # Kommo renvoie null quand aucun champ n'est rempli
        return v or []


# === Contact ===
class KommoContactRef(BaseModel):
    """Référence de contact embarquée dans un lead."""

    model_config = ConfigDict(extra="ignore")

    id: int
    is_main: bool = False


class KommoContact(KommoEntity):
    """Contact Kommo complet."""

    first_name: Optional[str] = None
    last_name: Optional[str] = None


# === Lead ===
class KommoLeadEmbedded(BaseModel):
    """Section _embedded d'un lead."""

    model_config = ConfigDict(extra="ignore")

    contacts: list[KommoContactRef] = Field(default_factory=list)

    @field_validator("contacts", mode="before")
    @classmethod
    def none_to_empty(cls, v):
        return v or []


class KommoLead(KommoEntity):
    """Lead Kommo."""

    status_id: Optional[int] = None
    pipeline_id: Optional[int] = None
    embedded: KommoLeadEmbedded = Field(
        default_factory=KommoLeadEmbedded,
        alias="_embedded"
    )

    @field_validator("embedded", mode="before")
    @classmethod
    def none_to_default(cls, v):
        return v or {}

    @property
    def contacts(self) -> list[KommoContactRef]:
        return self.embedded.contacts

    @property
    def main_contact_ref(self) -> Optional[KommoContactRef]:
        """Contact principal, ou le premier contact à défaut."""
        for ref in self.contacts:
            if ref.is_main:
                return ref
        return self.contacts[0] if self.contacts else None


# === Définitions de champs ===
class KommoCustomFieldDefinition(BaseModel):
    """Métadonnées d'un champ personnalisé (schéma du compte)."""

    model_config = ConfigDict(extra="ignore")

    id: int
    name: Optional[str] = None
    type: Optional[str] = None
    code: Optional[str] = None


# === Webhook ===
def _to_int(value: Any) -> Optional[int]:
    """Convertit un identifiant (int ou chaîne numérique) en int."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    try:
        return int(str(value).strip())
    except ValueError:
        return None


class LeadEvent(BaseModel):
    """
    Événement de changement de statut extrait d'un webhook Kommo.

    Kommo envoie soit un objet imbriqué (JSON), soit des clés à plat
    du type ``leads[status][0][id]`` (formulaire).
    """

    lead_id: Optional[int] = None
    status_id: Optional[int] = None
    pipeline_id: Optional[int] = None

    @classmethod
    def from_payload(cls, payload: dict) -> "LeadEvent":
        """
        Extrait l'événement du payload, en privilégiant le format imbriqué.

        Args:
            payload: Corps du webhook (JSON ou formulaire converti en dict).

        Returns:
            LeadEvent, avec lead_id a None si aucun lead n'est identifiable.
        """
        leads = payload.get("leads")
        nested_status: dict = {}
        nested_add: dict = {}

        if isinstance(leads, dict):
            status_list = leads.get("status")
            if isinstance(status_list, list) and status_list and isinstance(status_list[0], dict):
                nested_status = status_list[0]
            add_list = leads.get("add")
            if isinstance(add_list, list) and add_list and isinstance(add_list[0], dict):
                nested_add = add_list[0]

        def pick(key: str) -> Optional[int]:
            nested = _to_int(nested_status.get(key))
            if nested is not None:
                return nested
            return _to_int(payload.get(f"leads[status][0][{key}]"))

        lead_id = pick("id")
        if lead_id is None:
            lead_id = _to_int(nested_add.get("id"))
        if lead_id is None:
            lead_id = _to_int(payload.get("leads[add][0][id]"))

        return cls(
            lead_id=lead_id,
            status_id=pick("status_id"),
            pipeline_id=pick("pipeline_id"),
        )


class TriggerFilter(BaseModel):
    """Conditions de déclenchement (pipeline et/ou statut)."""

    pipeline_id: Optional[int] = None
    status_id: Optional[int] = None

    def should_trigger(self, pipeline_id: Any, status_id: Any) -> bool:
        """
        Vérifie si l'événement correspond au filtre.

        Sans filtre configuré, tout événement déclenche. Sinon chaque
        critère défini doit être numériquement égal à la valeur du webhook.
        """
        if self.pipeline_id is None and self.status_id is None:
            return True

        if self.pipeline_id is not None and _to_int(pipeline_id) != self.pipeline_id:
            return False

        if self.status_id is not None and _to_int(status_id) != self.status_id:
            return False

        return True

"""
Modeles Pydantic pour Autentique.

Definit les schemas de validation pour:
- Signataires envoyes a la mutation createDocument
- Reponse GraphQL de createDocument
- Resultat expose dans la reponse du webhook
"""

from __future__ import annotations

from typing import Literal, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    EmailStr,
    Field,
    field_validator,
)


SignerAction = Literal["SIGN", "APPROVE", "RECOGNIZE", "SIGN_AS_A_WITNESS"]

PANEL_URL = "https://painel.autentique.com.br/documentos"


# === Signataire ===
class Signer(BaseModel):
    """Signataire d'un document."""

    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(..., description="Nom affiche du signataire")
    email: EmailStr = Field(..., description="Email du signataire")
    action: SignerAction = Field(default="SIGN", description="Action demandee")

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        """Normalise l'email en minuscules."""
        return v.lower().strip()

    def to_input(self) -> dict:
        """Format SignerInput de l'API GraphQL."""
        return {"email": self.email, "action": self.action}


# === Reponse GraphQL ===
class AutentiqueAction(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: Optional[str] = None


class AutentiqueUser(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: Optional[str] = None
    email: Optional[str] = None


class AutentiqueLink(BaseModel):
    model_config = ConfigDict(extra="ignore")

    short_link: Optional[str] = None


class AutentiqueSignature(BaseModel):
    """Signature retournee par createDocument."""

    model_config = ConfigDict(extra="ignore")

    public_id: str
    email: Optional[str] = None
    created_at: Optional[str] = None
    action: Optional[AutentiqueAction] = None
    user: Optional[AutentiqueUser] = None
    link: Optional[AutentiqueLink] = None


class AutentiqueDocument(BaseModel):
    """Document cree sur Autentique."""

    model_config = ConfigDict(extra="ignore")

    id: str
    name: Optional[str] = None
    created_at: Optional[str] = None
    signatures: list[AutentiqueSignature] = Field(default_factory=list)


# === Resultat expose ===
class SignatureLink(BaseModel):
    """Lien de signature d'un signataire (``id`` = public_id Autentique)."""

    id: str
    email: Optional[str] = None
    name: Optional[str] = None
    action: Optional[str] = None
    link: Optional[str] = None


class SignatureDocument(BaseModel):
    """Resultat de l'envoi en signature (cles JSON en camelCase)."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: Optional[str] = None
    created_at: Optional[str] = Field(default=None, alias="createdAt")
    panel_link: str = Field(..., alias="panelLink")
    signatures: list[SignatureLink] = Field(default_factory=list)

    @classmethod
    def from_autentique(cls, document: AutentiqueDocument) -> "SignatureDocument":
        """Construit le resultat depuis la reponse Autentique."""
        return cls(
            id=document.id,
            name=document.name,
            created_at=document.created_at,
            panel_link=f"{PANEL_URL}/{document.id}",
            signatures=[
                SignatureLink(
                    id=sig.public_id,
                    email=sig.email,
                    name=(sig.user.name if sig.user and sig.user.name else sig.email),
                    action=sig.action.name if sig.action else None,
                    link=sig.link.short_link if sig.link else None,
                )
                for sig in document.signatures
            ]
        )

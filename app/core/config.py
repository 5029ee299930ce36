"""
Configuration centralisée pour l'automatisation des contrats Kommo.

Utilise Pydantic Settings pour une validation stricte des variables d'environnement.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Literal, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


ShareRole = Literal["reader", "writer", "commenter"]


# Correspondance ID de champ Kommo -> placeholder du template Google Docs.
# Les placeholders doivent correspondre exactement (sensible a la casse).
DEFAULT_FIELD_MAPPING: dict[str, str] = {
    "764177": "[Nome Completo]",
    "764179": "[RG]",
    "764181": "[CPF]",
    "764183": "[Endereço]",
}


class Settings(BaseSettings):
    """
    Configuration de l'application.

    Toutes les variables sont chargees depuis l'environnement ou un fichier .env.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # === API Settings ===
    app_name: str = Field(default="Kommo Contracts", description="Nom de l'application")
    app_env: Literal["development", "staging", "production"] = Field(
        default="development",
        description="Environnement d'exécution"
    )
    debug: bool = Field(default=False, description="Mode debug")
    api_host: str = Field(default="0.0.0.0", description="Host de l'API")
    api_port: int = Field(default=8000, ge=1, le=65535, description="Port de l'API")
    http_timeout: float = Field(
        default=30.0,
        gt=0,
        description="Timeout des appels HTTP sortants (secondes)"
    )

    # === Kommo ===
    kommo_domain: str = Field(
        default="",
        description="URL de base Kommo, ex: https://empresa.kommo.com"
    )
    kommo_access_token: str = Field(default="", description="Token d'accès Kommo")
    kommo_trigger_pipeline_id: Optional[int] = Field(
        default=None,
        description="Pipeline déclencheur (vide = tous)"
    )
    kommo_trigger_status_id: Optional[int] = Field(
        default=None,
        description="Statut déclencheur (vide = tous)"
    )
    kommo_link_field_id: Optional[str] = Field(
        default="768137",
        description="Champ personnalisé qui reçoit le lien du contrat"
    )
    kommo_post_link: bool = Field(
        default=False,
        description="Publie le lien du contrat en note sur le lead"
    )
    kommo_note_template: str = Field(
        default="Contrato criado: {link}",
        description="Texte de la note ({link} est remplace par le lien)"
    )
    kommo_autentique_link_field_id: Optional[str] = Field(
        default=None,
        description="Champ personnalisé qui reçoit le lien Autentique"
    )
    kommo_title_field_id: str = Field(
        default="764177",
        description="Champ utilise pour le nom dans le titre du document"
    )
    document_title_prefix: str = Field(
        default="Contrato",
        description="Préfixe du titre du document généré"
    )
    field_mapping: dict[str, str] = Field(
        default_factory=lambda: dict(DEFAULT_FIELD_MAPPING),
        description="Mapping JSON ID de champ Kommo -> placeholder"
    )

    # === Google Drive / Docs ===
    google_service_account_key: str = Field(
        default="",
        description="JSON complet de la clé du compte de service Google"
    )
    google_template_doc_id: str = Field(default="", description="ID du template Google Docs")
    google_drive_folder_id: Optional[str] = Field(
        default=None,
        description="Dossier de destination (vide = racine)"
    )
    google_share_with: str = Field(
        default="",
        description="Emails de partage séparés par des virgules"
    )
    google_share_role: ShareRole = Field(
        default="reader",
        description="Rôle accordé aux emails de partage"
    )

    # === Autentique ===
    autentique_api_key: str = Field(default="", description="Clé API Autentique")
    autentique_sandbox: bool = Field(
        default=False,
        description="Mode sandbox (ne consomme pas de crédits)"
    )
    autentique_company_signer_name: str = Field(
        default="",
        description="Nom du signataire de l'entreprise"
    )
    autentique_company_signer_email: str = Field(
        default="",
        description="Email du signataire de l'entreprise"
    )

    @field_validator(
        "kommo_trigger_pipeline_id",
        "kommo_trigger_status_id",
        "kommo_link_field_id",
        "kommo_autentique_link_field_id",
        "google_drive_folder_id",
        mode="before",
    )
    @classmethod
    def empty_to_none(cls, v):
        """Une variable définie mais vide équivaut à une variable absente."""
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("kommo_domain")
    @classmethod
    def validate_kommo_domain(cls, v: str) -> str:
        """Normalise le domaine Kommo en supprimant le slash final."""
        v = v.strip().rstrip("/")
        if v and not v.startswith(("https://", "http://")):
            v = f"https://{v}"
        return v

    @property
    def share_with_list(self) -> list[str]:
        """Liste des emails de partage."""
        return [
            email.strip()
            for email in self.google_share_with.split(",")
            if email.strip()
        ]

    @property
    def autentique_enabled(self) -> bool:
        """L'intégration Autentique est active si une clé API est définie."""
        return bool(self.autentique_api_key)

    @property
    def is_production(self) -> bool:
        """Vérifie si l'environnement est en production."""
        return self.app_env == "production"


@lru_cache
def get_settings() -> Settings:
    """
    Retourne une instance singleton des settings.

    Utilise lru_cache pour éviter de recharger les settings à chaque appel.
    """
    return Settings()


# Instance globale pour import direct
settings = get_settings()

"""
Modeles Pydantic pour Google Drive / Docs.
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class DriveFile(BaseModel):
    """Metadonnees d'un fichier Drive (champs demandes uniquement)."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: Optional[str] = None
    name: Optional[str] = None
    web_view_link: Optional[str] = Field(default=None, alias="webViewLink")
    parents: list[str] = Field(default_factory=list)


class ContractDocument(BaseModel):
    """Document de contrat genere."""

    id: str = Field(..., description="ID du document Google Docs")
    link: str = Field(..., description="Lien de consultation partageable")

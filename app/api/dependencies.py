"""
Dependances FastAPI partagees par les endpoints.

Les clients sont construits par requête depuis les settings (lecture seule).
"""

from __future__ import annotations

from functools import partial
from typing import Callable

from fastapi import Depends

from app.core.config import Settings, get_settings
from app.services.contract_service import ContractAutomationService
from app.services.kommo_service import KommoClient


def get_app_settings() -> Settings:
    return get_settings()


def get_contract_service(
    settings: Settings = Depends(get_app_settings)
) -> ContractAutomationService:
    """Orchestrateur du webhook; les clients sont créés à la première utilisation."""
    return ContractAutomationService(settings)


def get_kommo_factory(
    settings: Settings = Depends(get_app_settings)
) -> Callable[[], KommoClient]:
    """
    Fabrique du client Kommo.

    La construction est différée pour que l'endpoint rapporte lui-même
    une configuration incomplète.
    """
    return partial(KommoClient.from_settings, settings)

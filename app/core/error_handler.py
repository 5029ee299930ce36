"""
Gestionnaire d'erreurs centralisé.

- Hiérarchie d'exceptions (validation, configuration, services externes)
- Logging uniforme des erreurs
- Formatage JSON cohérent pour FastAPI
"""

from __future__ import annotations

import logging
import traceback
from datetime import datetime, timezone
from typing import Any, Optional

from fastapi import Request, HTTPException
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class ContractAutomationError(Exception):
    """Exception de base de l'application."""

    def __init__(
        self,
        message: str,
        workflow: str = "unknown",
        node: str = "unknown",
        details: dict | None = None,
        status_code: int = 500
    ):
        self.message = message
        self.workflow = workflow
        self.node = node
        self.details = details or {}
        self.status_code = status_code
        self.timestamp = datetime.now(timezone.utc).isoformat()
        super().__init__(message)


class ValidationError(ContractAutomationError):
    """Donnée d'entrée manquante ou invalide."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(
            message=message,
            workflow="validation",
            node="input_validation",
            details=details,
            status_code=400
        )


class ConfigurationError(ContractAutomationError):
    """Paramètre ou credential requis absent."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(
            message=message,
            workflow="configuration",
            node="settings",
            details=details,
            status_code=500
        )


class UpstreamError(ContractAutomationError):
    """Réponse en erreur d'un service externe (Kommo, Google, Autentique)."""

    def __init__(
        self,
        service: str,
        message: str,
        status_code: Optional[int] = None,
        details: dict | None = None
    ):
        self.service = service
        self.upstream_status = status_code
        super().__init__(
            message=f"Erreur {service}: {message}",
            workflow="external_service",
            node=service,
            details=details,
            status_code=502
        )


class TemplateAccessError(UpstreamError):
    """Le compte de service n'a pas accès au template Google Docs."""

    def __init__(
        self,
        template_id: str,
        status_code: Optional[int] = None,
        details: dict | None = None
    ):
        self.template_id = template_id
        super().__init__(
            service="google_drive",
            message=(
                f"accès refusé au template {template_id}. "
                "Partagez le document avec l'email du compte de service."
            ),
            status_code=status_code,
            details=details
        )


def response_details(response: Any) -> dict:
    """Extrait le corps d'une réponse HTTP en erreur pour les détails."""
    try:
        return {"response": response.json()}
    except Exception:
        return {"response": getattr(response, "text", "")}


class ErrorHandler:
    """
    Gestionnaire centralisé des erreurs.

    Formate et logue les erreurs de manière uniforme.
    """

    def handle_error(
        self,
        error: Exception,
        workflow: str = "unknown",
        node: str = "unknown",
    ) -> dict:
        """
        Gère une erreur de manière centralisée.

        Args:
            error: L'exception capturee.
            workflow: Nom du workflow ou l'erreur s'est produite.
            node: Nom du noeud/fonction.

        Returns:
            Dictionnaire avec les details de l'erreur loguee.
        """
        if isinstance(error, ContractAutomationError):
            error_data = {
                "workflow": error.workflow,
                "node": error.node,
                "message": error.message,
                "details": error.details,
                "status_code": error.status_code,
                "timestamp": error.timestamp
            }
        else:
            error_data = {
                "workflow": workflow,
                "node": node,
                "message": str(error),
                "details": {
                    "type": type(error).__name__,
                    "traceback": traceback.format_exc()
                },
                "status_code": 500,
                "timestamp": datetime.now(timezone.utc).isoformat()
            }

        logger.error(
            f"[{error_data['workflow']}:{error_data['node']}] "
            f"{error_data['message']}"
        )
        if error_data["details"]:
            logger.debug(f"Détails: {error_data['details']}")

        return error_data


# Instance globale
error_handler = ErrorHandler()


async def global_exception_handler(
    request: Request,
    exc: Exception
) -> JSONResponse:
    """
    Handler global pour FastAPI.

    Capture toutes les exceptions non gerees et les formate en JSON.
    """
    if isinstance(exc, ContractAutomationError):
        error_handler.handle_error(exc)
        return JSONResponse(
            status_code=exc.status_code,
            content={
                "status": "error",
                "message": exc.message,
                "workflow": exc.workflow,
                "timestamp": exc.timestamp
            }
        )

    if isinstance(exc, HTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content={
                "status": "error",
                "message": exc.detail,
                "timestamp": datetime.now(timezone.utc).isoformat()
            }
        )

    error_data = error_handler.handle_error(
        exc,
        workflow="unhandled",
        node="global_handler"
    )

    return JSONResponse(
        status_code=500,
        content={
            "status": "error",
            "message": "Une erreur interne s'est produite",
            "timestamp": error_data["timestamp"]
        }
    )

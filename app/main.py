"""
Point d'entrée principal de l'application.

FastAPI application avec:
- Webhook Kommo (génération des contrats)
- Endpoint de découverte des champs
- Middleware de logging
- Gestion globale des erreurs
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI, Request

from app.core.config import settings
from app.core.error_handler import global_exception_handler, ContractAutomationError

# Configuration du logging
logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


def configuration_status() -> dict:
    """État de configuration de chaque service externe (sans appel réseau)."""
    return {
        "kommo": "configured" if settings.kommo_domain and settings.kommo_access_token else "missing",
        "google": (
            "configured"
            if settings.google_service_account_key and settings.google_template_doc_id
            else "missing"
        ),
        "autentique": (
            ("sandbox" if settings.autentique_sandbox else "configured")
            if settings.autentique_enabled
            else "disabled"
        ),
    }


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Gestionnaire de cycle de vie de l'application.

    Logue la configuration effective au démarrage.
    """
    logger.info(f"Démarrage de {settings.app_name} en mode {settings.app_env}")
    logger.info(f"API disponible sur {settings.api_host}:{settings.api_port}")

    for service, status in configuration_status().items():
        if status == "missing":
            logger.warning(f"Configuration {service} incomplète")
        else:
            logger.info(f"Configuration {service}: {status}")

    if settings.kommo_trigger_pipeline_id is None and settings.kommo_trigger_status_id is None:
        logger.info("Aucun filtre de déclenchement: tous les webhooks sont traités")

    yield

    logger.info(f"Arrêt de {settings.app_name}")


app = FastAPI(
    title=settings.app_name,
    description="""
    ## Kommo Contracts - génération automatique de contrats

    Quand un lead Kommo change de statut, un contrat est généré depuis un
    template Google Docs, rempli avec les champs du lead, partagé, puis
    éventuellement envoyé en signature sur Autentique.

    ### Endpoints:
    - **POST /webhook**: webhook Kommo
    - **GET /list-fields**: découverte des champs personnalisés d'un lead
    """,
    version="1.0.0",
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
    openapi_url="/openapi.json" if settings.debug else None,
    lifespan=lifespan
)


# Middleware de logging des requêtes
@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Logue toutes les requêtes entrantes."""
    start_time = datetime.now(timezone.utc)

    logger.info(
        f"{request.method} {request.url.path} "
        f"from {request.client.host if request.client else 'unknown'}"
    )

    response = await call_next(request)

    process_time = (datetime.now(timezone.utc) - start_time).total_seconds()

    logger.info(
        f"{request.method} {request.url.path} "
        f"- {response.status_code} ({process_time:.3f}s)"
    )

    response.headers["X-Process-Time"] = str(process_time)

    return response


@app.exception_handler(ContractAutomationError)
async def contract_exception_handler(request: Request, exc: ContractAutomationError):
    """Handler pour les exceptions de l'application."""
    return await global_exception_handler(request, exc)


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception):
    """Handler pour toutes les autres exceptions."""
    return await global_exception_handler(request, exc)


# === Routes de base ===

@app.get("/", tags=["health"])
async def root():
    """Page d'accueil de l'API."""
    return {
        "name": settings.app_name,
        "version": "1.0.0",
        "status": "running",
        "environment": settings.app_env,
        "timestamp": datetime.now(timezone.utc).isoformat()
    }


@app.get("/health", tags=["health"])
async def health_check():
    """
    Endpoint de health check.

    Vérifie uniquement la configuration, sans appeler les services externes.
    """
    services = configuration_status()
    return {
        "status": "degraded" if "missing" in services.values() else "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "services": services
    }


# === Import des routers ===

from app.api.webhook import router as webhook_router
from app.api.list_fields import router as list_fields_router

app.include_router(webhook_router)
app.include_router(list_fields_router)


# === Point d'entrée pour uvicorn ===

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "app.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.debug,
        log_level="debug" if settings.debug else "info"
    )

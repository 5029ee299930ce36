"""
Configuration et fixtures pytest pour Kommo Contracts.

Fournit des fixtures réutilisables pour tous les tests.
"""

import os
import pytest
from unittest.mock import MagicMock, AsyncMock
from typing import Generator, Dict, Any

from fastapi.testclient import TestClient


# Configuration des variables d'environnement pour les tests
os.environ.setdefault("KOMMO_DOMAIN", "https://empresa.kommo.com")
os.environ.setdefault("KOMMO_ACCESS_TOKEN", "test_kommo_access_token")
os.environ.setdefault("GOOGLE_TEMPLATE_DOC_ID", "template-doc-id")
os.environ.setdefault("APP_ENV", "development")
os.environ.setdefault("DEBUG", "true")


@pytest.fixture(scope="session")
def test_settings():
    """Fixture pour accéder aux settings de test."""
    from app.core.config import Settings
    return Settings()


@pytest.fixture
def make_settings():
    """
    Fabrique de settings isolés de l'environnement.

    Les valeurs passées en argument remplacent celles de l'environnement.
    """
    from app.core.config import Settings

    def _make(**overrides):
        values = {
            "kommo_domain": "https://empresa.kommo.com",
            "kommo_access_token": "test_kommo_access_token",
            "google_template_doc_id": "template-doc-id",
            "kommo_trigger_pipeline_id": None,
            "kommo_trigger_status_id": None,
            "autentique_api_key": "",
        }
        values.update(overrides)
        return Settings(**values)

    return _make


@pytest.fixture
def test_client() -> Generator[TestClient, None, None]:
    """
    Fixture pour le client de test FastAPI.

    Crée un client HTTP pour tester les endpoints.
    """
    from app.main import app
    with TestClient(app) as client:
        yield client
    app.dependency_overrides.clear()


@pytest.fixture
def sample_lead_data() -> Dict[str, Any]:
    """Lead Kommo tel que renvoyé par GET /api/v4/leads/{id}?with=contacts."""
    return {
        "id": 42,
        "name": "Venda Maria",
        "status_id": 9,
        "pipeline_id": 7,
        "custom_fields_values": [
            {
                "field_id": 764177,
                "field_name": "Nome Completo",
                "field_type": "text",
                "values": [{"value": "Maria Silva"}]
            },
            {
                "field_id": 764181,
                "field_name": "CPF",
                "field_type": "text",
                "values": [{"value": "123.456.789-00"}]
            },
            {
                "field_id": 764190,
                "field_name": "Plano",
                "field_type": "select",
                "values": [{"enum_id": 5, "enum_code": None, "enum": "Premium"}]
            }
        ],
        "_embedded": {
            "contacts": [
                {"id": 501, "is_main": False},
                {"id": 502, "is_main": True}
            ]
        }
    }


@pytest.fixture
def sample_contact_data() -> Dict[str, Any]:
    """Contact Kommo avec champs système EMAIL et PHONE."""
    return {
        "id": 502,
        "name": "Maria Silva",
        "first_name": "Maria",
        "last_name": "Silva",
        "custom_fields_values": [
            {
                "field_id": 1001,
                "field_code": "PHONE",
                "values": [{"value": "+5511999999999", "enum_code": "WORK"}]
            },
            {
                "field_id": 1002,
                "field_code": "EMAIL",
                "values": [{"value": "maria@example.com", "enum_code": "WORK"}]
            }
        ]
    }


@pytest.fixture
def sample_lead(sample_lead_data):
    """Lead Kommo validé."""
    from app.models.kommo import KommoLead
    return KommoLead.model_validate(sample_lead_data)


@pytest.fixture
def sample_status_payload() -> Dict[str, Any]:
    """Webhook de changement de statut (format imbriqué)."""
    return {
        "leads": {
            "status": [
                {"id": 42, "status_id": 9, "pipeline_id": 7}
            ]
        }
    }


@pytest.fixture
def sample_form_payload() -> Dict[str, str]:
    """Webhook de changement de statut (formulaire à clés plates)."""
    return {
        "leads[status][0][id]": "42",
        "leads[status][0][status_id]": "9",
        "leads[status][0][pipeline_id]": "7",
        "account[subdomain]": "empresa",
    }


@pytest.fixture
def mock_kommo(sample_lead):
    """
    Mock du client Kommo.

    Simule un lead sans contrat existant.
    """
    mock = MagicMock()
    mock.get_lead = AsyncMock(return_value=sample_lead)
    mock.get_main_contact = AsyncMock(return_value=None)
    mock.update_lead_custom_field = AsyncMock(return_value={})
    mock.add_note_to_lead = AsyncMock(return_value={})
    return mock


@pytest.fixture
def mock_docs():
    """
    Mock du service Google Docs.

    Simule la création d'un contrat.
    """
    from app.models.google import ContractDocument

    mock = MagicMock()
    mock.create_contract = AsyncMock(
        return_value=ContractDocument(
            id="new-doc-id",
            link="https://docs.google.com/document/d/new-doc-id/edit"
        )
    )
    mock.export_as_pdf = AsyncMock(return_value=b"%PDF-1.4 fake pdf content")
    return mock


def http_response(status_code: int = 200, json_data: Any = None, content: bytes = None):
    """Construit une réponse httpx simulée."""
    response = MagicMock()
    response.status_code = status_code
    response.json.return_value = json_data if json_data is not None else {}
    if content is not None:
        response.content = content
    else:
        response.content = b"{}" if json_data is not None else b""
    response.text = str(json_data)
    return response


# === Markers personnalisés ===

def pytest_configure(config):
    """Configuration des markers pytest."""
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests"
    )
    config.addinivalue_line(
        "markers", "slow: marks tests as slow running"
    )

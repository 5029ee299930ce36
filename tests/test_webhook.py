"""
Tests de l'endpoint webhook Kommo.

Teste:
- Scenario complet (JSON imbrique et formulaire)
- Reponse toujours 200, erreurs dans le corps
- Payload illisible
- Methode non autorisee
"""

import pytest
from unittest.mock import MagicMock, AsyncMock

from fastapi.testclient import TestClient


DOC_LINK = "https://docs.google.com/document/d/new-doc-id/edit"


@pytest.fixture
def stubbed_docs():
    """GoogleDocsService reel avec operations unitaires simulees."""
    from app.services.google_docs_service import GoogleDocsService

    docs = GoogleDocsService(MagicMock())
    docs.copy_template = AsyncMock(return_value="new-doc-id")
    docs.replace_placeholders = AsyncMock(return_value=4)
    docs.share_document = AsyncMock(return_value=None)
    docs.get_shareable_link = AsyncMock(return_value=DOC_LINK)
    return docs


@pytest.fixture
def override_service(test_client, make_settings, mock_kommo, stubbed_docs):
    """Remplace l'orchestrateur injecte dans l'endpoint."""
    from app.api.dependencies import get_contract_service
    from app.main import app
    from app.services.contract_service import ContractAutomationService

    def _override(autentique=None, **overrides):
        settings = make_settings(**overrides)
        service = ContractAutomationService(
            settings, kommo=mock_kommo, docs=stubbed_docs, autentique=autentique
        )
        app.dependency_overrides[get_contract_service] = lambda: service
        return service

    return _override


class TestWebhookEndpoint:
    """Tests de POST /webhook."""

    def test_status_change_creates_contract(
        self,
        test_client: TestClient,
        override_service,
        mock_kommo,
        stubbed_docs,
        sample_status_payload
    ):
        """Test scenario complet: une copie, un remplacement, un lien."""
        override_service(kommo_trigger_pipeline_id=7, kommo_trigger_status_id=9)

        response = test_client.post("/webhook", json=sample_status_payload)

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["leadId"] == 42
        assert data["documentId"] == "new-doc-id"
        assert data["documentLink"] == DOC_LINK
        assert "warnings" not in data

        stubbed_docs.copy_template.assert_awaited_once()
        stubbed_docs.replace_placeholders.assert_awaited_once()
        stubbed_docs.get_shareable_link.assert_awaited_once_with("new-doc-id")
        stubbed_docs.share_document.assert_not_called()
        mock_kommo.update_lead_custom_field.assert_awaited_once_with(42, "768137", DOC_LINK)

    def test_form_payload(
        self,
        test_client: TestClient,
        override_service,
        stubbed_docs,
        sample_form_payload
    ):
        """Test webhook Kommo au format formulaire."""
        override_service(kommo_trigger_pipeline_id=7, kommo_trigger_status_id=9)

        response = test_client.post("/webhook", data=sample_form_payload)

        assert response.status_code == 200
        assert response.json()["leadId"] == 42
        stubbed_docs.copy_template.assert_awaited_once()

    def test_existing_link(
        self,
        test_client: TestClient,
        override_service,
        mock_kommo,
        stubbed_docs,
        sample_lead_data,
        sample_status_payload
    ):
        """Test contrat deja existant: aucun appel Google."""
        from app.models.kommo import KommoLead

        sample_lead_data["custom_fields_values"].append({
            "field_id": 768137,
            "values": [{"value": "https://docs.google.com/document/d/old/edit"}]
        })
        mock_kommo.get_lead = AsyncMock(return_value=KommoLead.model_validate(sample_lead_data))
        override_service()

        response = test_client.post("/webhook", json=sample_status_payload)

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["existingLink"] == "https://docs.google.com/document/d/old/edit"
        stubbed_docs.copy_template.assert_not_called()
        stubbed_docs.replace_placeholders.assert_not_called()

    def test_no_lead_id(self, test_client: TestClient, override_service):
        """Test webhook sans lead."""
        override_service()

        response = test_client.post("/webhook", json={"account": {"subdomain": "empresa"}})

        assert response.status_code == 200
        assert response.json() == {"success": True, "message": "No lead ID in webhook"}

    def test_trigger_not_met(
        self,
        test_client: TestClient,
        override_service,
        mock_kommo,
        sample_status_payload
    ):
        """Test filtre non satisfait."""
        override_service(kommo_trigger_status_id=123)

        response = test_client.post("/webhook", json=sample_status_payload)

        assert response.status_code == 200
        assert response.json()["message"] == "Trigger conditions not met"
        mock_kommo.get_lead.assert_not_called()

    def test_primary_failure_still_200(
        self,
        test_client: TestClient,
        override_service,
        stubbed_docs,
        sample_status_payload
    ):
        """Test echec de la copie: 200 avec success false."""
        from app.core.error_handler import TemplateAccessError

        stubbed_docs.copy_template = AsyncMock(
            side_effect=TemplateAccessError("template-doc-id", status_code=403)
        )
        override_service()

        response = test_client.post("/webhook", json=sample_status_payload)

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is False
        assert "template-doc-id" in data["error"]
        stubbed_docs.replace_placeholders.assert_not_called()
        stubbed_docs.get_shareable_link.assert_not_called()

    def test_auxiliary_failure_warning(
        self,
        test_client: TestClient,
        override_service,
        mock_kommo,
        sample_status_payload
    ):
        """Test echec de la note: succes avec warning."""
        from app.core.error_handler import UpstreamError

        mock_kommo.add_note_to_lead = AsyncMock(side_effect=UpstreamError("kommo", "HTTP 500"))
        override_service(kommo_post_link=True)

        response = test_client.post("/webhook", json=sample_status_payload)

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["documentLink"] == DOC_LINK
        assert data["warnings"][0]["step"] == "post_note"
        assert data["warnings"][0]["success"] is False

    def test_signature_result_in_camel_case(
        self,
        test_client: TestClient,
        override_service,
        mock_kommo,
        sample_contact_data,
        sample_status_payload
    ):
        """Test resultat Autentique serialise en camelCase."""
        from app.models.autentique import AutentiqueDocument, SignatureDocument
        from app.models.kommo import KommoContact

        mock_kommo.get_main_contact = AsyncMock(
            return_value=KommoContact.model_validate(sample_contact_data)
        )
        autentique = MagicMock()
        autentique.send_for_signature = AsyncMock(return_value=SignatureDocument.from_autentique(
            AutentiqueDocument.model_validate({
                "id": "doc-aut-1",
                "name": "Contrato",
                "created_at": "2024-05-01 10:00:00",
                "signatures": [
                    {
                        "public_id": "sig-1",
                        "email": "maria@example.com",
                        "action": {"name": "SIGN"},
                        "link": {"short_link": "https://assina.ae/bbb"}
                    }
                ]
            })
        ))
        override_service(autentique=autentique, autentique_api_key="autentique-key")

        response = test_client.post("/webhook", json=sample_status_payload)

        assert response.status_code == 200
        signature = response.json()["autentique"]
        assert signature["panelLink"] == "https://painel.autentique.com.br/documentos/doc-aut-1"
        assert signature["createdAt"] == "2024-05-01 10:00:00"
        assert "panel_link" not in signature
        assert signature["signatures"][0] == {
            "id": "sig-1",
            "email": "maria@example.com",
            "name": "maria@example.com",
            "action": "SIGN",
            "link": "https://assina.ae/bbb",
        }

    def test_invalid_json(self, test_client: TestClient, override_service):
        """Test corps JSON illisible."""
        override_service()

        response = test_client.post(
            "/webhook",
            content=b"{not json",
            headers={"Content-Type": "application/json"}
        )

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is False
        assert data["error"].startswith("Invalid webhook payload")

    def test_get_not_allowed(self, test_client: TestClient):
        """Test methode GET refusee."""
        response = test_client.get("/webhook")

        assert response.status_code == 405


class TestHealthEndpoints:
    """Tests des routes de base."""

    def test_root(self, test_client: TestClient):
        """Test page d'accueil."""
        response = test_client.get("/")

        assert response.status_code == 200
        assert response.json()["status"] == "running"

    def test_health_reports_configuration(self, test_client: TestClient):
        """Test health check sans appel externe."""
        response = test_client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["services"]["kommo"] == "configured"
        assert data["services"]["autentique"] in ("disabled", "configured", "sandbox")
        assert "X-Process-Time" in response.headers

"""
Tests du service Autentique.

Teste:
- Construction et validation des signataires
- Requete multipart createDocument (sandbox)
- Erreurs HTTP et GraphQL
- Flux send_for_signature
"""

import json

import pytest
from unittest.mock import MagicMock, AsyncMock, patch

from tests.conftest import http_response


# === Fixtures specifiques Autentique ===

@pytest.fixture
def autentique_service(mock_docs):
    """Service Autentique en mode sandbox."""
    from app.services.autentique_service import AutentiqueService

    return AutentiqueService(
        api_key="autentique-key",
        docs_service=mock_docs,
        sandbox=True,
        company_signer_name="Empresa LTDA",
        company_signer_email="juridico@empresa.com.br",
    )


@pytest.fixture
def create_document_response():
    """Reponse GraphQL createDocument."""
    return {
        "data": {
            "createDocument": {
                "id": "doc-aut-1",
                "name": "Contrato - Maria Silva",
                "created_at": "2024-05-01 10:00:00",
                "signatures": [
                    {
                        "public_id": "sig-1",
                        "email": "juridico@empresa.com.br",
                        "action": {"name": "SIGN"},
                        "user": {"name": "Empresa LTDA", "email": "juridico@empresa.com.br"},
                        "link": {"short_link": "https://assina.ae/aaa"}
                    },
                    {
                        "public_id": "sig-2",
                        "email": "maria@example.com",
                        "action": {"name": "SIGN"},
                        "user": None,
                        "link": {"short_link": "https://assina.ae/bbb"}
                    }
                ]
            }
        }
    }


# === Tests Signataires ===

class TestSigners:
    """Tests de build_signers."""

    def test_company_then_client(self, autentique_service):
        """Test ordre et normalisation des signataires."""
        signers = autentique_service.build_signers(" Maria@Example.com ", "Maria Silva")

        assert [s.email for s in signers] == ["juridico@empresa.com.br", "maria@example.com"]
        assert signers[0].name == "Empresa LTDA"
        assert signers[1].to_input() == {"email": "maria@example.com", "action": "SIGN"}

    def test_default_names(self, mock_docs):
        """Test noms par defaut."""
        from app.services.autentique_service import AutentiqueService

        service = AutentiqueService(
            api_key="k",
            docs_service=mock_docs,
            company_signer_email="juridico@empresa.com.br",
        )
        signers = service.build_signers("maria@example.com")

        assert signers[0].name == "Company Representative"
        assert signers[1].name == "Client"

    def test_missing_client_email(self, autentique_service):
        """Test email client absent."""
        from app.core.error_handler import ValidationError

        with pytest.raises(ValidationError):
            autentique_service.build_signers(None)

        with pytest.raises(ValidationError):
            autentique_service.build_signers("   ")

    def test_invalid_client_email(self, autentique_service):
        """Test email client invalide."""
        from app.core.error_handler import ValidationError

        with pytest.raises(ValidationError):
            autentique_service.build_signers("not-an-email")

    def test_missing_company_email(self, mock_docs):
        """Test signataire entreprise non configure."""
        from app.core.error_handler import ConfigurationError
        from app.services.autentique_service import AutentiqueService

        service = AutentiqueService(api_key="k", docs_service=mock_docs)

        with pytest.raises(ConfigurationError):
            service.build_signers("maria@example.com")

    def test_missing_api_key(self, mock_docs):
        """Test cle API absente."""
        from app.core.error_handler import ConfigurationError
        from app.services.autentique_service import AutentiqueService

        with pytest.raises(ConfigurationError):
            AutentiqueService(api_key="", docs_service=mock_docs)


# === Tests createDocument ===

class TestCreateDocument:
    """Tests de la mutation createDocument."""

    @pytest.mark.asyncio
    async def test_multipart_request(self, autentique_service, create_document_response):
        """Test requete multipart avec sandbox et fichier."""
        signers = autentique_service.build_signers("maria@example.com", "Maria Silva")

        with patch("app.services.autentique_service.httpx.AsyncClient") as mock_http:
            mock_client = MagicMock()
            mock_client.post = AsyncMock(return_value=http_response(200, create_document_response))
            mock_http.return_value.__aenter__.return_value = mock_client

            result = await autentique_service.create_document(
                "Contrato - Maria Silva", b"%PDF-1.4", signers
            )

            kwargs = mock_client.post.call_args.kwargs
            assert kwargs["headers"]["Authorization"] == "Bearer autentique-key"

            operations = json.loads(kwargs["data"]["operations"])
            assert operations["variables"]["sandbox"] is True
            assert operations["variables"]["file"] is None
            assert operations["variables"]["document"] == {"name": "Contrato - Maria Silva"}
            assert len(operations["variables"]["signers"]) == 2
            assert json.loads(kwargs["data"]["map"]) == {"0": ["variables.file"]}

            filename, content, mime = kwargs["files"]["0"]
            assert filename == "Contrato - Maria Silva.pdf"
            assert content == b"%PDF-1.4"
            assert mime == "application/pdf"

        assert result.id == "doc-aut-1"
        assert result.panel_link == "https://painel.autentique.com.br/documentos/doc-aut-1"
        assert [s.link for s in result.signatures] == [
            "https://assina.ae/aaa",
            "https://assina.ae/bbb",
        ]
        assert result.signatures[1].name == "maria@example.com"
        assert [s.id for s in result.signatures] == ["sig-1", "sig-2"]

    @pytest.mark.asyncio
    async def test_graphql_errors(self, autentique_service):
        """Test erreurs GraphQL dans une reponse 200."""
        from app.core.error_handler import UpstreamError

        signers = autentique_service.build_signers("maria@example.com")

        with patch("app.services.autentique_service.httpx.AsyncClient") as mock_http:
            mock_client = MagicMock()
            mock_client.post = AsyncMock(return_value=http_response(
                200, {"errors": [{"message": "unauthenticated"}], "data": None}
            ))
            mock_http.return_value.__aenter__.return_value = mock_client

            with pytest.raises(UpstreamError) as exc_info:
                await autentique_service.create_document("Contrato", b"%PDF", signers)

            assert "unauthenticated" in exc_info.value.message
            assert exc_info.value.service == "autentique"

    @pytest.mark.asyncio
    async def test_http_error(self, autentique_service):
        """Test statut HTTP en erreur."""
        from app.core.error_handler import UpstreamError

        signers = autentique_service.build_signers("maria@example.com")

        with patch("app.services.autentique_service.httpx.AsyncClient") as mock_http:
            mock_client = MagicMock()
            mock_client.post = AsyncMock(return_value=http_response(500, {"message": "boom"}))
            mock_http.return_value.__aenter__.return_value = mock_client

            with pytest.raises(UpstreamError) as exc_info:
                await autentique_service.create_document("Contrato", b"%PDF", signers)

            assert exc_info.value.upstream_status == 500


# === Tests send_for_signature ===

class TestSendForSignature:
    """Tests du flux complet de signature."""

    @pytest.mark.asyncio
    async def test_validates_before_export(self, autentique_service, mock_docs):
        """Test aucun export PDF si l'email client manque."""
        from app.core.error_handler import ValidationError

        with pytest.raises(ValidationError):
            await autentique_service.send_for_signature("doc-1", "Contrato", None)

        mock_docs.export_as_pdf.assert_not_called()

    @pytest.mark.asyncio
    async def test_export_then_create(self, autentique_service, mock_docs):
        """Test export du PDF puis creation du document."""
        from app.models.autentique import SignatureDocument

        expected = SignatureDocument(id="doc-aut-1", panel_link="https://painel/doc-aut-1")
        autentique_service.create_document = AsyncMock(return_value=expected)

        result = await autentique_service.send_for_signature(
            "doc-1", "Contrato", "maria@example.com", "Maria Silva"
        )

        assert result is expected
        mock_docs.export_as_pdf.assert_awaited_once_with("doc-1")
        name, pdf_bytes, signers = autentique_service.create_document.call_args.args
        assert name == "Contrato"
        assert pdf_bytes == b"%PDF-1.4 fake pdf content"
        assert signers[1].email == "maria@example.com"

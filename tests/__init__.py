"""
Tests pour Kommo Contracts.

Modules:
- test_kommo.py: Client Kommo, evenements webhook, filtre
- test_google_docs.py: Authentification Google et service Docs / Drive
- test_autentique.py: Signature electronique
- test_contract_service.py: Orchestration de la generation
- test_webhook.py: Endpoint webhook et routes de base
- test_list_fields.py: Endpoint de decouverte des champs
"""

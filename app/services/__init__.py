"""
Services métier pour Kommo Contracts.

Modules:
- kommo_service: Client de l'API Kommo (leads, contacts, notes)
- google_auth: Jeton OAuth du compte de service Google
- google_docs_service: Copie du template, remplacement, partage et export PDF
- autentique_service: Envoi en signature électronique
- contract_service: Orchestration du webhook
"""

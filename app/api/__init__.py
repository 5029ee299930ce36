"""
API endpoints pour Kommo Contracts.

Modules:
- webhook: Webhook Kommo de changement de statut
- list_fields: Découverte des champs personnalisés d'un lead
- dependencies: Dépendances FastAPI partagées
"""

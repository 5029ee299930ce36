"""
Core components pour Kommo Contracts.

Modules:
- config: Configuration Pydantic Settings
- error_handler: Gestion centralisée des erreurs
"""

from app.core.config import settings, get_settings

__all__ = ["settings", "get_settings"]

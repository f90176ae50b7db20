"""
Configuration Module

Centralized, environment-aware configuration for batch operations:
- Pagination and read retry settings
- Operation report settings
- Firestore backend connection settings

Settings load from YAML files and environment variables (prefix DOCSTORE_,
nested delimiter "__") and are validated with Pydantic.
"""

from .settings import (
    BatchOpsSettings,
    ExecutionSettings,
    LoggingSettings,
    FirestoreSettings,
    load_settings
)

__all__ = [
    'BatchOpsSettings',
    'ExecutionSettings',
    'LoggingSettings',
    'FirestoreSettings',
    'load_settings'
]

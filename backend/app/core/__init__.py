"""
Core module for application configuration and utilities.

Session access rules, validators and domain errors are not imported at
package level to avoid circular imports with app.models (which imports
datetime_utils from app.core). Import them directly:
from app.core.session_access import ...
"""
from .config import settings

__all__ = ["settings"]

"""
Core package containing configuration, database, security, logging, and errors.
"""
from storefront.core.config import settings
from storefront.core.database import Base, get_db_session
from storefront.core.logging import configure_logging, get_logger
from storefront.core.security import AuthContext, JWTAuthVerifier

__all__ = [
    "settings",
    "Base",
    "get_db_session",
    "configure_logging",
    "get_logger",
    "AuthContext",
    "JWTAuthVerifier",
]

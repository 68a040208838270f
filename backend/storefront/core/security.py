"""
Security utilities: identity token verification and webhook HMAC checks.
"""
import hashlib
import hmac
from dataclasses import dataclass
from typing import Any, Optional

from jose import JWTError, jwt

from storefront.core.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class AuthContext:
    """Identity of a verified caller."""

    account_id: str
    email: Optional[str] = None


class JWTAuthVerifier:
    """
    Verifies identity-provider session tokens (HS256 by default).

    A token that fails signature or expiry checks is treated as
    "no account context", never as an error, so guest flows keep working.
    """

    def __init__(self, secret: Optional[str], algorithm: str = "HS256") -> None:
        self.secret = secret
        self.algorithm = algorithm

    def verify(self, token: Optional[str]) -> Optional[AuthContext]:
        if not token or not self.secret:
            return None

        try:
            payload: dict[str, Any] = jwt.decode(
                token,
                self.secret,
                algorithms=[self.algorithm],
            )
        except JWTError as e:
            logger.warning("Invalid identity token", error=str(e))
            return None

        account_id = payload.get("sub") or payload.get("uid")
        if not account_id:
            return None
        return AuthContext(account_id=str(account_id), email=payload.get("email"))


def extract_bearer_token(authorization: Optional[str]) -> Optional[str]:
    """Return the token from an `Authorization: Bearer ...` header."""
    if not authorization or not authorization.startswith("Bearer "):
        return None
    token = authorization[len("Bearer "):].strip()
    return token or None


def sign_webhook_body(secret: str, body: bytes) -> str:
    """Signature format used by the fulfillment webhook: sha256=<hex>."""
    digest = hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()
    return f"sha256={digest}"


def verify_webhook_hmac(secret: str, signature_header: Optional[str], body: bytes) -> bool:
    """Verify an HMAC-SHA256 webhook signature header."""
    if not signature_header:
        return False
    return hmac.compare_digest(sign_webhook_body(secret, body), signature_header.strip())


def verify_shared_token(secret: str, token: Optional[str]) -> bool:
    """Constant-time comparison for a shared secret passed as a query parameter."""
    if not token:
        return False
    return hmac.compare_digest(secret.encode(), token.encode())

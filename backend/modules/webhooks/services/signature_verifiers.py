# backend/modules/webhooks/services/signature_verifiers.py

"""
Signature checks for inbound payment-gateway webhooks.

Each gateway signs the raw request body in its own way. A verifier with no
secret configured rejects everything, so a missing secret can never open
the endpoint.
"""

import base64
import hashlib
import hmac
import logging
from abc import ABC, abstractmethod
from typing import Dict, Optional, Union

from core.config import Settings, get_settings
from ..enums.webhook_enums import PaymentWebhookGateway

logger = logging.getLogger(__name__)


def _as_bytes(value: Union[str, bytes]) -> bytes:
    if isinstance(value, bytes):
        return value
    return value.encode("utf-8")


class SignatureVerifier(ABC):
    """Validates the signature a gateway sends with a webhook body"""

    def __init__(self, gateway: PaymentWebhookGateway, secret: Optional[str]):
        self.gateway = gateway
        self.secret = secret

    @abstractmethod
    def sign(self, raw_body: Union[str, bytes]) -> str:
        """Signature the gateway would send for ``raw_body``"""

    def normalize(self, signature: str) -> str:
        return signature.strip()

    def verify(self, raw_body: Union[str, bytes], signature: Optional[str]) -> bool:
        if not self.secret:
            logger.error(f"No webhook secret configured for {self.gateway.value}, rejecting webhook")
            return False
        if not signature:
            return False

        expected = self.sign(raw_body)
        # Compare bytes so non-ASCII input fails instead of raising
        return hmac.compare_digest(
            expected.encode("utf-8"),
            self.normalize(signature).encode("utf-8"),
        )


class HmacHexVerifier(SignatureVerifier):
    """HMAC-SHA256 over the body, hex encoded; accepts a ``sha256=`` prefix"""

    def sign(self, raw_body: Union[str, bytes]) -> str:
        return hmac.new(_as_bytes(self.secret), _as_bytes(raw_body), hashlib.sha256).hexdigest()

    def normalize(self, signature: str) -> str:
        signature = signature.strip()
        if signature.startswith("sha256="):
            signature = signature[len("sha256="):]
        return signature


class HmacBase64Verifier(SignatureVerifier):
    """HMAC-SHA256 over the body, base64 encoded"""

    def sign(self, raw_body: Union[str, bytes]) -> str:
        digest = hmac.new(_as_bytes(self.secret), _as_bytes(raw_body), hashlib.sha256).digest()
        return base64.b64encode(digest).decode("ascii")


class MerchantKeyDigestVerifier(SignatureVerifier):
    """SHA-256 of the body followed by the merchant key, hex encoded"""

    def sign(self, raw_body: Union[str, bytes]) -> str:
        return hashlib.sha256(_as_bytes(raw_body) + _as_bytes(self.secret)).hexdigest()


def build_verifiers(settings: Optional[Settings] = None) -> Dict[PaymentWebhookGateway, SignatureVerifier]:
    """One verifier per supported gateway, secrets taken from settings"""
    settings = settings or get_settings()
    return {
        PaymentWebhookGateway.MADA: HmacHexVerifier(
            PaymentWebhookGateway.MADA, settings.MADA_WEBHOOK_SECRET
        ),
        PaymentWebhookGateway.STC_PAY: MerchantKeyDigestVerifier(
            PaymentWebhookGateway.STC_PAY, settings.STC_PAY_MERCHANT_KEY
        ),
        PaymentWebhookGateway.APPLE_PAY: HmacBase64Verifier(
            PaymentWebhookGateway.APPLE_PAY, settings.APPLE_PAY_WEBHOOK_SECRET
        ),
        PaymentWebhookGateway.GOOGLE_PAY: HmacHexVerifier(
            PaymentWebhookGateway.GOOGLE_PAY, settings.GOOGLE_PAY_WEBHOOK_SECRET
        ),
    }

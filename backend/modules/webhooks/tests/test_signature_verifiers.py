# backend/modules/webhooks/tests/test_signature_verifiers.py

import base64
import hashlib
import hmac

import pytest

from core.config import settings
from modules.webhooks.enums.webhook_enums import PaymentWebhookGateway
from modules.webhooks.services.signature_verifiers import (
    HmacHexVerifier,
    HmacBase64Verifier,
    MerchantKeyDigestVerifier,
    build_verifiers,
)

BODY = b'{"transaction_id":"TX-1","status":"success","amount":"25.50"}'


@pytest.fixture
def verifiers():
    configured = settings.model_copy(update={
        "MADA_WEBHOOK_SECRET": "mada-secret",
        "STC_PAY_MERCHANT_KEY": "stc-key",
        "APPLE_PAY_WEBHOOK_SECRET": "apple-secret",
        "GOOGLE_PAY_WEBHOOK_SECRET": "google-secret",
    })
    return build_verifiers(configured)


def flip_last_char(signature: str) -> str:
    replacement = "0" if signature[-1] != "0" else "1"
    return signature[:-1] + replacement


class TestSignatureSchemes:

    def test_verifier_per_gateway(self, verifiers):
        assert isinstance(verifiers[PaymentWebhookGateway.MADA], HmacHexVerifier)
        assert isinstance(verifiers[PaymentWebhookGateway.GOOGLE_PAY], HmacHexVerifier)
        assert isinstance(verifiers[PaymentWebhookGateway.APPLE_PAY], HmacBase64Verifier)
        assert isinstance(verifiers[PaymentWebhookGateway.STC_PAY], MerchantKeyDigestVerifier)

    def test_hmac_hex(self, verifiers):
        expected = hmac.new(b"mada-secret", BODY, hashlib.sha256).hexdigest()

        assert verifiers[PaymentWebhookGateway.MADA].verify(BODY, expected) is True
        assert verifiers[PaymentWebhookGateway.MADA].verify(BODY, f"sha256={expected}") is True

    def test_hmac_base64(self, verifiers):
        expected = base64.b64encode(hmac.new(b"apple-secret", BODY, hashlib.sha256).digest()).decode()

        assert verifiers[PaymentWebhookGateway.APPLE_PAY].verify(BODY, expected) is True

    def test_merchant_key_digest(self, verifiers):
        expected = hashlib.sha256(BODY + b"stc-key").hexdigest()

        assert verifiers[PaymentWebhookGateway.STC_PAY].verify(BODY, expected) is True

    def test_str_and_bytes_bodies_agree(self, verifiers):
        verifier = verifiers[PaymentWebhookGateway.GOOGLE_PAY]
        assert verifier.verify(BODY.decode(), verifier.sign(BODY)) is True

    @pytest.mark.parametrize("gateway", list(PaymentWebhookGateway))
    def test_sign_verify_symmetry(self, verifiers, gateway):
        verifier = verifiers[gateway]
        assert verifier.verify(BODY, verifier.sign(BODY)) is True

    @pytest.mark.parametrize("gateway", list(PaymentWebhookGateway))
    def test_mutated_signature_rejected(self, verifiers, gateway):
        verifier = verifiers[gateway]
        assert verifier.verify(BODY, flip_last_char(verifier.sign(BODY))) is False

    @pytest.mark.parametrize("gateway", list(PaymentWebhookGateway))
    def test_mutated_body_rejected(self, verifiers, gateway):
        verifier = verifiers[gateway]
        signature = verifier.sign(BODY)
        assert verifier.verify(BODY.replace(b"25.50", b"25.51"), signature) is False

    def test_hex_signature_is_case_sensitive(self, verifiers):
        verifier = verifiers[PaymentWebhookGateway.MADA]
        assert verifier.verify(BODY, verifier.sign(BODY).upper()) is False


class TestFailClosed:

    @pytest.mark.parametrize("secret", [None, ""])
    def test_missing_secret_rejects_everything(self, secret):
        verifier = HmacHexVerifier(PaymentWebhookGateway.MADA, secret)
        forged = hmac.new(b"", BODY, hashlib.sha256).hexdigest()

        assert verifier.verify(BODY, forged) is False

    @pytest.mark.parametrize("signature", [None, ""])
    def test_missing_signature_rejected(self, verifiers, signature):
        assert verifiers[PaymentWebhookGateway.MADA].verify(BODY, signature) is False

    def test_non_ascii_signature_rejected(self, verifiers):
        assert verifiers[PaymentWebhookGateway.MADA].verify(BODY, "é" * 64) is False

# backend/modules/webhooks/exceptions.py

"""
Custom exceptions for inbound payment webhooks.
"""

from typing import Optional, Dict, Any


class WebhookException(Exception):
    """Base exception for webhook processing"""

    def __init__(
        self,
        message: str,
        service: Optional[str] = None,
        event_type: Optional[str] = None,
        error_code: str = "WEBHOOK_ERROR",
        details: Optional[Dict[str, Any]] = None,
        status_code: int = 400
    ):
        super().__init__(message)
        self.message = message
        self.service = service
        self.event_type = event_type
        self.error_code = error_code
        self.details = details or {}
        self.status_code = status_code

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for API responses"""
        return {
            "error": self.error_code,
            "message": self.message,
            "service": self.service,
            "details": self.details,
        }


class UnsupportedWebhookGatewayException(WebhookException):
    """Webhook arrived for a gateway we do not integrate with"""

    def __init__(self, gateway: str):
        super().__init__(
            message=f"Unsupported payment gateway: {gateway}",
            service=gateway,
            error_code="UNSUPPORTED_GATEWAY",
            status_code=400
        )


class InvalidWebhookSignatureException(WebhookException):
    """Signature missing, wrong, or no secret configured to check it"""

    def __init__(self, gateway: str, event_type: Optional[str] = None):
        super().__init__(
            message=f"Invalid {gateway} webhook signature",
            service=gateway,
            event_type=event_type,
            error_code="INVALID_SIGNATURE",
            status_code=401
        )


class MalformedWebhookPayloadError(WebhookException):
    """Body is not JSON or lacks required fields"""

    def __init__(self, gateway: str, reason: str, event_type: Optional[str] = None):
        super().__init__(
            message=f"Invalid {gateway} webhook payload: {reason}",
            service=gateway,
            event_type=event_type,
            error_code="MALFORMED_PAYLOAD",
            details={"reason": reason},
            status_code=400
        )

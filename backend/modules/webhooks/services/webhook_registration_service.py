# backend/modules/webhooks/services/webhook_registration_service.py

import logging
import secrets
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from core.config import settings
from ..enums.webhook_enums import PaymentWebhookGateway
from ..exceptions import UnsupportedWebhookGatewayException
from ..models.webhook_models import WebhookRegistration

logger = logging.getLogger(__name__)


class WebhookRegistrationService:
    """Keeps track of the webhook endpoints registered with each payment gateway"""

    def __init__(self, db: Session):
        self.db = db

    def register_webhook(self, service: str, event: str, url: str) -> bool:
        """
        Register ``url`` to receive ``event`` notifications from ``service``.

        A fresh webhook id and signing key are generated per registration.
        Returns False (and logs) when the gateway is unknown or the row
        cannot be stored.
        """
        try:
            gateway = self._resolve(service)
            registration = WebhookRegistration(
                service=gateway.value,
                event_type=event,
                webhook_url=url,
                webhook_id=f"{gateway.value}_{secrets.token_hex(8)}",
                signature_key=secrets.token_hex(settings.WEBHOOK_SIGNATURE_KEY_BYTES),
                is_active=True,
            )
            self.db.add(registration)
            self.db.commit()
        except (UnsupportedWebhookGatewayException, SQLAlchemyError) as e:
            self.db.rollback()
            logger.error(f"Webhook registration failed for {service} {event} at {url}: {e}")
            return False

        logger.info(f"Registered {gateway.value} webhook {registration.webhook_id} for {event}")
        return True

    def _resolve(self, service: str) -> PaymentWebhookGateway:
        try:
            return PaymentWebhookGateway(str(service).lower())
        except ValueError:
            raise UnsupportedWebhookGatewayException(service)

    def get_registrations(self, service: Optional[str] = None, active_only: bool = True) -> List[WebhookRegistration]:
        query = self.db.query(WebhookRegistration)
        if service:
            query = query.filter(WebhookRegistration.service == service)
        if active_only:
            query = query.filter(WebhookRegistration.is_active.is_(True))
        return query.order_by(WebhookRegistration.id).all()

    def deactivate(self, webhook_id: str) -> bool:
        registration = self.db.query(WebhookRegistration).filter(
            WebhookRegistration.webhook_id == webhook_id
        ).first()
        if registration is None:
            return False
        registration.is_active = False
        self.db.commit()
        logger.info(f"Deactivated webhook {webhook_id}")
        return True

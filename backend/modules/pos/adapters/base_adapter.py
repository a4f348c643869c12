import httpx
import logging
from abc import ABC, abstractmethod
from contextlib import contextmanager
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, Any, Iterator, Optional, List

from core.config import settings
from modules.orders.enums.order_enums import OrderStatus
from ..enums.pos_enums import POSVendor
from ..exceptions import (
    POSTransportError,
    POSRequestRejectedError,
    POSResponseError,
    IntegrationConfigurationError,
)
from ..schemas.pos_schemas import CatalogItem, InventoryLevel

logger = logging.getLogger(__name__)


class BasePOSAdapter(ABC):
    """
    One POS gateway family.

    Subclasses describe the wire format (payload shapes, paths, the field
    holding the POS identifier) and the status vocabulary; HTTP handling and
    error classification live here.
    """

    pos_type: POSVendor
    token_key = "access_token"
    health_path = "/"
    status_map: Dict[str, OrderStatus] = {}

    def __init__(
        self,
        configuration: Dict[str, Any],
        http_client: Optional[httpx.Client] = None,
        timeout: Optional[float] = None,
    ):
        self.configuration = configuration or {}
        self.base_url = (self.configuration.get("api_url") or "").rstrip("/")
        if not self.base_url:
            raise IntegrationConfigurationError(self.pos_type.value, "api_url")
        self.currency = self.configuration.get("currency") or settings.POS_DEFAULT_CURRENCY
        self.timeout = timeout or settings.POS_HTTP_TIMEOUT_SECONDS
        self.headers = {
            "Authorization": f"Bearer {self.configuration.get(self.token_key, '')}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        self._client = http_client

    # HTTP

    def _request(
        self,
        method: str,
        path: str,
        json: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        client = self._client or httpx.Client(timeout=self.timeout)
        url = f"{self.base_url}{path}"
        try:
            response = client.request(
                method, url, json=json, params=params,
                headers=self.headers, timeout=self.timeout,
            )
        except httpx.TransportError as e:
            raise POSTransportError(self.pos_type.value, str(e) or e.__class__.__name__) from e
        finally:
            if self._client is None:
                client.close()

        if response.status_code == 429 or response.status_code >= 500:
            raise POSTransportError(
                self.pos_type.value, f"HTTP {response.status_code}", http_status=response.status_code
            )
        if response.status_code >= 400:
            raise POSRequestRejectedError(self.pos_type.value, response.status_code, response.text)

        if not response.content:
            return {}
        try:
            data = response.json()
        except ValueError as e:
            raise POSResponseError(self.pos_type.value, "response body is not JSON") from e
        if not isinstance(data, dict):
            raise POSResponseError(self.pos_type.value, "response body is not a JSON object")
        return data

    # Money helpers

    @staticmethod
    def to_decimal(value: Any) -> Decimal:
        return Decimal(str(value if value is not None else 0))

    @classmethod
    def to_minor_units(cls, value: Any) -> int:
        return int((cls.to_decimal(value) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))

    @classmethod
    def to_amount(cls, value: Any) -> float:
        return float(cls.to_decimal(value).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))

    @contextmanager
    def _parsing(self, what: str) -> Iterator[None]:
        """Malformed gateway data surfaces as a response error, never a bare ValueError"""
        try:
            yield
        except (ArithmeticError, ValueError, TypeError, KeyError, AttributeError, IndexError) as e:
            raise POSResponseError(self.pos_type.value, f"unreadable {what}: {e}") from e

    # Capabilities

    @abstractmethod
    def transform_order_data(self, order) -> Dict[str, Any]:
        """Transform internal order format to POS-specific format"""

    @abstractmethod
    def push_order(self, order) -> str:
        """Create the order in the POS and return its POS identifier"""

    @abstractmethod
    def push_payment(self, payment, pos_order_id: str) -> str:
        """Record a captured payment against the POS order"""

    @abstractmethod
    def fetch_order_status(self, pos_order_id: str) -> Optional[str]:
        """Current POS status of one order, in the POS vocabulary"""

    @abstractmethod
    def push_menu(self, menu_items: List[Any]) -> int:
        """Send the platform menu to the POS; returns how many items were sent"""

    @abstractmethod
    def fetch_catalog(self) -> List[CatalogItem]:
        """Read the POS menu"""

    def fetch_prices(self) -> Dict[str, Decimal]:
        """Current price per POS item id"""
        return {item.pos_item_id: item.price for item in self.fetch_catalog()}

    @abstractmethod
    def fetch_inventory(self) -> List[InventoryLevel]:
        """Read POS stock levels"""

    def check_connection(self) -> None:
        """Authenticated GET against the health endpoint; raises on failure"""
        self._request("GET", self.health_path)

    def normalize_status(self, gateway_status: str) -> str:
        return gateway_status.strip().upper()

    def translate_status(self, gateway_status: Optional[str]) -> OrderStatus:
        """Map a POS status to the platform vocabulary; unknown values become pending"""
        if not isinstance(gateway_status, str) or not gateway_status.strip():
            return OrderStatus.PENDING
        status = self.status_map.get(self.normalize_status(gateway_status))
        if status is None:
            logger.info(f"Unmapped {self.pos_type.value} status '{gateway_status}', using pending")
            return OrderStatus.PENDING
        return status

    def _require_id(self, value: Any, what: str) -> str:
        if value is None or value == "":
            raise POSResponseError(self.pos_type.value, f"missing {what}")
        return str(value)

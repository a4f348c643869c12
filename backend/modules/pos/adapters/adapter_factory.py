from typing import Dict, Any, Optional, Type
import httpx
from .base_adapter import BasePOSAdapter
from .square_adapter import SquareAdapter
from .toast_adapter import ToastAdapter
from .local_adapter import LocalPOSAdapter
from ..enums.pos_enums import POSVendor
from ..exceptions import UnsupportedGatewayException


class AdapterFactory:
    adapters: Dict[POSVendor, Type[BasePOSAdapter]] = {
        POSVendor.SQUARE: SquareAdapter,
        POSVendor.TOAST: ToastAdapter,
        POSVendor.LOCAL: LocalPOSAdapter,
    }

    def __init__(self, http_client: Optional[httpx.Client] = None):
        self.http_client = http_client

    @classmethod
    def resolve_vendor(cls, pos_type: Any) -> POSVendor:
        try:
            vendor = POSVendor(pos_type)
        except ValueError:
            raise UnsupportedGatewayException(str(pos_type)) from None
        if vendor not in cls.adapters:
            raise UnsupportedGatewayException(vendor.value)
        return vendor

    def create_adapter(
        self, pos_type: Any, configuration: Dict[str, Any]
    ) -> BasePOSAdapter:
        adapter_class = self.adapters[self.resolve_vendor(pos_type)]
        return adapter_class(configuration, http_client=self.http_client)

# backend/modules/pos/exceptions.py

"""
Custom exceptions for the POS sync module.

``retryable`` tells the task layer whether another attempt can succeed;
configuration and not-found errors never will.
"""

from typing import Optional, Dict, Any


class POSSyncException(Exception):
    """Base exception for POS sync operations"""

    retryable = False

    def __init__(
        self,
        message: str,
        error_code: str = "POS_SYNC_ERROR",
        details: Optional[Dict[str, Any]] = None,
        status_code: int = 400
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        self.status_code = status_code

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for API responses"""
        return {
            "error": self.error_code,
            "message": self.message,
            "details": self.details,
        }


class UnsupportedGatewayException(POSSyncException):
    """No adapter is registered for the requested POS type"""

    def __init__(self, pos_type: str):
        super().__init__(
            message=f"Unsupported POS type: {pos_type}",
            error_code="UNSUPPORTED_GATEWAY",
            details={"pos_type": pos_type},
            status_code=400
        )
        self.pos_type = pos_type


class BusinessLogicException(POSSyncException):
    """A referenced business entity is missing or in the wrong state"""

    def __init__(self, message: str, error_code: str = "BUSINESS_LOGIC_ERROR",
                 details: Optional[Dict[str, Any]] = None, status_code: int = 422):
        super().__init__(message, error_code, details, status_code)


class IntegrationNotFoundError(BusinessLogicException):
    """No active integration for the restaurant and POS type"""

    def __init__(self, restaurant_id: Optional[int], pos_type: str):
        super().__init__(
            message=f"No active {pos_type} integration for restaurant {restaurant_id}",
            error_code="INTEGRATION_NOT_FOUND",
            details={"restaurant_id": restaurant_id, "pos_type": pos_type},
            status_code=404
        )


class OrderNotFoundError(BusinessLogicException):
    """Order referenced by a sync operation does not exist"""

    def __init__(self, order_id: Any):
        super().__init__(
            message=f"Order {order_id} not found",
            error_code="ORDER_NOT_FOUND",
            details={"order_id": order_id},
            status_code=404
        )


class MappingNotFoundError(BusinessLogicException):
    """No mapping correlates the given order with a POS order"""

    def __init__(self, pos_type: str, pos_order_id: Optional[str] = None,
                 foodhub_order_id: Optional[int] = None):
        ref = pos_order_id if pos_order_id is not None else foodhub_order_id
        super().__init__(
            message=f"No {pos_type} order mapping for {ref}",
            error_code="MAPPING_NOT_FOUND",
            details={
                "pos_type": pos_type,
                "pos_order_id": pos_order_id,
                "foodhub_order_id": foodhub_order_id,
            },
            status_code=404
        )


class POSRequestRejectedError(POSSyncException):
    """The POS rejected the request (4xx other than 429)"""

    def __init__(self, pos_type: str, status: int, body: str = ""):
        super().__init__(
            message=f"{pos_type} rejected the request with HTTP {status}",
            error_code="POS_REQUEST_REJECTED",
            details={"pos_type": pos_type, "http_status": status, "body": body[:500]},
            status_code=502
        )
        self.http_status = status


class POSTransientError(POSSyncException):
    """Failure that another attempt may get past"""

    retryable = True

    def __init__(self, message: str, error_code: str = "POS_TRANSIENT_ERROR",
                 details: Optional[Dict[str, Any]] = None, status_code: int = 503):
        super().__init__(message, error_code, details, status_code)


class POSTransportError(POSTransientError):
    """Network failure, timeout, 5xx or 429 from the POS"""

    def __init__(self, pos_type: str, reason: str, http_status: Optional[int] = None):
        super().__init__(
            message=f"{pos_type} request failed: {reason}",
            error_code="POS_TRANSPORT_ERROR",
            details={"pos_type": pos_type, "reason": reason, "http_status": http_status},
        )
        self.http_status = http_status


class POSResponseError(POSTransientError):
    """2xx response that is missing data or cannot be parsed"""

    def __init__(self, pos_type: str, reason: str):
        super().__init__(
            message=f"{pos_type} returned an unusable response: {reason}",
            error_code="POS_RESPONSE_ERROR",
            details={"pos_type": pos_type, "reason": reason},
            status_code=502
        )


class POSConnectionUnavailableError(POSTransientError):
    """Connection marked unhealthy; the call was not attempted"""

    def __init__(self, pos_type: str, restaurant_id: Any):
        super().__init__(
            message=f"{pos_type} connection for restaurant {restaurant_id} is cooling down",
            error_code="POS_CONNECTION_UNAVAILABLE",
            details={"pos_type": pos_type, "restaurant_id": restaurant_id},
        )


class SyncLockBusyError(POSTransientError):
    """Another worker holds the lock for this entity and gateway"""

    def __init__(self, lock_name: str):
        super().__init__(
            message=f"Sync already in progress ({lock_name})",
            error_code="SYNC_LOCK_BUSY",
            details={"lock": lock_name},
            status_code=409
        )


class MappingPendingError(POSTransientError):
    """The order has not reached the POS yet, so dependent syncs must wait"""

    def __init__(self, pos_type: str, foodhub_order_id: int):
        super().__init__(
            message=f"Order {foodhub_order_id} has no {pos_type} mapping yet",
            error_code="MAPPING_PENDING",
            details={"pos_type": pos_type, "foodhub_order_id": foodhub_order_id},
            status_code=409
        )


class IntegrationConfigurationError(BusinessLogicException):
    """Stored integration configuration cannot be used"""

    def __init__(self, pos_type: str, missing: str):
        super().__init__(
            message=f"{pos_type} integration is missing '{missing}'",
            error_code="INTEGRATION_MISCONFIGURED",
            details={"pos_type": pos_type, "missing": missing},
            status_code=422
        )

from pydantic import BaseModel
from typing import Optional
from ..enums.webhook_enums import WebhookOutcome


class WebhookResult(BaseModel):
    gateway: str
    event_type: str
    outcome: WebhookOutcome
    transaction_id: Optional[str] = None
    payment_id: Optional[int] = None
    payment_status: Optional[str] = None
    response_time_ms: int = 0


class WebhookStatisticsOut(BaseModel):
    service: str
    event_type: str
    total_received: int
    successful_processed: int
    failed_processed: int
    average_response_time_ms: float
    success_rate: float
    failure_rate: float

    class Config:
        from_attributes = True

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import Field

from meal_notifications.config.settings import settings
from meal_notifications.schemas.camel_base_model import CamelCaseBaseModel


class ResponseStatus(str, Enum):
    SUCCESS = "success"
    ERROR = "error"


class ApiResponse(CamelCaseBaseModel):
    """Envelope around every HTTP response, success or error."""

    success: bool
    status: ResponseStatus
    message: str
    data: Optional[Any] = None
    meta: Optional[Dict[str, Any]] = Field(
        default=None, description="error_code, error_type and similar details"
    )
    errors: Optional[List[Dict[str, Any]]] = Field(
        default=None, description="Per-field validation failures"
    )
    timestamp: str = Field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )
    request_id: str
    path: Optional[str] = None
    version: str = Field(default_factory=lambda: settings.VERSION)

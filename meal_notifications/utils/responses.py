from typing import Any, Dict, List, Optional

from fastapi import Request, status
from fastapi.responses import JSONResponse

from meal_notifications.schemas.response_schemas import ApiResponse, ResponseStatus


def _request_id(request: Request) -> str:
    # Handlers can run before the middleware has tagged the request
    return getattr(request.state, "request_id", None) or "app"


class ResponseBuilder:
    """Builds the `ApiResponse` envelope shared by every endpoint."""

    @staticmethod
    def _build(
        request: Request,
        status_code: int,
        **fields: Any,
    ) -> JSONResponse:
        envelope = ApiResponse(
            request_id=_request_id(request),
            path=request.url.path,
            **fields,
        )
        return JSONResponse(
            status_code=status_code,
            content=envelope.model_dump(by_alias=True, exclude_none=True),
        )

    @staticmethod
    def success(
        request: Request,
        data: Any = None,
        message: str = "Request successful",
        meta: Optional[Dict[str, Any]] = None,
        status_code: int = status.HTTP_200_OK,
    ) -> JSONResponse:
        return ResponseBuilder._build(
            request,
            status_code,
            success=True,
            status=ResponseStatus.SUCCESS,
            message=message,
            data=data,
            meta=meta,
        )

    @staticmethod
    def error(
        request: Request,
        message: str = "An error occurred",
        errors: Optional[List[Dict[str, Any]]] = None,
        error_code: Optional[str] = None,
        status_code: int = status.HTTP_400_BAD_REQUEST,
        meta: Optional[Dict[str, Any]] = None,
    ) -> JSONResponse:
        """Error envelope; `error_code` is reported under meta.error_code."""
        error_meta = dict(meta or {})
        if error_code:
            error_meta["error_code"] = error_code

        return ResponseBuilder._build(
            request,
            status_code,
            success=False,
            status=ResponseStatus.ERROR,
            message=message,
            meta=error_meta or None,
            errors=errors,
        )

"""
Global error handling middleware.

Domain errors carry their own status code; everything else is mapped here
so that every failure leaves the API as a JSON body ``{error, detail}``.
"""
import logging
from typing import Any, Callable, Optional

from fastapi import Request, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from app.domain.errors import AgriLensError
from app.infrastructure.external_api_client import ExternalAPIError


logger = logging.getLogger(__name__)


def _context(request: Request, status_code: Optional[int] = None) -> dict[str, Any]:
    context: dict[str, Any] = {"path": request.url.path, "method": request.method}
    if status_code is not None:
        context["status_code"] = status_code
    return context


def _error_response(status_code: int, error: str, detail: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": error, "detail": detail})


class ErrorHandlerMiddleware(BaseHTTPMiddleware):
    """
    Global error handling middleware.

    Mapping:
        AgriLensError    -> its own status (404, 409, 400, 503)
        ExternalAPIError -> upstream 5xx status, otherwise 502
        ValueError       -> 400
        anything else    -> 500
    """

    async def dispatch(self, request: Request, call_next: Callable):
        """
        Process the request and translate raised exceptions.

        Args:
            request: The incoming request
            call_next: The next middleware or route handler

        Returns:
            Response object
        """
        try:
            return await call_next(request)

        except AgriLensError as e:
            level = logging.ERROR if e.status_code >= 500 else logging.INFO
            logger.log(level, f"{type(e).__name__}: {e.message}",
                       extra=_context(request, e.status_code))
            return JSONResponse(status_code=e.status_code, content=e.to_dict())

        except ExternalAPIError as e:
            # Upstream client errors are still our gateway failure
            status_code = e.status_code if e.status_code >= 500 else status.HTTP_502_BAD_GATEWAY
            logger.error(f"External API error: {e.message}", extra=_context(request, status_code))
            return _error_response(status_code, "external_api_error", e.message)

        except ValueError as e:
            logger.warning(f"Invalid request: {e}", extra=_context(request))
            return _error_response(status.HTTP_400_BAD_REQUEST, "invalid_request", str(e))

        except Exception as e:
            logger.exception(f"Unhandled exception: {e}", extra=_context(request))
            return _error_response(
                status.HTTP_500_INTERNAL_SERVER_ERROR,
                "internal_error",
                "An unexpected error occurred",
            )

"""Verification status API client."""

import logging
import types

import httpx

from verification_poller.config import Settings
from verification_poller.models.verification import DocumentVerificationResult
from verification_poller.utils.exceptions import StatusRequestError
from verification_poller.utils.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)


class StatusApiClient:
    """
    Async HTTP client for GET /document/{id}/status.

    A single call never retries; retry and backoff decisions belong to the
    StatusPoller, which needs to see every individual failure.
    """

    def __init__(self, settings: Settings, rate_limiter: RateLimiter) -> None:
        """
        Initialize a httpx.AsyncClient with parameters from Settings,
        and take the rate limiter by reference.
        """
        self.client = httpx.AsyncClient(
            base_url=settings.status_api_base_url,
            timeout=settings.status_api_timeout,
        )
        self.settings = settings
        self._rate_limiter = rate_limiter

    async def __aenter__(self) -> "StatusApiClient":
        return self

    async def __aexit__(
            self,
            exc_type: type[BaseException] | None,
            exc_val: BaseException | None,
            exc_tb: types.TracebackType | None
    ) -> None:
        await self.aclose()

    async def get_status(self, document_id: str) -> DocumentVerificationResult:
        """
        Fetch the verification result of a document.

        Raises:
            StatusRequestError: non-200 response (status_code set), network
                failure or request timeout (status_code None), or a body that
                is not a verification result
        """
        endpoint = f"document/{document_id}/status"
        await self._rate_limiter.acquire()
        try:
            response = await self.client.get(endpoint)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            status_code = e.response.status_code
            logger.info(f"Status request for {document_id} returned {status_code}")
            raise StatusRequestError(
                f"Status request failed with status code {status_code}",
                status_code=status_code,
            ) from e
        except httpx.TimeoutException as e:
            logger.warning(f"Status request for {document_id} timed out")
            raise StatusRequestError("Status request timed out", timed_out=True) from e
        except httpx.RequestError as e:
            logger.warning(f"Status request for {document_id} failed: {e}")
            raise StatusRequestError(f"Network error: {e}") from e

        try:
            return DocumentVerificationResult.model_validate(response.json())
        except ValueError as e:  # includes pydantic.ValidationError
            raise StatusRequestError(
                "Malformed verification result", status_code=response.status_code
            ) from e

    async def aclose(self) -> None:
        await self.client.aclose()

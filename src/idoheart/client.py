"""HTTP client for the IDoHeart referral API.

The API exposes three POST endpoints under a fixed base host:

- ``/api/createReferral``: create a new referral code
- ``/api/useReferral``: redeem a referral code
- ``/api/checkReferral``: look up a referral code and its usage

Every request carries the API key in the ``X-API-Key`` header. Only HTTP 200
counts as success; there are no retries at this layer.
"""

from typing import Any, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from idoheart.exceptions import (
    NO_STATUS_CODE,
    DecodingFailedError,
    IDoHeartError,
    InvalidURLError,
    NoAPIKeyError,
    RequestFailedError,
)
from idoheart.logging_config import get_logger
from idoheart.models import Referral, UseCodeResult
from idoheart.settings import settings

ModelT = TypeVar("ModelT", bound=BaseModel)


class IDoHeartClient:
    """Client for the IDoHeart referral API."""

    CREATE_REFERRAL_PATH = "/api/createReferral"
    USE_REFERRAL_PATH = "/api/useReferral"
    CHECK_REFERRAL_PATH = "/api/checkReferral"

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        is_logging: bool | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        http_client: httpx.AsyncClient | None = None,
    ):
        """Initialize the client.

        Args:
            api_key: IDoHeart API key. If not provided, uses settings.
            base_url: API base host. If not provided, uses settings.
            is_logging: Emit log events. If not provided, uses settings.
            transport: Optional httpx transport (tests, proxies).
            http_client: Optional preconfigured ``httpx.AsyncClient``.
        """
        self.api_key = api_key if api_key is not None else settings.api_key
        self.base_url = base_url or settings.base_url
        self.is_logging = settings.is_logging if is_logging is None else is_logging
        self.logger = get_logger(__name__, silenced=not self.is_logging)
        self._owns_client = http_client is None
        self.client = http_client or httpx.AsyncClient(transport=transport)

    def configure(self, api_key: str, is_logging: bool = True) -> None:
        """Set the API key and toggle logging."""
        self.api_key = api_key
        self.is_logging = is_logging
        self.logger = get_logger(__name__, silenced=not is_logging)

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    async def close(self) -> None:
        """Close the underlying HTTP client if this instance created it."""
        if self._owns_client:
            await self.client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    def _require_api_key(self) -> str:
        if not self.api_key:
            self.logger.error("api_key_not_set")
            raise NoAPIKeyError()
        return self.api_key

    def _build_url(self, path: str) -> httpx.URL:
        raw = f"{self.base_url.rstrip('/')}{path}"
        try:
            url = httpx.URL(raw)
        except (httpx.InvalidURL, TypeError) as e:
            raise InvalidURLError(raw) from e
        if url.scheme not in ("http", "https") or not url.host:
            raise InvalidURLError(raw)
        return url

    async def _post(
        self,
        path: str,
        model: type[ModelT],
        body: dict[str, Any] | None = None,
    ) -> ModelT:
        """POST to an endpoint and decode the JSON response into ``model``.

        Raises:
            InvalidURLError: If the endpoint URL cannot be built
            RequestFailedError: On a non-200 status or a transport failure
            DecodingFailedError: If the body does not match ``model``
        """
        api_key = self._require_api_key()
        url = self._build_url(path)
        headers = {
            "Content-Type": "application/json",
            "X-API-Key": api_key,
        }

        try:
            if body is None:
                response = await self.client.post(url, headers=headers)
            else:
                response = await self.client.post(url, headers=headers, json=body)
        except httpx.InvalidURL as e:
            raise InvalidURLError(str(url)) from e
        except httpx.RequestError as e:
            raise RequestFailedError(
                NO_STATUS_CODE, message=f"Request failed: {e}"
            ) from e

        if response.status_code != 200:
            raise RequestFailedError(response.status_code)

        try:
            return model.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            raise DecodingFailedError() from e

    async def generate_code(self) -> Referral:
        """Create a new referral code.

        Returns:
            The created Referral
        """
        try:
            referral = await self._post(self.CREATE_REFERRAL_PATH, Referral)
        except IDoHeartError as e:
            self._log_failure("generate_code", e)
            raise

        self.logger.debug(
            "referral_generated",
            referral_ref_id=referral.referral_ref_id,
            code=referral.code,
        )
        return referral

    async def use_code(self, code: str) -> UseCodeResult:
        """Redeem a referral code.

        Args:
            code: Referral code to redeem

        Returns:
            UseCodeResult with the new usage count and a success flag
        """
        try:
            result = await self._post(
                self.USE_REFERRAL_PATH, UseCodeResult, body={"code": code}
            )
        except IDoHeartError as e:
            self._log_failure("use_code", e, code=code)
            raise

        self.logger.debug(
            "referral_used",
            code=code,
            success=result.success,
            used_count=result.used_count,
        )
        return result

    async def check_code(self, code: str) -> Referral:
        """Look up a referral code.

        ``used_count == 0`` means the code was not redeemed yet, anything
        above means it was redeemed (possibly several times).

        Args:
            code: Referral code to check

        Returns:
            The server's Referral for this code
        """
        try:
            referral = await self._post(
                self.CHECK_REFERRAL_PATH, Referral, body={"code": code}
            )
        except IDoHeartError as e:
            self._log_failure("check_code", e, code=code)
            raise

        self.logger.debug(
            "referral_checked",
            referral_ref_id=referral.referral_ref_id,
            code=code,
            used_count=referral.used_count,
        )
        return referral

    def _log_failure(self, operation: str, error: IDoHeartError, **context: Any) -> None:
        if isinstance(error, NoAPIKeyError):
            return
        self.logger.error(
            f"{operation}_failed",
            error=type(error).__name__,
            status_code=error.status_code,
            message=error.message,
            **context,
        )

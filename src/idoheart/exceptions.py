"""IDoHeart SDK errors."""

NO_STATUS_CODE = -1


class IDoHeartError(Exception):
    """Base error raised by the SDK."""

    def __init__(self, message: str, status_code: int | None = None):
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class NoAPIKeyError(IDoHeartError):
    """The client was used before an API key was configured."""

    def __init__(self, message: str = "IDoHeart API key not set"):
        super().__init__(message)


class InvalidURLError(IDoHeartError):
    """An endpoint URL could not be built from the configured base host."""

    def __init__(self, url: str):
        self.url = url
        super().__init__(f"Invalid URL: {url}")


class RequestFailedError(IDoHeartError):
    """The API answered with a non-200 status, or with no status at all."""

    def __init__(self, status_code: int = NO_STATUS_CODE, message: str | None = None):
        super().__init__(
            message or f"Request failed with status code {status_code}",
            status_code=status_code,
        )

    @property
    def not_found(self) -> bool:
        return self.status_code == 404


class DecodingFailedError(IDoHeartError):
    """The response body does not match the expected schema."""

    def __init__(self, message: str = "Failed to decode response"):
        super().__init__(message)


class AlreadyRedeemedError(IDoHeartError):
    """This installation already redeemed a referral code."""

    def __init__(self, code: str):
        self.code = code
        super().__init__(f"A referral code was already redeemed: {code}")


class SelfRedemptionError(IDoHeartError):
    """Attempt to redeem a code this installation generated itself."""

    def __init__(self, code: str):
        self.code = code
        super().__init__(f"Cannot redeem own referral code: {code}")


class DebugModeRequiredError(IDoHeartError):
    """A debug-only facility was called on a store built without debug mode."""


class StorageError(IDoHeartError):
    """Local key/value storage could not be read or written."""


class CorruptStorageError(StorageError):
    """Stored content is not a JSON object."""

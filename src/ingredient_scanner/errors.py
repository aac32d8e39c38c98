"""Exceptions raised by the scanner core."""

from ingredient_scanner.domain.usage import UsageRecord


class ScannerError(RuntimeError):
    """Base class for scanner failures."""


class InferenceError(ScannerError):
    """An inference call failed; carries the usage it consumed."""

    def __init__(self, message: str, usage: UsageRecord | None = None) -> None:
        super().__init__(message)
        self.usage = usage or UsageRecord.zero()


class EmptyResponseError(InferenceError):
    """The service returned no answer text at all. Never retried."""


class InferenceUnavailableError(InferenceError):
    """The service could not be reached or rejected the request."""


class ResponseValidationError(InferenceError):
    """The answer text was not a usable JSON object. Retried once."""


class TruncatedResponseError(ResponseValidationError):
    """The answer text does not end like a complete JSON object."""


class MalformedOutputError(ResponseValidationError):
    """The answer text could not be parsed or failed schema validation."""


class ImageFetchError(ScannerError):
    """The photo could not be downloaded."""


class PersistenceError(ScannerError):
    """The product store or ledger could not be written."""

class SafeBiteError(Exception):
    """Base class for errors raised by the scan/enrichment pipeline."""


class TransportError(SafeBiteError):
    """Network failure, timeout or non-2xx answer from an external service."""


class ParseError(TransportError):
    """An external service answered with a body that is not the expected JSON."""


class NotFoundError(SafeBiteError):
    """The lookup succeeded but there is no such product or record."""


class ProtocolViolation(SafeBiteError):
    """The LLM reply does not follow the delimiter, count or range contract."""


class PromptTooLargeError(SafeBiteError):
    """The prompt exceeds the size accepted by the completion capability."""

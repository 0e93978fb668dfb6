"""Domain errors and failure typing."""


class KbobError(Exception):
    """Base class for materials cache failures."""

    error_code = "KBOB_ERROR"


class ConfigError(KbobError):
    """Raised for invalid or missing configuration."""

    error_code = "CONFIG_ERROR"


class ContractError(KbobError):
    """Raised when an internal contract is broken."""

    error_code = "CONTRACT_ERROR"


class SourceError(KbobError):
    """Raised when the external dataset cannot be retrieved or read."""

    error_code = "SOURCE_ERROR"


class SourceUnavailable(SourceError):
    error_code = "SOURCE_UNAVAILABLE"


class SourceTimeout(SourceError):
    error_code = "SOURCE_TIMEOUT"


class SourceFormatError(SourceError):
    error_code = "SOURCE_FORMAT_ERROR"


class EmptyIngestionResult(KbobError):
    error_code = "EMPTY_INGESTION_RESULT"


class IngestionInProgress(KbobError):
    error_code = "INGESTION_IN_PROGRESS"


class InvalidRequest(KbobError):
    """Raised for malformed caller input. Never logged as a system failure."""

    error_code = "INVALID_REQUEST"


class InvalidPageRequest(InvalidRequest):
    error_code = "INVALID_PAGE_REQUEST"


class InvalidLinkFormat(InvalidRequest):
    error_code = "INVALID_LINK_FORMAT"

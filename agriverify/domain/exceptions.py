"""Domain-specific exceptions"""


class DomainException(Exception):
    """Base exception for domain layer"""

    pass


class ValidationError(DomainException):
    """Input to the pipeline is malformed"""

    pass


class ApplicationNotFoundError(ValidationError):
    """No loan application exists with the given id"""

    pass


class EvaluationConflictError(DomainException):
    """An evaluation is already in flight for this application"""

    pass


class ProviderFailure(DomainException):
    """An evidence provider errored, timed out, or returned unusable data"""

    provider = "unknown"


class DocumentExtractionError(ProviderFailure):
    """Document text could not be extracted"""

    provider = "ocr"


class SatelliteFetchError(ProviderFailure):
    """No satellite provider returned imagery"""

    provider = "satellite"


class LandDetectionError(ProviderFailure):
    """Land area could not be detected from the image"""

    provider = "land_detector"


class PersistenceFailure(DomainException):
    """The application record could not be loaded or saved; safe to retry"""

    retryable = True

"""
Pipeline Errors - Exception taxonomy for the publishing pipeline.

Page-level:
    SourceUnavailable      - a listing page could not be fetched; the page is skipped
Item-level (recorded as Failed, the run continues):
    UnclassifiedSubject    - the document subject could not be determined
    RenderFailed           - rendering still failed after local retries
    EmptyConversionPersisted - conversion kept returning empty results
    Rejected               - the registry refused the submission
    TransportError         - the registry or conversion service was unreachable
Run-level:
    FatalPipelineError     - anything unexpected; aborts the run
"""
from typing import Optional


class PipelineError(Exception):
    """Base class for all pipeline errors."""
    pass


class SourceUnavailable(PipelineError):
    """Raised when the listing for a page unit cannot be fetched."""

    def __init__(self, page_number: int, reason: str):
        super().__init__(f"Listing page {page_number} unavailable: {reason}")
        self.page_number = page_number
        self.reason = reason


class ItemError(PipelineError):
    """Base class for errors local to a single item."""
    pass


class TransformError(ItemError):
    """Raised by the transformer when an artifact cannot be produced."""
    pass


class UnclassifiedSubject(TransformError):
    """The subject of a document could not be recognized."""

    def __init__(self, title: str, subject_text: str = ""):
        super().__init__(f"Unable to classify subject for '{title}' (subject text: '{subject_text}')")
        self.title = title
        self.subject_text = subject_text


class RenderFailed(TransformError):
    """Rendering failed after all local attempts."""

    def __init__(self, title: str, attempts: int, cause: Optional[BaseException] = None):
        super().__init__(f"Rendering '{title}' failed after {attempts} attempt(s): {cause}")
        self.title = title
        self.attempts = attempts
        self.cause = cause


class PublishError(ItemError):
    """Raised by the publisher when an artifact cannot be published."""
    pass


class EmptyConversionPersisted(PublishError):
    """The conversion service returned an empty payload on every attempt."""

    def __init__(self, title: str, attempts: int):
        super().__init__(f"Conversion for '{title}' stayed empty after {attempts} attempt(s)")
        self.title = title
        self.attempts = attempts


class Rejected(PublishError):
    """The registry explicitly denied the submission."""

    def __init__(self, reason: str):
        super().__init__(f"Registry rejected submission: {reason}")
        self.reason = reason


class TransportError(PublishError):
    """A remote service could not be reached or returned garbage."""
    pass


class RegistryError(PipelineError):
    """Registry query failed (used by the existence check path)."""
    pass


class FatalPipelineError(PipelineError):
    """Unexpected failure that aborts the whole run."""
    pass

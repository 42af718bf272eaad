"""Error taxonomy shared by the page service, its collaborators and the API layer."""


class PageServiceError(Exception):
    """Base class for every error raised by the page service."""


class PageValidationError(PageServiceError, ValueError):
    """A required argument is missing or malformed. Raised before any I/O."""


class NotFoundError(PageServiceError, LookupError):
    """A page, block, locale entry or content document does not exist."""


class InconsistentStateError(NotFoundError):
    """A page record points at data that is not there.

    Typical causes are a create whose content write failed, or a record whose
    requested and default locale entries are both missing.  Surfaced as a
    not-found condition; the service never re-seeds content on its own.
    """


class StoreError(PageServiceError, RuntimeError):
    """The object store returned a payload that cannot be used."""

"""Custom exception classes for the finance ledger."""


class LedgerError(Exception):
    """Base exception for the finance ledger."""
    pass


class ExtractionFailure(LedgerError):
    """The OCR engine could not produce text from an image."""
    pass


class SourceUnavailable(LedgerError):
    """The record store could not be reached."""
    pass


class RecordNotFoundError(LedgerError):
    """A record does not exist or belongs to another user."""
    pass


class DuplicateCategoryError(LedgerError):
    """A category with the same name and type already exists."""
    pass


class RecordInUseError(LedgerError):
    """A record cannot be deleted while other records reference it."""
    pass


class CategoryInUseError(RecordInUseError):
    """A category still has transactions attached."""
    pass


class ReferenceMismatchError(LedgerError):
    """Linked records disagree, e.g. a card that belongs to another bank."""
    pass

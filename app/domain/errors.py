# app/domain/errors.py
"""
Error taxonomy for the leaflet pipeline.

Soft errors (NoResultsError, InterceptionTimeout, AnsweringFailure) degrade to
empty/negative results with status flags. Hard errors (AutomationError,
DocumentParseError, IdentificationError) propagate after cleanup and are
turned into a localized message at the use-case boundary.
"""


class LeafletError(Exception):
    soft: bool = False


class NoResultsError(LeafletError):
    soft = True


class AutomationError(LeafletError):
    """Navigation/timeout failure that is not a clean 'no results' answer."""


class InterceptionTimeout(LeafletError):
    soft = True


class DocumentParseError(LeafletError):
    """PDF bytes could not be opened or read."""


class AnsweringFailure(LeafletError):
    soft = True


class IdentificationError(LeafletError):
    """Vision model reply could not be turned into a MedicineIdentity."""

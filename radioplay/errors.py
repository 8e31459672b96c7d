"""Exceptions raised by the generation engine."""


class RadioplayError(Exception):
    """Base class for every failure surfaced to the caller."""


class EmptyInputError(RadioplayError):
    """Blank text was submitted for analysis."""


class AnalysisError(RadioplayError):
    """The text analysis service failed or returned an unusable payload."""


class GenerationError(RadioplayError):
    """A speech or effect request failed, aborting the whole mix."""


class TransportError(RadioplayError):
    """A playback control was used in a state that does not allow it."""

"""
Error types raised by the Markov text engine.
Hosts map `code` onto their own error envelopes.
"""


class MarkovError(ValueError):
    """Base class for all engine failures."""

    code = "MARKOV_ERROR"


class InvalidInput(MarkovError):
    """Corpus empty, too short for the order, or a bad argument."""

    code = "INVALID_INPUT"


class InvalidOrder(MarkovError):
    code = "INVALID_ORDER"


class InvalidTemperature(MarkovError):
    code = "INVALID_TEMPERATURE"


class NotTrained(MarkovError):
    """Generation requested before train() or after clear()."""

    code = "NOT_TRAINED"


class DegenerateDistribution(MarkovError):
    """All sampling weights are zero."""

    code = "DEGENERATE_DISTRIBUTION"

"""Error taxonomy shared by the forecasting pipeline and the HTTP layer."""


class PharmastockError(Exception):
    """Base class for all domain errors."""


class InvalidInput(PharmastockError, ValueError):
    """A computation was handed data that breaks its contract (empty series, bad alpha, malformed row)."""


class InsufficientData(PharmastockError):
    """Not enough stored data to produce a meaningful result, e.g. fewer than two snapshots."""


class UpstreamFailure(PharmastockError):
    """The narrative service failed or could not be reached."""


class Cancelled(PharmastockError):
    """The caller went away mid-stream. Normal termination, not a failure."""

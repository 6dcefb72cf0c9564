class EstimatorError(Exception):
    """Base class for domain errors raised by the service layer."""

    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(EstimatorError):
    status_code = 404


class InvalidInputError(EstimatorError):
    status_code = 400


class StateError(EstimatorError):
    """Illegal status transition, or a mutation of a locked/referenced entity."""

    status_code = 409


class ConcurrencyError(EstimatorError):
    """The persisted status changed between read and write."""

    status_code = 409


class GenerationAborted(EstimatorError):
    """Reference data could not be loaded; no partial estimate is written."""

    status_code = 503

# errors.py

class BallotError(Exception):
    """Base class for every rejected engine operation.

    ``message`` is safe to show to the voter or administrator as-is.
    """

    def __init__(self, message):
        super().__init__(message)
        self.message = message

class ValidationError(BallotError):
    pass

class NotFoundError(BallotError):
    pass

class AlreadyVotedError(BallotError):
    pass

class StoreError(BallotError):
    """The backing store failed; the operation was rolled back as a whole."""

class TallyIncompleteError(StoreError):
    pass

class PartialBallotError(StoreError):
    pass

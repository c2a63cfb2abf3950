class ZombeersError(Exception):
    """Base class for errors reported back to the caller that caused them."""

    def __init__(self, message):
        super().__init__(message)
        self.message = message

    def to_dict(self):
        return {'message': self.message}


class ValidationError(ZombeersError):
    """Bad player name, duplicate name, bad settings value or unknown action."""


class RuleViolation(ZombeersError):
    """A game rule refused the action (shot limit, redemption cost, wrong phase)."""


class NotFound(ZombeersError):
    """Unknown room, unknown player, or the caller is not a member of the room."""


class PersistenceError(ZombeersError):
    """The local snapshot could not be read or written."""

# errors.py
# Application exceptions. Every AppError is rendered as JSON by the handler
# registered in create_app().


class AppError(Exception):
    status_code = 500
    default_message = 'Something went wrong'

    def __init__(self, message=None, status_code=None, payload=None):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message
        if status_code is not None:
            self.status_code = status_code
        self.payload = payload or {}

    def to_dict(self):
        body = dict(self.payload)
        body['message'] = self.message
        return body


class ValidationError(AppError):
    status_code = 400
    default_message = 'Invalid request'


class AuthenticationError(AppError):
    status_code = 401
    default_message = 'Authentication required'


class PermissionDeniedError(AppError):
    status_code = 403
    default_message = 'Access denied'


class NotFoundError(AppError):
    status_code = 404
    default_message = 'Not found'


class StateError(AppError):
    """The request is well-formed but the current state forbids it."""
    status_code = 400
    default_message = 'Operation not allowed in the current state'


class VotingClosedError(StateError):
    status_code = 403
    default_message = 'Voting is currently closed'


class DuplicateVoteError(StateError):
    default_message = 'You have already voted for this contestant'


class ScoreFinalizedError(StateError):
    default_message = 'Scores for this contestant are already finalized'


class PersistenceError(AppError):
    status_code = 500
    default_message = 'Data store error'

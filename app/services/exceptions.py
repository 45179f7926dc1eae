"""Domain errors raised by the pool services and translated at the HTTP boundary"""


class PoolServiceError(Exception):
    status_code = 400
    default_message = "Request could not be completed"

    def __init__(self, message=None):
        self.message = message or self.default_message
        super().__init__(self.message)


class NotAMemberError(PoolServiceError):
    status_code = 403
    default_message = "Not a member of this pool"


class BallotLockedError(PoolServiceError):
    status_code = 409
    default_message = (
        "Cannot change prediction: winner has already been announced for this category"
    )


class NotFoundError(PoolServiceError):
    status_code = 404
    default_message = "Not found"


class PermissionDeniedError(PoolServiceError):
    status_code = 403
    default_message = "Not authorized"


class SettingsLockedError(PoolServiceError):
    status_code = 403
    default_message = "Cannot update pool settings after winners have been announced"


class InvalidRequestError(PoolServiceError):
    status_code = 400
    default_message = "Invalid request"

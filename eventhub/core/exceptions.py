"""
Error taxonomy for the EventHub backend.

DomainError subclasses are typed, recoverable outcomes that callers are
expected to handle (and that the gateway maps to 4xx responses).
InternalError subclasses are unexpected failures such as snapshot I/O
errors; they propagate and surface as 500s.
"""


class EventHubError(Exception):
    """Base exception for all EventHub errors."""

    code = "EVENTHUB_ERROR"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


# --- RECOVERABLE DOMAIN ERRORS ---

class DomainError(EventHubError):
    """A typed outcome returned to the caller; never a partial mutation."""

    code = "DOMAIN_ERROR"


class ValidationError(DomainError):
    """Raised when entity construction or a patch carries an unusable value."""

    code = "VALIDATION_FAILED"


class DuplicateKeyError(DomainError):
    """Raised when a unique key (the user email) is already taken."""

    code = "DUPLICATE_KEY"

    def __init__(self, field: str, value: str):
        self.field = field
        self.value = value
        super().__init__(f"{field.capitalize()} already exists")


class NotFoundError(DomainError):
    """Raised when an id lookup misses."""

    code = "NOT_FOUND"
    kind = "Record"

    def __init__(self, record_id: str):
        self.record_id = record_id
        super().__init__(f"{self.kind} not found")


class UserNotFoundError(NotFoundError):
    kind = "User"


class EventNotFoundError(NotFoundError):
    kind = "Event"


class UnauthorizedError(DomainError):
    """Raised when someone other than the owner tries to mutate a record."""

    code = "UNAUTHORIZED"


class InvalidCredentialsError(DomainError):
    """Raised when an email/password pair does not authenticate."""

    code = "INVALID_CREDENTIALS"

    def __init__(self, message: str = "Invalid email or password"):
        super().__init__(message)


class AccountDeactivatedError(InvalidCredentialsError):
    def __init__(self):
        super().__init__("Account is deactivated")


class CapacityConflictError(DomainError):
    """Raised when an update would leave more participants than allowed."""

    code = "CAPACITY_CONFLICT"


class RegistrationError(DomainError):
    """Base class for admission-control rejections."""

    code = "REGISTRATION_REJECTED"


class EventFullError(RegistrationError):
    code = "EVENT_FULL"

    def __init__(self, event_id: str):
        self.event_id = event_id
        super().__init__("Event is full")


class AlreadyRegisteredError(RegistrationError):
    code = "ALREADY_REGISTERED"

    def __init__(self, event_id: str, user_id: str):
        self.event_id = event_id
        self.user_id = user_id
        super().__init__("User is already registered for this event")


class NotRegisteredError(RegistrationError):
    code = "NOT_REGISTERED"

    def __init__(self, event_id: str, user_id: str):
        self.event_id = event_id
        self.user_id = user_id
        super().__init__("User is not registered for this event")


class TokenError(DomainError):
    """Base class for auth token verification failures."""

    code = "INVALID_TOKEN"

    def __init__(self, message: str = "Invalid token"):
        super().__init__(message)


class TokenExpiredError(TokenError):
    code = "TOKEN_EXPIRED"

    def __init__(self):
        super().__init__("Token expired")


class TokenMalformedError(TokenError):
    code = "TOKEN_MALFORMED"


class TokenSignatureError(TokenError):
    code = "TOKEN_SIGNATURE"


# --- INTERNAL ERRORS ---

class InternalError(EventHubError):
    """Unexpected failure; not a business outcome."""

    code = "INTERNAL_ERROR"


class StorageError(InternalError):
    """Raised when a snapshot cannot be written."""

    code = "STORAGE_ERROR"


class SnapshotCorruptError(InternalError):
    """Raised when a snapshot cannot be loaded and the policy is 'fail'."""

    code = "SNAPSHOT_CORRUPT"


class ConfigurationError(InternalError):
    """Raised when required configuration is missing or invalid."""

    code = "CONFIGURATION_ERROR"

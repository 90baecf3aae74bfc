"""Configuration store errors."""


class ConfigStoreError(Exception):
    """Base error. `kind` is stable and used by the transport for status mapping."""

    kind = "internal"

    def __init__(self, message: str, key: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.key = key


class ValidationError(ConfigStoreError):
    """Malformed key, unknown type, malformed JSON value or missing field."""

    kind = "validation"


class AlreadyExistsError(ConfigStoreError):
    """Create on a live key."""

    kind = "already_exists"

    def __init__(self, key: str) -> None:
        super().__init__(f"Config key already exists: {key}", key)


class NotFoundError(ConfigStoreError):
    """Update or delete on a missing key."""

    kind = "not_found"

    def __init__(self, key: str) -> None:
        super().__init__(f"Config not found: {key}", key)


class BackendUnavailableError(ConfigStoreError):
    """Network or server fault surfaced by the key-value backend."""

    kind = "backend_unavailable"

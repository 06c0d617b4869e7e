"""Error taxonomy shared by the shortening engine, its adapters and the API.

Every failure the engine reports is a ``ShortLinkError`` subclass carrying a
stable machine-readable ``code`` and a human-readable ``message``. The HTTP
layer maps each family to a status code (see ``http_status``).
"""
from dataclasses import dataclass


@dataclass(eq=False)
class ShortLinkError(Exception):
    code: str
    message: str

    http_status = 500

    def __post_init__(self):
        super().__init__(self.message)


# 400: rejected before any mutation, user-correctable
class InvalidInput(ShortLinkError):
    http_status = 400


class InvalidURL(InvalidInput):
    def __init__(self, message: str = "Invalid URL format"):
        super().__init__("invalid_url", message)


class InvalidAlias(InvalidInput):
    def __init__(self, message: str = "Invalid custom alias: must be 3-20 characters of [A-Za-z0-9_-]"):
        super().__init__("invalid_alias", message)


class InvalidTTL(InvalidInput):
    def __init__(self, message: str = "ttl_days puts the expiry out of range"):
        super().__init__("invalid_ttl", message)


# 409: the code already exists
class Conflict(ShortLinkError):
    http_status = 409


class AliasTaken(Conflict):
    def __init__(self, alias: str):
        super().__init__("alias_taken", f"Custom alias already exists: {alias}")
        self.alias = alias


class CodeConflict(Conflict):
    """Raised by a store when the unique constraint on the code column fires."""

    def __init__(self, short_code: str):
        super().__init__("code_conflict", f"Short code already exists: {short_code}")
        self.short_code = short_code


# 404: unknown and expired codes look the same to the caller
class NotFound(ShortLinkError):
    http_status = 404

    def __init__(self, short_code: str = ""):
        super().__init__("not_found", "URL not found")
        self.short_code = short_code


# 503: a collaborator is unavailable or the request ran out of time
class Transient(ShortLinkError):
    http_status = 503


class StoreUnavailable(Transient):
    def __init__(self, message: str = "Durable store unavailable"):
        super().__init__("store_unavailable", message)


class DeadlineExceeded(Transient):
    def __init__(self, operation: str):
        super().__init__("deadline_exceeded", f"Deadline exceeded before {operation}")
        self.operation = operation

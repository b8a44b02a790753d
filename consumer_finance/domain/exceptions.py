"""Domain-specific exceptions

Each failure kind is its own type so callers map them deterministically.
A duplicate during idempotent linking is not an error and has no exception:
it comes back as ``LinkResult(created=False)``.
"""


class DomainException(Exception):
    """Base exception for domain layer"""

    pass


class NotFound(DomainException):
    """Referenced entity does not exist"""

    def __init__(self, entity: str, key: object):
        self.entity = entity
        self.key = key
        super().__init__(f"{entity} '{key}' not found")


class Conflict(DomainException):
    """Uniqueness or lifecycle rule violated"""

    pass


class CryptoFailure(DomainException):
    """Bad key material, failed tag verification or malformed ciphertext"""

    pass


class IntegrityError(DomainException):
    """Store rejected a write as a duplicate but the winning record cannot be read back"""

    pass

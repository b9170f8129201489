class KpiError(Exception):
    """Base class for errors surfaced to the user as a notification."""

    default_message = "The operation could not be completed."

    def __init__(self, message: str | None = None):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message

    def __str__(self) -> str:
        return self.message


class ValidationError(KpiError):
    default_message = "The submitted data is not valid."


class NotInitializedError(KpiError):
    default_message = "The data store is not available."


class ReferentialIntegrityError(KpiError):
    default_message = "The record is still referenced by other records."


class DuplicateNameError(KpiError):
    default_message = "A record with this name already exists."


class PersistenceError(KpiError):
    default_message = "The change could not be saved."

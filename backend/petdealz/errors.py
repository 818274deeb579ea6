class ListingError(Exception):
    """Base class for failures surfaced to API callers with a status code."""

    status_code = 500

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class AuthFailure(ListingError):
    status_code = 401


class PolicyViolation(ListingError):
    status_code = 400

    def __init__(self, rule: str, message: str):
        self.rule = rule
        super().__init__(message)


class InvalidListing(ListingError):
    status_code = 400


class MediaCountViolation(ListingError):
    status_code = 400

    def __init__(self, count: int, message: str):
        self.count = count
        super().__init__(message)


class NoMedia(MediaCountViolation):
    def __init__(self):
        super().__init__(0, "Please upload at least one image.")


class TooManyMedia(MediaCountViolation):
    def __init__(self, count: int, limit: int):
        self.limit = limit
        super().__init__(count, f"A listing accepts at most {limit} media files, got {count}.")


class StorageFailure(ListingError):
    status_code = 500


class PersistenceFailure(ListingError):
    status_code = 500


class MediaNotFound(ListingError):
    status_code = 404

    def __init__(self, storage_key):
        self.storage_key = storage_key
        super().__init__(f"Media not found: {storage_key}")

class BadRequestError(ValueError):
    """Request parameters are missing or malformed."""

    status_code = 400


class UploadValidationError(BadRequestError):
    """Bad upload input, reported before any write is attempted."""


class UnsupportedFileError(UploadValidationError):
    pass


class NoRecordsError(UploadValidationError):
    """No sheet in any uploaded file produced a usable record."""


class WorkbookReadError(ValueError):
    """The workbook bytes could not be decoded or parsed."""

    status_code = 400


class NotFoundError(LookupError):
    status_code = 404


class StorageError(RuntimeError):
    """A storage batch failed to commit. Earlier batches stay committed."""

    status_code = 500


def error_status(exc: Exception, default: int = 500) -> int:
    return int(getattr(exc, "status_code", default) or default)

"""Error taxonomy for the spreadsheet import pipeline.

Row-level errors (``ValidationError``, ``DuplicateError``) never leave the row,
``TransientStoreError`` never leaves the batch, everything else reaches the caller.
"""


class UploadImportError(Exception):
    pass


class SchemaMismatchError(UploadImportError):
    """Column mapping is invalid or misses required fields; aborts the job."""


class UnsupportedFileError(UploadImportError, ValueError):
    pass


class ValidationError(UploadImportError):
    def __init__(self, message, *, missing_fields=()):
        super().__init__(message)
        self.missing_fields = tuple(missing_fields)


class DuplicateError(UploadImportError):
    def __init__(self, name):
        super().__init__(f"product '{name}' already exists")
        self.name = name


class StoreError(UploadImportError):
    pass


class TransientStoreError(StoreError):
    pass


class FatalStoreError(StoreError):
    pass


class MediaPipelineError(UploadImportError):
    def __init__(self, message, *, product_id=None):
        super().__init__(message)
        self.product_id = product_id


class ImportAbortedError(UploadImportError):
    def __init__(self, message, *, summary=None, batch_index=None, row_index=None):
        super().__init__(message)
        self.summary = summary
        self.batch_index = batch_index
        self.row_index = row_index


__all__ = [
    "DuplicateError",
    "FatalStoreError",
    "ImportAbortedError",
    "MediaPipelineError",
    "SchemaMismatchError",
    "StoreError",
    "TransientStoreError",
    "UnsupportedFileError",
    "UploadImportError",
    "ValidationError",
]

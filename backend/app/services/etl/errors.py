"""Failure taxonomy of the ingestion pipeline and the preview/edit service.

Every class carries a stable ``code`` (stored nowhere, rendered in API error
bodies) and the HTTP status the API maps it to.
"""


class DataImportError(Exception):
    code = "data_import_error"
    http_status = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class UnsupportedFormat(DataImportError):
    code = "unsupported_format"
    http_status = 415


class EmptyFile(DataImportError):
    code = "empty_file"
    http_status = 422


class MalformedFile(DataImportError):
    code = "malformed_file"
    http_status = 422


class SchemaError(DataImportError):
    code = "schema_error"
    http_status = 422


class StorageFailure(DataImportError):
    code = "storage_failure"
    http_status = 502


class PersistenceFailure(DataImportError):
    code = "persistence_failure"
    http_status = 502


class NotFound(DataImportError):
    code = "not_found"
    http_status = 404


class ImportStateConflict(DataImportError):
    code = "state_conflict"
    http_status = 409


class AnalysisTimeout(DataImportError):
    code = "analysis_timeout"
    http_status = 504

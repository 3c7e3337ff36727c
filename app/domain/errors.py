"""
Domain error taxonomy.

Each error carries the HTTP status the API layer maps it to.
"""


class AuditServiceError(Exception):
    """Base class for errors surfaced to API callers"""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(AuditServiceError):
    """Bad or missing caller input"""

    status_code = 400


class NotFound(AuditServiceError):
    """Requested record or hash does not exist"""

    status_code = 404


class ConflictError(AuditServiceError):
    """Write rejected because the key already exists"""

    status_code = 409


class UpstreamError(AuditServiceError):
    """External data feed unreachable or returned a malformed payload"""

    status_code = 500

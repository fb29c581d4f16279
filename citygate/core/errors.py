# citygate/core/errors.py
from typing import Any, Dict, Optional
from fastapi import HTTPException
from enum import Enum

class ErrorCode(str, Enum):
    UNAUTHORIZED = "unauthorized"        # 401
    FORBIDDEN = "forbidden"              # 403
    NOT_FOUND = "not_found"              # 404
    CONFLICT = "conflict"                # 409
    VALIDATION_ERROR = "validation_error"# 422
    INTERNAL_ERROR = "internal_error"    # 500
    UNAVAILABLE = "unavailable"          # 503
    BAD_REQUEST = "bad_request"          # 400

def http_error(
    *,
    status_code: int,
    code: ErrorCode,
    message: str,
    meta: Optional[Dict[str, Any]] = None,
) -> HTTPException:
    """
    Standardized HTTPException factory.
    Frontend should key on `detail.code` for i18n and behavior.
    """
    detail = {
        "code": code.value,
        "message": message,
    }
    if meta:
        detail["meta"] = meta
    return HTTPException(status_code=status_code, detail=detail)


class CityGateError(Exception):
    """Base for every typed error the authorization engine raises."""
    status_code = 500
    code = ErrorCode.INTERNAL_ERROR
    default_message = "Internal error"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message

    def to_http(self) -> HTTPException:
        return http_error(status_code=self.status_code, code=self.code, message=self.message)


class Unauthenticated(CityGateError):
    status_code = 401
    code = ErrorCode.UNAUTHORIZED
    default_message = "Authentication is required."


class Forbidden(CityGateError):
    # Never carries anything beyond "not permitted".
    status_code = 403
    code = ErrorCode.FORBIDDEN
    default_message = "Not permitted"

    def __init__(self, message: Optional[str] = None):
        super().__init__(self.default_message)


class NotFound(CityGateError):
    status_code = 404
    code = ErrorCode.NOT_FOUND
    default_message = "Not found"


class Conflict(CityGateError):
    status_code = 409
    code = ErrorCode.CONFLICT
    default_message = "Conflict"


class DuplicateIdentity(Conflict):
    default_message = "Identity already bound to another user"


class DuplicateGrant(Conflict):
    default_message = "Grant already exists for this tenant and user"


class DuplicateTenant(Conflict):
    default_message = "Tenant slug already in use"


class DuplicateResource(Conflict):
    default_message = "Resource already exists"


class ConstraintViolation(CityGateError):
    status_code = 422
    code = ErrorCode.VALIDATION_ERROR
    default_message = "Resource violates a data constraint"


class InvalidRole(CityGateError, ValueError):
    status_code = 422
    code = ErrorCode.VALIDATION_ERROR
    default_message = "Invalid role"


class StoreUnavailable(CityGateError):
    status_code = 503
    code = ErrorCode.UNAVAILABLE
    default_message = "Service temporarily unavailable"


class TokenError(CityGateError):
    """Credential problems; only the session authenticator sees these."""
    status_code = 401
    code = ErrorCode.UNAUTHORIZED
    default_message = "Invalid credential"


class TokenExpired(TokenError):
    default_message = "Credential has expired"


class TokenInvalid(TokenError):
    default_message = "Invalid credential"


class RecursivePolicyEvaluation(CityGateError):
    """Raised while wiring policies, never while serving a request."""
    default_message = "Policy would evaluate itself through the table it protects"

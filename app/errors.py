# app/errors.py
"""
Typed failures raised by the services, and the handlers that turn them into
JSON responses. Services never build HTTP responses themselves; the routers
let these propagate and the handlers below render them.
"""
import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)

# ---------- Localized messages ----------
MESSAGES = {
    "ar": {
        "UNAUTHORIZED": "غير مصرح",
        "FORBIDDEN": "غير مصرح بالوصول لهذا المورد",
        "NOT_FOUND": "لم يتم العثور على المورد المطلوب",
        "VALIDATION_ERROR": "البيانات المرسلة غير صالحة",
        "INVALID_SESSION_STATE": "لا يمكن تنفيذ هذا الإجراء في حالة الجلسة الحالية",
        "LIMIT_EXCEEDED": "لديك جلسة متوقفة بالفعل. يرجى استئنافها أو إنهاؤها قبل إيقاف جلسة أخرى",
        "INSUFFICIENT_CREDITS": "رصيدك غير كافٍ",
        "SESSION_EXPIRED": "انتهى وقت هذه الجلسة",
        "INTERNAL_ERROR": "خطأ في الخادم",
    },
    "en": {
        "UNAUTHORIZED": "Unauthorized",
        "FORBIDDEN": "You are not allowed to access this resource",
        "NOT_FOUND": "Resource not found",
        "VALIDATION_ERROR": "Invalid request data",
        "INVALID_SESSION_STATE": "This action is not allowed in the current session state",
        "LIMIT_EXCEEDED": "You already have a paused session of this type. Resume or finish it first",
        "INSUFFICIENT_CREDITS": "Not enough credits",
        "SESSION_EXPIRED": "This session has run out of time",
        "INTERNAL_ERROR": "Server error",
    },
}


def localize(code: str, locale: str = "ar") -> str:
    table = MESSAGES.get(locale) or MESSAGES["ar"]
    return table.get(code, table["INTERNAL_ERROR"])


# ---------- Error taxonomy ----------
class AppError(Exception):
    code = "INTERNAL_ERROR"
    status_code = 500
    # commit the unit of work even though the request fails
    keeps_changes = False

    def __init__(self, detail: str | None = None, **extra):
        super().__init__(detail or self.code)
        self.detail = detail
        self.extra = extra


class Unauthorized(AppError):
    code = "UNAUTHORIZED"
    status_code = 401


class Forbidden(AppError):
    code = "FORBIDDEN"
    status_code = 403


class NotFound(AppError):
    code = "NOT_FOUND"
    status_code = 404


class ValidationError(AppError):
    code = "VALIDATION_ERROR"
    status_code = 400

    def __init__(self, field: str, detail: str | None = None, **extra):
        super().__init__(detail, field=field, **extra)
        self.field = field


class InvalidSessionState(AppError):
    code = "INVALID_SESSION_STATE"
    status_code = 400


class LimitExceeded(AppError):
    code = "LIMIT_EXCEEDED"
    status_code = 409


class InsufficientCredits(AppError):
    code = "INSUFFICIENT_CREDITS"
    status_code = 400


class SessionExpired(AppError):
    """Not a caller mistake: the session ran out of time and is now closed."""
    code = "SESSION_EXPIRED"
    status_code = 410
    keeps_changes = True


class InternalError(AppError):
    pass


# ---------- Handlers ----------
def _body(code: str, locale: str, extra: dict | None = None) -> dict:
    body = {"error": localize(code, locale), "code": code}
    if extra:
        body.update(extra)
    return body


def register_error_handlers(app: FastAPI, locale: str = "ar") -> None:
    @app.exception_handler(AppError)
    async def _app_error(request: Request, exc: AppError):
        if isinstance(exc, InternalError):
            logger.error("[ERROR] %s %s: %s", request.method, request.url.path, exc.detail)
            return JSONResponse(status_code=500, content=_body(InternalError.code, locale))
        if exc.status_code >= 500:
            logger.error("[ERROR] %s %s: %s", request.method, request.url.path, exc.detail)
        else:
            logger.info("[%s] %s %s: %s", exc.code, request.method, request.url.path, exc.detail)
        return JSONResponse(status_code=exc.status_code, content=_body(exc.code, locale, exc.extra))

    @app.exception_handler(RequestValidationError)
    async def _request_validation(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        field = None
        if errors:
            loc = [str(p) for p in errors[0].get("loc", ()) if p not in ("body", "query", "path")]
            field = ".".join(loc) or None
        return JSONResponse(
            status_code=400,
            content=_body(ValidationError.code, locale, {"field": field}),
        )

    @app.exception_handler(Exception)
    async def _unexpected(request: Request, exc: Exception):
        # vendor / DB internals stay in the log
        logger.exception("[ERROR] unhandled %s %s", request.method, request.url.path)
        return JSONResponse(status_code=500, content=_body(InternalError.code, locale))

"""Map AccessError kinds to HTTP responses.

Learn: One handler, keyed on ErrorKind. Route code never inspects error
messages to pick a status code.
"""

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from teamguard.errors import AccessError, ErrorKind

STATUS_BY_KIND: dict[ErrorKind, int] = {
    ErrorKind.INVALID_CREDENTIAL: 401,
    ErrorKind.UNVERIFIED: 403,
    ErrorKind.FORBIDDEN: 403,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.CONFLICT: 409,
    ErrorKind.INVALID: 422,
}


async def access_error_handler(request: Request, exc: AccessError) -> JSONResponse:
    status_code = STATUS_BY_KIND.get(exc.kind, 403)
    headers = {"WWW-Authenticate": "Bearer"} if status_code == 401 else None
    return JSONResponse(
        status_code=status_code,
        content={"detail": exc.message, "kind": exc.kind.value},
        headers=headers,
    )


def install_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AccessError, access_error_handler)

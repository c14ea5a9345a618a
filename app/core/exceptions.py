from fastapi import HTTPException, status

# Application error numbers, rendered as "code" next to "detail"
ERR_INTERNAL_SERVER = 10001
ERR_INVALID_PARAMS = 10002
ERR_RESOURCE_NOT_FOUND = 10005
ERR_RESOURCE_CONFLICT = 10006
ERR_TOO_MANY_REQUESTS = 10007
ERR_SERVICE_UNAVAILABLE = 10008


class AppError(HTTPException):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    code = ERR_INTERNAL_SERVER
    default_detail = "Internal server error"

    def __init__(self, detail: str | None = None):
        super().__init__(status_code=self.status_code, detail=detail or self.default_detail)


class BadRequestError(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = ERR_INVALID_PARAMS
    default_detail = "Bad request"


class NotFoundError(AppError):
    status_code = status.HTTP_404_NOT_FOUND
    code = ERR_RESOURCE_NOT_FOUND
    default_detail = "Not found"


class ConflictError(AppError):
    status_code = status.HTTP_409_CONFLICT
    code = ERR_RESOURCE_CONFLICT
    default_detail = "Conflict"


class TooManyRequestsError(AppError):
    status_code = status.HTTP_429_TOO_MANY_REQUESTS
    code = ERR_TOO_MANY_REQUESTS
    default_detail = "Too many requests"


class BadGatewayError(AppError):
    status_code = status.HTTP_502_BAD_GATEWAY
    code = ERR_SERVICE_UNAVAILABLE
    default_detail = "Upstream provider failed"


class ServiceUnavailableError(AppError):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    code = ERR_SERVICE_UNAVAILABLE
    default_detail = "Service unavailable"

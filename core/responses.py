from abc import ABCMeta, abstractmethod
from typing import Any, Optional, Union
from urllib.parse import urlencode

from fastapi import HTTPException
from fastapi.responses import JSONResponse, Response

from core.exceptions import (
    AuthRequiredError,
    FormValidationError,
    NetworkError,
    QuantityOutOfRangeError,
    ServerRejectedError,
    SubmissionStateError,
    TicketingError,
)
from settings import FRONTEND_BASE_URL, LOGIN_PATH

NETWORK_ERROR_MESSAGE = {
    "en": "Connection error, please try again",
    "es": "Error de conexión, inténtalo de nuevo",
}


class HttpResponseAbstract(metaclass=ABCMeta):
    @abstractmethod
    def response(self) -> Union[JSONResponse, Response, None]:
        pass


class Ok(HttpResponseAbstract):
    def __init__(self, data: Optional[Any]) -> None:
        if data is not None:
            self.data = data
        else:
            self.data = ""

    def response(self) -> JSONResponse:
        """
        parse class to JSONReponse
        """
        return JSONResponse(content=self.data, status_code=200)


class Created(HttpResponseAbstract):
    def __init__(self, data: Optional[Any]) -> None:
        if data is not None:
            self.data = data
        else:
            self.data = ""

    def response(self) -> JSONResponse:
        """
        parse class to JSONReponse
        """
        return JSONResponse(content=self.data, status_code=201)


class Unauthorized(HttpResponseAbstract):
    def __init__(
        self, message: str = "Unauthorized", custom_response: Optional[Any] = None
    ) -> None:
        """
        custom_response: override default json response
        default json response:
        json:{
            'message': 'Unauthorized'
        }
        status_code: 401
        """
        self.message = message
        self.custom_response = custom_response

    def response(self) -> JSONResponse:
        if self.custom_response is None:
            return JSONResponse(content={"message": f"{self.message}"}, status_code=401)
        return JSONResponse(content=self.custom_response, status_code=401)


class BadRequest(HttpResponseAbstract):
    def __init__(
        self, message: Optional[str] = None, custom_response: Optional[Any] = None
    ) -> None:
        """
        message: bad request message, for default json response
        custom_response: override default json response
        default json response:
        json:{
            'message': f'{message}'
        }
        status_code: 400
        """
        self.custom_response = custom_response
        self.message = message

    def response(self) -> JSONResponse:
        if self.custom_response is None:
            return JSONResponse(content={"message": self.message}, status_code=400)
        return JSONResponse(content=self.custom_response, status_code=400)


class NotFound(HttpResponseAbstract):
    def __init__(
        self, message: str = "Not Found", custom_response: Optional[Any] = None
    ) -> None:
        """
        custom_response: override default json response
        default json response:
        json:{
            'message': 'Not Found'
        }
        status_code: 404
        """
        self.custom_response = custom_response
        self.message = message

    def response(self) -> JSONResponse:
        if self.custom_response is None:
            return JSONResponse(content={"message": self.message}, status_code=404)
        return JSONResponse(content=self.custom_response, status_code=404)


class Conflict(HttpResponseAbstract):
    def __init__(
        self, message: str = "Conflict", custom_response: Optional[Any] = None
    ) -> None:
        self.message = message
        self.custom_response = custom_response

    def response(self) -> JSONResponse:
        if self.custom_response is None:
            return JSONResponse(content={"message": self.message}, status_code=409)
        return JSONResponse(content=self.custom_response, status_code=409)


class UpstreamRejected(HttpResponseAbstract):
    def __init__(self, status_code: int, custom_response: Any) -> None:
        """
        Answer of the DAME API passed on to the frontend.

        4xx statuses are kept as they are, anything else becomes 502.
        """
        self.status_code = status_code if 400 <= status_code < 500 else 502
        self.custom_response = custom_response

    def response(self) -> JSONResponse:
        return JSONResponse(content=self.custom_response, status_code=self.status_code)


class BadGateway(HttpResponseAbstract):
    def __init__(
        self, message: str = "Bad Gateway", custom_response: Optional[Any] = None
    ) -> None:
        self.message = message
        self.custom_response = custom_response

    def response(self) -> JSONResponse:
        if self.custom_response is None:
            return JSONResponse(content={"message": self.message}, status_code=502)
        return JSONResponse(content=self.custom_response, status_code=502)


class InternalServerError(HttpResponseAbstract):
    def __init__(
        self, error: Optional[str] = None, custom_response: Optional[Any] = None
    ) -> None:
        """
        error: error message, only logged by the caller
        custom_response: detail sent to the client instead of the generic one
        status_code: 500
        """
        self.custom_response = custom_response
        self.error = error

    def response(self) -> JSONResponse:
        if self.custom_response is None:
            raise HTTPException(status_code=500, detail="Something wrong with server")
        raise HTTPException(status_code=500, detail=self.custom_response)


def common_response(res: HttpResponseAbstract):
    return res.response()


def build_login_url(return_path: Optional[str] = None) -> str:
    login_url = f"{FRONTEND_BASE_URL.rstrip('/')}{LOGIN_PATH}"
    if return_path:
        login_url = f"{login_url}?{urlencode({'next': return_path})}"
    return login_url


def ticketing_error_response(
    e: TicketingError, locale: str = "es", intent_id: Optional[str] = None
) -> JSONResponse:
    """
    Map an error of the reservation flow to the response the frontend expects.

    Every body carries ``code`` and ``message``; the rest depends on the error:
    401 adds ``login_url`` and ``intent_id``, 400 adds the failing field (and
    the attendee position) or the allowed quantity range, a rejected backend
    call adds the backend's field error map.
    """
    content = {"code": e.code.value, "message": e.message}

    if isinstance(e, AuthRequiredError):
        content["login_url"] = build_login_url(e.return_path)
        content["intent_id"] = intent_id
        return common_response(Unauthorized(custom_response=content))
    if isinstance(e, FormValidationError):
        content["field"] = e.field
        content["attendee_position"] = e.attendee_position
        return common_response(BadRequest(custom_response=content))
    if isinstance(e, QuantityOutOfRangeError):
        content["min"] = e.minimum
        content["max"] = e.maximum
        return common_response(BadRequest(custom_response=content))
    if isinstance(e, ServerRejectedError):
        content["errors"] = e.field_errors
        return common_response(
            UpstreamRejected(status_code=e.status_code, custom_response=content)
        )
    if isinstance(e, NetworkError):
        content["message"] = NETWORK_ERROR_MESSAGE.get(
            locale, NETWORK_ERROR_MESSAGE["es"]
        )
        return common_response(BadGateway(custom_response=content))
    if isinstance(e, SubmissionStateError):
        return common_response(Conflict(custom_response=content))
    return common_response(InternalServerError(error=str(e)))

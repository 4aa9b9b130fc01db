from types import MappingProxyType
from typing import Callable, Mapping

from .http.model import HTTPRequest, HTTPResponse
from .utils.logging import warning

TErrorHandler = Callable[[HTTPRequest], HTTPResponse]
TErrorHandlers = Mapping[int, TErrorHandler]


def notFound(request: HTTPRequest) -> HTTPResponse:
	return request.notFound()


def internalError(request: HTTPRequest) -> HTTPResponse:
	return request.fail()


# The error responses produced when no custom handler is given. Only these
# codes can be customized.
DEFAULT_ERROR_HANDLERS: TErrorHandlers = MappingProxyType(
	{
		404: notFound,
		500: internalError,
	}
)


def errorHandlers(custom: TErrorHandlers | None = None) -> TErrorHandlers:
	"""Returns the error handler table using the `custom` handlers where
	given and the defaults otherwise."""
	if not custom:
		return DEFAULT_ERROR_HANDLERS
	for code in custom:
		if code not in DEFAULT_ERROR_HANDLERS:
			warning(
				"Ignoring error handler for unsupported status",
				Status=code,
				Supported=list(DEFAULT_ERROR_HANDLERS),
			)
	return MappingProxyType(
		{
			code: custom.get(code, default)
			for code, default in DEFAULT_ERROR_HANDLERS.items()
		}
	)


# EOF

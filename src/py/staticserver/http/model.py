from abc import ABC, abstractmethod
from enum import Enum
from functools import lru_cache
from typing import IO, Any, Literal, NamedTuple, TypeAlias, Union

from ..utils.io import DEFAULT_ENCODING
from .api import ResponseFactory
from .content import serveContent
from .status import HTTP_STATUS

# -----------------------------------------------------------------------------
#
# HELPERS
#
# -----------------------------------------------------------------------------

# Distinct header names kept by `headername`
HEADERNAME_CACHE: int = 256


@lru_cache(maxsize=HEADERNAME_CACHE)
def headername(name: str) -> str:
	"""Normalizes the header name as `Kebab-Case`. Names come from clients,
	so only the most recently used ones are cached."""
	return "-".join(_.capitalize() for _ in name.split("-"))


# -----------------------------------------------------------------------------
#
# DATA MODEL
#
# -----------------------------------------------------------------------------


class HTTPRequestLine(NamedTuple):
	"""Represents a request status line"""

	method: str
	path: str
	query: str
	protocol: str


class HTTPHeaders(NamedTuple):
	"""Wraps HTTP headers, keeping key information for response/request processing."""

	headers: dict[str, str]
	contentType: str | None = None
	contentLength: int | None = None


class HTTPProcessingStatus(Enum):
	"""Internal parser/processor state management"""

	Processing = 0
	Body = 1
	Complete = 2
	Timeout = 10
	NoData = 11
	BadFormat = 12


# Type alias for the parser would produce
HTTPAtom: TypeAlias = Union[
	HTTPRequestLine,
	HTTPHeaders,
	HTTPProcessingStatus,
	"HTTPBodyBlob",
	"HTTPRequest",
]

# -----------------------------------------------------------------------------
#
# ERRORS
#
# -----------------------------------------------------------------------------


class HTTPRequestError(Exception):
	"""Raised during request processing, carrying the status of the error
	response to produce."""

	def __init__(
		self,
		message: str,
		status: int | None = None,
		contentType: str | None = None,
	):
		super().__init__(message)
		self.message: str = message
		self.status: int | None = status
		self.contentType: str | None = contentType


# -----------------------------------------------------------------------------
#
# BODY
#
# -----------------------------------------------------------------------------


class HTTPBodyBlob(NamedTuple):
	"""Represents a part (or a whole) body as bytes."""

	payload: bytes = b""
	length: int = 0
	# NOTE: We don't know how many is remaining
	remaining: int | None = None


class HTTPBodyWriter(ABC):
	"""A generic writer for response heads and bodies."""

	__slots__ = ["shouldClose"]

	def __init__(self) -> None:
		self.shouldClose: bool = False

	async def write(self, body: HTTPBodyBlob | bytes | None) -> bool:
		"""Writes the given type of body."""
		if isinstance(body, bytes):
			return await self._writeBytes(body)
		elif isinstance(body, HTTPBodyBlob):
			return await self._writeBytes(body.payload)
		elif body is None:
			return True
		else:
			raise ValueError(f"Unsupported body format: {body}")

	@abstractmethod
	async def _writeBytes(
		self, chunk: bytes | None | Literal[False], more: bool = False
	) -> bool: ...


# -----------------------------------------------------------------------------
#
# REQUESTS
#
# -----------------------------------------------------------------------------


class HTTPRequest(ResponseFactory["HTTPResponse"]):
	"""Represents an HTTP requests, which also acts as a factory for
	responses."""

	__slots__ = [
		"protocol",
		"method",
		"path",
		"query",
		"_headers",
		"_body",
	]

	def __init__(
		self,
		method: str,
		path: str,
		query: dict[str, str] | None,
		headers: HTTPHeaders,
		body: HTTPBodyBlob | None = None,
		protocol: str = "HTTP/1.1",
	):
		super().__init__()
		self.method: str = method
		self.path: str = path
		self.query: dict[str, str] | None = query
		self.protocol: str = protocol
		self._headers: HTTPHeaders = headers
		self._body: HTTPBodyBlob | None = body

	@staticmethod
	def Create(
		method: str = "GET",
		path: str = "/",
		headers: dict[str, str] | None = None,
		*,
		query: dict[str, str] | None = None,
		protocol: str = "HTTP/1.1",
	) -> "HTTPRequest":
		"""Creates a body-less request, normalizing the header names."""
		return HTTPRequest(
			method=method,
			path=path,
			query=query,
			headers=HTTPHeaders(
				{headername(k): v for k, v in headers.items()} if headers else {}
			),
			protocol=protocol,
		)

	@property
	def headers(self) -> dict[str, str]:
		return self._headers.headers

	def header(self, name: str) -> str | None:
		return self._headers.headers.get(headername(name))

	@property
	def contentType(self) -> str | None:
		return self._headers.contentType

	@property
	def contentLength(self) -> int | None:
		return self._headers.contentLength

	@property
	def body(self) -> HTTPBodyBlob | None:
		return self._body

	def respond(
		self,
		content: Any = None,
		contentType: str | None = None,
		contentLength: int | None = None,
		status: int = 200,
		headers: dict[str, str] | None = None,
		message: str | None = None,
	) -> "HTTPResponse":
		return HTTPResponse.Create(
			status=status,
			message=message,
			content=content,
			contentType=contentType,
			contentLength=contentLength,
			protocol=self.protocol,
			headers=headers,
		)

	def respondContent(
		self, name: str, modTime: float | None, reader: IO[bytes]
	) -> "HTTPResponse":
		"""Responds with the content of the given seekable reader, honoring
		range and conditional requests. The reader is left open."""
		return serveContent(self, name, modTime, reader)

	def __str__(self) -> str:
		return f"Request({self.method} {self.path}{f'?{self.query}' if self.query else ''} {self.headers})"


# -----------------------------------------------------------------------------
#
# RESPONSE
#
# -----------------------------------------------------------------------------


class HTTPResponse:
	"""An HTTP response."""

	__slots__ = [
		"protocol",
		"status",
		"message",
		"headers",
		"body",
		"shouldClose",
	]

	@staticmethod
	def Create(
		content: str | bytes | None = None,
		contentType: str | None = None,
		contentLength: int | None = None,
		headers: dict[str, str] | None = None,
		status: int = 200,
		message: str | None = None,
		protocol: str = "HTTP/1.1",
	) -> "HTTPResponse":
		"""Factory method to create HTTP response objects."""
		payload: bytes | None = None
		updated_headers: dict[str, str] = {}
		if content is None:
			pass
		elif isinstance(content, str):
			payload = content.encode(DEFAULT_ENCODING)
		elif isinstance(content, bytes):
			payload = content
		else:
			raise ValueError(f"Unsupported content {type(content)}:{content}")
		body: HTTPBodyBlob | None = None
		if payload is not None:
			contentLength = len(payload)
			body = HTTPBodyBlob(payload, contentLength)
		# Content Type
		content_type: str | None = headers.get("Content-Type") if headers else None
		if contentType is not None and contentType != content_type:
			updated_headers["Content-Type"] = contentType
			content_type = contentType
		# Content Length
		content_length_str: str | None = (
			headers.get("Content-Length") if headers else None
		)
		if (
			contentLength is not None
			and (t := str(contentLength)) != content_length_str
		):
			updated_headers["Content-Length"] = t
		elif contentLength is None and content_length_str is not None:
			contentLength = int(content_length_str)
		return HTTPResponse(
			status=status,
			message=message or HTTP_STATUS.get(status, "Unknown status"),
			headers=HTTPHeaders(
				(headers | updated_headers) if headers else updated_headers,
				contentType=content_type,
				contentLength=contentLength,
			),
			body=body,
			protocol=protocol,
		)

	def __init__(
		self,
		protocol: str,
		status: int,
		message: str | None,
		headers: HTTPHeaders,
		body: HTTPBodyBlob | None = None,
		shouldClose: bool = False,
	):
		self.protocol: str = protocol
		self.status: int = status
		self.message: str | None = message
		self.headers: HTTPHeaders = headers
		self.body: HTTPBodyBlob | None = body
		self.shouldClose: bool = shouldClose

	@property
	def payload(self) -> bytes:
		return self.body.payload if self.body else b""

	def getHeader(self, name: str) -> str | None:
		return self.headers.headers.get(headername(name))

	def head(self) -> bytes:
		"""Serializes the head as a payload."""
		message: str = self.message or HTTP_STATUS.get(self.status, "Unknown status")
		lines: list[str] = [
			f"{headername(k)}: {v}" for k, v in self.headers.headers.items()
		]
		lines.insert(0, f"{self.protocol} {self.status} {message}")
		lines.append("")
		lines.append("")
		return "\r\n".join(lines).encode("latin-1")

	def asBytes(self) -> bytes:
		"""Serializes the whole response, head and body."""
		return self.head() + self.payload

	def __str__(self) -> str:
		return f"Response({self.protocol} {self.status} {self.message} {self.headers} {self.body})"


# EOF

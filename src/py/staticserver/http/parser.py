from typing import ClassVar, Iterator, Literal

from ..utils.io import LineParser, LineTooLong
from .model import (
	HTTPAtom,
	HTTPBodyBlob,
	HTTPHeaders,
	HTTPProcessingStatus,
	HTTPRequest,
	HTTPRequestLine,
	headername,
)


class RequestLineParser:
	"""Parses an HTTP request line."""

	__slots__ = ["line", "value", "skipping"]

	def __init__(self) -> None:
		self.line: LineParser = LineParser()
		self.value: HTTPRequestLine | None = None
		self.skipping: int = 0

	def flush(self) -> HTTPRequestLine | None:
		res = self.value
		self.reset()
		return res

	def reset(self) -> "RequestLineParser":
		self.line.reset()
		self.value = None
		self.skipping = 0
		return self

	def feed(self, chunk: bytes, start: int = 0) -> tuple[bool | None, int]:
		n = len(chunk)
		available = n - start
		if self.skipping:
			read = min(available, self.skipping)
			self.skipping -= read
			return None, read
		elif available >= 5 and chunk[start] == 0x16:
			# This is a TLS handshake (typically a browser trying HTTPS), we
			# skip the whole record.
			size = 5 + (chunk[start + 3] << 8) + chunk[start + 4]
			if available >= size:
				return None, size
			else:
				self.skipping = size - available
				return None, available
		else:
			line, read = self.line.feed(chunk, start)
			if line:
				ln = line.decode("latin-1")
				i = ln.find(" ")
				j = ln.rfind(" ")
				if i == -1 or i == j:
					# Not a request line, we skip it
					return None, read
				p: list[str] = ln[i + 1 : j].split("?", 1)
				self.value = HTTPRequestLine(
					ln[0:i], p[0], p[1] if len(p) > 1 else "", ln[j + 1 :]
				)
				return True, read
			else:
				return None, read

	def __str__(self) -> str:
		return f"RequestLineParser({self.value})"


# Headers accepted per request
MAX_HEADERS: int = 100


class TooManyHeaders(ValueError):
	pass


class HeadersParser:
	__slots__ = ["headers", "contentType", "contentLength", "line"]

	def __init__(self) -> None:
		self.line: LineParser = LineParser()
		self.headers: dict[str, str] = {}
		self.contentType: str | None = None
		self.contentLength: int | None = None

	def flush(self) -> HTTPHeaders:
		res = HTTPHeaders(self.headers, self.contentType, self.contentLength)
		self.reset()
		return res

	def reset(self) -> "HeadersParser":
		self.line.reset()
		self.headers = {}
		self.contentType = None
		self.contentLength = None
		return self

	def feed(
		self, chunk: bytes, start: int = 0
	) -> tuple[str | Literal[False] | None, int]:
		"""Feeds data from chunk, starting at `start` offset. Returns
		a value and the number of bytes read. When the value is `None`, no
		header has been extracted, when the value is `False` it's the empty
		line ending the headers, otherwise it's the name of the parsed
		header."""
		line, read = self.line.feed(chunk, start)
		if line is None:
			return None, read
		elif line:
			ln: str = line.decode("latin-1")
			i = ln.find(":")
			if i != -1:
				h = ln[:i].lower().strip()
				v = ln[i + 1 :].strip()
				if h == "content-length":
					try:
						self.contentLength = int(v)
					except ValueError:
						self.contentLength = None
				elif h == "content-type":
					self.contentType = v
				if len(self.headers) >= MAX_HEADERS:
					self.reset()
					raise TooManyHeaders(
						f"Request has more than {MAX_HEADERS} headers"
					)
				n: str = headername(h)
				self.headers[n] = v
				return n, read
			else:
				return None, read
		else:
			return False, read

	def __str__(self) -> str:
		return f"HeadersParser({self.headers})"


class BodyLengthParser:
	"""Parses the body of a request with ContentLength set"""

	__slots__ = ["expected", "read", "data"]

	def __init__(self) -> None:
		self.expected: int | None = None
		self.read: int = 0
		self.data: list[bytes] = []

	def flush(self) -> HTTPBodyBlob:
		res = HTTPBodyBlob(
			b"".join(self.data),
			self.read,
			0 if self.expected is None else self.expected - self.read,
		)
		self.reset()
		return res

	def reset(self, length: int | None = None) -> "BodyLengthParser":
		self.expected = length
		self.read = 0
		self.data.clear()
		return self

	def feed(self, chunk: bytes, start: int = 0) -> tuple[bool | None, int]:
		"""Returns `True` once the expected length has been read."""
		left: int = len(chunk) - start
		to_read: int = min(
			left, left if self.expected is None else self.expected - self.read
		)
		self.data.append(chunk[start : start + to_read])
		self.read += to_read
		if self.expected is None or self.read >= self.expected:
			return True, to_read
		else:
			return None, to_read


class HTTPParser:
	"""A stateful HTTP request parser, to be fed with chunks as they come
	from the socket. Parsed atoms are yielded as they are available, with
	complete requests yielded as `HTTPRequest`."""

	METHOD_HAS_BODY: ClassVar[set[str]] = {"POST", "PUT", "PATCH"}

	def __init__(self) -> None:
		self.message: RequestLineParser = RequestLineParser()
		self.headers: HeadersParser = HeadersParser()
		self.bodyLength: BodyLengthParser = BodyLengthParser()
		self.parser: RequestLineParser | HeadersParser | BodyLengthParser = (
			self.message
		)
		self.requestLine: HTTPRequestLine | None = None
		self.requestHeaders: HTTPHeaders | None = None

	def request(self, body: HTTPBodyBlob) -> HTTPRequest | None:
		line = self.requestLine
		if line is None:
			return None
		return HTTPRequest(
			method=line.method,
			path=line.path,
			query=parseQuery(line.query),
			headers=self.requestHeaders or HTTPHeaders({}),
			protocol=line.protocol,
			body=body,
		)

	def feed(self, chunk: bytes) -> Iterator[HTTPAtom]:
		size: int = len(chunk)
		offset: int = 0
		while offset < size:
			# A partially read chunk does not need to be fed again, the
			# underlying parser keeps a buffer until it is flushed.
			try:
				ln, read = self.parser.feed(chunk, offset)
			except (LineTooLong, TooManyHeaders):
				# The rest of the chunk is dropped, the connection is expected
				# to be closed.
				self.requestLine = None
				self.headers.reset()
				self.parser = self.message.reset()
				yield HTTPProcessingStatus.BadFormat
				return
			offset += read
			if ln is None:
				continue
			elif self.parser is self.message:
				line = self.message.flush()
				self.requestLine = line
				self.requestHeaders = None
				if line is not None:
					yield line
					self.parser = self.headers.reset()
			elif self.parser is self.headers:
				if ln is not False:
					# `ln` is the name of the parsed header
					continue
				headers = self.headers.flush()
				self.requestHeaders = headers
				yield headers
				line = self.requestLine
				if line is None:
					yield HTTPProcessingStatus.BadFormat
					self.parser = self.message.reset()
				elif line.method not in self.METHOD_HAS_BODY or not headers.contentLength:
					# No body expected, that's an early exit
					if req := self.request(HTTPBodyBlob(b"", 0)):
						yield req
					self.parser = self.message.reset()
				else:
					self.parser = self.bodyLength.reset(headers.contentLength)
					yield HTTPProcessingStatus.Body
			elif self.parser is self.bodyLength:
				if req := self.request(self.bodyLength.flush()):
					yield req
				self.parser = self.message.reset()
			else:
				raise RuntimeError(f"Unsupported parser: {self.parser}")


def parseQuery(text: str) -> dict[str, str]:
	res: dict[str, str] = {}
	for item in text.split("&"):
		if not item:
			continue
		kv = item.split("=", 1)
		if len(kv) == 1:
			res[item] = ""
		else:
			res[kv[0]] = kv[1]
	return res


# EOF

from .http.model import HTTPProcessingStatus, HTTPRequest, HTTPResponse
from .http.parser import HTTPParser, parseQuery
from .server import THandler


class PythonBridge:
	"""Sends requests to a handler without going through a socket, which
	is how handlers are exercised in tests and embedded in other
	servers."""

	def __init__(self, handler: THandler):
		if not handler:
			raise ValueError("Bridge has not been given a handler")
		self.handler: THandler = handler

	def process(self, request: HTTPRequest) -> HTTPResponse:
		return self.handler(request)

	def request(
		self,
		method: str = "GET",
		path: str = "/",
		headers: dict[str, str] | None = None,
	) -> HTTPResponse:
		path, _, query = path.partition("?")
		return self.process(
			HTTPRequest.Create(
				method,
				path,
				headers,
				query=parseQuery(query),
			)
		)

	def requestBytes(self, request: bytes) -> HTTPResponse:
		"""Parses the raw bytes of a single HTTP request and returns the
		response produced by the handler."""
		for atom in HTTPParser().feed(request):
			if atom is HTTPProcessingStatus.BadFormat:
				break
			elif isinstance(atom, HTTPRequest):
				return self.process(atom)
		raise ValueError(f"Incomplete or malformed request: {request!r}")


# EOF

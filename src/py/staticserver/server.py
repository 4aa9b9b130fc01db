import asyncio
import socket
import threading
from dataclasses import dataclass
from signal import SIGINT, SIGTERM
from typing import Any, Callable, Literal, NamedTuple

from .config import HTTP, LOG_REQUESTS
from .http.model import (
	HTTPBodyWriter,
	HTTPProcessingStatus,
	HTTPRequest,
	HTTPResponse,
)
from .http.parser import HTTPParser
from .utils.logging import debug, error, event, exception, info, logged, warning

THandler = Callable[[HTTPRequest], HTTPResponse]


def parseAddress(address: str) -> tuple[str, int]:
	"""Parses a `host:port` address, the host defaulting to all interfaces
	when empty. Raises `ValueError` when the address is malformed."""
	host, sep, port = address.rpartition(":")
	if not sep or not port.isdigit() or not 0 <= int(port) <= 65535:
		raise ValueError(f"Invalid address, expected HOST:PORT: {address}")
	# IPv6 hosts are given as `[::1]:8080`
	host = host.removeprefix("[").removesuffix("]")
	return host or "0.0.0.0", int(port)  # nosec: B104


try:
	HOST, PORT = parseAddress(HTTP)
except ValueError as e:
	warning("Ignoring STATICSERVER_HTTP", Reason=str(e))
	HOST, PORT = "127.0.0.1", 8080


@dataclass(slots=True)
class ServerState:
	isRunning: bool = True

	def stop(self) -> None:
		info("Server stopping…")
		self.isRunning = False

	def onException(
		self, loop: asyncio.AbstractEventLoop, context: dict[str, Any]
	) -> None:
		e = context.get("exception")
		if e:
			exception(e)


class ServerOptions(NamedTuple):
	host: str = HOST
	port: int = PORT
	backlog: int = 10_000
	# Polling timeout for accepting new connections
	polling: float = 1.0
	readsize: int = 4_096
	keepalive: float = 60.0
	logRequests: bool = LOG_REQUESTS
	condition: Callable[[], bool] | None = None
	stopSignals: bool = True


OPTIONS: ServerOptions = ServerOptions()

SERVER_ERROR: bytes = (
	b"HTTP/1.1 500 Internal Server Error\r\n"
	b"Content-Type: text/plain\r\n"
	b"Content-Length: 21\r\n"
	b"Connection: close\r\n"
	b"\r\n"
	b"Internal Server Error"
)

SERVER_BADREQUEST: bytes = (
	b"HTTP/1.1 400 Bad Request\r\n"
	b"Content-Type: text/plain\r\n"
	b"Content-Length: 11\r\n"
	b"Connection: close\r\n"
	b"\r\n"
	b"Bad Request"
)


class AIOSocketBodyWriter(HTTPBodyWriter):
	"""Specialized body writer to work with AIO sockets."""

	def __init__(
		self,
		client: "socket.socket",
		loop: asyncio.AbstractEventLoop,
	) -> None:
		super().__init__()
		self.client: socket.socket = client
		self.loop: asyncio.AbstractEventLoop = loop

	async def _writeBytes(
		self, chunk: bytes | None | Literal[False], more: bool = False
	) -> bool:
		if chunk is None or chunk is False:
			pass
		else:
			await self.loop.sock_sendall(self.client, chunk)
		return False


class AIOSocketServer:
	"""AsyncIO server using sockets directly, passing each parsed request
	to a synchronous handler."""

	@classmethod
	async def OnRequest(
		cls,
		handler: THandler,
		client: socket.socket,
		*,
		loop: asyncio.AbstractEventLoop,
		options: ServerOptions,
	) -> None:
		"""Processes the requests sent over the `client` connection until it
		is closed or the keep alive timeout expires."""
		size: int = options.readsize
		buffer = bytearray(size)
		keep_alive: bool = True
		status: HTTPProcessingStatus = HTTPProcessingStatus.Processing
		req_count: int = 0
		res_count: int = 0
		try:
			parser: HTTPParser = HTTPParser()
			writer: AIOSocketBodyWriter = AIOSocketBodyWriter(client, loop)
			while keep_alive and not writer.shouldClose:
				try:
					n = await asyncio.wait_for(
						loop.sock_recv_into(client, buffer),
						timeout=options.keepalive,
					)
				except asyncio.TimeoutError:
					status = HTTPProcessingStatus.Timeout
					break
				if not n:
					# A no-data means a close
					status = HTTPProcessingStatus.NoData
					break
				# With HTTP pipelining, a chunk may hold more than one request
				for atom in parser.feed(bytes(buffer[:n])):
					if atom is HTTPProcessingStatus.BadFormat:
						warning("Malformed request", Client=f"{id(client):x}")
						await writer.write(SERVER_BADREQUEST)
						keep_alive = False
						break
					elif isinstance(atom, HTTPRequest):
						req_count += 1
						if options.logRequests:
							event(atom.method, atom.path)
						if (
							atom.protocol == "HTTP/1.0"
							or atom.header("Connection") == "close"
						):
							keep_alive = False
						res = await cls.SendResponse(atom, handler, writer)
						if res:
							res_count += 1
							if res.shouldClose:
								keep_alive = False
					else:
						logged(debug) and debug(
							"Request Atom", Atom=atom.__class__.__name__
						)
			if req_count != res_count:
				warning(
					"Incomplete responses",
					Status=status.name,
					Requests=req_count,
					Responses=res_count,
				)
		except Exception as e:
			exception(e)
		finally:
			client.close()

	@staticmethod
	async def SendResponse(
		request: HTTPRequest,
		handler: THandler,
		writer: HTTPBodyWriter,
	) -> HTTPResponse | None:
		"""Processes the request with the handler and sends the response
		using the given writer. A failing handler yields a generic server
		error response.

		Handlers are synchronous and do blocking I/O (`stat`, `read`), so
		they run in the loop's default executor."""
		res: HTTPResponse | None = None
		try:
			res = await asyncio.get_running_loop().run_in_executor(
				None, handler, request
			)
		except Exception as e:
			exception(e)
		if res is None:
			warning(
				"Handler did not return a response",
				Method=request.method,
				Path=request.path,
			)
			await writer.write(SERVER_ERROR)
			writer.shouldClose = True
			return None
		try:
			await writer.write(res.head())
			await writer.write(res.body)
		except BrokenPipeError:
			# Client did an early close
			pass
		return res

	@classmethod
	async def Serve(
		cls,
		handler: THandler,
		options: ServerOptions = OPTIONS,
	) -> None:
		"""Main server coroutine. Raises `OSError` when the address can't be
		bound."""
		family = socket.AF_INET6 if ":" in options.host else socket.AF_INET
		server = socket.socket(family, socket.SOCK_STREAM)
		server.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
		server.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
		try:
			server.bind((options.host, options.port))
		except OSError as e:
			server.close()
			error(
				f"Unable to bind to {options.host}:{options.port}: {e}",
				"HOSTPORTERR",
			)
			raise
		# The backlog of connections that will be accepted before they are
		# refused.
		server.listen(options.backlog)
		server.setblocking(False)

		tasks: set[asyncio.Task[None]] = set()
		loop = asyncio.get_running_loop()
		state = ServerState()
		# Signal handlers can only be set from the main thread
		if (
			options.stopSignals
			and threading.current_thread() is threading.main_thread()
		):
			loop.add_signal_handler(SIGINT, lambda: state.stop())
			loop.add_signal_handler(SIGTERM, lambda: state.stop())
		loop.set_exception_handler(state.onException)

		info(
			"Static server listening",
			icon="🚀",
			Host=options.host,
			Port=server.getsockname()[1],
		)

		try:
			while state.isRunning:
				if options.condition and not options.condition():
					break
				try:
					client, _ = await asyncio.wait_for(
						loop.sock_accept(server), timeout=options.polling or 1.0
					)
				except asyncio.TimeoutError:
					continue
				except OSError as e:
					# This can be: [OSError] [Errno 24] Too many open files
					if e.errno == 24:
						await asyncio.sleep(0.1)
					else:
						exception(e)
					continue
				task = loop.create_task(
					cls.OnRequest(handler, client, loop=loop, options=options)
				)
				tasks.add(task)
				task.add_done_callback(tasks.discard)
		finally:
			server.close()
			for task in tasks:
				task.cancel()
			await asyncio.gather(*tasks, return_exceptions=True)


def run(
	handler: THandler,
	host: str = HOST,
	port: int = PORT,
	*,
	backlog: int = OPTIONS.backlog,
	condition: Callable[[], bool] | None = None,
	polling: float = OPTIONS.polling,
	logRequests: bool = OPTIONS.logRequests,
	keepalive: float = OPTIONS.keepalive,
) -> None:
	"""High level function to serve the handler until interrupted."""
	options = ServerOptions(
		host=host,
		port=port,
		backlog=backlog,
		condition=condition,
		polling=polling,
		logRequests=logRequests,
		keepalive=keepalive,
	)
	try:
		asyncio.run(AIOSocketServer.Serve(handler, options))
	except KeyboardInterrupt:
		event("ManualShutdown")
	event("EOK")


# EOF

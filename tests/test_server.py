import asyncio
import socket
import threading

import pytest

from staticserver import HTTPRequest, StaticServer
from staticserver.server import (
	SERVER_BADREQUEST,
	SERVER_ERROR,
	AIOSocketServer,
	ServerOptions,
	parseAddress,
)
from staticserver.utils.io import MAX_LINE

SERVER = StaticServer.FromMap({"index.html": "<p>index</p>", "a.txt": "abc"})
OPTIONS = ServerOptions(keepalive=2.0, logRequests=False)


async def exchange(handler, data: bytes) -> bytes:
	"""Sends `data` over a socket served by `handler`, returning everything
	received until the server closes the connection."""
	loop = asyncio.get_running_loop()
	server, client = socket.socketpair()
	server.setblocking(False)
	client.setblocking(False)
	task = loop.create_task(
		AIOSocketServer.OnRequest(handler, server, loop=loop, options=OPTIONS)
	)
	await loop.sock_sendall(client, data)
	chunks: list[bytes] = []
	while chunk := await loop.sock_recv(client, 65_536):
		chunks.append(chunk)
	await task
	client.close()
	return b"".join(chunks)


def test_serve_connection():
	data = asyncio.run(
		exchange(SERVER, b"GET / HTTP/1.1\r\nHost: x\r\nConnection: close\r\n\r\n")
	)
	assert data.startswith(b"HTTP/1.1 200 OK\r\n")
	assert data.endswith(b"\r\n\r\n<p>index</p>")


def test_keep_alive():
	# Pipelined requests share the connection until one asks to close it
	data = asyncio.run(
		exchange(
			SERVER,
			b"GET /a.txt HTTP/1.1\r\n\r\n"
			b"GET /missing HTTP/1.1\r\n\r\n"
			b"HEAD /a.txt HTTP/1.1\r\nConnection: close\r\n\r\n",
		)
	)
	assert data.count(b"HTTP/1.1 ") == 3
	assert b"HTTP/1.1 404 Not Found\r\n" in data
	assert b"\r\n\r\nabcHTTP/1.1 404" in data


def test_failing_handler():
	def handler(request: HTTPRequest):
		raise RuntimeError("Handler failure")

	data = asyncio.run(exchange(handler, b"GET / HTTP/1.1\r\n\r\n"))
	assert data == SERVER_ERROR


def test_handler_runs_off_loop():
	threads: list[int] = []

	def handler(request: HTTPRequest):
		threads.append(threading.get_ident())
		return SERVER(request)

	data = asyncio.run(
		exchange(handler, b"GET /a.txt HTTP/1.1\r\nConnection: close\r\n\r\n")
	)
	assert data.endswith(b"\r\n\r\nabc")
	# The loop runs in the calling thread, blocking I/O must not
	assert threads and threads[0] != threading.get_ident()


def test_oversized_request_line():
	data = asyncio.run(exchange(SERVER, b"GET /" + b"a" * (MAX_LINE + 10)))
	assert data == SERVER_BADREQUEST


def test_parse_address():
	assert parseAddress("127.0.0.1:8080") == ("127.0.0.1", 8080)
	assert parseAddress(":9000") == ("0.0.0.0", 9000)
	assert parseAddress("[::1]:80") == ("::1", 80)
	for address in ("localhost", "localhost:http", "host:70000", ""):
		with pytest.raises(ValueError):
			parseAddress(address)


# EOF

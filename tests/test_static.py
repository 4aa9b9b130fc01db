import io
import zipfile
from pathlib import Path

import pytest

from staticserver import (
	AssetNotFound,
	FileInfo,
	HTTPRequest,
	MapFileSystem,
	PythonBridge,
	StaticServer,
)
from staticserver.utils import logging
from staticserver.utils.logging import LogLevel

FSTEST = Path(__file__).parent / "fstest"


def get(server: StaticServer, path: str, **headers: str):
	return PythonBridge(server).request(
		"GET", path, {k.replace("_", "-"): v for k, v in headers.items()}
	)


# -----------------------------------------------------------------------------
#
# INDEX DOCUMENTS
#
# -----------------------------------------------------------------------------


def test_map_index():
	server = StaticServer.FromMap(
		{
			"index.html": "root index file",
			"sub/index.html": "sub index file",
			"foo.txt": "foo file",
		}
	)
	for path, expected in (
		("/", b"root index file"),
		("/index.html", b"root index file"),
		("/sub", b"sub index file"),
		("/sub/", b"sub index file"),
		("/foo.txt", b"foo file"),
	):
		res = get(server, path)
		assert res.status == 200, path
		assert res.payload == expected, path


def test_os_index():
	server = StaticServer.FromOS(FSTEST)
	res = get(server, "/")
	assert res.status == 200
	assert b"<h1>root index file</h1>" in res.payload
	assert res.getHeader("Content-Type") == "text/html; charset=utf-8"
	res = get(server, "/sub/")
	assert res.status == 200
	assert b"<h1>sub index file</h1>" in res.payload


def test_custom_index():
	files = {"index.htm": "htm", "sub/index.html": "html"}
	server = StaticServer.FromMap(files, index=("index.htm", "index.html"))
	assert get(server, "/").payload == b"htm"
	assert get(server, "/sub").payload == b"html"
	# Every constructor takes the index names
	server = StaticServer.FromOS(FSTEST, index=("hello.txt",))
	assert get(server, "/").payload == b"hello static world\n"
	assert get(server, "/sub").status == 404


# -----------------------------------------------------------------------------
#
# NOT FOUND
#
# -----------------------------------------------------------------------------


def test_not_found():
	for files, path in (
		# The root directory has no index
		({}, "/"),
		# Directories are never listed
		({"sub/test.html": "test"}, "/sub"),
		({"sub/test.html": "test"}, "/sub/"),
		# An index that is a directory is not served
		({"index.html/index.html": "nested"}, "/"),
		({"foo.txt": "foo"}, "/bar.txt"),
		({"foo.txt": "foo"}, "/foo.txt/bar"),
	):
		res = get(StaticServer.FromMap(files), path)
		assert res.status == 404, (files, path)
		assert res.payload == b"Not Found"


def test_resolve():
	server = StaticServer.FromMap({"a/b.txt": "b", "a/index.html": "index"})
	path, info = server.resolve("/a/../a/./b.txt")
	assert path == "/a/b.txt"
	assert info == FileInfo("b.txt", 1)
	assert server.resolve("a")[0] == "/a/index.html"
	with pytest.raises(AssetNotFound):
		server.resolve("/missing")


def test_traversal():
	server = StaticServer.FromOS(FSTEST / "sub")
	assert get(server, "/../hello.txt").status == 404
	assert get(server, "/../../../../etc/passwd").status == 404
	assert get(server, "/%2e%2e/hello.txt").status == 404
	# Parent segments are resolved from the root
	res = get(StaticServer.FromOS(FSTEST), "/sub/../hello.txt")
	assert res.status == 200
	assert res.payload == b"hello static world\n"


def test_percent_decoding():
	server = StaticServer.FromMap({"hello world.txt": "hi"})
	res = get(server, "/hello%20world.txt")
	assert res.status == 200
	assert res.payload == b"hi"


# -----------------------------------------------------------------------------
#
# ERROR HANDLERS
#
# -----------------------------------------------------------------------------


def test_custom_not_found():
	server = StaticServer.FromMap(
		{},
		{404: lambda request: request.notFound("Custom Not Found Handler")},
	)
	res = get(server, "/missing.html")
	assert res.status == 404
	assert res.payload == b"Custom Not Found Handler"


def test_custom_handler_receives_request():
	seen: list[HTTPRequest] = []

	def onNotFound(request: HTTPRequest):
		seen.append(request)
		return request.respondText("Gone", status=410)

	res = get(StaticServer.FromMap({}, {404: onNotFound}), "/some/where")
	assert res.status == 410
	assert [_.path for _ in seen] == ["/some/where"]


def test_open_failure():
	def stat(path: str) -> FileInfo:
		return FileInfo("locked.txt", 10)

	def open(path: str):
		raise PermissionError(13, "Permission denied", path)

	res = get(StaticServer.FromRaw(stat, open), "/locked.txt")
	assert res.status == 500
	res = get(
		StaticServer.FromRaw(
			stat, open, {500: lambda request: request.fail("Custom Error")}
		),
		"/locked.txt",
	)
	assert res.status == 500
	assert res.payload == b"Custom Error"
	# The custom 500 handler leaves the default 404 handler in place
	assert get(StaticServer.FromMap({}, {500: lambda _: _.fail()}), "/").payload == (
		b"Not Found"
	)


# -----------------------------------------------------------------------------
#
# READERS
#
# -----------------------------------------------------------------------------


class Reader:
	"""A reader without `close`"""

	def __init__(self, data: bytes):
		self.data = io.BytesIO(data)

	def read(self, size: int = -1) -> bytes:
		return self.data.read(size)

	def seek(self, offset: int, whence: int = 0) -> int:
		return self.data.seek(offset, whence)


def test_closable_reader_closed():
	readers: list[io.BytesIO] = []

	def open(path: str):
		readers.append(reader := io.BytesIO(b"content"))
		return reader

	server = StaticServer.FromRaw(lambda path: FileInfo("file.txt", 7), open)
	res = get(server, "/file.txt")
	assert res.status == 200
	assert res.payload == b"content"
	assert len(readers) == 1
	assert readers[0].closed


class FailingReader(io.BytesIO):
	def read(self, size: int | None = -1) -> bytes:
		raise OSError(5, "Input/output error")


def test_reader_closed_on_failure():
	readers: list[FailingReader] = []

	def open(path: str):
		readers.append(reader := FailingReader(b"content"))
		return reader

	server = StaticServer.FromRaw(lambda path: FileInfo("file.txt", 7), open)
	with pytest.raises(OSError):
		get(server, "/file.txt")
	assert len(readers) == 1
	assert readers[0].closed


def test_plain_reader():
	server = StaticServer.FromRaw(
		lambda path: FileInfo("file.txt", 7), lambda path: Reader(b"content")
	)
	res = get(server, "/file.txt", Range="bytes=3-")
	assert res.status == 206
	assert res.payload == b"tent"


# -----------------------------------------------------------------------------
#
# BACKENDS
#
# -----------------------------------------------------------------------------


def test_zip():
	buffer = io.BytesIO()
	with zipfile.ZipFile(buffer, "w") as archive:
		archive.writestr("index.html", "<h1>zipped</h1>")
		archive.writestr("docs/guide.txt", "guide")
	with zipfile.ZipFile(buffer) as archive:
		server = StaticServer.FromZip(archive, "site.zip")
		res = get(server, "/")
		assert res.status == 200
		assert res.payload == b"<h1>zipped</h1>"
		assert res.getHeader("Last-Modified")
		assert get(server, "/docs/guide.txt").payload == b"guide"
		assert get(server, "/docs").status == 404
		assert get(server, "/missing").status == 404


def test_assets():
	assets = {"index.html": b"<p>asset</p>", "js/app.js": b"run()"}
	server = StaticServer.FromAssets(assets.__getitem__)
	res = get(server, "/js/app.js")
	assert res.status == 200
	assert res.payload == b"run()"
	assert res.getHeader("Content-Type") == "text/javascript; charset=utf-8"
	# Without metadata there are no directories, and no index
	assert get(server, "/").status == 404
	assert get(server, "/index.html").payload == b"<p>asset</p>"


def test_assets_info():
	assets = {"index.html": b"<p>asset</p>"}

	def info(name: str) -> FileInfo:
		if name == "":
			return FileInfo("/", isDir=True)
		return FileInfo(name, len(assets[name]), 1_700_000_000.0)

	server = StaticServer.FromAssets(assets.__getitem__, info)
	res = get(server, "/")
	assert res.status == 200
	assert res.payload == b"<p>asset</p>"
	assert res.getHeader("Last-Modified") == "Tue, 14 Nov 2023 22:13:20 GMT"


def test_vfs():
	server = StaticServer.FromVFS(MapFileSystem({"sub/index.html": "vfs index"}))
	assert get(server, "/sub").payload == b"vfs index"
	assert server(HTTPRequest.Create("GET", "/")).status == 404


def test_missing_root():
	with pytest.raises(FileNotFoundError):
		StaticServer.FromOS(FSTEST / "missing")
	with pytest.raises(NotADirectoryError):
		StaticServer.FromOS(FSTEST / "hello.txt")


def test_verbose(monkeypatch):
	out = io.StringIO()
	monkeypatch.setattr(logging, "ERR", out)
	monkeypatch.setattr(logging, "LOG_LEVEL", LogLevel.Info)
	server = StaticServer.FromMap(
		{"index.html": "index", "sub/a.txt": "a"}, verbose=True
	)
	assert get(server, "/").status == 200
	assert get(server, "/missing").status == 404
	assert get(server, "/sub").status == 404
	text = out.getvalue()
	for message in (
		"Request received",
		"Requested path is a directory, looking for an index",
		"Serving content",
		"Requested path not found",
		"No index found in directory",
	):
		assert message in text, message
	assert "[StaticServer]" in text
	# Quiet by default
	out.seek(0)
	out.truncate()
	assert get(StaticServer.FromMap({}), "/missing").status == 404
	assert out.getvalue() == ""


# EOF

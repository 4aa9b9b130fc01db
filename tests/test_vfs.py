import io
import zipfile
from pathlib import Path

import pytest

from staticserver import Backend, FileInfo, MapFileSystem, OSFileSystem, ZipFileSystem
from staticserver.vfs import cleanPath, parents

FSTEST = Path(__file__).parent / "fstest"


def test_clean_path():
	for path, expected in (
		("", "/"),
		("/", "/"),
		("//", "/"),
		("a/b", "/a/b"),
		("/a/b/", "/a/b"),
		("/a/./b", "/a/b"),
		("/a/../b", "/b"),
		("/../../etc/passwd", "/etc/passwd"),
		("a//b", "/a/b"),
		("//a", "/a"),
	):
		assert cleanPath(path) == expected, path


def test_parents():
	assert parents("/a/b/c.txt") == ["/a/b", "/a"]
	assert parents("/c.txt") == []


def test_map():
	fs = MapFileSystem({"index.html": "<p>ü</p>", "a/b/c.bin": b"\x00\x01"})
	assert fs.stat("/index.html") == FileInfo("index.html", len("<p>ü</p>".encode()))
	assert fs.stat("/a").isDir
	assert fs.stat("/a/b/").isDir
	assert fs.stat("/").isDir
	assert fs.open("/a/b/c.bin").read() == b"\x00\x01"
	with pytest.raises(FileNotFoundError):
		fs.stat("/missing")
	with pytest.raises(IsADirectoryError):
		fs.open("/a")
	with pytest.raises(ValueError):
		MapFileSystem({"/index.html": ""})
	# Keys that clean to the root would shadow the root directory
	for name in ("", ".", "a/..", "./"):
		with pytest.raises(ValueError):
			MapFileSystem({name: "root"})
	assert MapFileSystem({"a/../b.txt": "b"}).stat("/b.txt").size == 1


def test_os():
	fs = OSFileSystem(FSTEST)
	info = fs.stat("/hello.txt")
	assert info.name == "hello.txt"
	assert info.size == len(b"hello static world\n")
	assert info.modTime and info.modTime > 0
	assert not info.isDir
	assert fs.stat("/sub").isDir
	assert fs.stat("/").isDir
	with fs.open("/sub/index.html") as f:
		assert b"sub index file" in f.read()
	with pytest.raises(FileNotFoundError):
		fs.stat("/missing.txt")
	# The root can't be escaped
	assert fs.stat("/../../hello.txt") == info
	with pytest.raises(FileNotFoundError):
		OSFileSystem(FSTEST / "sub").stat("/../hello.txt")


def test_zip():
	buffer = io.BytesIO()
	with zipfile.ZipFile(buffer, "w") as archive:
		archive.writestr("assets/", "")
		archive.writestr("assets/app.css", "body {}")
		archive.writestr("deep/er/file.txt", "deep")
	with zipfile.ZipFile(buffer) as archive:
		fs = ZipFileSystem(archive, "bundle.zip")
		assert fs.stat("/assets").isDir
		assert fs.stat("/deep/er").isDir
		info = fs.stat("/assets/app.css")
		assert info.size == 7
		assert info.modTime
		with fs.open("/deep/er/file.txt") as f:
			assert f.read() == b"deep"
		with pytest.raises(IsADirectoryError):
			fs.open("/deep")
		with pytest.raises(FileNotFoundError):
			fs.stat("/nothing")
		assert repr(fs) == "(ZipFileSystem bundle.zip)"


def test_raw_backend():
	calls: list[str] = []

	def stat(path: str) -> FileInfo:
		calls.append(path)
		return FileInfo("x", 1)

	backend = Backend.Raw(stat, lambda path: io.BytesIO(b"x"))
	assert backend.stat("/x") == FileInfo("x", 1)
	assert backend.open("/x").read() == b"x"
	assert calls == ["/x"]


def test_assets_backend():
	backend = Backend.Assets({"a/b.txt": b"bee"}.__getitem__)
	assert backend.stat("/a/b.txt") == FileInfo("b.txt", 3)
	assert backend.open("a/b.txt").read() == b"bee"
	with pytest.raises(FileNotFoundError):
		backend.stat("/a")
	with pytest.raises(FileNotFoundError):
		backend.open("/c.txt")


# EOF

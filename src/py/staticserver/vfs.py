import errno
import os
import posixpath
import stat
import time
import zipfile
from abc import ABC, abstractmethod
from io import BytesIO
from pathlib import Path
from typing import IO, Mapping, NamedTuple

from mypy_extensions import mypyc_attr

__doc__ = """
Virtual file systems that assets can be served from. All paths are
forward-slash separated and are cleaned with `cleanPath` before being
looked up, so that they can't escape the root of the file system.
"""


class FileInfo(NamedTuple):
	"""The metadata of an asset, as returned by `stat`."""

	name: str
	size: int = 0
	# POSIX timestamp, `None` when the store does not track time
	modTime: float | None = None
	isDir: bool = False


def cleanPath(path: str) -> str:
	"""Returns the shortest absolute path equivalent to `path` as seen from
	a root directory. `..` segments can't climb above the root."""
	res = posixpath.normpath("/" + path)
	# POSIX allows a leading `//`, which `normpath` preserves
	return "/" + res.lstrip("/")


def notFound(path: str) -> FileNotFoundError:
	return FileNotFoundError(errno.ENOENT, os.strerror(errno.ENOENT), path)


def isDirectory(path: str) -> IsADirectoryError:
	return IsADirectoryError(errno.EISDIR, os.strerror(errno.EISDIR), path)


def zipTime(info: zipfile.ZipInfo | None) -> float | None:
	# Zip dates are in local time
	return time.mktime(info.date_time + (0, 0, -1)) if info else None


def parents(path: str) -> list[str]:
	"""Returns the cleaned parent directories of the given path, from the
	closest to the root, root excluded."""
	res: list[str] = []
	while (path := posixpath.dirname(path)) not in ("/", ""):
		res.append(path)
	return res


@mypyc_attr(allow_interpreted_subclasses=True)
class FileSystem(ABC):
	"""A read-only file system. Implementations must be safe to use
	from concurrent requests."""

	@abstractmethod
	def stat(self, path: str) -> FileInfo:
		"""Returns the metadata of the given path, raising
		`FileNotFoundError` when it does not exist."""

	@abstractmethod
	def open(self, path: str) -> IO[bytes]:
		"""Opens the given file as a seekable binary reader."""


class OSFileSystem(FileSystem):
	"""Serves the files of a local directory."""

	def __init__(self, root: str | Path):
		path = Path(root).absolute()
		if not path.exists():
			raise notFound(str(root))
		if not path.is_dir():
			raise NotADirectoryError(
				errno.ENOTDIR, os.strerror(errno.ENOTDIR), str(root)
			)
		self.root: Path = path

	def resolvePath(self, path: str) -> Path:
		local_path = self.root.joinpath(cleanPath(path).lstrip("/"))
		if not local_path.parts[: len(parts := self.root.parts)] == parts:
			raise notFound(path)
		return local_path

	def stat(self, path: str) -> FileInfo:
		local_path = self.resolvePath(path)
		st = os.stat(local_path)
		return FileInfo(
			name=local_path.name or self.root.name,
			size=st.st_size,
			modTime=st.st_mtime,
			isDir=stat.S_ISDIR(st.st_mode),
		)

	def open(self, path: str) -> IO[bytes]:
		return open(self.resolvePath(path), "rb")

	def __repr__(self) -> str:
		return f"(OSFileSystem {self.root})"


class MapFileSystem(FileSystem):
	"""Serves files from a mapping of paths to contents. Paths must not
	have a leading `/`, directories are implied by the paths."""

	def __init__(self, files: Mapping[str, str | bytes]):
		self.files: dict[str, bytes] = {}
		self.dirs: set[str] = {"/"}
		for name, content in files.items():
			if name.startswith("/"):
				raise ValueError(f"Path must not start with '/': {name}")
			path = cleanPath(name)
			if path == "/":
				# The root is always a directory
				raise ValueError(f"Path must name a file below the root: {name!r}")
			self.files[path] = (
				content.encode("utf-8") if isinstance(content, str) else content
			)
			self.dirs.update(parents(path))

	def stat(self, path: str) -> FileInfo:
		p = cleanPath(path)
		if (content := self.files.get(p)) is not None:
			return FileInfo(posixpath.basename(p), len(content))
		elif p in self.dirs:
			return FileInfo(posixpath.basename(p) or "/", isDir=True)
		else:
			raise notFound(path)

	def open(self, path: str) -> IO[bytes]:
		p = cleanPath(path)
		if (content := self.files.get(p)) is not None:
			return BytesIO(content)
		elif p in self.dirs:
			raise isDirectory(path)
		else:
			raise notFound(path)

	def __repr__(self) -> str:
		return f"(MapFileSystem {len(self.files)} files)"


class ZipFileSystem(FileSystem):
	"""Serves the members of an open zip archive. Directories are either
	explicit entries or implied by the member names."""

	def __init__(self, archive: zipfile.ZipFile, name: str):
		self.archive: zipfile.ZipFile = archive
		self.name: str = name
		self.files: dict[str, zipfile.ZipInfo] = {}
		self.dirs: dict[str, zipfile.ZipInfo | None] = {"/": None}
		for info in archive.infolist():
			path = cleanPath(info.filename)
			if info.is_dir():
				self.dirs[path] = info
			else:
				self.files[path] = info
			for parent in parents(path):
				self.dirs.setdefault(parent, None)

	def stat(self, path: str) -> FileInfo:
		p = cleanPath(path)
		if info := self.files.get(p):
			return FileInfo(
				posixpath.basename(p), info.file_size, zipTime(info), False
			)
		elif p in self.dirs:
			return FileInfo(
				posixpath.basename(p) or "/",
				0,
				zipTime(self.dirs[p]),
				True,
			)
		else:
			raise notFound(path)

	def open(self, path: str) -> IO[bytes]:
		p = cleanPath(path)
		if info := self.files.get(p):
			return self.archive.open(info)
		elif p in self.dirs:
			raise isDirectory(path)
		else:
			raise notFound(path)

	def __repr__(self) -> str:
		return f"(ZipFileSystem {self.name})"


# EOF

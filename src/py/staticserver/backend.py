import zipfile
from abc import ABC, abstractmethod
from io import BytesIO
from pathlib import Path
from typing import IO, Callable, Mapping, Protocol, runtime_checkable

from mypy_extensions import mypyc_attr

from .vfs import (
	FileInfo,
	FileSystem,
	MapFileSystem,
	OSFileSystem,
	ZipFileSystem,
	cleanPath,
	notFound,
)

__doc__ = """
Backends normalize any asset source into the two operations the
`StaticServer` needs: `stat`, returning the `FileInfo` of a path, and
`open`, returning a seekable reader on it.

- `stat` raises `OSError` (typically `FileNotFoundError`) or `ValueError`
  when the path can't be found.
- `open` raises `OSError` or `ValueError` when the reader can't be obtained.

Readers only need `read` and `seek`. When a reader is also `Closable`,
the server closes it once the response has been produced.
"""

TStat = Callable[[str], FileInfo]
TOpen = Callable[[str], IO[bytes]]


@runtime_checkable
class Closable(Protocol):
	"""A reader that holds a resource to release after use."""

	def close(self) -> None: ...


@mypyc_attr(allow_interpreted_subclasses=True)
class Backend(ABC):
	"""The interface between the server and an asset store."""

	@abstractmethod
	def stat(self, path: str) -> FileInfo: ...

	@abstractmethod
	def open(self, path: str) -> IO[bytes]: ...

	@staticmethod
	def VFS(fs: FileSystem) -> "VFSBackend":
		"""Backend serving the given virtual file system."""
		return VFSBackend(fs)

	@staticmethod
	def OS(root: str | Path) -> "VFSBackend":
		"""Backend serving the given local directory, raising when `root` is
		not an existing directory."""
		return VFSBackend(OSFileSystem(root))

	@staticmethod
	def Map(files: Mapping[str, str | bytes]) -> "VFSBackend":
		"""Backend serving a mapping of `/`-separated paths (without a leading
		`/`) to contents."""
		return VFSBackend(MapFileSystem(files))

	@staticmethod
	def Zip(archive: zipfile.ZipFile, name: str) -> "VFSBackend":
		"""Backend serving the members of an open zip archive, `name` being
		used to identify the archive."""
		return VFSBackend(ZipFileSystem(archive, name))

	@staticmethod
	def Raw(stat: TStat, open: TOpen) -> "RawBackend":
		"""Backend using the given functions as is."""
		return RawBackend(stat, open)

	@staticmethod
	def Assets(
		asset: Callable[[str], bytes],
		info: Callable[[str], FileInfo] | None = None,
	) -> "AssetsBackend":
		"""Backend serving generated/embedded assets, see `AssetsBackend`."""
		return AssetsBackend(asset, info)


class VFSBackend(Backend):
	def __init__(self, fs: FileSystem):
		self.fs: FileSystem = fs

	def stat(self, path: str) -> FileInfo:
		return self.fs.stat(path)

	def open(self, path: str) -> IO[bytes]:
		return self.fs.open(path)

	def __repr__(self) -> str:
		return f"(VFSBackend {self.fs!r})"


class RawBackend(Backend):
	def __init__(self, stat: TStat, open: TOpen):
		self._stat: TStat = stat
		self._open: TOpen = open

	def stat(self, path: str) -> FileInfo:
		return self._stat(path)

	def open(self, path: str) -> IO[bytes]:
		return self._open(path)


class AssetsBackend(Backend):
	"""Serves assets from a function table, as produced by asset embedding
	tools: `asset(name)` returns the content of an asset and `info(name)`
	its metadata. Names have no leading `/`. Both functions signal a missing
	asset by raising `KeyError` or `OSError`.

	Without `info`, every asset is a file which metadata is derived from
	its content, and there are no directories."""

	def __init__(
		self,
		asset: Callable[[str], bytes],
		info: Callable[[str], FileInfo] | None = None,
	):
		self.asset: Callable[[str], bytes] = asset
		self.info: Callable[[str], FileInfo] | None = info

	def load(self, path: str) -> bytes:
		try:
			return self.asset(cleanPath(path).lstrip("/"))
		except KeyError as e:
			raise notFound(path) from e

	def stat(self, path: str) -> FileInfo:
		if self.info:
			try:
				return self.info(cleanPath(path).lstrip("/"))
			except KeyError as e:
				raise notFound(path) from e
		else:
			return FileInfo(cleanPath(path).rsplit("/", 1)[-1], len(self.load(path)))

	def open(self, path: str) -> IO[bytes]:
		return BytesIO(self.load(path))


# EOF

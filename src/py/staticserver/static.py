import posixpath
import zipfile
from pathlib import Path
from typing import IO, Callable, Iterable, Mapping
from urllib.parse import unquote

from .backend import Backend, Closable, TOpen, TStat
from .config import INDEX
from .handlers import TErrorHandlers
from .handlers import errorHandlers as mergeErrorHandlers
from .http.model import HTTPRequest, HTTPRequestError, HTTPResponse
from .utils.logging import exception, info
from .vfs import FileInfo, FileSystem, cleanPath

# -----------------------------------------------------------------------------
#
# ERRORS
#
# -----------------------------------------------------------------------------


class AssetNotFound(HTTPRequestError):
	"""The path does not exist, or is a directory without a usable index."""

	def __init__(self, path: str):
		super().__init__(f"Asset not found: {path}", 404)
		self.path: str = path


class AssetUnavailable(HTTPRequestError):
	"""The asset exists, but no reader could be opened on it."""

	def __init__(self, path: str):
		super().__init__(f"Asset could not be opened: {path}", 500)
		self.path: str = path


# -----------------------------------------------------------------------------
#
# STATIC SERVER
#
# -----------------------------------------------------------------------------


class StaticServer:
	"""Serves the assets of a backend, never listing directories: a request
	for a directory serves its index document, or a not found error.

	The server is a request handler, `server(request)` returns the
	response. It holds no per-request state and can serve concurrent
	requests as long as the backend can."""

	def __init__(
		self,
		backend: Backend,
		errorHandlers: TErrorHandlers | None = None,
		*,
		index: Iterable[str] = INDEX,
		verbose: bool = False,
	):
		self.backend: Backend = backend
		self.errorHandlers: TErrorHandlers = mergeErrorHandlers(errorHandlers)
		self.index: tuple[str, ...] = tuple(index)
		self.verbose: bool = verbose

	@classmethod
	def FromVFS(
		cls,
		fs: FileSystem,
		errorHandlers: TErrorHandlers | None = None,
		*,
		index: Iterable[str] = INDEX,
		verbose: bool = False,
	) -> "StaticServer":
		return cls(
			Backend.VFS(fs), errorHandlers, index=index, verbose=verbose
		)

	@classmethod
	def FromOS(
		cls,
		root: str | Path,
		errorHandlers: TErrorHandlers | None = None,
		*,
		index: Iterable[str] = INDEX,
		verbose: bool = False,
	) -> "StaticServer":
		"""Serves a local directory, raising when `root` is not an existing
		directory."""
		return cls(
			Backend.OS(root), errorHandlers, index=index, verbose=verbose
		)

	@classmethod
	def FromMap(
		cls,
		files: Mapping[str, str | bytes],
		errorHandlers: TErrorHandlers | None = None,
		*,
		index: Iterable[str] = INDEX,
		verbose: bool = False,
	) -> "StaticServer":
		return cls(
			Backend.Map(files), errorHandlers, index=index, verbose=verbose
		)

	@classmethod
	def FromZip(
		cls,
		archive: zipfile.ZipFile,
		name: str,
		errorHandlers: TErrorHandlers | None = None,
		*,
		index: Iterable[str] = INDEX,
		verbose: bool = False,
	) -> "StaticServer":
		return cls(
			Backend.Zip(archive, name), errorHandlers, index=index, verbose=verbose
		)

	@classmethod
	def FromRaw(
		cls,
		stat: TStat,
		open: TOpen,
		errorHandlers: TErrorHandlers | None = None,
		*,
		index: Iterable[str] = INDEX,
		verbose: bool = False,
	) -> "StaticServer":
		return cls(
			Backend.Raw(stat, open), errorHandlers, index=index, verbose=verbose
		)

	@classmethod
	def FromAssets(
		cls,
		asset: Callable[[str], bytes],
		assetInfo: Callable[[str], FileInfo] | None = None,
		errorHandlers: TErrorHandlers | None = None,
		*,
		index: Iterable[str] = INDEX,
		verbose: bool = False,
	) -> "StaticServer":
		return cls(
			Backend.Assets(asset, assetInfo), errorHandlers, index=index, verbose=verbose
		)

	def log(self, message: str, path: str) -> None:
		if self.verbose:
			info(message, origin="StaticServer", Path=path)

	def stat(self, path: str) -> FileInfo:
		try:
			return self.backend.stat(path)
		except (OSError, ValueError) as e:
			raise AssetNotFound(path) from e

	def resolve(self, path: str) -> tuple[str, FileInfo]:
		"""Resolves the request path to the path and metadata of the file to
		serve, raising `AssetNotFound` when there is none."""
		path = cleanPath(path)
		try:
			res = self.stat(path)
		except AssetNotFound:
			self.log("Requested path not found", path)
			raise
		if not res.isDir:
			return path, res
		# Directories are never listed, we look for an index document
		self.log("Requested path is a directory, looking for an index", path)
		for name in self.index:
			index_path = posixpath.join(path, name)
			try:
				res = self.stat(index_path)
			except AssetNotFound:
				continue
			if res.isDir:
				# Serving it would list it, descending would never end
				self.log("Index is a directory", index_path)
				raise AssetNotFound(index_path)
			return index_path, res
		self.log("No index found in directory", path)
		raise AssetNotFound(path)

	def open(self, path: str) -> IO[bytes]:
		try:
			return self.backend.open(path)
		except (OSError, ValueError) as e:
			self.log("Could not open a reader on path", path)
			if self.verbose:
				exception(e)
			raise AssetUnavailable(path) from e

	def process(self, request: HTTPRequest) -> HTTPResponse:
		self.log("Request received", request.path)
		try:
			path, res = self.resolve(unquote(request.path))
			reader = self.open(path)
		except HTTPRequestError as e:
			return self.errorHandlers[e.status or 500](request)
		try:
			self.log("Serving content", path)
			return request.respondContent(res.name, res.modTime, reader)
		finally:
			if isinstance(reader, Closable):
				reader.close()

	def __call__(self, request: HTTPRequest) -> HTTPResponse:
		return self.process(request)

	def __repr__(self) -> str:
		return f"(StaticServer {self.backend!r})"


# EOF

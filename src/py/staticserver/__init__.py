from .backend import Backend, Closable  # NOQA: F401
from .bridge import PythonBridge  # NOQA: F401
from .handlers import DEFAULT_ERROR_HANDLERS  # NOQA: F401
from .http.model import HTTPRequest, HTTPRequestError, HTTPResponse  # NOQA: F401
from .server import run  # NOQA: F401
from .static import AssetNotFound, AssetUnavailable, StaticServer  # NOQA: F401
from .vfs import (  # NOQA: F401
	FileInfo,
	FileSystem,
	MapFileSystem,
	OSFileSystem,
	ZipFileSystem,
)

# EOF

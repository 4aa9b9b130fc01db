"""
Embedded Assets Example

Serves assets bundled with the program: a mapping of paths to contents
and a zip archive, without touching the file system.
Features shown:
- `StaticServer.FromMap` for in-memory assets
- `StaticServer.FromZip` for an archive
- Running requests in-process with `PythonBridge`

Usage:
    python embedded.py
"""

import io
import zipfile

from staticserver import PythonBridge, StaticServer
from staticserver.utils.logging import info

ASSETS: dict[str, str] = {
	"index.html": "<!DOCTYPE html><html><body><h1>Embedded</h1></body></html>",
	"css/style.css": "h1 { color: tomato; }",
}


def archive() -> zipfile.ZipFile:
	buffer = io.BytesIO()
	with zipfile.ZipFile(buffer, "w") as zf:
		for name, content in ASSETS.items():
			zf.writestr(name, content)
	return zipfile.ZipFile(buffer)


if __name__ == "__main__":
	for server in (
		StaticServer.FromMap(ASSETS),
		StaticServer.FromZip(archive(), "assets.zip"),
	):
		bridge = PythonBridge(server)
		for path in ("/", "/css/style.css", "/css"):
			res = bridge.request("GET", path)
			info(
				"Response",
				Server=repr(server),
				Path=path,
				Status=res.status,
				Type=res.getHeader("Content-Type") or "",
			)

# EOF

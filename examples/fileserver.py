"""
Static File Server Example

Serves a local directory, never listing its directories: a directory is
served through its `index.html`, or is not found.
Features shown:
- `StaticServer.FromOS` over a local directory
- A custom not found page
- Verbose resolution logging

Usage:
    python fileserver.py [DIRECTORY]

Test with:
    curl -i http://localhost:8080/
    curl -i -H "Range: bytes=0-99" http://localhost:8080/README.md
"""

import sys

from staticserver import HTTPRequest, HTTPResponse, StaticServer, run
from staticserver.utils.logging import info


def notFound(request: HTTPRequest) -> HTTPResponse:
	return request.notFound(
		f"<h1>Not Found</h1><p>Nothing at <code>{request.path}</code></p>",
		"text/html; charset=utf-8",
	)


if __name__ == "__main__":
	root = sys.argv[1] if len(sys.argv) > 1 else "."
	info("Starting static file server", Root=root)
	run(StaticServer.FromOS(root, {404: notFound}, verbose=True), "127.0.0.1", 8080)

# EOF

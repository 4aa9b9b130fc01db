from os import getenv

# Default address the command line server binds to
HTTP: str = getenv("STATICSERVER_HTTP", "127.0.0.1:8080")

# Documents served for directory requests, tried in order
INDEX: tuple[str, ...] = tuple(
	_.strip() for _ in getenv("STATICSERVER_INDEX", "index.html").split(",") if _.strip()
) or ("index.html",)

LOG_REQUESTS: bool = getenv("STATICSERVER_LOG_REQUESTS", "1") == "1"

# EOF

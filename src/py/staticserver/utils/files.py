import mimetypes

mimetypes.init()

# Extensions `mimetypes` gets wrong or does not know
MIME_TYPES: dict[str, str] = dict(
	bz2="application/x-bzip",
	gz="application/x-gzip",
	js="text/javascript",
	mjs="text/javascript",
	wasm="application/wasm",
	webmanifest="application/manifest+json",
)

# Types that get an explicit charset
TEXT_TYPES: tuple[str, ...] = (
	"text/",
	"application/javascript",
	"application/json",
	"image/svg+xml",
)

SNIFF_SIZE: int = 512

# Tags must be followed by a space or `>` to count
HTML_TAGS: tuple[bytes, ...] = (
	b"<!doctype html",
	b"<html",
	b"<head",
	b"<body",
	b"<script",
	b"<style",
	b"<title",
	b"<iframe",
	b"<div",
	b"<table",
	b"<font",
	b"<h1",
	b"<br",
	b"<p",
	b"<a",
	b"<b",
)


def withCharset(contentType: str) -> str:
	if "charset=" in contentType:
		return contentType
	elif any(contentType.startswith(_) for _ in TEXT_TYPES):
		return f"{contentType}; charset=utf-8"
	else:
		return contentType


def contentType(name: str) -> str | None:
	"""Guesses the content type from the given name's extension, returning
	`None` when the extension is absent or unknown."""
	base = name.rsplit("/", 1)[-1]
	if "." not in base:
		return None
	ext = base.rsplit(".", 1)[-1].lower()
	res = MIME_TYPES.get(ext) or mimetypes.guess_type(base)[0]
	return withCharset(res) if res else None


def isText(data: bytes) -> bool:
	"""Tells if the data is likely text, ie. valid UTF-8 without NUL bytes.
	A multi-byte sequence cut by the end of the sample is tolerated."""
	if b"\x00" in data:
		return False
	try:
		data.decode("utf-8")
		return True
	except UnicodeDecodeError as e:
		return e.start >= len(data) - 3 and e.reason == "unexpected end of data"


def sniff(data: bytes) -> str:
	"""Detects the content type of the given sample."""
	head = data[:SNIFF_SIZE].lstrip(b"\t\n\x0c\r ").lower()
	if head.startswith(b"<!--") or any(
		head.startswith(_) and head[len(_) : len(_) + 1] in (b" ", b">")
		for _ in HTML_TAGS
	):
		return "text/html; charset=utf-8"
	elif head.startswith(b"<?xml"):
		return "text/xml; charset=utf-8"
	elif head.startswith(b"%pdf-"):
		return "application/pdf"
	elif data.startswith(b"\x89PNG\r\n\x1a\n"):
		return "image/png"
	elif data.startswith(b"\xff\xd8\xff"):
		return "image/jpeg"
	elif data.startswith(b"GIF87a") or data.startswith(b"GIF89a"):
		return "image/gif"
	elif isText(data[:SNIFF_SIZE]):
		return "text/plain; charset=utf-8"
	else:
		return "application/octet-stream"


# EOF

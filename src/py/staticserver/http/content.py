import calendar
import os
import secrets
from email.utils import formatdate, parsedate_tz
from enum import Enum
from typing import IO, TYPE_CHECKING, NamedTuple

from ..utils.files import SNIFF_SIZE, contentType as guessContentType, sniff

if TYPE_CHECKING:
	from .model import HTTPRequest, HTTPResponse

__doc__ = """
The content-serving primitive: given a request, an asset name, its
modification time and a seekable reader, produces the response, taking
care of byte ranges (`Range`, `If-Range`), conditional requests
(`If-Match`, `If-None-Match`, `If-Modified-Since`, `If-Unmodified-Since`)
and content-type detection.

The selected bytes are read into the response body, so the reader can be
closed as soon as `serveContent` returns.
"""

# -----------------------------------------------------------------------------
#
# RANGES
#
# -----------------------------------------------------------------------------


class ByteRange(NamedTuple):
	start: int
	length: int

	def contentRange(self, size: int) -> str:
		return f"bytes {self.start}-{self.start + self.length - 1}/{size}"


class RangeError(ValueError):
	"""Raised when a `Range` header cannot be honored. When `overlap` is
	false, the header was well formed but no range is satisfiable."""

	def __init__(self, message: str, overlap: bool = True):
		super().__init__(message)
		self.overlap: bool = overlap


def parseRange(text: str | None, size: int) -> list[ByteRange]:
	"""Parses a `Range` header value (`bytes=0-9,20-,-5`) against a content
	of the given size. An absent header yields no range."""
	if not text:
		return []
	if not text.startswith("bytes="):
		raise RangeError(f"Invalid range unit: {text}")
	ranges: list[ByteRange] = []
	no_overlap: bool = False
	for item in text[6:].split(","):
		item = item.strip()
		if not item:
			continue
		first, sep, last = item.partition("-")
		if not sep:
			raise RangeError(f"Invalid range: {item}")
		first, last = first.strip(), last.strip()
		if not first:
			# Suffix range: the last N bytes
			if not last.isdigit():
				raise RangeError(f"Invalid suffix range: {item}")
			n = min(int(last), size)
			if n == 0:
				no_overlap = True
				continue
			ranges.append(ByteRange(size - n, n))
		else:
			if not first.isdigit():
				raise RangeError(f"Invalid range start: {item}")
			start = int(first)
			if start >= size:
				no_overlap = True
				continue
			if not last:
				ranges.append(ByteRange(start, size - start))
			else:
				if not last.isdigit() or int(last) < start:
					raise RangeError(f"Invalid range end: {item}")
				end = min(int(last), size - 1)
				ranges.append(ByteRange(start, end - start + 1))
	if no_overlap and not ranges:
		raise RangeError("Invalid range: failed to overlap", overlap=False)
	return ranges


# -----------------------------------------------------------------------------
#
# CONDITIONS
#
# -----------------------------------------------------------------------------


class Condition(Enum):
	# The header is absent
	Absent = 0
	Met = 1
	Failed = 2


def parseDate(text: str | None) -> int | None:
	"""Parses an HTTP date as a POSIX timestamp, `None` when invalid."""
	if not text:
		return None
	parsed = parsedate_tz(text)
	if parsed is None:
		return None
	return calendar.timegm(parsed[:9]) - (parsed[9] or 0)


def formatDate(timestamp: float) -> str:
	return formatdate(timestamp, usegmt=True)


def isKnownTime(modTime: float | None) -> bool:
	# Stores without modification times report nothing, or the epoch
	return modTime is not None and int(modTime) > 0


def etags(text: str) -> list[str]:
	return [_.strip() for _ in text.split(",") if _.strip()]


def weakMatch(a: str, b: str) -> bool:
	return a.removeprefix("W/") == b.removeprefix("W/")


def strongMatch(a: str, b: str) -> bool:
	return a == b and not a.startswith("W/")


def checkIfMatch(request: "HTTPRequest", etag: str | None) -> Condition:
	value = request.header("If-Match")
	if value is None:
		return Condition.Absent
	for tag in etags(value):
		if tag == "*" or (etag and strongMatch(tag, etag)):
			return Condition.Met
	return Condition.Failed


def checkIfUnmodifiedSince(
	request: "HTTPRequest", modTime: float | None
) -> Condition:
	since = parseDate(request.header("If-Unmodified-Since"))
	if since is None or not isKnownTime(modTime):
		return Condition.Absent
	return Condition.Met if int(modTime or 0) <= since else Condition.Failed


def checkIfNoneMatch(request: "HTTPRequest", etag: str | None) -> Condition:
	value = request.header("If-None-Match")
	if value is None:
		return Condition.Absent
	for tag in etags(value):
		if tag == "*" or (etag and weakMatch(tag, etag)):
			return Condition.Failed
	return Condition.Met


def checkIfModifiedSince(request: "HTTPRequest", modTime: float | None) -> Condition:
	if request.method not in ("GET", "HEAD"):
		return Condition.Absent
	since = parseDate(request.header("If-Modified-Since"))
	if since is None or not isKnownTime(modTime):
		return Condition.Absent
	return Condition.Failed if int(modTime or 0) <= since else Condition.Met


def checkIfRange(
	request: "HTTPRequest", etag: str | None, modTime: float | None
) -> Condition:
	value = request.header("If-Range")
	if value is None or request.method not in ("GET", "HEAD"):
		return Condition.Absent
	if value.startswith('"') or value.startswith("W/"):
		return Condition.Met if etag and strongMatch(value, etag) else Condition.Failed
	since = parseDate(value)
	if since is None or not isKnownTime(modTime):
		return Condition.Failed
	return Condition.Met if int(modTime or 0) == since else Condition.Failed


# -----------------------------------------------------------------------------
#
# SERVING
#
# -----------------------------------------------------------------------------


def readExactly(reader: IO[bytes], start: int, length: int) -> bytes:
	"""Reads `length` bytes from `start`, tolerating readers returning
	short reads. Stops early at the end of the stream."""
	reader.seek(start, os.SEEK_SET)
	chunks: list[bytes] = []
	left: int = length
	while left > 0:
		chunk = reader.read(left)
		if not chunk:
			break
		chunks.append(chunk)
		left -= len(chunk)
	return b"".join(chunks)


def detectContentType(name: str, reader: IO[bytes]) -> str:
	if res := guessContentType(name):
		return res
	sample = readExactly(reader, 0, SNIFF_SIZE)
	reader.seek(0, os.SEEK_SET)
	return sniff(sample)


def multipartRanges(
	reader: IO[bytes], ranges: list[ByteRange], size: int, contentType: str
) -> tuple[str, bytes]:
	"""Returns the content type and body of a `multipart/byteranges`
	response."""
	boundary: str = secrets.token_hex(16)
	parts: list[bytes] = []
	for i, r in enumerate(ranges):
		sep: str = "" if i == 0 else "\r\n"
		head = (
			f"{sep}--{boundary}\r\n"
			f"Content-Range: {r.contentRange(size)}\r\n"
			f"Content-Type: {contentType}\r\n\r\n"
		)
		parts.append(head.encode("latin-1"))
		parts.append(readExactly(reader, r.start, r.length))
	parts.append(f"\r\n--{boundary}--\r\n".encode("latin-1"))
	return f"multipart/byteranges; boundary={boundary}", b"".join(parts)


def serveContent(
	request: "HTTPRequest",
	name: str,
	modTime: float | None,
	reader: IO[bytes],
) -> "HTTPResponse":
	"""Produces the response for the given request, serving the content of
	the seekable `reader` named `name` and last modified at `modTime`
	(`None` when unknown)."""
	size: int = reader.seek(0, os.SEEK_END)
	reader.seek(0, os.SEEK_SET)
	headers: dict[str, str] = {"Accept-Ranges": "bytes"}
	etag: str | None = None
	if isKnownTime(modTime):
		mtime = int(modTime or 0)
		headers["Last-Modified"] = formatDate(mtime)
		etag = f'"{mtime:x}-{size:x}"'
		headers["Etag"] = etag

	# --
	# Preconditions, in the order of RFC 9110 §13.2.2
	cond = checkIfMatch(request, etag)
	if cond is Condition.Absent:
		cond = checkIfUnmodifiedSince(request, modTime)
	if cond is Condition.Failed:
		return request.error(412, headers=headers)
	match checkIfNoneMatch(request, etag):
		case Condition.Failed:
			if request.method in ("GET", "HEAD"):
				return request.notModified(headers)
			else:
				return request.error(412, headers=headers)
		case Condition.Absent:
			if checkIfModifiedSince(request, modTime) is Condition.Failed:
				return request.notModified(headers)

	content_type: str = detectContentType(name, reader)
	range_header: str | None = request.header("Range")
	if checkIfRange(request, etag, modTime) is Condition.Failed:
		range_header = None
	try:
		ranges = parseRange(range_header, size)
	except RangeError as e:
		if not e.overlap:
			headers["Content-Range"] = f"bytes */{size}"
		return request.error(416, content=str(e), headers=headers)
	# Ranges that add up to more than the content are served as a whole
	if sum(_.length for _ in ranges) > size:
		ranges = []

	is_head: bool = request.method == "HEAD"
	status: int = 206 if ranges else 200
	body: bytes | None = None
	length: int = size
	if len(ranges) > 1:
		content_type, body = multipartRanges(reader, ranges, size, content_type)
		length = len(body)
	else:
		start: int = 0
		if ranges:
			start, length = ranges[0]
			headers["Content-Range"] = ranges[0].contentRange(size)
		if not is_head:
			body = readExactly(reader, start, length)
	headers["Content-Type"] = content_type
	if is_head:
		headers["Content-Length"] = str(length)
		return request.respond(None, status=status, headers=headers)
	else:
		return request.respond(body, status=status, headers=headers)


# EOF

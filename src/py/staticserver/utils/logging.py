import os
import sys
import time
import inspect
from enum import Enum
from typing import Any, ClassVar, NamedTuple, TypeAlias
from contextvars import ContextVar

ERR = sys.stderr

# SEE: https://no-color.org/
NO_COLOR: bool = "NO_COLOR" in os.environ
FORCE_COLOR: bool = "FORCE_COLOR" in os.environ
COLOR: bool = FORCE_COLOR or NO_COLOR is False

TPrimitive: TypeAlias = (
	bool | int | float | str | bytes | list[Any] | dict[str, Any] | tuple[Any, ...]
)

LogOrigin: ContextVar[str] = ContextVar("LogOrigin", default="staticserver")


class Term:
	BOLD: ClassVar[str] = "" if NO_COLOR else "\033[1m"
	NORMAL: ClassVar[str] = "" if NO_COLOR else "\033[0m"
	RESET: ClassVar[str] = "" if NO_COLOR else "\033[0m"

	@staticmethod
	def Color(color: int, bold: bool = False) -> str:
		return f"\033[{'1' if bold else '0'};38;5;{color}m" if COLOR else ""


class LogType(Enum):
	Message = 0  # A general information message
	Event = 20  # An event


class LogLevel(Enum):
	Debug = 0
	Info = 10
	Warning = 30
	Error = 40  # A managed error
	Exception = 50  # An un-managed error


LOG_LEVEL_COLOR = {
	LogLevel.Debug: 31,
	LogLevel.Info: 75,
	LogLevel.Warning: 202,
	LogLevel.Error: 160,
	LogLevel.Exception: 124,
}

LOG_LEVELS: dict[str, LogLevel] = {
	"debug": LogLevel.Debug,
	"info": LogLevel.Info,
	"warning": LogLevel.Warning,
	"error": LogLevel.Error,
}

# Entries below this level are dropped
LOG_LEVEL: LogLevel = LOG_LEVELS.get(
	os.getenv("STATICSERVER_LOG_LEVEL", "info").lower(), LogLevel.Info
)


class LogEntry(NamedTuple):
	origin: str
	time: float
	type: LogType = LogType.Message
	level: LogLevel = LogLevel.Info
	message: str | None = None
	name: str | None = None
	value: TPrimitive | None = None
	context: dict[str, TPrimitive] | None = None
	icon: str | None = None
	stack: list[str] | None = None


TStack: TypeAlias = list[str]


def callstack(offset: int = 1) -> list[str]:
	"""Returns the list of function/method names on the call stack, with
	methods prefixed by their class name."""
	return [
		(
			f"{_.frame.f_locals['self'].__class__.__qualname__}.{_.function}"
			if "self" in _.frame.f_locals
			else _.function
		).replace("<lambda>", "λ")
		for _ in reversed(inspect.stack()[offset:])
	]


def formatData(value: Any) -> str:
	if value is None or value == () or value == [] or value == {}:
		return "◌"
	elif isinstance(value, dict):
		return " ".join(
			f"{Term.BOLD}{k}{Term.NORMAL}={formatData(v)}" for k, v in value.items()
		)
	elif isinstance(value, list) or isinstance(value, tuple):
		return ",".join(formatData(v) for v in value)
	elif isinstance(value, str):
		return repr(value) if " " in value else value
	elif isinstance(value, bool):
		return "✓" if value else "✗"
	elif isinstance(value, float):
		return f"{value:0.2f}"
	else:
		return str(value)


def send(entry: LogEntry) -> LogEntry:
	if entry.level.value < LOG_LEVEL.value:
		return entry
	icon: str = f" {entry.icon}" if entry.icon else ""
	clr: str = Term.Color(LOG_LEVEL_COLOR[entry.level])
	if entry.type == LogType.Event:
		ERR.write(
			f"{clr}{Term.BOLD}[{entry.origin}] {entry.name}{Term.RESET} {formatData(entry.value)} {formatData(entry.context)}{Term.RESET}\n"
		)
	else:
		ERR.write(
			f"{clr}{Term.BOLD}[{entry.origin}]{Term.RESET}{icon} {entry.message} {formatData(entry.context)}{Term.RESET}\n"
		)
	if entry.stack:
		ERR.write(
			f"{clr}{Term.Color(38)}  {' ' * len(entry.origin)} {'→'.join(entry.stack)}{Term.RESET}\n"
		)
	ERR.flush()
	return entry


def entry(
	*,
	origin: str | None = None,
	type: LogType = LogType.Message,
	level: LogLevel = LogLevel.Info,
	message: str | None = None,
	name: str | None = None,
	value: TPrimitive | None = None,
	context: dict[str, TPrimitive],
	icon: str | None = None,
	stack: TStack | bool | None = None,
) -> LogEntry:
	return LogEntry(
		origin=origin or LogOrigin.get(),
		time=time.time(),
		type=type,
		level=level,
		message=message,
		name=name,
		value=value,
		context=context,
		icon=icon,
		stack=callstack(3) if stack is True else stack if stack else None,
	)


def debug(
	message: str,
	*,
	origin: str | None = None,
	icon: str | None = None,
	stack: TStack | bool | None = None,
	**context: TPrimitive,
) -> LogEntry:
	return send(
		entry(
			message=message,
			level=LogLevel.Debug,
			origin=origin,
			context=context,
			icon=icon,
			stack=stack,
		)
	)


def info(
	message: str,
	*,
	origin: str | None = None,
	icon: str | None = None,
	stack: TStack | bool | None = None,
	**context: TPrimitive,
) -> LogEntry:
	return send(
		entry(message=message, origin=origin, context=context, icon=icon, stack=stack)
	)


def warning(
	message: str,
	*,
	origin: str | None = None,
	icon: str | None = None,
	stack: TStack | bool | None = None,
	**context: TPrimitive,
) -> LogEntry:
	return send(
		entry(
			message=message,
			level=LogLevel.Warning,
			origin=origin,
			context=context,
			icon=icon,
			stack=stack,
		)
	)


def error(
	message: str,
	code: int | str | None,
	*,
	origin: str | None = None,
	icon: str | None = None,
	stack: TStack | bool | None = None,
	**context: TPrimitive,
) -> LogEntry:
	return send(
		entry(
			message=message,
			value=code,
			level=LogLevel.Error,
			origin=origin,
			context=context,
			icon=icon,
			stack=stack,
		)
	)


def event(
	event: str,
	value: Any = None,
	*,
	origin: str | None = None,
	**context: TPrimitive,
) -> LogEntry:
	return send(
		entry(
			name=event,
			value=value,
			type=LogType.Event,
			origin=origin,
			context=context,
		)
	)


def exception(
	exception: BaseException,
	message: str | None = None,
) -> BaseException:
	try:
		stream = ERR
		stream.write(
			f"!!! EXCP {f'{message}: [{exception.__class__.__name__}] {exception}' if message else f'[{exception.__class__.__name__}] {exception}'}\n"
		)
		tb = exception.__traceback__
		while tb:
			code = tb.tb_frame.f_code
			stream.write(
				f"... in {code.co_name:15s} at {tb.tb_lineno:4d} in {code.co_filename}\n",
			)
			tb = tb.tb_next
		stream.flush()
	except Exception:  # nosec: B110
		# Must be callable from within an exception handler, including
		# when stderr itself is broken.
		pass
	# Returned so that this can be used as `raise exception(e)`
	return exception


def logged(item: Any) -> bool:
	"""Takes one of the logging functions and tells if its entries would
	currently be output. This guards against building entries that would
	be dropped anyway."""
	level: LogLevel = {
		debug: LogLevel.Debug,
		info: LogLevel.Info,
		event: LogLevel.Info,
		warning: LogLevel.Warning,
		error: LogLevel.Error,
	}.get(item, LogLevel.Exception)
	return level.value >= LOG_LEVEL.value


# EOF

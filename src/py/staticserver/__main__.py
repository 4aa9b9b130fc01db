import argparse
import sys

from .config import HTTP
from .server import parseAddress, run
from .static import StaticServer
from .utils.logging import info


def main(args: list[str] | None = None) -> int:
	"""Serves a local directory over HTTP, returning the process exit
	code."""
	parser = argparse.ArgumentParser(
		prog="staticserver",
		description="Serves the files of a directory, without listings",
	)
	parser.add_argument(
		"-http",
		"--http",
		action="store",
		dest="http",
		metavar="ADDRESS",
		help="HTTP service address (HOST:PORT)",
		default=HTTP,
	)
	parser.add_argument(
		"-v",
		"-verbose",
		"--verbose",
		action="store_true",
		dest="verbose",
		help="Logs how each request is resolved",
	)
	parser.add_argument(
		"root",
		metavar="DIRECTORY",
		help="The directory to serve",
	)
	# Exits with status 2 on usage errors
	options = parser.parse_args(args=args)

	try:
		host, port = parseAddress(options.http)
	except ValueError as e:
		sys.stderr.write(f"staticserver: {e}\n")
		parser.print_usage(sys.stderr)
		return 1
	try:
		server = StaticServer.FromOS(options.root, verbose=options.verbose)
	except OSError as e:
		sys.stderr.write(f"staticserver: {e}\n")
		parser.print_usage(sys.stderr)
		return 1

	info("Serving directory", Root=options.root, Host=host, Port=port)
	try:
		run(server, host, port)
	except OSError as e:
		sys.stderr.write(f"staticserver: {e}\n")
		return 1
	return 0


if __name__ == "__main__":
	sys.exit(main())

# EOF

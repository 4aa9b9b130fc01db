from pathlib import Path

import pytest

import staticserver.__main__ as cli
from staticserver import StaticServer

FSTEST = Path(__file__).parent / "fstest"


def test_missing_directory_argument(capsys):
	with pytest.raises(SystemExit) as e:
		cli.main([])
	assert e.value.code == 2
	assert "usage:" in capsys.readouterr().err


def test_invalid_root(capsys):
	assert cli.main([str(FSTEST / "missing")]) == 1
	err = capsys.readouterr().err
	assert "missing" in err
	assert "usage:" in err
	assert cli.main([str(FSTEST / "hello.txt")]) == 1


def test_invalid_address(capsys):
	assert cli.main(["-http", "nowhere", str(FSTEST)]) == 1
	assert "HOST:PORT" in capsys.readouterr().err


def test_serve(monkeypatch):
	calls = []
	monkeypatch.setattr(cli, "run", lambda *args: calls.append(args))
	assert cli.main(["-http", "0.0.0.0:9090", "-verbose", str(FSTEST)]) == 0
	((server, host, port),) = calls
	assert isinstance(server, StaticServer)
	assert server.verbose
	assert (host, port) == ("0.0.0.0", 9090)


def test_bind_failure(monkeypatch, capsys):
	def run(*args):
		raise OSError(98, "Address already in use")

	monkeypatch.setattr(cli, "run", run)
	assert cli.main(["-http", "127.0.0.1:80", str(FSTEST)]) == 1
	assert "Address already in use" in capsys.readouterr().err


# EOF

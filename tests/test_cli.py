"""Tests for the command line interface."""

import pytest
from click.testing import CliRunner

from connectivity_tester import cli as cli_module
from connectivity_tester.cli import cli, main
from connectivity_tester.connection import MongoConnection, TypeMode


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def captured_requests(monkeypatch):
    """Replace the connection test with a recorder returning success."""
    requests = []

    def _fake_test_connection(request):
        requests.append(request)
        return 0

    monkeypatch.setattr(cli_module, "run_test_connection", _fake_test_connection)
    return requests


class TestArgumentResolution:
    """Test mapping command line options onto a ConnectionRequest."""

    def test_odbc_defaults(self, runner, captured_requests):
        result = runner.invoke(cli, ["odbc", "--connection-string", "USER=u;PWD=p;SERVER=h"])

        assert result.exit_code == 0
        request = captured_requests[0]
        assert request.connection_string == "USER=u;PWD=p;SERVER=h"
        assert request.database is None
        assert request.login_timeout == 30
        assert request.connection_timeout is None
        assert request.simple_types is False
        assert request.max_string_length is False
        assert request.verbose is False

    def test_odbc_short_flags(self, runner, captured_requests):
        result = runner.invoke(
            cli,
            ["odbc", "-c", "USER=u;PWD=p;SERVER=h", "-d", "sales", "-t", "5", "-C", "12", "-s", "-m", "-v"],
        )

        assert result.exit_code == 0
        request = captured_requests[0]
        assert request.database == "sales"
        assert request.login_timeout == 5
        assert request.connection_timeout == 12
        assert request.type_mode is TypeMode.SIMPLE
        assert request.max_string_length_value == 4000
        assert request.verbose is True

    def test_uri_adds_placeholder_credentials(self, runner, captured_requests):
        result = runner.invoke(cli, ["uri", "--uri", "mongodb://h/"])

        assert result.exit_code == 0
        assert captured_requests[0].connection_string == "URI=mongodb://h/;USER=dummy;PWD=dummy"

    def test_negative_timeout_rejected(self, runner, captured_requests):
        result = runner.invoke(cli, ["odbc", "-c", "USER=u;PWD=p;SERVER=h", "--login-timeout", "-1"])

        assert result.exit_code != 0
        assert captured_requests == []

    def test_failure_exit_code(self, runner, monkeypatch):
        monkeypatch.setattr(cli_module, "run_test_connection", lambda request: 1)

        result = runner.invoke(cli, ["uri", "-u", "mongodb://h/"])

        assert result.exit_code == 1


class TestUsageErrors:
    """Usage errors exit with code 1."""

    def test_missing_required_option(self, capsys):
        with pytest.raises(SystemExit) as exc_info:
            main(["odbc"])

        assert exc_info.value.code == 1
        assert "--connection-string" in capsys.readouterr().err

    def test_unknown_flag(self):
        with pytest.raises(SystemExit) as exc_info:
            main(["uri", "-u", "mongodb://h/", "--bogus"])

        assert exc_info.value.code == 1


class TestExamples:
    """Test the static examples command."""

    def test_examples_never_connects(self, runner, monkeypatch):
        def _forbidden(*args, **kwargs):
            raise AssertionError("examples must not parse or connect")

        monkeypatch.setattr(cli_module, "run_test_connection", _forbidden)
        monkeypatch.setattr(MongoConnection, "connect", staticmethod(_forbidden))

        result = runner.invoke(cli, ["examples"])

        assert result.exit_code == 0
        for title in (
            "Basic SCRAM-SHA-256 Authentication (Default)",
            "MongoDB Atlas (SRV)",
            "X.509 Certificate Authentication",
            "LDAP Authentication (PLAIN)",
            "AWS IAM Authentication",
            "Kerberos (GSSAPI) Authentication",
            "OpenID Connect (OIDC) Authentication",
            "TLS/SSL Connection",
        ):
            assert title in result.output
        assert "Additional Options:" in result.output
        assert "--login-timeout <secs>" in result.output
        assert "&authMechanism=SCRAM-SHA-256" in result.output


class TestEndToEnd:
    """Run the real parse and resolve steps with a fake connector."""

    def test_login_timeout_reaches_connect(self, runner, monkeypatch):
        calls = []

        class _Conn:
            cluster_type = "Single"
            uuid_representation = None

            def __init__(self, context):
                self._context = context

            def shutdown(self):
                self._context.close()

        def _fake_connect(options, database, connection_timeout, login_timeout, type_mode, context, max_len):
            calls.append((options, database, connection_timeout, login_timeout, type_mode, max_len))
            return _Conn(context)

        monkeypatch.setattr(MongoConnection, "connect", staticmethod(_fake_connect))

        result = runner.invoke(cli, ["uri", "-u", "mongodb://localhost:27017/", "--login-timeout", "5"])

        assert result.exit_code == 0, result.output
        options, database, connection_timeout, login_timeout, type_mode, max_len = calls[0]
        assert login_timeout == 5
        assert connection_timeout is None
        assert type_mode is TypeMode.STANDARD
        assert max_len is None
        assert options.username is None
        assert options.hosts == ["localhost:27017"]
        assert "Cluster type: Single" in result.output

    def test_parse_failure_exits_one(self, runner):
        result = runner.invoke(cli, ["odbc", "-c", "SERVER=localhost"])

        assert result.exit_code == 1
        assert "Failed to parse connection string" in result.output


class TestTlsFileFailures:
    """Bad certificate files end the run with a report, not a traceback."""

    def test_missing_ca_file(self, runner, tmp_path):
        missing = tmp_path / "ca.pem"

        result = runner.invoke(
            cli, ["uri", "-u", f"mongodb://localhost:1/?tls=true&tlsCAFile={missing}", "-t", "1"]
        )

        assert result.exit_code == 1, result.output
        assert not isinstance(result.exception, OSError)
        assert "✗ Failed to parse client options" in result.output
        assert "No such file or directory" in result.output
        assert "TLS/SSL issues detected:" in result.output
        assert "Step 4" not in result.output

    def test_missing_certificate_key_file(self, runner, tmp_path):
        missing = tmp_path / "client.pem"

        result = runner.invoke(
            cli,
            ["uri", "-u", f"mongodb://localhost:1/?tls=true&tlsCertificateKeyFile={missing}", "-t", "1"],
        )

        assert result.exit_code == 1, result.output
        assert "✗ Failed to parse client options" in result.output
        assert "TLS/SSL issues detected:" in result.output

    def test_malformed_ca_file(self, runner, tmp_path):
        ca_file = tmp_path / "ca.pem"
        ca_file.write_text("garbage\n")

        result = runner.invoke(
            cli, ["uri", "-u", f"mongodb://localhost:1/?tls=true&tlsCAFile={ca_file}", "-t", "1"]
        )

        assert result.exit_code == 1, result.output
        assert not isinstance(result.exception, OSError)
        assert "✗ Connection failed" in result.output
        assert "Time taken:" in result.output
        assert "TLS/SSL issues detected:" in result.output

"""
Unit tests for the admin CLI.

Tests cover:
- Command output and exit codes
- Argument parsing
- Logging setup
"""

import json
import logging

import json_log_formatter
import pytest

from esmodeller.config import ObservabilityConfig
from esmodeller.registry import Modeller
from esmodeller.store.memory import InMemoryStore
from esmodeller.tools import admin_cli
from esmodeller.tools.admin_cli import AdminCLI, build_parser, main, setup_logging


@pytest.fixture
def schema_path(tmp_path):
    """Schema file with one required field."""
    path = tmp_path / "posts.yaml"
    path.write_text(
        "index: posts\n"
        "schema:\n"
        "  title: {type: string, required: true}\n"
        "  views: integer\n"
    )
    return str(path)


def write_doc(tmp_path, doc):
    path = tmp_path / "doc.json"
    path.write_text(json.dumps(doc))
    return str(path)


class TestAdminCLI:
    """Tests for AdminCLI commands."""

    def test_validate_valid(self, schema_path, tmp_path):
        """Valid documents exit 0."""
        code, output = AdminCLI().validate(
            schema_path, write_doc(tmp_path, {"title": "Hi"}), "text"
        )
        assert code == 0
        assert output == "Document is valid"

    def test_validate_invalid_text(self, schema_path, tmp_path):
        """Errors and dropped fields are listed."""
        code, output = AdminCLI().validate(
            schema_path, write_doc(tmp_path, {"views": "x", "titel": "Hi"}), "text"
        )

        assert code == 1
        assert "failed with 2 error(s)" in output
        assert "data.title is required" in output
        assert "data.views is the wrong type" in output
        assert "did you mean: title?" in output

    def test_validate_json(self, schema_path, tmp_path):
        """JSON output is machine readable."""
        code, output = AdminCLI().validate(schema_path, write_doc(tmp_path, {}), "json")

        result = json.loads(output)
        assert code == 1
        assert result["valid"] is False
        assert result["errors"] == [{"field": "data.title", "message": "is required"}]
        assert result["dropped"] == {}

    def test_schema(self, schema_path):
        """schema prints the normalized definitions with the index."""
        code, output = AdminCLI().schema(schema_path)

        result = json.loads(output)
        assert code == 0
        assert result["index"] == "posts"
        assert result["schema"]["views"] == {"type": "integer"}

    @pytest.mark.asyncio
    async def test_ping(self):
        """ping reports ok for a reachable store."""
        cli = AdminCLI(Modeller(connection=InMemoryStore()))

        assert await cli.ping(100) == (0, "ok")

    @pytest.mark.asyncio
    async def test_count(self):
        """count prints the number of matching documents."""
        store = InMemoryStore()
        await store.connect()
        await store.index("posts", "_doc", {"title": "a"})
        await store.index("posts", "_doc", {"title": "b"})
        cli = AdminCLI(Modeller(connection=store))

        code, output = await cli.count("posts", "_doc", {"query": {"match": {"title": "a"}}})

        assert (code, output) == (0, "1")


class TestMain:
    """Tests for the entry point."""

    @pytest.fixture(autouse=True)
    def quiet_logging(self, monkeypatch):
        """Leave the test runner's logging alone."""
        monkeypatch.setattr(admin_cli, "setup_logging", lambda config: None)

    def test_parser_requires_command(self):
        """A subcommand is mandatory."""
        with pytest.raises(SystemExit):
            build_parser().parse_args([])

    def test_ping_memory_backend(self, monkeypatch, capsys):
        """main runs ping against the configured backend."""
        monkeypatch.setenv("STORE_BACKEND", "memory")

        with pytest.raises(SystemExit) as exc_info:
            main(["ping", "--timeout-ms", "200"])

        assert exc_info.value.code == 0
        assert capsys.readouterr().out.strip() == "ok"

    def test_validate_exit_code(self, schema_path, tmp_path, capsys):
        """Invalid documents exit 1."""
        with pytest.raises(SystemExit) as exc_info:
            main(["validate", "--schema", schema_path, "--doc", write_doc(tmp_path, {})])

        assert exc_info.value.code == 1
        assert "data.title is required" in capsys.readouterr().out

    def test_schema_error_exit_code(self, tmp_path, capsys):
        """Broken schema files exit 2 with a JSON error on stderr."""
        path = tmp_path / "bad.json"
        path.write_text('{"title": "text"}')

        with pytest.raises(SystemExit) as exc_info:
            main(["schema", "--schema", str(path)])

        assert exc_info.value.code == 2
        assert json.loads(capsys.readouterr().err)["code"] == "SCHEMA_ERROR"


class TestSetupLogging:
    """Tests for setup_logging()."""

    @pytest.fixture(autouse=True)
    def restore_root_logger(self):
        """Put the root logger back after each test."""
        root = logging.getLogger()
        handlers, level = root.handlers[:], root.level
        yield
        root.handlers = handlers
        root.setLevel(level)

    def test_json_format(self):
        """json format installs the JSON formatter."""
        setup_logging(ObservabilityConfig(log_level="DEBUG", log_format="json"))

        root = logging.getLogger()
        assert root.level == logging.DEBUG
        assert isinstance(root.handlers[0].formatter, json_log_formatter.JSONFormatter)

    def test_client_loggers_are_quieted(self):
        """Elasticsearch client loggers are raised to WARNING."""
        setup_logging(ObservabilityConfig())

        assert logging.getLogger("elastic_transport").level == logging.WARNING
        assert logging.getLogger("elasticsearch").level == logging.WARNING

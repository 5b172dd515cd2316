"""
Tests for the CLI interface.
"""
import json
import os
import tempfile
from unittest.mock import patch

import pytest
from typer.testing import CliRunner

from design_desk.cli.main import app, EXIT_CODE_PASS, EXIT_CODE_FAIL
from design_desk.storage.models import ClientDirectory, ClientRecord
from design_desk.storage.repository import ClientRepository

runner = CliRunner()

VALID_ENV = {
    "DISCORD_TOKEN": "token-value",
    "ADMIN_USER_ID": "555",
    "COMPLETED_CHANNEL_ID": "777",
}


@pytest.fixture
def clients_file():
    """Create a client file with one metered and one unlimited plan."""
    temp_dir = tempfile.mkdtemp()
    path = os.path.join(temp_dir, "clients.json")
    ClientRepository(path).save(ClientDirectory({
        111: ClientRecord("Acme", 5, 4),
        222: ClientRecord("MCBets", -1, 3),
    }))
    yield path
    import shutil
    shutil.rmtree(temp_dir, ignore_errors=True)


@pytest.fixture
def mock_create_bot():
    """Mock the bot factory so nothing connects."""
    with patch('design_desk.cli.main.create_bot') as mock:
        yield mock


@pytest.fixture
def mock_logging():
    with patch('design_desk.cli.main._configure_logging') as mock:
        yield mock


class TestCLI:
    """Test CLI commands."""

    def test_no_command_prints_hint(self):
        """Test the bare invocation."""
        result = runner.invoke(app, [])

        assert result.exit_code == EXIT_CODE_PASS
        assert "Design Desk" in result.output

    def test_validate_valid_files(self, clients_file):
        """Test validate with a good client file."""
        result = runner.invoke(app, ["validate", "--clients", clients_file])

        assert result.exit_code == EXIT_CODE_PASS
        assert "2 client plans are valid" in result.output

    def test_validate_broken_client_file(self, clients_file):
        """Test validate with a malformed client file."""
        with open(clients_file, 'w') as f:
            json.dump({"clients": {"111": {"name": "Acme", "monthlyQuota": "5", "used": 0}}}, f)

        result = runner.invoke(app, ["validate", "--clients", clients_file])

        assert result.exit_code == EXIT_CODE_FAIL
        assert "Invalid client file" in result.output

    def test_validate_missing_settings_file(self, clients_file):
        """Test validate with a settings path that does not exist."""
        result = runner.invoke(app, ["validate", "--clients", clients_file, "--settings", "missing.yaml"])

        assert result.exit_code == EXIT_CODE_FAIL
        assert "Invalid settings" in result.output

    def test_clients_table(self, clients_file):
        """Test the client table shows remaining without charging."""
        result = runner.invoke(app, ["clients", "--clients", clients_file])

        assert result.exit_code == EXIT_CODE_PASS
        assert "Acme" in result.output
        assert "MCBets" in result.output
        assert "unlimited" in result.output
        assert "999+" in result.output
        assert ClientRepository(clients_file).load().get(111).used == 4

    def test_clients_reads_path_from_environment(self, clients_file):
        """Test the DESIGN_DESK_CLIENTS variable."""
        result = runner.invoke(app, ["clients"], env={"DESIGN_DESK_CLIENTS": clients_file})

        assert result.exit_code == EXIT_CODE_PASS
        assert "Acme" in result.output

    def test_reset_usage_all(self, clients_file):
        """Test resetting every plan."""
        result = runner.invoke(app, ["reset-usage", "--clients", clients_file])

        assert result.exit_code == EXIT_CODE_PASS
        directory = ClientRepository(clients_file).load()
        assert directory.get(111).used == 0
        assert directory.get(222).used == 0

    def test_reset_usage_single_role(self, clients_file):
        """Test resetting one plan."""
        result = runner.invoke(app, ["reset-usage", "--clients", clients_file, "--role", "111"])

        assert result.exit_code == EXIT_CODE_PASS
        directory = ClientRepository(clients_file).load()
        assert directory.get(111).used == 0
        assert directory.get(222).used == 3

    def test_reset_usage_unknown_role(self, clients_file):
        """Test resetting a role that is not a client."""
        result = runner.invoke(app, ["reset-usage", "--clients", clients_file, "--role", "333"])

        assert result.exit_code == EXIT_CODE_FAIL
        assert "no client plan for role 333" in result.output

    def test_run_fails_without_secrets(self, clients_file, mock_create_bot, monkeypatch):
        """Test that run refuses to start without the environment."""
        for name in VALID_ENV:
            monkeypatch.delenv(name, raising=False)

        with patch('design_desk.cli.main.load_dotenv'):
            result = runner.invoke(app, ["run", "--clients", clients_file])

        assert result.exit_code == EXIT_CODE_FAIL
        assert "DISCORD_TOKEN is not set" in result.output
        mock_create_bot.assert_not_called()

    def test_run_fails_on_broken_client_file(self, clients_file, mock_create_bot, mock_logging):
        """Test that run validates the client file before connecting."""
        os.remove(clients_file)

        result = runner.invoke(app, ["run", "--clients", clients_file], env=VALID_ENV)

        assert result.exit_code == EXIT_CODE_FAIL
        assert "Invalid client file" in result.output
        mock_create_bot.assert_not_called()

    def test_run_starts_bot(self, clients_file, mock_create_bot, mock_logging):
        """Test that run builds the bot and starts it with the token."""
        result = runner.invoke(app, ["run", "--clients", clients_file], env=VALID_ENV)

        assert result.exit_code == EXIT_CODE_PASS
        mock_create_bot.assert_called_once()
        settings, secrets, repository = mock_create_bot.call_args.args
        assert secrets.admin_user_id == 555
        assert str(repository.path) == clients_file
        mock_create_bot.return_value.run.assert_called_once_with("token-value", log_handler=None)

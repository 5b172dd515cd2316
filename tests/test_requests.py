"""
Tests for command parsing, client resolution and request intake.
"""
import os
import tempfile
from datetime import datetime

import pytest

from design_desk.config.loader import CommandConfig, MultipleClientPolicy, QuotaPolicy
from design_desk.core.errors import (
    ClientNotAssigned,
    ConfigIntegrityError,
    MissingRequestText,
    MultipleClientsAssigned,
)
from design_desk.core.quota import QuotaReason
from design_desk.core.requests import RequestService, parse_command, resolve_client
from design_desk.storage.models import ClientDirectory, ClientRecord
from design_desk.storage.repository import ClientRepository

NOW = datetime(2026, 3, 1, 12, 0, 0)


class TestParseCommand:
    """Test request command parsing."""

    def setup_method(self):
        self.command = CommandConfig()

    def test_request_text_is_extracted(self):
        """Test a well-formed command."""
        assert parse_command("!request Banner redesign", self.command) == "Banner redesign"

    def test_whitespace_is_collapsed(self):
        """Test that extra spaces between words are collapsed."""
        assert parse_command("!request   Banner    redesign  ", self.command) == "Banner redesign"

    def test_command_word_is_case_insensitive(self):
        """Test that the command word ignores case."""
        assert parse_command("!REQUEST Logo", self.command) == "Logo"

    def test_space_after_prefix_is_allowed(self):
        """Test that whitespace between prefix and command is trimmed."""
        assert parse_command("! request Logo", self.command) == "Logo"

    def test_missing_text_raises_error(self):
        """Test that a bare command is rejected."""
        with pytest.raises(MissingRequestText) as excinfo:
            parse_command("!request   ", self.command)

        assert str(excinfo.value) == "Please provide a request name."

    @pytest.mark.parametrize("content", [
        "request Logo",
        "hello there",
        "!requests Logo",
        "!help",
        "!",
        "",
    ])
    def test_other_messages_are_ignored(self, content):
        """Test that anything else is not a command."""
        assert parse_command(content, self.command) is None

    def test_custom_prefix_and_name(self):
        """Test a configured prefix and command word."""
        command = CommandConfig(prefix="?", name="design")

        assert parse_command("?design Flyer", command) == "Flyer"
        assert parse_command("!request Flyer", command) is None


class TestResolveClient:
    """Test client role resolution."""

    def setup_method(self):
        self.directory = ClientDirectory({
            300: ClientRecord("Zeta", 5, 0),
            100: ClientRecord("Acme", 5, 0),
        })

    def test_single_match(self):
        """Test a requester holding one client role."""
        assert resolve_client([1, 2, 300], self.directory) == 300

    def test_no_match_raises_error(self):
        """Test a requester with no client role."""
        with pytest.raises(ClientNotAssigned, match="not assigned to any client plan"):
            resolve_client([1, 2], self.directory)

    def test_multiple_matches_use_lowest_role_id(self):
        """Test the deterministic tie-break regardless of role order."""
        assert resolve_client([300, 100], self.directory) == 100
        assert resolve_client([100, 300], self.directory) == 100

    def test_multiple_matches_rejected_by_policy(self):
        """Test the reject policy."""
        with pytest.raises(MultipleClientsAssigned):
            resolve_client([300, 100], self.directory, MultipleClientPolicy.REJECT)

    def test_duplicate_role_is_single_match(self):
        """Test that a repeated role ID is not treated as two clients."""
        assert resolve_client([100, 100], self.directory, MultipleClientPolicy.REJECT) == 100


class TestRequestService:
    """Test request intake against a real client file."""

    def setup_method(self):
        """Set up test environment."""
        self.temp_dir = tempfile.mkdtemp()
        self.repository = ClientRepository(os.path.join(self.temp_dir, "clients.json"))
        self.repository.save(ClientDirectory({
            111: ClientRecord("Acme", 5, 4),
            222: ClientRecord("MCBets", -1, 0),
        }))
        self.service = RequestService(self.repository, QuotaPolicy(), clock=lambda: NOW)

    def teardown_method(self):
        """Clean up test environment."""
        import shutil
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def test_open_request_charges_quota(self):
        """Test the Acme scenario end to end through the file."""
        request = self.service.open_request(42, [7, 111], "Banner redesign")

        assert request.requester_id == 42
        assert request.text == "Banner redesign"
        assert request.role_id == 111
        assert request.client.name == "Acme"
        assert request.remaining_display == "1"
        assert self.repository.load().get(111).used == 5

    def test_unlimited_client_is_not_charged(self):
        """Test that an unlimited client keeps its used count."""
        service = RequestService(self.repository, QuotaPolicy(), clock=lambda: datetime(2026, 1, 1))

        request = service.open_request(42, [222], "Promo art")

        assert request.remaining_display == "999+"
        assert request.quota.reason == QuotaReason.UNLIMITED_PROMOTION
        assert self.repository.load().get(222).used == 0

    def test_unassigned_requester_changes_nothing(self):
        """Test that rejection happens before any write."""
        before = os.path.getmtime(self.repository.path)

        with pytest.raises(ClientNotAssigned):
            self.service.open_request(42, [7, 8], "Logo")

        assert os.path.getmtime(self.repository.path) == before
        assert self.repository.load().get(111).used == 4

    def test_missing_client_file_raises_integrity_error(self):
        """Test that a missing file surfaces as ConfigIntegrityError."""
        os.remove(self.repository.path)

        with pytest.raises(ConfigIntegrityError):
            self.service.open_request(42, [111], "Logo")

    def test_each_request_charges_once(self):
        """Test consecutive requests decrement the display."""
        displays = [self.service.open_request(42, [111], f"Design {i}").remaining_display for i in range(3)]

        assert displays == ["1", "0", "-1"]
        assert self.repository.load().get(111).used == 7

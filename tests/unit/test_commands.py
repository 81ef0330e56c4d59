"""Unit tests for the /wl operator commands."""

import json
from pathlib import Path

import pytest

from whitelist_gatekeeper.audit import AdmissionAuditor
from whitelist_gatekeeper.commands import (
    HELP_LINES,
    AdminCommandHandler,
    ReplyKind,
    ReplyLine,
    split_command,
)
from whitelist_gatekeeper.core.models import WhitelistDocument, WhitelistUser
from whitelist_gatekeeper.core.store import InMemoryIdentityStore
from whitelist_gatekeeper.engines.registry import AdmissionRegistry

STEVE = WhitelistUser(username="Steve", uuid="abc-123")
ALEX = WhitelistUser(username="Alex", uuid="def-456")


def _handler(
    users: list[WhitelistUser] | None = None,
    attempts: list[WhitelistUser] | None = None,
    **kwargs,
) -> tuple[AdminCommandHandler, AdmissionRegistry, InMemoryIdentityStore]:
    store = InMemoryIdentityStore(WhitelistDocument(users=users or [], attempts=attempts or []).to_json())
    registry = AdmissionRegistry(store)
    return AdminCommandHandler(registry, **kwargs), registry, store


def _texts(lines: list[ReplyLine]) -> list[str]:
    return [line.text for line in lines]


class TestSplitCommand:
    """Tests for command text parsing."""

    @pytest.mark.parametrize(
        ("text", "expected"),
        [
            ("add Steve", ("add", "Steve")),
            ("ADD Steve", ("add", "Steve")),
            ("add  Big Steve", ("add", "Big Steve")),
            ("wl add Steve", ("add", "Steve")),
            ("/wl remove abc-123", ("remove", "abc-123")),
            ("reload", ("reload", "")),
            ("add", ("add", "")),
            ("", ("", "")),
            ("/wl", ("", "")),
        ],
    )
    def test_split(self, text: str, expected: tuple[str, str]) -> None:
        """Subcommand is lower-cased and the remainder kept verbatim."""
        assert split_command(text) == expected


class TestAdd:
    """Tests for /wl add."""

    def test_add_promotes_attempt(self) -> None:
        """add moves a recorded attempt to the whitelist."""
        handler, registry, _ = _handler(attempts=[STEVE])

        lines = handler.handle("add Steve")

        assert lines == [ReplyLine(ReplyKind.SUCCESS, "Added Steve to the whitelist.")]
        assert registry.list_all().users == (STEVE,)
        assert registry.list_all().attempts == ()

    def test_add_unknown(self) -> None:
        """add of an unknown name reports not found and changes nothing."""
        handler, registry, store = _handler()
        before = store.raw

        lines = handler.handle("add ghost")

        assert lines == [ReplyLine(ReplyKind.ERROR, "ghost not found.")]
        assert store.raw == before

    def test_add_already_whitelisted(self) -> None:
        """add of a listed player reports it."""
        handler, _, _ = _handler(users=[STEVE])

        assert _texts(handler.handle("add abc-123")) == ["Steve is already whitelisted."]

    def test_add_without_search_shows_usage(self) -> None:
        """add without a search term shows usage."""
        handler, _, store = _handler(attempts=[STEVE])
        before = store.raw

        assert handler.handle("add") == [ReplyLine(ReplyKind.ERROR, "Usage: /wl add <Username/UUID>")]
        assert handler.handle("add   ") == [ReplyLine(ReplyKind.ERROR, "Usage: /wl add <Username/UUID>")]
        assert store.raw == before

    def test_add_name_with_spaces(self) -> None:
        """Search terms may contain spaces."""
        spaced = WhitelistUser(username="Big Steve", uuid="uuid-9")
        handler, _, _ = _handler(attempts=[spaced])

        assert _texts(handler.handle("add Big Steve")) == ["Added Big Steve to the whitelist."]

    def test_add_ambiguous_name(self) -> None:
        """A shared name asks for the UUID."""
        handler, registry, _ = _handler(
            attempts=[WhitelistUser(username="Sam", uuid="u1"), WhitelistUser(username="Sam", uuid="u2")]
        )

        lines = handler.handle("add Sam")

        assert _texts(lines) == ["Sam matches multiple players: Sam (u1), Sam (u2). Use the UUID instead."]
        assert registry.size == 0


class TestRemove:
    """Tests for /wl remove."""

    def test_remove_listed(self) -> None:
        """remove takes a player off the whitelist."""
        handler, registry, _ = _handler(users=[STEVE])

        lines = handler.handle("remove Steve")

        assert lines == [ReplyLine(ReplyKind.SUCCESS, "Removed Steve from the whitelist.")]
        assert registry.is_allowed("abc-123") is False

    def test_remove_unknown(self) -> None:
        """remove of an unknown name reports not found."""
        handler, _, _ = _handler()

        assert _texts(handler.handle("remove ghost")) == ["ghost not found."]

    def test_remove_not_whitelisted(self) -> None:
        """remove of a pending attempt reports not whitelisted."""
        handler, _, _ = _handler(attempts=[STEVE])

        assert _texts(handler.handle("remove Steve")) == ["Steve is not whitelisted."]

    def test_remove_without_search_shows_usage(self) -> None:
        """remove without a search term shows usage."""
        handler, _, _ = _handler(users=[STEVE])

        assert _texts(handler.handle("remove")) == ["Usage: /wl remove <Username/UUID>"]


class TestReloadAndList:
    """Tests for /wl reload and /wl list."""

    def test_reload_picks_up_file_changes(self) -> None:
        """reload replaces the in-memory whitelist."""
        handler, registry, store = _handler()
        store.raw = WhitelistDocument(users=[ALEX]).to_json()

        lines = handler.handle("reload")

        assert lines == [ReplyLine(ReplyKind.SUCCESS, "Whitelist reloaded from file.")]
        assert registry.is_allowed("def-456")

    def test_reload_broken_file_warns(self) -> None:
        """reload of a broken file still replies and warns."""
        handler, registry, store = _handler(users=[STEVE])
        store.raw = "{broken"

        lines = handler.handle("reload")

        assert lines[0].text == "Whitelist reloaded from file."
        assert lines[1].kind is ReplyKind.ERROR
        assert registry.available is False

    def test_mutation_refused_while_unavailable(self) -> None:
        """add/remove are refused when the file could not be loaded."""
        handler, _, store = _handler()
        store.raw = "{broken"
        handler.handle("reload")

        assert _texts(handler.handle("add Steve")) == [
            "The whitelist file could not be loaded. Fix it and run /wl reload."
        ]
        assert store.raw == "{broken"

    def test_list_empty(self) -> None:
        """list of an empty whitelist says so."""
        handler, _, _ = _handler()

        assert _texts(handler.handle("list")) == ["The whitelist is currently empty."]

    def test_list_empty_whitelist_with_attempts(self) -> None:
        """Attempts alone still count as an empty whitelist."""
        handler, _, _ = _handler(attempts=[ALEX])

        assert _texts(handler.handle("list")) == ["The whitelist is currently empty."]

    def test_list_both_sections_in_order(self) -> None:
        """list shows whitelisted users, then attempts."""
        handler, _, _ = _handler(users=[STEVE], attempts=[ALEX])

        lines = handler.handle("list")

        assert _texts(lines) == [
            "Whitelisted:",
            "Steve (abc-123)",
            "Attempted:",
            "Alex (def-456)",
        ]
        assert all(line.kind is ReplyKind.INFO for line in lines)


class TestDispatch:
    """Tests for help output, reply sinks and audit."""

    @pytest.mark.parametrize("text", ["", "help", "frobnicate Steve"])
    def test_unknown_subcommand_shows_help(self, text: str) -> None:
        """Anything else prints the help block."""
        handler, _, _ = _handler()

        assert _texts(handler.handle(text)) == list(HELP_LINES)

    def test_reply_sink_receives_lines(self) -> None:
        """Each line is pushed to the reply sink in order."""
        handler, _, _ = _handler(users=[STEVE], attempts=[ALEX])
        received: list[ReplyLine] = []

        lines = handler.handle("list", received.append)

        assert received == lines

    def test_changes_are_audited(self, tmp_path: Path) -> None:
        """add, remove and reload write audit events with the operator."""
        log_path = tmp_path / "audit.jsonl"
        auditor = AdmissionAuditor(log_path=log_path)
        try:
            handler, _, _ = _handler(attempts=[STEVE], auditor=auditor)
            handler.handle("add Steve", operator="admin")
            handler.handle("remove ghost", operator="admin")
            handler.handle("reload", operator="admin")
        finally:
            auditor.close()

        events = [json.loads(line) for line in log_path.read_text(encoding="utf-8").splitlines()]
        assert [(e["event_type"], e["result"]) for e in events] == [
            ("whitelist.add", "success"),
            ("whitelist.remove", "not_found"),
            ("whitelist.reload", "success"),
        ]
        assert all(e["operator"] == "admin" for e in events)
        assert events[0]["uuid"] == "abc-123"

    def test_audit_failure_still_reports_change(self, tmp_path: Path) -> None:
        """A saved change is confirmed to the operator even if auditing fails."""
        auditor = AdmissionAuditor(log_path=tmp_path / "audit.jsonl")
        auditor._log_file.close()
        handler, registry, store = _handler(attempts=[STEVE], auditor=auditor)

        assert _texts(handler.handle("add Steve", operator="admin")) == ["Added Steve to the whitelist."]
        assert json.loads(store.raw)["Users"] == [{"Username": "Steve", "UUID": "abc-123"}]
        assert _texts(handler.handle("remove Steve", operator="admin")) == [
            "Removed Steve from the whitelist."
        ]
        assert registry.is_allowed("abc-123") is False

    def test_raising_auditor_is_contained(self) -> None:
        """Errors raised by the auditor itself do not reach the operator."""

        class RaisingAuditor(AdmissionAuditor):
            def log_change(self, *args, **kwargs) -> str:
                raise RuntimeError("audit down")

        handler, registry, _ = _handler(attempts=[STEVE], auditor=RaisingAuditor())

        assert _texts(handler.handle("add Steve")) == ["Added Steve to the whitelist."]
        assert _texts(handler.handle("reload"))[0] == "Whitelist reloaded from file."
        assert registry.is_allowed("abc-123") is True

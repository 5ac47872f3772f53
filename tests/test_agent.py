"""Tests for IrcAgent construction and inbound event handling (irctransport/agent/agent.py)."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from irctransport.agent import IrcAgent
from irctransport.config import Config
from irctransport.core.errors import SettingsStoreError
from irctransport.settings import AgentSettings, MemorySettingsStore
from tests.mocks import FakePlayer, FakeTransport, make_config

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _make_agent(
    player: FakePlayer | None = None,
    store=None,
    config: Config | None = None,
    **kwargs,
) -> IrcAgent:
    return IrcAgent(
        config or make_config(),
        player or FakePlayer("Steve"),
        store if store is not None else MemorySettingsStore(),
        transport_factory=FakeTransport,
        **kwargs,
    )


# ---------------------------------------------------------------------------
# Construction
# ---------------------------------------------------------------------------


class TestConstruction:
    def test_default_nick_is_prefix_name_suffix(self):
        store = MemorySettingsStore()
        agent = _make_agent(store=store, config=make_config(nick_prefix="mc_", nick_suffix="|g"))
        assert agent.settings.irc_nick == "mc_Steve|g"
        assert agent.transport.nickname == "mc_Steve|g"

    def test_new_settings_saved_and_flagged(self):
        store = MemorySettingsStore()
        agent = _make_agent(store=store)
        assert agent.is_new_settings is True
        assert store.save_count == 1
        assert store.find("Steve") == AgentSettings("Steve", "mc_Steve")

    def test_persisted_nick_adopted_verbatim(self):
        store = MemorySettingsStore({"Steve": "SteveTheGreat"})
        agent = _make_agent(store=store)
        assert agent.is_new_settings is False
        assert agent.settings.irc_nick == "SteveTheGreat"
        assert agent.nick == "SteveTheGreat"
        assert store.save_count == 0

    def test_transport_gets_player_identity_and_autojoin(self):
        agent = _make_agent(config=make_config(irc_autojoin_channels=["#a", "#b"]))
        assert agent.transport.kwargs == {"username": "Steve", "realname": "Steve"}
        assert agent.transport.autojoin == ["#a", "#b"]
        assert agent.transport.handler is agent

    def test_unreadable_store_propagates(self):
        store = MagicMock()
        store.find.side_effect = SettingsStoreError("broken")
        with pytest.raises(SettingsStoreError):
            _make_agent(store=store)

    def test_failed_initial_save_does_not_raise(self):
        store = MagicMock()
        store.find.return_value = None
        store.save.return_value = False
        agent = _make_agent(store=store)
        assert agent.is_new_settings is True
        assert agent.settings.irc_nick == "mc_Steve"

    def test_no_network_io_on_construction(self):
        agent = _make_agent()
        agent.transport.connect.assert_not_called()
        assert agent.active_channel is None
        assert agent.shutting_down is False

    def test_nick_prefers_confirmed_nick_once_registered(self):
        agent = _make_agent()
        agent.transport.registered = True
        agent.transport.nickname = "mc_Steve_"
        assert agent.nick == "mc_Steve_"

    def test_injected_logger_used(self):
        log = MagicMock()
        _make_agent(store=MemorySettingsStore({"Steve": "custom"}), log=log)
        log.info.assert_called_once_with("Player '{}' using persistent IRC nick '{}'", "Steve", "custom")


# ---------------------------------------------------------------------------
# on_join / active channel
# ---------------------------------------------------------------------------


class TestOnJoin:
    def test_self_join_sets_active_channel(self):
        agent = _make_agent()
        agent.on_join("#test", "mc_Steve")
        assert agent.active_channel == "#test"

    def test_self_join_matches_case_insensitively(self):
        agent = _make_agent()
        agent.on_join("#test", "MC_STEVE")
        assert agent.active_channel == "#test"

    def test_other_join_leaves_active_channel(self):
        agent = _make_agent()
        agent.on_join("#test", "mc_Steve")
        agent.on_join("#other", "alice")
        assert agent.active_channel == "#test"

    def test_join_notification(self):
        player = FakePlayer("Steve")
        agent = _make_agent(player=player)
        agent.on_join("#test", "alice")
        assert player.received == ["§e[#test] alice has joined."]

    def test_set_active_channel(self):
        agent = _make_agent()
        agent.set_active_channel("#foo")
        assert agent.active_channel == "#foo"


# ---------------------------------------------------------------------------
# on_nick_change
# ---------------------------------------------------------------------------


class TestOnNickChange:
    def test_change_from_display_name_persists(self):
        store = MemorySettingsStore()
        player = FakePlayer("Steve")
        agent = _make_agent(player=player, store=store)
        agent.on_nick_change("Steve", "Steve2")
        assert store.find("Steve").irc_nick == "Steve2"
        assert agent.settings.irc_nick == "Steve2"
        assert player.display_name == "Steve2"

    def test_change_to_confirmed_own_nick_persists(self):
        store = MemorySettingsStore()
        agent = _make_agent(store=store)
        agent.transport.nickname = "newnick"
        agent.on_nick_change("mc_Steve", "newnick")
        assert store.find("Steve").irc_nick == "newnick"

    def test_unrelated_change_not_persisted(self):
        store = MemorySettingsStore()
        player = FakePlayer("Steve")
        agent = _make_agent(player=player, store=store)
        saves = store.save_count
        agent.on_nick_change("alice", "bob")
        assert store.save_count == saves
        assert store.find("Steve").irc_nick == "mc_Steve"
        assert player.display_name == "Steve"

    def test_notification(self):
        player = FakePlayer("Steve")
        agent = _make_agent(player=player)
        agent.on_nick_change("alice", "bob")
        assert player.received == ["alice is now known as bob"]

    def test_failed_save_still_updates_in_memory(self):
        store = MagicMock()
        store.find.return_value = AgentSettings("Steve", "Steve")
        store.save.return_value = False
        agent = _make_agent(store=store)
        agent.on_nick_change("Steve", "Steve2")
        assert agent.settings.irc_nick == "Steve2"


# ---------------------------------------------------------------------------
# on_server_response
# ---------------------------------------------------------------------------


class TestOnServerResponse:
    def test_nick_in_use(self):
        player = FakePlayer("Steve")
        agent = _make_agent(player=player)
        agent.on_server_response(433, "attemptednick :Nickname is already in use.")
        assert player.received == ["§e[attemptednick] Nickname is already in use."]

    def test_leading_target_skipped(self):
        player = FakePlayer("Steve")
        agent = _make_agent(player=player)
        agent.on_server_response(403, "mc_Steve #nowhere :No such channel")
        assert player.received == ["§e[#nowhere] No such channel"]

    def test_malformed_payload_is_noop(self):
        player = FakePlayer("Steve")
        agent = _make_agent(player=player)
        agent.on_server_response(433, "garbage")
        agent.on_server_response(473, "")
        assert player.received == []

    def test_non_error_numeric_ignored(self):
        player = FakePlayer("Steve")
        agent = _make_agent(player=player)
        agent.on_server_response(1, "mc_Steve :Welcome")
        assert player.received == []


# ---------------------------------------------------------------------------
# Other notifications
# ---------------------------------------------------------------------------


class TestNotifications:
    def setup_method(self):
        self.player = FakePlayer("Steve")
        self.agent = _make_agent(player=self.player)

    def test_message_translates_colors(self):
        self.agent.on_message("#test", "alice", "\x02hi\x02 there")
        assert self.player.received == ["[#test] alice: §lhi§r there"]

    def test_action(self):
        self.agent.on_action("alice", "#test", "waves")
        assert self.player.received == ["[#test] * alice waves"]

    def test_part(self):
        self.agent.on_part("#test", "alice", "bye")
        assert self.player.received == ["§e[#test] alice has parted."]

    def test_kick_with_reason(self):
        self.agent.on_kick("#test", "op", "alice", "spam")
        assert self.player.received == ["§e[#test] alice kicked by op: spam"]

    def test_kick_without_reason(self):
        self.agent.on_kick("#test", "op", "alice", None)
        assert self.player.received == ["§e[#test] alice kicked by op: "]

    def test_quit(self):
        self.agent.on_quit("alice", "Ping timeout")
        assert self.player.received == ["§ealice has quit: Ping timeout"]

    def test_quit_without_reason(self):
        self.agent.on_quit("alice", None)
        assert self.player.received == ["§ealice has quit: "]

    def test_private_message(self):
        self.agent.on_private_message("alice", "psst")
        assert self.player.received == ["alice: psst"]

    def test_topic_on_join(self):
        self.agent.on_topic("#test", "Welcome", None, False)
        assert self.player.received == ["§e[#test] Topic: Welcome"]

    def test_topic_changed(self):
        self.agent.on_topic("#test", "New topic", "op", True)
        assert self.player.received == ["§e[#test] Topic changed: New topic"]

    def test_user_list(self):
        self.agent.on_user_list("#test", ["alice", "@op", "mc_Steve"])
        assert self.player.received == ["#test members: alice @op mc_Steve"]

    def test_on_connect_is_silent(self):
        self.agent.on_connect()
        assert self.player.received == []


class TestDelivery:
    def test_failing_player_does_not_break_dispatch(self):
        player = FakePlayer("Steve")
        player.send_message = MagicMock(side_effect=RuntimeError("boom"))
        agent = _make_agent(player=player)
        agent.on_join("#test", "mc_Steve")
        assert agent.active_channel == "#test"

    def test_deliver_marshals_notifications(self):
        player = FakePlayer("Steve")
        queued = []
        agent = _make_agent(player=player, deliver=queued.append)
        agent.on_message("#test", "alice", "hi")
        assert player.received == []
        assert len(queued) == 1
        queued[0]()
        assert player.received == ["[#test] alice: hi"]


# ---------------------------------------------------------------------------
# on_disconnect
# ---------------------------------------------------------------------------


class TestOnDisconnect:
    def test_reconnects_when_not_shutting_down(self):
        player = FakePlayer("Steve")
        agent = _make_agent(player=player)
        agent.connection = MagicMock()
        agent.on_disconnect(False)
        agent.connection.schedule.assert_called_once()
        assert player.received == ["ChatService Disconnected."]

    def test_no_reconnect_after_shutdown(self):
        player = FakePlayer("Steve")
        agent = _make_agent(player=player)
        agent.connection = MagicMock()
        assert agent.shutdown() is None  # never started, nothing to submit
        agent.on_disconnect(True)
        agent.connection.schedule.assert_not_called()
        assert player.received == ["ChatService Disconnected."]

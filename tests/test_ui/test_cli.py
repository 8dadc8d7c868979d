"""Tests for the Typer command-line interface."""

import asyncio
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from rich.console import Console
from typer.testing import CliRunner

from support_agent.config import AppConfig, ConfigLoadError
from support_agent.conversations import JsonlConversationStore
from support_agent.graph import StepExecutionError, StepName, TurnResult
from support_agent.tools import ToolExecutionError
from support_agent.ui import cli

runner = CliRunner()


@pytest.fixture
def settings(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> AppConfig:
    """Point the CLI at a temporary store and a wide console."""
    config = AppConfig(conversation_store_path=tmp_path / "conversations")
    monkeypatch.setattr(cli, "get_settings", lambda: config)
    monkeypatch.setattr(cli, "console", Console(width=200))
    return config


def make_result(reply: str = "We have two gaming laptops.", handed_off: bool = False) -> TurnResult:
    return TurnResult(
        reply=reply,
        conversation_id="conv-1",
        trace_id="trace-abc",
        total_cost_usd=0.0006,
        tool_call_count=1,
        handed_off=handed_off,
        steps=[
            {"step": "input_converter", "index": 1, "duration_ms": 0.2, "next_step": "nlu_chat_model"},
            {"step": "nlu_chat_model", "index": 2, "duration_ms": 12.5, "next_step": "parser"},
        ],
    )


class TestChatCommand:
    """Tests for the chat command."""

    def test_reply_and_footer(self, settings: AppConfig, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test that the reply and turn summary are printed."""
        calls: list[tuple[str, str, float | None]] = []

        async def fake_handle(config, conversation_id, message, timeout):
            calls.append((conversation_id, message, timeout))
            return make_result()

        monkeypatch.setattr(cli, "_handle_request", fake_handle)

        result = runner.invoke(
            cli.app, ["chat", "Do you have gaming laptops?", "-c", "conv-1", "-t", "5"]
        )

        assert result.exit_code == 0
        assert calls == [("conv-1", "Do you have gaming laptops?", 5.0)]
        assert "Assistant:" in result.stdout
        assert "We have two gaming laptops." in result.stdout
        assert "Conversation: conv-1" in result.stdout
        assert "Tool rounds: 1" in result.stdout
        assert "Cost: $0.000600" in result.stdout
        assert "Trace ID: trace-abc" in result.stdout

    def test_generated_conversation_id(
        self, settings: AppConfig, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Test that a conversation id is generated when none is given."""
        seen: list[str] = []

        async def fake_handle(config, conversation_id, message, timeout):
            seen.append(conversation_id)
            return make_result()

        monkeypatch.setattr(cli, "_handle_request", fake_handle)

        result = runner.invoke(cli.app, ["chat", "hello"])

        assert result.exit_code == 0
        assert len(seen) == 1
        assert len(seen[0]) == 36

    def test_handoff_label(self, settings: AppConfig, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test that escalated turns are labelled."""

        async def fake_handle(config, conversation_id, message, timeout):
            return make_result(reply="Connecting you to a human agent.", handed_off=True)

        monkeypatch.setattr(cli, "_handle_request", fake_handle)

        result = runner.invoke(cli.app, ["chat", "This is useless!"])

        assert result.exit_code == 0
        assert "Escalated:" in result.stdout
        assert "Assistant:" not in result.stdout

    def test_steps_table(self, settings: AppConfig, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test that --steps lists the executed steps."""

        async def fake_handle(config, conversation_id, message, timeout):
            return make_result()

        monkeypatch.setattr(cli, "_handle_request", fake_handle)

        result = runner.invoke(cli.app, ["chat", "hello", "--steps"])

        assert result.exit_code == 0
        assert "input_converter" in result.stdout
        assert "12.5" in result.stdout

    def test_failure_is_sanitized(
        self, settings: AppConfig, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Test that pipeline errors exit 1 with a customer-safe message."""

        async def fake_handle(config, conversation_id, message, timeout):
            raise StepExecutionError(
                StepName.TOOL_EXECUTOR,
                ToolExecutionError("search_product", "/srv/catalog.db locked"),
            )

        monkeypatch.setattr(cli, "_handle_request", fake_handle)

        result = runner.invoke(cli.app, ["chat", "hello"])

        assert result.exit_code == 1
        assert "A product lookup failed. Please try again." in result.stdout
        assert "/srv/catalog.db" not in result.stdout

    def test_configuration_error(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test that invalid configuration exits 2."""

        def broken() -> AppConfig:
            raise ConfigLoadError("pricing file not found")

        monkeypatch.setattr(cli, "get_settings", broken)
        monkeypatch.setattr(cli, "console", Console(width=200))

        result = runner.invoke(cli.app, ["chat", "hello"])

        assert result.exit_code == 2
        assert "Configuration error" in result.stdout


class TestHistoryAndClear:
    """Tests for the history and clear commands."""

    def _seed(self, settings: AppConfig) -> JsonlConversationStore:
        assert settings.conversation_store_path is not None
        store = JsonlConversationStore(settings.conversation_store_path)
        asyncio.run(store.append_message("conv-1", {"role": "user", "content": "Hi"}))
        asyncio.run(store.append_message("conv-1", {"role": "assistant", "content": "Hello!"}))
        return store

    def test_history_empty(self, settings: AppConfig) -> None:
        """Test the message for unknown conversations."""
        result = runner.invoke(cli.app, ["history", "missing"])

        assert result.exit_code == 0
        assert "No messages stored for conversation: missing" in result.stdout

    def test_history_table(self, settings: AppConfig) -> None:
        """Test that stored messages are listed."""
        self._seed(settings)

        result = runner.invoke(cli.app, ["history", "conv-1"])

        assert result.exit_code == 0
        assert "2 messages" in result.stdout
        assert "Hello!" in result.stdout

    def test_history_json(self, settings: AppConfig) -> None:
        """Test JSON output."""
        self._seed(settings)

        result = runner.invoke(cli.app, ["history", "conv-1", "--json"])

        assert result.exit_code == 0
        assert '"role": "user"' in result.stdout
        assert '"content": "Hello!"' in result.stdout

    def test_clear(self, settings: AppConfig) -> None:
        """Test that clear removes the stored history."""
        store = self._seed(settings)

        result = runner.invoke(cli.app, ["clear", "conv-1"])

        assert result.exit_code == 0
        assert "Cleared conversation conv-1" in result.stdout
        assert asyncio.run(store.load_history("conv-1")) == []


def test_handle_request_builds_agent_over_store(settings: AppConfig) -> None:
    """Test that a turn runs on an agent wired to the JSONL store."""
    agent = MagicMock()
    agent.invoke = AsyncMock(return_value=make_result())

    with patch.object(cli.SupportAgent, "from_settings", return_value=agent) as factory:
        result = asyncio.run(cli._handle_request(settings, "conv-1", "hi", 3.0))

    assert result["reply"] == "We have two gaming laptops."
    assert factory.call_args.args[0] is settings
    assert isinstance(factory.call_args.args[1], JsonlConversationStore)
    agent.invoke.assert_awaited_once_with("conv-1", "hi", timeout=3.0)

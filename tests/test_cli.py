"""
Tests for bmchat/cli.py command-line interface.

Runs commands through main() against a JSON bookmarks file and checks what
they print.
"""
import json
import pytest
from unittest.mock import MagicMock, patch

from bmchat import cli
from bmchat.config import BmchatConfig, user_config_path
from bmchat.history import WELCOME_MESSAGE
from bmchat.llm import NOT_CONFIGURED_MESSAGE
from bmchat.models import StreamChunk


def run(capsys, *argv):
    """Run the CLI and return its stdout."""
    cli.main(list(argv))
    return capsys.readouterr().out


class TestSearchCommand:
    """Test the search command."""

    def test_local_search_json(self, capsys, bookmarks_json_file):
        """Matching bookmarks are printed as JSON."""
        out = run(capsys, "-b", str(bookmarks_json_file), "-o", "json", "search", "react")
        assert [b["id"] for b in json.loads(out)] == ["b1", "b4"]

    def test_limit(self, capsys, bookmarks_json_file):
        """--limit caps the results."""
        out = run(capsys, "-b", str(bookmarks_json_file), "-o", "json", "search", "react", "-n", "1")
        assert [b["id"] for b in json.loads(out)] == ["b1"]

    def test_urls_output(self, capsys, bookmarks_json_file):
        """The urls format prints one URL per line."""
        out = run(capsys, "-b", str(bookmarks_json_file), "-o", "urls", "search", "github")
        assert out.split() == ["https://github.com"]

    def test_ai_search_without_key_falls_back(self, capsys, bookmarks_json_file):
        """--ai without credentials uses local search."""
        out = run(capsys, "-b", str(bookmarks_json_file), "-o", "json", "search", "react", "--ai")
        assert [b["id"] for b in json.loads(out)] == ["b1", "b4"]

    def test_ai_search_limit(self, capsys, bookmarks_json_file, sample_bookmarks):
        """--limit is passed to the remote search and the config is left alone."""
        with patch.object(cli.ChatClient, "search_bookmarks", autospec=True,
                          return_value=sample_bookmarks[:1]) as mock_search:
            out = run(capsys, "-b", str(bookmarks_json_file), "-o", "json",
                      "search", "react", "--ai", "-n", "1")

        assert [b["id"] for b in json.loads(out)] == ["b1"]
        assert mock_search.call_args.kwargs["limit"] == 1
        client = mock_search.call_args.args[0]
        assert client.config.search_limit == 10

    def test_no_results(self, capsys, bookmarks_json_file):
        """An unmatched query says so."""
        out = run(capsys, "-b", str(bookmarks_json_file), "search", "zzzqqq")
        assert "No matching bookmarks" in out


class TestAskCommand:
    """Test the ask command."""

    def test_without_key(self, capsys, bookmarks_json_file):
        """Without credentials the fixed message is printed."""
        out = run(capsys, "-b", str(bookmarks_json_file), "ask", "what do I have on react?")
        assert "no AI API key is configured" in out

    def test_streamed_answer(self, capsys, bookmarks_json_file):
        """Streamed chunks are printed, reasoning hidden on request."""
        chunks = [
            StreamChunk.thinking_start(),
            StreamChunk.reasoning("secret plan"),
            StreamChunk.thinking_end(),
            StreamChunk.answer("Try React Docs"),
        ]
        with patch.object(cli.ChatClient, "stream_chat", return_value=iter(chunks)):
            out = run(capsys, "-b", str(bookmarks_json_file), "ask", "react?", "--no-reasoning")
        assert "Try React Docs" in out
        assert "secret plan" not in out


class TestListingCommands:
    """Test context, recent, stats and suggest."""

    def test_context_json(self, capsys, bookmarks_json_file):
        """All bookmarks fit the default budget."""
        out = run(capsys, "-q", "-b", str(bookmarks_json_file), "-o", "json", "context", "react")
        assert [b["id"] for b in json.loads(out)] == [f"b{i}" for i in range(1, 8)]

    def test_recent_json(self, capsys, bookmarks_json_file):
        """Newest bookmarks first."""
        out = run(capsys, "-b", str(bookmarks_json_file), "-o", "json", "recent", "-n", "2")
        assert [b["id"] for b in json.loads(out)] == ["b1", "b2"]

    def test_stats_json(self, capsys, bookmarks_json_file):
        """Totals and folder count."""
        out = run(capsys, "-b", str(bookmarks_json_file), "-o", "json", "stats")
        stats = json.loads(out)
        assert stats["total"] == 7
        assert stats["folders"] == 2

    def test_suggest(self, capsys, bookmarks_json_file):
        """Suggestions are printed one per line."""
        out = run(capsys, "-b", str(bookmarks_json_file), "suggest")
        assert "react.dev" in out.splitlines()

    def test_output_format_from_config(self, capsys, tmp_path, bookmarks_json_file):
        """The configured output format applies when -o is absent."""
        (tmp_path / "bmchat.toml").write_text('output_format = "urls"\n')
        out = run(capsys, "-b", str(bookmarks_json_file), "recent", "-n", "1")
        assert out.split() == ["https://react.dev"]

    def test_bookmarks_file_from_config(self, capsys, tmp_path, bookmarks_json_file):
        """bookmarks_file in the config is used when -b is absent."""
        (tmp_path / "bmchat.toml").write_text(f'bookmarks_file = "{bookmarks_json_file.as_posix()}"\n')
        out = run(capsys, "-o", "json", "recent", "-n", "1")
        assert [b["id"] for b in json.loads(out)] == ["b1"]


class TestConfigCommand:
    """Test the config command."""

    def test_show_masks_api_key(self, capsys, monkeypatch):
        """The API key is never printed."""
        monkeypatch.setenv("BMCHAT_API_KEY", "sk-secret")
        data = json.loads(run(capsys, "config", "show"))
        assert data["api_key"] == "***"
        assert data["model"] == "gpt-3.5-turbo"

    def test_set_then_show(self, capsys):
        """Set values are saved to the user config."""
        run(capsys, "-q", "config", "set", "model", "gpt-4o")
        assert user_config_path().exists()
        assert run(capsys, "config", "show", "model").strip() == "gpt-4o"

    def test_set_converts_type(self, capsys):
        """Numeric values are stored as numbers."""
        run(capsys, "-q", "config", "set", "max_tokens", "2000")
        assert BmchatConfig.load().max_tokens == 2000

    def test_set_keeps_env_api_key_out_of_file(self, capsys, monkeypatch):
        """An API key from the environment is not written by an unrelated set."""
        monkeypatch.setenv("BMCHAT_API_KEY", "sk-secret-from-env")
        run(capsys, "-q", "config", "set", "model", "gpt-4o")

        text = user_config_path().read_text()
        assert "sk-secret-from-env" not in text
        assert 'api_key = ""' in text
        assert 'model = "gpt-4o"' in text

    def test_set_keeps_local_settings_out_of_file(self, capsys, tmp_path):
        """Project-local settings stay in the project file."""
        (tmp_path / "bmchat.toml").write_text('base_url = "http://localhost:11434/v1"\n')
        run(capsys, "-q", "config", "set", "max_tokens", "2000")

        user_config = BmchatConfig.load_user()
        assert user_config.max_tokens == 2000
        assert user_config.base_url == "https://api.openai.com/v1"

    def test_set_preserves_existing_user_values(self, capsys):
        """Setting one key keeps the other keys in the user file."""
        run(capsys, "-q", "config", "set", "model", "gpt-4o")
        run(capsys, "-q", "config", "set", "timeout", "60")

        user_config = BmchatConfig.load_user()
        assert user_config.model == "gpt-4o"
        assert user_config.timeout == 60

    def test_set_invalid_recency_profile(self, capsys):
        """An unknown recency profile is rejected and nothing is written."""
        with pytest.raises(SystemExit) as exc_info:
            cli.main(["config", "set", "recency_profile", "weird"])
        assert exc_info.value.code == 1
        assert not user_config_path().exists()

    def test_init_ignores_environment(self, capsys, monkeypatch):
        """init writes defaults, not environment values."""
        monkeypatch.setenv("BMCHAT_API_KEY", "sk-secret-from-env")
        run(capsys, "config", "init")
        assert "sk-secret-from-env" not in user_config_path().read_text()

    def test_set_unknown_key(self, capsys):
        """Unknown keys exit with an error."""
        with pytest.raises(SystemExit) as exc_info:
            cli.main(["config", "set", "nonsense", "1"])
        assert exc_info.value.code == 1

    def test_init(self, capsys):
        """init writes a config file."""
        out = run(capsys, "config", "init")
        assert "Created config" in out
        assert user_config_path().exists()


class TestErrors:
    """Test error exit codes."""

    def test_missing_bookmarks_file(self, capsys, tmp_path):
        """A missing file exits with code 1 and an error message."""
        with pytest.raises(SystemExit) as exc_info:
            cli.main(["-b", str(tmp_path / "missing.json"), "search", "x"])
        assert exc_info.value.code == 1
        assert "Error" in capsys.readouterr().out

    def test_no_bookmarks_anywhere(self, capsys, monkeypatch):
        """No file, no config and no browser profile is an error."""
        monkeypatch.setattr(cli, "find_chrome_bookmark_files", lambda: [])
        with pytest.raises(SystemExit) as exc_info:
            cli.main(["recent"])
        assert exc_info.value.code == 1

    def test_command_required(self):
        """Running without a command is a usage error."""
        with pytest.raises(SystemExit) as exc_info:
            cli.main([])
        assert exc_info.value.code == 2


class TestChatShell:
    """Test ChatShell line handling."""

    @pytest.fixture
    def shell(self, tmp_path, sample_bookmarks):
        return cli.ChatShell(BmchatConfig(), sample_bookmarks, history_file=tmp_path / "history")

    def test_exit_commands(self, shell):
        """/exit and /quit end the session."""
        assert shell.handle("/exit") is False
        assert shell.handle("/QUIT") is False

    def test_blank_line(self, shell):
        """Blank input is ignored."""
        assert shell.handle("   ") is True
        assert len(shell.history) == 1

    def test_search(self, shell, capsys):
        """/search prints matching bookmarks."""
        assert shell.handle("/search react") is True
        out = capsys.readouterr().out
        assert "React Docs" in out
        assert "Weather" not in out

    def test_recent(self, shell, capsys):
        """/recent prints the newest bookmarks."""
        shell.handle("/recent")
        assert "[b1] React Docs" in capsys.readouterr().out

    def test_clear(self, shell):
        """/clear empties the history."""
        shell.handle("/clear")
        assert len(shell.history) == 0

    def test_unknown_command(self, shell, capsys):
        """Unknown commands are reported and the session continues."""
        assert shell.handle("/bogus") is True
        assert "Unknown command" in capsys.readouterr().out

    def test_chat_without_key(self, shell, capsys):
        """A question without credentials records the fixed reply."""
        assert shell.handle("find react") is True
        messages = shell.history.messages()
        assert messages[0].content == WELCOME_MESSAGE
        assert (messages[1].role, messages[1].content) == ("user", "find react")
        assert (messages[2].role, messages[2].content) == ("assistant", NOT_CONFIGURED_MESSAGE)

    def test_chat_records_answer_only(self, shell):
        """Only the answer text is kept in the history."""
        chunks = [
            StreamChunk.thinking_start(),
            StreamChunk.reasoning("hmm"),
            StreamChunk.thinking_end(),
            StreamChunk.answer("Here "),
            StreamChunk.answer("you go"),
        ]
        shell.client.stream_chat = MagicMock(return_value=iter(chunks))
        shell.handle("anything")
        assert shell.history.messages()[-1].content == "Here you go"

    def test_run_until_eof(self, shell, capsys):
        """The loop ends on EOF."""
        session = MagicMock()
        session.prompt.side_effect = ["/recent", EOFError]
        with patch.object(cli, "PromptSession", return_value=session):
            shell.run()
        assert "Goodbye" in capsys.readouterr().out
        assert session.prompt.call_count == 2


#!/usr/bin/env python3
"""
bmchat - chat with your bookmarks

A small command-line interface for searching bookmarks and asking an
OpenAI-compatible model about them.
"""
import sys
import argparse
import json
import logging
from dataclasses import asdict
from pathlib import Path
from typing import Iterable, List, Optional

from prompt_toolkit import PromptSession
from prompt_toolkit.completion import WordCompleter
from prompt_toolkit.history import FileHistory
from prompt_toolkit.styles import Style
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from bmchat.bookmarks import (
    bookmark_stats,
    find_chrome_bookmark_files,
    load_bookmarks,
    recent_bookmarks,
)
from bmchat.config import BmchatConfig, load_config
from bmchat.constants import THINKING_START
from bmchat.context import context_capacity, select_context
from bmchat.history import ChatHistory
from bmchat.llm import ChatClient
from bmchat.models import BookmarkRecord, StreamChunk
from bmchat.search import local_search, search_suggestions

logger = logging.getLogger(__name__)


console = Console()


def get_bookmarks(args, config: BmchatConfig) -> List[BookmarkRecord]:
    """Load bookmarks from --bookmarks, the config, or the local Chrome profile."""
    path = args.bookmarks or config.bookmarks_file
    if not path:
        candidates = find_chrome_bookmark_files()
        if not candidates:
            raise FileNotFoundError(
                "No bookmarks file found. Pass --bookmarks or set bookmarks_file in the config."
            )
        path = candidates[0]
        logger.info(f"Using browser bookmarks at {path}")
    return load_bookmarks(path)


def output_bookmarks(bookmarks: List[BookmarkRecord], format: str = "table", title: str = "Bookmarks"):
    """Output bookmarks in the specified format."""
    if format == "json":
        print(json.dumps([b.to_dict() for b in bookmarks], indent=2, ensure_ascii=False))
    elif format == "urls":
        for b in bookmarks:
            print(b.url)
    elif format == "plain":
        for b in bookmarks:
            print(f"[{b.id}] {b.title}\n    {b.url}")
    else:
        table = Table(title=title)
        table.add_column("ID", style="cyan")
        table.add_column("Title", style="green")
        table.add_column("URL", style="blue")
        table.add_column("Folder", style="yellow")

        for b in bookmarks:
            table.add_row(b.id, b.title[:50], b.url[:50], (b.folder or "")[:30])

        console.print(table)


def render_stream(chunks: Iterable[StreamChunk], show_reasoning: bool = True) -> str:
    """
    Print streamed chunks as they arrive.

    Returns:
        The answer text, without reasoning
    """
    answer = []
    for chunk in chunks:
        if chunk.boundary:
            if show_reasoning:
                if chunk.text == THINKING_START:
                    console.print("Thinking...", style="bold dim")
                else:
                    console.print()
            continue

        if chunk.is_answer:
            answer.append(chunk.text)
            console.print(chunk.text, end="", markup=False, highlight=False, soft_wrap=True)
        elif show_reasoning:
            console.print(chunk.text, end="", style="dim italic",
                          markup=False, highlight=False, soft_wrap=True)

    console.print()
    return "".join(answer)


def cmd_search(args, config: BmchatConfig):
    """Search bookmarks locally or with the model."""
    bookmarks = get_bookmarks(args, config)
    limit = args.limit or config.search_limit

    if args.ai:
        results = ChatClient(config).search_bookmarks(args.query, bookmarks, limit=limit)
    else:
        results = local_search(bookmarks, args.query, limit=limit,
                               recency=config.recency_weights())

    if not results and not args.quiet:
        console.print("[yellow]No matching bookmarks[/yellow]")
        return
    output_bookmarks(results, args.output, title=f"Results for '{args.query}'")


def cmd_ask(args, config: BmchatConfig):
    """Ask the model a question about the bookmarks."""
    bookmarks = get_bookmarks(args, config)
    client = ChatClient(config)
    show_reasoning = config.show_reasoning and not args.no_reasoning
    render_stream(client.stream_chat(args.question, bookmarks), show_reasoning=show_reasoning)


def cmd_context(args, config: BmchatConfig):
    """Show which bookmarks a chat request would include."""
    bookmarks = get_bookmarks(args, config)
    selected = select_context(
        bookmarks,
        args.query,
        config.max_tokens,
        config.tokens_per_bookmark,
        recency=config.recency_weights(),
    )
    if not args.quiet:
        capacity = context_capacity(config.max_tokens, config.tokens_per_bookmark)
        console.print(
            f"[cyan]{len(selected)} of {len(bookmarks)} bookmarks "
            f"(capacity {capacity} at {config.max_tokens} max tokens)[/cyan]"
        )
    output_bookmarks(selected, args.output, title="Prompt context")


def cmd_recent(args, config: BmchatConfig):
    """List the most recently added bookmarks."""
    bookmarks = get_bookmarks(args, config)
    output_bookmarks(recent_bookmarks(bookmarks, args.limit), args.output, title="Recent bookmarks")


def cmd_stats(args, config: BmchatConfig):
    """Show bookmark statistics."""
    stats = bookmark_stats(get_bookmarks(args, config))
    if args.output == "json":
        print(json.dumps(stats, indent=2))
        return

    table = Table(title="Bookmark statistics", show_header=False)
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("Bookmarks", str(stats["total"]))
    table.add_row("Folders", str(stats["folders"]))
    table.add_row("Added this week", str(stats["recent"]))
    console.print(table)


def cmd_suggest(args, config: BmchatConfig):
    """Print query suggestions."""
    for suggestion in search_suggestions(get_bookmarks(args, config)):
        print(suggestion)


def cmd_config(args, config: BmchatConfig):
    """Manage configuration."""
    if args.action == "show":
        if args.key:
            if not config.is_field(args.key):
                console.print(f"[red]Unknown config key: {args.key}[/red]")
                sys.exit(1)
            print(getattr(config, args.key))
        else:
            data = asdict(config)
            if data.get("api_key"):
                data["api_key"] = "***"
            print(json.dumps(data, indent=2))

    elif args.action == "set":
        if not args.key or args.value is None:
            console.print("[red]Usage: bmchat config set KEY VALUE[/red]")
            sys.exit(1)
        # Edit the user file only, not the merged view
        user_config = BmchatConfig.load_user()
        try:
            user_config.set_value(args.key, args.value)
        except KeyError:
            console.print(f"[red]Unknown config key: {args.key}[/red]")
            sys.exit(1)
        user_config.recency_weights()  # rejects an unknown recency_profile
        user_config.save()
        if not args.quiet:
            console.print(f"[green]Set {args.key}[/green]")

    elif args.action == "init":
        path = BmchatConfig.load_user().save()
        console.print(f"[green]Created config at {path}[/green]")


class ChatShell:
    """
    Interactive chat session with prompt_toolkit.

    Plain input is sent to the model; lines starting with ``/`` are shell
    commands.
    """

    COMMANDS = ["/search", "/recent", "/clear", "/help", "/exit", "/quit"]

    def __init__(self, config: BmchatConfig, bookmarks: List[BookmarkRecord],
                 history_file: Optional[Path] = None):
        self.config = config
        self.bookmarks = bookmarks
        self.client = ChatClient(config)
        self.history = ChatHistory(max_size=config.history_size)
        self.history_file = history_file or Path.home() / ".bmchat_history"
        self.session = None

    def _setup_prompt(self):
        """Set up the prompt_toolkit session."""
        self.session = PromptSession(
            completer=WordCompleter(self.COMMANDS, ignore_case=True, sentence=True),
            history=FileHistory(str(self.history_file)),
            style=Style.from_dict({"prompt": "#00aa00 bold"}),
            enable_history_search=True,
        )

    def handle(self, line: str) -> bool:
        """
        Handle one line of input.

        Returns:
            False when the session should end
        """
        line = line.strip()
        if not line:
            return True

        if line.startswith("/"):
            command, _, rest = line.partition(" ")
            command = command.lower()
            if command in ("/exit", "/quit"):
                return False
            if command == "/help":
                console.print("Commands: " + ", ".join(self.COMMANDS))
            elif command == "/clear":
                self.history.clear()
                console.print("[yellow]History cleared[/yellow]")
            elif command == "/search":
                results = local_search(self.bookmarks, rest, limit=self.config.search_limit,
                                       recency=self.config.recency_weights())
                output_bookmarks(results, "plain")
            elif command == "/recent":
                output_bookmarks(recent_bookmarks(self.bookmarks), "plain")
            else:
                console.print(f"[red]Unknown command: {command}[/red]")
            return True

        self.history.add_user(line)
        answer = render_stream(self.client.stream_chat(line, self.bookmarks),
                               show_reasoning=self.config.show_reasoning)
        self.history.add_assistant(answer)
        return True

    def run(self):
        """Run the interactive loop."""
        self._setup_prompt()
        console.print(Panel.fit(
            f"[bold cyan]bmchat[/bold cyan] - {len(self.bookmarks)} bookmarks loaded\n"
            "Type '/help' for commands, '/exit' to quit",
            border_style="cyan"
        ))
        for message in self.history:
            console.print(message.content, markup=False)

        while True:
            try:
                line = self.session.prompt([("class:prompt", "you> ")])
                if not self.handle(line):
                    console.print("[yellow]Goodbye![/yellow]")
                    break
            except KeyboardInterrupt:
                console.print("\n[yellow]Use '/exit' to quit[/yellow]")
            except EOFError:
                console.print("\n[yellow]Goodbye![/yellow]")
                break


def cmd_chat(args, config: BmchatConfig):
    """Start an interactive chat session."""
    ChatShell(config, get_bookmarks(args, config)).run()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="bmchat",
        description="bmchat - chat with your bookmarks",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  bmchat search "react hooks"
  bmchat search "css layout" --ai
  bmchat ask "which of my bookmarks cover testing in python?"
  bmchat context "docker" -o json
  bmchat recent -n 20
  bmchat chat

Configuration:
  Config file: ~/.config/bmchat/config.toml or ./bmchat.toml
  Environment: BMCHAT_API_KEY, BMCHAT_BASE_URL, BMCHAT_MODEL, BMCHAT_BOOKMARKS_FILE
        """
    )

    # Global options
    parser.add_argument("--bookmarks", "-b", help="Bookmarks file (Chrome Bookmarks or JSON list)")
    parser.add_argument("--config", help="Config file path")
    parser.add_argument("-q", "--quiet", action="store_true", help="Minimal output")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    parser.add_argument("-o", "--output", choices=["table", "json", "urls", "plain"],
                        help="Output format")

    subparsers = parser.add_subparsers(dest="command", required=True, help="Commands")

    search_parser = subparsers.add_parser("search", help="Search bookmarks")
    search_parser.add_argument("query", help="Search query")
    search_parser.add_argument("--ai", action="store_true", help="Rank with the model")
    search_parser.add_argument("--limit", "-n", type=int, help="Maximum results")
    search_parser.set_defaults(func=cmd_search)

    ask_parser = subparsers.add_parser("ask", help="Ask a question about your bookmarks")
    ask_parser.add_argument("question", help="Question text")
    ask_parser.add_argument("--no-reasoning", action="store_true",
                            help="Hide the model's reasoning output")
    ask_parser.set_defaults(func=cmd_ask)

    context_parser = subparsers.add_parser("context", help="Show bookmarks a question would include")
    context_parser.add_argument("query", help="Question text")
    context_parser.set_defaults(func=cmd_context)

    recent_parser = subparsers.add_parser("recent", help="List recent bookmarks")
    recent_parser.add_argument("--limit", "-n", type=int, default=10, help="Number of bookmarks")
    recent_parser.set_defaults(func=cmd_recent)

    stats_parser = subparsers.add_parser("stats", help="Bookmark statistics")
    stats_parser.set_defaults(func=cmd_stats)

    suggest_parser = subparsers.add_parser("suggest", help="Query suggestions")
    suggest_parser.set_defaults(func=cmd_suggest)

    chat_parser = subparsers.add_parser("chat", help="Interactive chat session")
    chat_parser.set_defaults(func=cmd_chat)

    config_parser = subparsers.add_parser("config", help="Manage configuration")
    config_parser.add_argument("action", choices=["show", "set", "init"],
                               help="Config action")
    config_parser.add_argument("key", nargs="?", help="Config key")
    config_parser.add_argument("value", nargs="?", help="Config value (for set)")
    config_parser.set_defaults(func=cmd_config)

    return parser


def main(argv: Optional[List[str]] = None):
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    config = load_config(Path(args.config) if args.config else None)
    if not args.output:
        args.output = config.output_format
    if not config.color_output:
        console.no_color = True

    level = "DEBUG" if args.verbose else config.log_level
    logging.basicConfig(level=getattr(logging, str(level).upper(), logging.WARNING),
                        format="%(levelname)s: %(message)s")

    try:
        args.func(args, config)
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted[/yellow]")
        sys.exit(130)
    except Exception as e:
        logger.debug("Command failed", exc_info=True)
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)


if __name__ == "__main__":
    main()

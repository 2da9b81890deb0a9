"""CLI entry point for tooldeck.

This module provides the command-line interface. It can be invoked as
`tooldeck` (via the script entry point) or `python -m tooldeck`.

Commands:
    serve   Start the HTTP server
    query   Run a single query to conclusion and print the answer
    tools   List the instructions and tools the configured backends offer
"""

import argparse
import asyncio
import logging
import sys

import httpx
import ollama
import uvicorn

from tooldeck import __version__, create_app
from tooldeck.app import build_toolset
from tooldeck.config import ToolDeckSettings
from tooldeck.conversation import (
    ContentLine,
    ConversationDone,
    ConversationDriver,
    ThinkingLine,
    ToolCallRequested,
    ToolResultReceived,
    TurnComplete,
    opening_messages,
)
from tooldeck.errors import ToolDeckError
from tooldeck.ollama import OllamaClient
from tooldeck.routers.tools import list_tools_response
from tooldeck.tools import ToolSet

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tooldeck",
        description="Ollama agent runtime with MCP tool backends",
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"tooldeck {__version__}",
    )

    parser.add_argument(
        "--backends",
        type=str,
        default=None,
        help="TOML file describing MCP backends (can be set via TOOLDECK_BACKENDS_FILE)",
    )

    parser.add_argument(
        "--model",
        type=str,
        default=None,
        help="Model to chat with (default: ministral-3:3b, can be set via TOOLDECK_MODEL)",
    )

    parser.add_argument(
        "--ollama-host",
        type=str,
        default=None,
        help="Ollama server URL (default: http://localhost:11434, can be set via TOOLDECK_OLLAMA_HOST)",
    )

    parser.add_argument(
        "--log-level",
        type=str,
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Logging level (default: INFO, can be set via TOOLDECK_LOG_LEVEL)",
    )

    commands = parser.add_subparsers(dest="command", required=True)

    serve = commands.add_parser("serve", help="Start the HTTP server")
    serve.add_argument("--host", type=str, default=None, help="Host to bind the server to")
    serve.add_argument("--port", type=int, default=None, help="Port to bind the server to")

    query = commands.add_parser("query", help="Run a query and print the response")
    query.add_argument("text", nargs="+", help="The query")
    query.add_argument(
        "-t", "--show-thinking", action="store_true", help="Show the model's thinking"
    )
    query.add_argument(
        "-s", "--show-tools", action="store_true", help="Show tool calls and results"
    )
    query.add_argument(
        "-d", "--dump-tools", action="store_true", help="Dump the tools offered to the model"
    )
    query.add_argument(
        "-e", "--show-done", action="store_true", help="Show each turn's completion"
    )

    tools = commands.add_parser("tools", help="List the tools the backends offer")
    tools.add_argument(
        "--detailed", action="store_true", help="Include parameter details"
    )

    return parser


def settings_from_args(args: argparse.Namespace) -> ToolDeckSettings:
    """Build settings, CLI args override environment variables."""
    settings_kwargs = {}
    if args.backends is not None:
        settings_kwargs["backends_file"] = args.backends
    if args.model is not None:
        settings_kwargs["model"] = args.model
    if args.ollama_host is not None:
        settings_kwargs["ollama_host"] = args.ollama_host
    if args.log_level is not None:
        settings_kwargs["log_level"] = args.log_level
    if getattr(args, "host", None) is not None:
        settings_kwargs["host"] = args.host
    if getattr(args, "port", None) is not None:
        settings_kwargs["port"] = args.port
    return ToolDeckSettings(**settings_kwargs)


def print_tools(toolset: ToolSet, detailed: bool = False) -> None:
    listing = list_tools_response(toolset, detailed)
    for instruction in listing.instructions:
        print(f"Instruction: {instruction}\n=== End instruction ===")
    if not listing.instructions:
        print("No instructions found")
    print()

    for tool in listing.tools:
        print(f"{tool.name}: {tool.description}")
        for parameter in tool.parameters or []:
            required = " (required)" if parameter.required else ""
            print(f"\t\t{parameter.name}: {parameter.description or ''}{required}")
    for problem in listing.discovery_errors:
        print(f"Discovery failed: {problem}", file=sys.stderr)


async def run_tools(settings: ToolDeckSettings, detailed: bool) -> None:
    toolset = await build_toolset(settings)
    try:
        print_tools(toolset, detailed)
    finally:
        await toolset.shutdown()


async def run_query(settings: ToolDeckSettings, args: argparse.Namespace) -> int:
    query = " ".join(args.text)
    print(f"Query:\t{query}")

    client = OllamaClient(host=settings.ollama_host)
    toolset = await build_toolset(settings)
    try:
        if args.dump_tools:
            print_tools(toolset, detailed=True)

        driver = ConversationDriver(
            client=client,
            model=settings.model,
            messages=opening_messages(settings.resolve_system_prompt(), query, toolset),
            toolset=toolset,
            max_turns=settings.max_turns,
            think=True if args.show_thinking else None,
            show_thinking=args.show_thinking,
        )
        try:
            async for event in driver.run():
                if isinstance(event, ContentLine):
                    print(event.text)
                elif isinstance(event, ThinkingLine):
                    print(f"Thinking: {event.text}")
                elif isinstance(event, ToolCallRequested) and args.show_tools:
                    print(f"tool call {{{event.call.id}}} > {event.call.name}\n\t{event.call.arguments}")
                elif isinstance(event, ToolResultReceived) and args.show_tools:
                    reply = event.message
                    print(f"call {reply.tool_call_id}>\t{reply.role}\t{reply.tool_name}: {reply.content}")
                elif isinstance(event, TurnComplete) and args.show_done:
                    print(f"<Done> ({event.eval_count}) {event.done_reason or ''}")
                elif isinstance(event, ConversationDone):
                    print(
                        f"\nTotal tokens: {event.total_tokens} = "
                        f"(prompt tokens: {event.prompt_tokens}) + "
                        f"(response tokens: {event.response_tokens})"
                    )
        except ExceptionGroup as e:
            print(f"\nError invoking tools: {e}", file=sys.stderr)
            for problem in e.exceptions:
                print(f"\t{problem}", file=sys.stderr)
            return 1
        except ToolDeckError as e:
            print(f"\nError: {e}", file=sys.stderr)
            return 1
        except (ollama.ResponseError, ConnectionError, httpx.HTTPError) as e:
            print(f"\nError querying Ollama: {e}", file=sys.stderr)
            return 1
    finally:
        await toolset.shutdown()
        await client.close()
    return 0


def main() -> int:
    """Main entry point for the tooldeck CLI."""
    args = build_parser().parse_args()
    settings = settings_from_args(args)

    if args.command == "serve":
        app = create_app(settings=settings)
        uvicorn.run(
            app,
            host=settings.host,
            port=settings.port,
            log_level=settings.log_level.lower(),
        )
        return 0

    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        if args.command == "tools":
            asyncio.run(run_tools(settings, args.detailed))
            return 0
        return asyncio.run(run_query(settings, args))
    except ToolDeckError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except ExceptionGroup as e:
        print(f"Error: {e}", file=sys.stderr)
        for problem in e.exceptions:
            print(f"\t{problem}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())

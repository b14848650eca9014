"""Command-line interface for quillstream."""

from __future__ import annotations

import asyncio
import json
import logging
import signal
import sys
import uuid
from pathlib import Path

import click
from rich.console import Console

from quillstream import __version__
from quillstream.config import load_config
from quillstream.errors import QuillstreamError
from quillstream.service import ChatService
from quillstream.types import ChatMessage, EngineEvent, EventType, Role

console = Console()
err_console = Console(stderr=True)


def _setup_logging(verbose: bool) -> None:
    if verbose:
        logging.basicConfig(level=logging.DEBUG)
    else:
        logging.basicConfig(level=logging.WARNING)


def _load_documents(path: str | None) -> list[dict]:
    if not path:
        return []
    raw = json.loads(Path(path).read_text(encoding="utf-8"))
    if not isinstance(raw, list):
        raise click.BadParameter("documents file must hold a JSON list", param_hint="--tools")
    return raw


async def _run_stream(service: ChatService, request_id: str, **kwargs) -> str:
    """Run ``chat_stream``; Ctrl+C stops it cooperatively and keeps the partial text."""
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, service.stop_stream, request_id)
        installed = True
    except (NotImplementedError, RuntimeError):
        # Windows or a non-main thread keeps the default KeyboardInterrupt
        installed = False
    try:
        return await service.chat_stream(request_id=request_id, **kwargs)
    finally:
        if installed:
            loop.remove_signal_handler(signal.SIGINT)


provider_options = [
    click.option("--provider", "-p", default=None, help="Provider id (openai, anthropic, qwen, ...)"),
    click.option("--model", "-m", default=None, help="Model override"),
    click.option("--api-key", default=None, help="API key (falls back to AI_API_KEY)"),
    click.option("--base-url", default=None, help="Base URL override"),
    click.option("--config", "-c", "config_path", default=None, help="Path to quillstream.yaml"),
    click.option("--verbose", "-v", is_flag=True, help="Verbose logging"),
]


def with_provider_options(func):
    for option in reversed(provider_options):
        func = option(func)
    return func


@click.group()
@click.version_option(__version__, prog_name="quillstream")
def main() -> None:
    """quillstream - multi-provider AI chat streaming."""


@main.command()
@click.argument("prompt")
@with_provider_options
@click.option("--system", "-s", "system_prompt", default=None, help="System prompt")
@click.option("--stream/--no-stream", default=True, help="Stream the answer (default) or wait for it")
@click.option("--web-search", is_flag=True, help="Enable provider web search")
@click.option("--thinking", is_flag=True, help="Enable thinking mode where supported")
@click.option("--tools", "documents_path", default=None,
              help="JSON file with [{id, title, content}] documents; enables tool calling")
def chat(prompt: str, provider: str | None, model: str | None, api_key: str | None,
         base_url: str | None, config_path: str | None, verbose: bool,
         system_prompt: str | None, stream: bool, web_search: bool, thinking: bool,
         documents_path: str | None):
    """Send PROMPT and print the answer."""
    _setup_logging(verbose)
    service = ChatService(load_config(config_path))

    messages = []
    if system_prompt:
        messages.append(ChatMessage(Role.SYSTEM.value, system_prompt))
    messages.append(ChatMessage(Role.USER.value, prompt))

    try:
        if not stream:
            text = asyncio.run(service.chat(
                messages, provider=provider, api_key=api_key, model=model,
                base_url=base_url, web_search=web_search,
            ))
            console.print(text)
            return

        def _print_chunk(event: EngineEvent) -> None:
            console.print(event.data.get("content", ""), end="", markup=False, highlight=False)

        service.event_bus.subscribe(EventType.STREAM_CHUNK, _print_chunk)
        documents = _load_documents(documents_path)
        asyncio.run(_run_stream(
            service,
            uuid.uuid4().hex,
            messages=messages,
            provider=provider, api_key=api_key, model=model, base_url=base_url,
            web_search=web_search, thinking=thinking,
            enable_tools=documents_path is not None, documents=documents,
        ))
        console.print()
    except QuillstreamError as e:
        err_console.print(f"[red]Error:[/red] {e.message}", markup=True, highlight=False)
        sys.exit(1)


@main.command("test")
@with_provider_options
def test_connection(provider: str | None, model: str | None, api_key: str | None,
                    base_url: str | None, config_path: str | None, verbose: bool):
    """Check that the provider accepts a minimal request."""
    _setup_logging(verbose)
    service = ChatService(load_config(config_path))
    try:
        message = asyncio.run(service.test_connection(
            provider=provider, api_key=api_key, model=model, base_url=base_url,
        ))
    except QuillstreamError as e:
        err_console.print(f"[red]Connection failed:[/red] {e.message}", highlight=False)
        sys.exit(1)
    console.print(f"[green]{message}[/green]")


if __name__ == "__main__":
    main()

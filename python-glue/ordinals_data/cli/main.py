"""CLI entry point"""

import asyncio
import json
from pathlib import Path
from typing import List, Optional

import toml
import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.table import Table

from ..config import Config, get_config_path, load_config, save_config
from ..errors import ConfigError, DataClientError
from ..observability import setup_logging
from ..service import BitcoinService

app = typer.Typer(help="Resilient Ordinals block and inscription data client")
console = Console()

ConfigPathOption = typer.Option(None, "--config", "-c", help="Path to config.toml")


@app.callback()
def main(
    log_level: str = typer.Option("WARNING", "--log-level", help="Logging level"),
    json_logs: bool = typer.Option(False, "--json-logs", help="Emit JSON logs"),
):
    """Ordinals data client"""
    # ORDINALS_* and LOG_* may come from ./.env
    load_dotenv()
    setup_logging(level=log_level, json_output=json_logs)


def _load_config(config_path: Optional[Path]) -> Config:
    try:
        return load_config(config_path)
    except ConfigError as e:
        console.print(f"[red]Configuration error: {e}[/red]")
        raise typer.Exit(1)


def _run(config_path: Optional[Path], action):
    """Build a service, run ``action(service)`` and close it"""
    config = _load_config(config_path)

    async def runner():
        service = BitcoinService.from_config(config)
        try:
            return await action(service)
        finally:
            await service.aclose()

    try:
        return asyncio.run(runner())
    except DataClientError as e:
        console.print(f"[red]Error ({e.kind.value}): {e.message}[/red]")
        raise typer.Exit(1)


def _source_label(response) -> str:
    if response.stale:
        return "[yellow]stale fallback[/yellow]"
    return f"[dim]{response.source}[/dim]"


@app.command()
def block(
    heights: List[int] = typer.Argument(..., help="Block height(s) to fetch"),
    config_path: Optional[Path] = ConfigPathOption,
):
    """Show block information"""
    responses = _run(config_path, lambda service: service.get_blocks(heights))

    table = Table(title="Blocks")
    table.add_column("Height", style="cyan")
    table.add_column("Hash")
    table.add_column("Timestamp")
    table.add_column("Txs")
    table.add_column("Source")

    failed = False
    for height, response in zip(heights, responses):
        if isinstance(response, DataClientError):
            failed = True
            table.add_row(str(height), f"[red]{response.kind.value}: {response.message}[/red]", "", "", "")
            continue
        info = response.data
        table.add_row(
            str(info.height),
            info.hash,
            str(info.timestamp),
            str(info.transaction_count if info.transaction_count is not None else "-"),
            _source_label(response),
        )

    console.print(table)
    if failed:
        raise typer.Exit(1)


@app.command()
def inscription(
    inscription_id: str = typer.Argument(..., help="Inscription ID (<txid>i<index>)"),
    config_path: Optional[Path] = ConfigPathOption,
):
    """Show inscription content"""
    response = _run(config_path, lambda service: service.get_inscription_content(inscription_id))
    content = response.data

    console.print(f"[bold]{content.id}[/bold] ({content.content_type}, {content.content_length} bytes) "
                  f"{_source_label(response)}")
    if content.encoding == "base64":
        console.print("[dim]Binary content (base64)[/dim]")
    console.print(content.content, markup=False)


@app.command()
def height(config_path: Optional[Path] = ConfigPathOption):
    """Show the current block height"""
    tip = _run(config_path, lambda service: service.get_current_block_height())
    console.print(str(tip))


@app.command()
def config(
    config_path: Optional[Path] = ConfigPathOption,
    init: bool = typer.Option(False, "--init", help="Write a default config file"),
):
    """Show the effective configuration"""
    path = Path(config_path or get_config_path()).expanduser()

    if init:
        save_config(Config(), path)
        console.print(f"[green]Wrote default configuration to {path}[/green]")
        return

    cfg = _load_config(path)
    console.print(f"[bold]Configuration[/bold] [dim]{path}[/dim]\n")
    console.print(toml.dumps(cfg.to_dict()), markup=False)
    console.print(f"Active base URL: [cyan]{cfg.api.active().base_url}[/cyan]")


@app.command()
def serve(
    host: Optional[str] = typer.Option(None, "--host", help="Bind address"),
    port: Optional[int] = typer.Option(None, "--port", help="Bind port"),
    config_path: Optional[Path] = ConfigPathOption,
):
    """Run the HTTP API"""
    from ..api import serve as run_server

    run_server(_load_config(config_path), host=host, port=port)


@app.command()
def stats(
    heights: List[int] = typer.Argument(..., help="Block height(s) to fetch before reporting"),
    config_path: Optional[Path] = ConfigPathOption,
):
    """Fetch blocks and print client statistics as JSON"""

    async def action(service: BitcoinService):
        await service.get_blocks(heights)
        return {
            "cache": service.get_cache_stats(),
            "circuit": service.get_circuit_state(),
            "metrics": service.get_metrics(),
        }

    console.print_json(json.dumps(_run(config_path, action)))

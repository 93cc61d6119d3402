import json
import logging
from typing import Any, TextIO

import click

from dexparser.config import settings
from dexparser.exceptions import DexParserError
from dexparser.parser.utils.types import ParseConfig


def _setup_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _load_json(stream: TextIO) -> Any:
    try:
        return json.load(stream)
    except json.JSONDecodeError as e:
        raise click.ClickException(f"Invalid JSON input: {e}") from e


def _build_config(
    try_unknown_dex: bool,
    throw_error: bool,
    program_ids: tuple[str, ...],
    ignore_program_ids: tuple[str, ...],
    no_aggregate: bool,
) -> ParseConfig:
    return ParseConfig(
        try_unknown_dex=try_unknown_dex or settings.try_unknown_dex,
        throw_error=throw_error or settings.throw_error,
        program_ids=list(program_ids) or None,
        ignore_program_ids=list(ignore_program_ids) or None,
        aggregate_trades=not no_aggregate and settings.aggregate_trades,
    )


def parse_options(func):
    """Options shared by parse-tx and parse-block."""
    options = [
        click.option("--try-unknown-dex", is_flag=True, help="Infer trades for unregistered programs"),
        click.option("--throw-error", is_flag=True, help="Fail instead of returning state=false"),
        click.option("--program-id", "program_ids", multiple=True, help="Only decode these programs; repeatable"),
        click.option("--ignore-program-id", "ignore_program_ids", multiple=True, help="Never decode these programs; repeatable"),
        click.option("--no-aggregate", is_flag=True, help="Skip the multi-hop aggregate trade"),
        click.option("--log-level", default=settings.log_level, show_default=True, help="Logging level"),
    ]
    for option in reversed(options):
        func = option(func)
    return func


@click.group()
def cli() -> None:
    """dexparser — decode Solana DEX transactions into trades, liquidity and transfers."""


@cli.command("parse-tx")
@click.argument("source", type=click.File("r"), default="-")
@parse_options
def parse_tx_cmd(
    source: TextIO,
    try_unknown_dex: bool,
    throw_error: bool,
    program_ids: tuple[str, ...],
    ignore_program_ids: tuple[str, ...],
    no_aggregate: bool,
    log_level: str,
) -> None:
    """Parse one transaction payload (FILE or - for stdin) and print the JSON result."""
    _setup_logging(log_level)
    from dexparser.engine.dex_parser import DexParser

    config = _build_config(try_unknown_dex, throw_error, program_ids, ignore_program_ids, no_aggregate)
    payload = _load_json(source)
    try:
        result = DexParser(config=config).parse_transaction(payload)
    except DexParserError as e:
        raise click.ClickException(str(e)) from e
    click.echo(result.model_dump_json(by_alias=True, indent=2))


@cli.command("parse-block")
@click.argument("source", type=click.File("r"), default="-")
@parse_options
@click.option("--workers", type=int, default=settings.max_workers, show_default=True, help="Thread pool size")
def parse_block_cmd(
    source: TextIO,
    try_unknown_dex: bool,
    throw_error: bool,
    program_ids: tuple[str, ...],
    ignore_program_ids: tuple[str, ...],
    no_aggregate: bool,
    log_level: str,
    workers: int,
) -> None:
    """Parse a block (list of payloads or {slot, blockTime, transactions}) and print the JSON result."""
    _setup_logging(log_level)
    from dexparser.engine.block_driver import BlockDriver
    from dexparser.engine.dex_parser import DexParser

    config = _build_config(try_unknown_dex, throw_error, program_ids, ignore_program_ids, no_aggregate)
    block = _load_json(source)
    try:
        result = BlockDriver(DexParser(config=config), max_workers=workers).parse_block(block)
    except DexParserError as e:
        raise click.ClickException(str(e)) from e
    click.echo(result.model_dump_json(by_alias=True, indent=2))


if __name__ == "__main__":
    cli()

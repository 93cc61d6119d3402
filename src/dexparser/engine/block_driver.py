"""BlockDriver — fans a block's transactions out over a bounded thread pool."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import TYPE_CHECKING, Any

from dexparser.config import settings
from dexparser.exceptions import DecodeError
from dexparser.parser.utils.types import BlockParseResult, ParseConfig, ParseResult

if TYPE_CHECKING:
    from dexparser.engine.dex_parser import DexParser

logger = logging.getLogger(__name__)


def unpack_block(block: Any) -> tuple[int | None, int | None, list[Any]]:
    """(slot, block_time, transaction payloads) from a list or a block object."""
    if isinstance(block, list):
        return None, None, block
    if isinstance(block, dict) and isinstance(block.get("transactions"), list):
        return block.get("slot"), block.get("blockTime"), block["transactions"]
    raise DecodeError("Block must be a list of transactions or an object with a transactions list")


class BlockDriver:
    """Runs the per-transaction pipeline for every transaction of a block.

    Results are index-aligned with the input. A failure in one transaction
    never affects the others: it is logged and recorded as state=False.
    """

    def __init__(self, parser: DexParser, max_workers: int | None = None) -> None:
        self._parser = parser
        self._max_workers = max_workers or settings.max_workers

    def parse_block(self, block: dict | list, config: ParseConfig | None = None) -> BlockParseResult:
        slot, block_time, payloads = unpack_block(block)
        results: list[ParseResult | None] = [None] * len(payloads)

        executor = ThreadPoolExecutor(max_workers=self._max_workers)
        try:
            futures = {
                executor.submit(self._parse_one, self._inherit(payload, slot, block_time), config): i
                for i, payload in enumerate(payloads)
            }
            for future in as_completed(futures):
                results[futures[future]] = future.result()
        finally:
            executor.shutdown(wait=True)

        logger.info(
            "Parsed block %s: %d transactions, %d failed",
            slot,
            len(results),
            sum(1 for r in results if r is not None and not r.state),
        )
        return BlockParseResult(slot=slot, block_time=block_time, transactions=results)

    def _parse_one(self, payload: Any, config: ParseConfig | None) -> ParseResult:
        try:
            return self._parser.parse_transaction(payload, config)
        except Exception as e:
            logger.exception("Failed to parse transaction in block")
            return ParseResult.failure(str(e) or type(e).__name__)

    @staticmethod
    def _inherit(payload: Any, slot: int | None, block_time: int | None) -> Any:
        """Transactions without their own slot/blockTime take the block's."""
        if not isinstance(payload, dict):
            return payload
        updates = {}
        if slot is not None and payload.get("slot") is None:
            updates["slot"] = slot
        if block_time is not None and payload.get("blockTime") is None:
            updates["blockTime"] = block_time
        return {**payload, **updates} if updates else payload

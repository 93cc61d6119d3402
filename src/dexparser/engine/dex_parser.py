"""DexParser — orchestrates one transaction from payload to ParseResult."""

import logging

from dexparser.config import default_parse_config
from dexparser.domain.enums import Capability, InstructionKind
from dexparser.exceptions import DexParserError
from dexparser.parser.generic.heuristic import UnknownProtocolHeuristic
from dexparser.parser.handlers.common import build_event
from dexparser.parser.handlers.routes import aggregate_trades
from dexparser.parser.registry import ProtocolRegistry, get_default_registry
from dexparser.parser.utils.balances import BalanceReconciler, find_intermediate_accounts
from dexparser.parser.utils.context import TransactionContext
from dexparser.parser.utils.fees import make_fee_info, sol_balance_change, token_balance_changes
from dexparser.parser.utils.programs import IGNORED_PROGRAM_IDS, SYSTEM_PROGRAM_ID, TOKEN_PROGRAM_IDS
from dexparser.parser.utils.types import (
    BlockParseResult,
    DecodedIntent,
    Instruction,
    LiquidityEvent,
    MemeEvent,
    ParseConfig,
    ParseResult,
    Trade,
    TransactionView,
    TransferEvent,
    format_idx,
)
from dexparser.parser.utils.view import build_transaction_view

logger = logging.getLogger(__name__)

# Plain transfer programs: reported from top-level instructions only, never handed to the heuristic
TRANSFER_PROGRAM_IDS = TOKEN_PROGRAM_IDS | {SYSTEM_PROGRAM_ID}


def _order_key(event: Trade | LiquidityEvent | TransferEvent | MemeEvent) -> tuple[int, int]:
    return event.instruction_index, -1 if event.inner_index is None else event.inner_index


def _peek_signature(payload) -> str:
    """Best-effort signature for failure results on payloads that did not decode."""
    if not isinstance(payload, dict):
        return ""
    tx = payload.get("transaction")
    if isinstance(tx, dict):
        signatures = tx.get("signatures") or []
        if signatures and isinstance(signatures[0], str):
            return signatures[0]
    return ""


class DexParser:
    """Transaction payload -> decoded intents -> reconciled events -> ParseResult.

    Stateless between calls: the registry is frozen and every run builds its
    own view and context, so one instance can serve many threads.
    """

    def __init__(self, registry: ProtocolRegistry | None = None, config: ParseConfig | None = None) -> None:
        self._registry = registry or get_default_registry()
        self._config = config or default_parse_config()
        self._heuristic = UnknownProtocolHeuristic()

    @property
    def registry(self) -> ProtocolRegistry:
        return self._registry

    @property
    def config(self) -> ParseConfig:
        return self._config

    # --- Entry points ---

    def parse_transaction(self, payload: dict, config: ParseConfig | None = None) -> ParseResult:
        return self._parse(payload, config or self._config)

    def parse_trades(self, payload: dict, config: ParseConfig | None = None) -> list[Trade]:
        return self._parse(payload, config or self._config, Capability.TRADES).trades

    def parse_liquidity(self, payload: dict, config: ParseConfig | None = None) -> list[LiquidityEvent]:
        return self._parse(payload, config or self._config, Capability.LIQUIDITY).liquidities

    def parse_transfers(self, payload: dict, config: ParseConfig | None = None) -> list[TransferEvent]:
        return self._parse(payload, config or self._config, Capability.TRANSFERS).transfers

    def parse_meme_events(self, payload: dict, config: ParseConfig | None = None) -> list[MemeEvent]:
        return self._parse(payload, config or self._config, Capability.MEME_EVENTS).meme_events

    def parse_block(self, block: dict | list, config: ParseConfig | None = None) -> BlockParseResult:
        from dexparser.engine.block_driver import BlockDriver

        return BlockDriver(self).parse_block(block, config)

    # --- Pipeline ---

    def _parse(self, payload: dict, config: ParseConfig, capability: Capability | None = None) -> ParseResult:
        """Full run when capability is None, else only the protocols that produce that kind of event."""
        try:
            view = build_transaction_view(payload)
        except DexParserError as e:
            if config.throw_error:
                raise
            logger.warning("Cannot build transaction view: %s", e)
            return ParseResult.failure(str(e), signature=_peek_signature(payload))
        return self._parse_view(view, config, capability)

    def _parse_view(
        self, view: TransactionView, config: ParseConfig, capability: Capability | None = None,
    ) -> ParseResult:
        context = TransactionContext(view)
        signer = context.signer
        envelope = {
            "signature": view.signature,
            "slot": view.slot,
            "block_time": view.block_time,
            "signer": signer,
            "fee": make_fee_info(view),
            "compute_units": view.compute_units,
            "tx_status": view.status,
        }

        if config.program_ids and not self._touches_allowed_program(view, config):
            return ParseResult.failure("No instruction invokes an allowed program", **envelope)

        unmatched: list[str] = []
        intents = self._decode_instructions(context, config, capability, unmatched)
        meme_events = self._collect_meme_events(context, config, capability, unmatched)
        intents, routers = self._resolve_route_envelopes(intents)

        reconciler = BalanceReconciler(context, find_intermediate_accounts(context, intents))
        trades: list[Trade] = []
        liquidities: list[LiquidityEvent] = []
        transfers: list[TransferEvent] = []
        covered: set[int] = set()  # outer indices that produced an event

        for intent in intents:
            try:
                event = build_event(intent, reconciler)
            except DexParserError as e:
                logger.debug("Dropping %s intent at %s: %s", intent.protocol, intent.idx, e)
                unmatched.append(intent.idx)
                continue
            if event is None:
                continue
            covered.add(intent.instruction_index)
            if isinstance(event, Trade):
                router = routers.get(intent.instruction_index)
                if router is not None and intent.inner_index is not None:
                    event = event.model_copy(update={"route": router})
                trades.append(event)
            elif isinstance(event, LiquidityEvent):
                liquidities.append(event)
            else:
                transfers.append(event)

        if config.try_unknown_dex and capability in (None, Capability.TRADES, Capability.TRANSFERS):
            for outer_index, instruction in enumerate(view.instructions):
                if outer_index in covered or not self._heuristic_candidate(instruction, config, capability):
                    continue
                event = self._heuristic.detect(outer_index, context)
                if isinstance(event, Trade):
                    trades.append(event)
                elif isinstance(event, TransferEvent):
                    transfers.append(event)

        trades.sort(key=_order_key)
        transfers.sort(key=_order_key)

        aggregate = aggregate_trades(trades) if config.aggregate_trades else None

        return ParseResult(
            state=True,
            trades=trades,
            liquidities=liquidities,
            transfers=transfers,
            meme_events=meme_events,
            aggregate_trade=aggregate,
            sol_balance_change=sol_balance_change(view, signer),
            token_balance_change=token_balance_changes(view, signer),
            unmatched=unmatched,
            **envelope,
        )

    @staticmethod
    def _touches_allowed_program(view: TransactionView, config: ParseConfig) -> bool:
        allowed = set(config.program_ids or ())
        for outer_index, instruction in enumerate(view.instructions):
            if instruction.program_id in allowed:
                return True
            if any(ix.program_id in allowed for ix in view.inner_group(outer_index)):
                return True
        return False

    def _decode_instructions(
        self, context: TransactionContext, config: ParseConfig, capability: Capability | None, unmatched: list[str],
    ) -> list[DecodedIntent]:
        """Decode every instruction in execution order: outer, then its inner instructions."""
        view = context.view
        intents: list[DecodedIntent] = []
        for outer_index, instruction in enumerate(view.instructions):
            intent = self._decode_one(instruction, (outer_index, None), context, config, capability, unmatched)
            if intent is not None:
                intents.append(intent)
            for inner_index, inner_ix in enumerate(view.inner_group(outer_index)):
                if inner_ix.program_id in TRANSFER_PROGRAM_IDS:
                    continue
                intent = self._decode_one(inner_ix, (outer_index, inner_index), context, config, capability, unmatched)
                if intent is not None:
                    intents.append(intent)
        return intents

    def _decode_one(
        self,
        instruction: Instruction,
        position: tuple[int, int | None],
        context: TransactionContext,
        config: ParseConfig,
        capability: Capability | None,
        unmatched: list[str],
    ) -> DecodedIntent | None:
        if instruction.program_id in IGNORED_PROGRAM_IDS or not config.allows(instruction.program_id):
            return None
        descriptor = self._registry.match(instruction.program_id)
        if descriptor is None:
            return None
        if capability is not None and not descriptor.supports(capability):
            return None
        decoder = descriptor.decoder
        if not decoder.can_decode(instruction):
            logger.debug("%s: unhandled instruction at %s", descriptor.name, format_idx(*position))
            return None
        try:
            return decoder.decode(instruction, context.children(*position), context, position)
        except DexParserError as e:
            logger.debug("%s failed to decode instruction at %s: %s", descriptor.name, format_idx(*position), e)
            unmatched.append(format_idx(*position))
            return None

    def _collect_meme_events(
        self,
        context: TransactionContext,
        config: ParseConfig,
        capability: Capability | None,
        unmatched: list[str],
    ) -> list[MemeEvent]:
        """Launchpad lifecycle records from outer and inner instructions, in execution order."""
        if capability not in (None, Capability.MEME_EVENTS):
            return []
        view = context.view
        events: list[MemeEvent] = []
        for outer_index, instruction in enumerate(view.instructions):
            candidates = [((outer_index, None), instruction)]
            candidates += [((outer_index, i), ix) for i, ix in enumerate(view.inner_group(outer_index))]
            for position, ix in candidates:
                if ix.program_id in IGNORED_PROGRAM_IDS or not config.allows(ix.program_id):
                    continue
                descriptor = self._registry.match(ix.program_id)
                if descriptor is None or not descriptor.supports(Capability.MEME_EVENTS):
                    continue
                try:
                    event = descriptor.decoder.decode_meme_event(ix, context, position)
                except DexParserError as e:
                    logger.debug("%s failed to decode meme event at %s: %s", descriptor.name, format_idx(*position), e)
                    unmatched.append(format_idx(*position))
                    continue
                if event is not None:
                    events.append(event)
        return events

    @staticmethod
    def _resolve_route_envelopes(intents: list[DecodedIntent]) -> tuple[list[DecodedIntent], dict[int, str]]:
        """Drop aggregator envelopes whose hops decoded; map outer index -> aggregator name."""
        hop_outers = {
            i.instruction_index
            for i in intents
            if not i.is_route and i.inner_index is not None and i.kind == InstructionKind.SWAP
        }
        routers: dict[int, str] = {}
        kept: list[DecodedIntent] = []
        for intent in intents:
            if intent.is_route:
                routers.setdefault(intent.instruction_index, intent.protocol)
                if intent.instruction_index in hop_outers:
                    continue
            kept.append(intent)
        return kept, routers

    def _heuristic_candidate(
        self, instruction: Instruction, config: ParseConfig, capability: Capability | None,
    ) -> bool:
        program_id = instruction.program_id
        if program_id in IGNORED_PROGRAM_IDS or program_id in TRANSFER_PROGRAM_IDS or not config.allows(program_id):
            return False
        if capability is not None:
            # a protocol left out of this run is not unknown
            descriptor = self._registry.match(program_id)
            return descriptor is None or descriptor.supports(capability)
        return True

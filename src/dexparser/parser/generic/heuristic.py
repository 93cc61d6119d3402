"""UnknownProtocolHeuristic — infer swaps/transfers from balance deltas of unregistered programs."""

import logging
from collections import defaultdict

from dexparser.domain.enums import InstructionKind, Protocol, Provenance
from dexparser.exceptions import DexParserError
from dexparser.parser.handlers.common import make_trade, make_transfer_event
from dexparser.parser.utils.balances import ResolvedLeg
from dexparser.parser.utils.context import TransactionContext
from dexparser.parser.utils.types import DecodedIntent, Trade, TransferEvent

logger = logging.getLogger(__name__)


class UnknownProtocolHeuristic:
    """Detects swap pattern: fee payer has exactly 1 mint out + 1 mint in.

    Works for any program without knowing its instruction layout. Only the fee
    payer's token accounts touched by the instruction (or its inner
    instructions) count; its lamport balance is never considered since it also
    pays the fee.
    """

    PROTOCOL_NAME = Protocol.UNKNOWN.value

    def detect(self, outer_index: int, context: TransactionContext) -> Trade | TransferEvent | None:
        try:
            return self._detect(outer_index, context)
        except DexParserError as e:
            logger.debug("Heuristic skipped instruction %d: %s", outer_index, e)
            return None

    def net_flows(self, outer_index: int, context: TransactionContext) -> dict[str, list[int]]:
        """mint -> [net raw delta, first account index] for the fee payer's token accounts."""
        view = context.view
        touched: set[int] = set(view.instructions[outer_index].accounts)
        for ix in view.inner_group(outer_index):
            touched.update(ix.accounts)

        flows: dict[str, list[int]] = defaultdict(lambda: [0, -1])
        for index, delta in context.token_deltas(touched).items():
            if context.owner_of(index) != view.fee_payer:
                continue
            mint = context.mint_of(index)
            if mint is None:
                continue
            entry = flows[mint]
            entry[0] += delta
            if entry[1] < 0:
                entry[1] = index
        return {mint: entry for mint, entry in flows.items() if entry[0] != 0}

    def _detect(self, outer_index: int, context: TransactionContext) -> Trade | TransferEvent | None:
        flows = self.net_flows(outer_index, context)
        outflows = [mint for mint, (qty, _) in flows.items() if qty < 0]
        inflows = [mint for mint, (qty, _) in flows.items() if qty > 0]

        instruction = context.view.instructions[outer_index]
        intent_fields = {
            "protocol": self.PROTOCOL_NAME,
            "program_id": instruction.program_id,
            "instruction_index": outer_index,
            "user": context.view.fee_payer,
        }

        if len(outflows) == 1 and len(inflows) == 1:
            intent = DecodedIntent(kind=InstructionKind.SWAP, **intent_fields)
            return make_trade(
                intent,
                self._leg(context, outflows[0], flows[outflows[0]]),
                self._leg(context, inflows[0], flows[inflows[0]]),
                provenance=Provenance.HEURISTIC,
            )

        if len(flows) == 1:
            mint = next(iter(flows))
            leg = self._leg(context, mint, flows[mint])
            intent = DecodedIntent(kind=InstructionKind.TRANSFER, **intent_fields)
            if outflows:
                return make_transfer_event(intent, leg, None, provenance=Provenance.HEURISTIC)
            # Incoming only: the fee payer's account is the destination
            event = make_transfer_event(intent, leg, leg, provenance=Provenance.HEURISTIC)
            return event.model_copy(update={"source": None, "source_owner": None})

        return None

    @staticmethod
    def _leg(context: TransactionContext, mint: str, flow: list[int]) -> ResolvedLeg:
        qty, index = flow
        decimals = context.decimals_of(mint)
        if decimals is None:
            raise DexParserError(f"No decimals known for mint {mint}")
        return ResolvedLeg(
            account_index=index,
            account=context.address(index),
            owner=context.owner_of(index),
            mint=mint,
            decimals=decimals,
            amount=abs(qty),
            measured=abs(qty),
        )

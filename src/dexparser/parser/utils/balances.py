"""Balance-delta reconciliation: recover actual moved amounts for decoded legs."""

import logging
from collections import Counter

from pydantic import BaseModel

from dexparser.domain.enums import InstructionKind, WarningKind
from dexparser.parser.utils.context import TransactionContext
from dexparser.parser.utils.programs import SOL_MINT
from dexparser.parser.utils.types import SOL_DECIMALS, DecodedIntent, ReconciliationMismatch, TokenLeg

logger = logging.getLogger(__name__)


class ResolvedLeg(BaseModel):
    """A TokenLeg with mint, decimals and authoritative amount filled in."""

    account_index: int
    account: str
    owner: str | None = None
    mint: str
    decimals: int
    amount: int  # authoritative: declared when the payload carries it, else measured
    declared: int | None = None
    measured: int | None = None

    def mismatch(self, side: str) -> ReconciliationMismatch | None:
        if self.declared is None or self.measured is None or self.declared == self.measured:
            return None
        return ReconciliationMismatch(
            kind=WarningKind.MISMATCH,
            side=side,
            declared=self.declared,
            measured=self.measured,
        )


def find_intermediate_accounts(context: TransactionContext, intents: list[DecodedIntent]) -> set[int]:
    """Accounts whose snapshot delta cannot be attributed to a single leg.

    - output of one swap intent and input of another (hop chaining)
    - the same side of several swap or liquidity legs (one wallet account funding or receiving
      several instructions), since one snapshot delta covers all of them
    - both source and destination of token transfers inside the transaction (routing accounts)
    """
    legs = [i for i in intents if not i.is_route]
    swap_inputs = {i.input_leg.account_index for i in legs if i.input_leg is not None}
    swap_outputs = {i.output_leg.account_index for i in legs if i.output_leg is not None}
    intermediate = swap_inputs & swap_outputs

    uses: Counter[tuple[str, int]] = Counter()
    for intent in legs:
        if intent.kind == InstructionKind.TRANSFER:
            continue
        if intent.input_leg is not None and not intent.input_leg.native:
            uses["in", intent.input_leg.account_index] += 1
        if intent.output_leg is not None and not intent.output_leg.native:
            uses["out", intent.output_leg.account_index] += 1
        for leg in intent.liquidity_legs:
            if not leg.native:
                uses["liquidity", leg.account_index] += 1
    intermediate |= {index for (_, index), count in uses.items() if count > 1}

    sources: set[int] = set()
    destinations: set[int] = set()
    for outer_index in range(len(context.view.instructions)):
        for transfer in context.child_transfers(outer_index, None):
            sources.add(transfer.source)
            destinations.add(transfer.destination)
    return intermediate | (sources & destinations)


class BalanceReconciler:
    """Computes post - pre per nominated account and decides the authoritative amount.

    An explicit payload amount wins and the measured delta only cross-checks it;
    without one, the measured delta is the amount. Intermediate accounts, and
    accounts absent from both snapshots, are measured from the token transfers
    the instruction itself performed instead of from snapshots.
    """

    def __init__(self, context: TransactionContext, intermediate: set[int] | None = None) -> None:
        self._context = context
        self._intermediate = intermediate or set()

    def resolve(
        self,
        leg: TokenLeg,
        position: tuple[int, int | None],
        outgoing: bool,
    ) -> ResolvedLeg | None:
        """Resolve one leg. Returns None when mint/decimals metadata is unknown."""
        index = self._context.check_index(leg.account_index)
        view = self._context.view

        if leg.native:
            mint = leg.mint or SOL_MINT
            decimals = SOL_DECIMALS
        else:
            mint = leg.mint or self._context.mint_of(index)
            decimals = self._context.decimals_of(mint) if mint else None
        if mint is None or decimals is None:
            logger.debug("No mint metadata for account %s; leg skipped", view.account_keys[index])
            return None

        measured = self._measure(leg, index, mint, position, outgoing)
        if leg.amount is not None:
            amount = leg.amount
        else:
            amount = measured if measured is not None else 0

        account = view.account_keys[index]
        owner = account if leg.native else self._context.owner_of(index)
        return ResolvedLeg(
            account_index=index,
            account=account,
            owner=owner,
            mint=mint,
            decimals=decimals,
            amount=amount,
            declared=leg.amount,
            measured=measured,
        )

    def _measure(
        self,
        leg: TokenLeg,
        index: int,
        mint: str,
        position: tuple[int, int | None],
        outgoing: bool,
    ) -> int | None:
        view = self._context.view
        if leg.native:
            return abs(view.lamport_delta(index))

        if index not in self._intermediate and self._context.has_snapshot(index):
            balance = view.token_balance(index)
            if balance is not None and balance.mint == mint:
                return abs(view.token_delta(index))

        transfers = self._context.child_transfers(*position)
        if outgoing:
            amounts = [t.amount for t in transfers if t.source == index]
        else:
            amounts = [t.amount for t in transfers if t.destination == index]
        return sum(amounts) if amounts else None


def zero_output_warning(output: ResolvedLeg) -> ReconciliationMismatch | None:
    if output.amount != 0:
        return None
    return ReconciliationMismatch(
        kind=WarningKind.ZERO_OUTPUT,
        side="output",
        declared=output.declared,
        measured=output.measured,
    )

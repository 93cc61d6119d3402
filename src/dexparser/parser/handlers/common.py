"""Reusable builders turning decoded intents + reconciled legs into events.

Decimals always come from the resolved leg (snapshot / transferChecked metadata).
"""

import logging

from dexparser.domain.enums import InstructionKind, Provenance, TradeType
from dexparser.parser.utils.balances import BalanceReconciler, ResolvedLeg, zero_output_warning
from dexparser.parser.utils.programs import QUOTE_MINTS
from dexparser.parser.utils.types import (
    DecodedIntent,
    LiquidityEvent,
    TokenInfo,
    Trade,
    TransferEvent,
    to_ui_amount,
)

logger = logging.getLogger(__name__)

Event = Trade | LiquidityEvent | TransferEvent


def trade_type(input_mint: str, output_mint: str) -> TradeType:
    """BUY spends a quote token, SELL receives one, anything else is a SWAP."""
    input_is_quote = input_mint in QUOTE_MINTS
    output_is_quote = output_mint in QUOTE_MINTS
    if input_is_quote and not output_is_quote:
        return TradeType.BUY
    if output_is_quote and not input_is_quote:
        return TradeType.SELL
    return TradeType.SWAP


def make_token_info(leg: ResolvedLeg) -> TokenInfo:
    return TokenInfo(
        mint=leg.mint,
        amount=leg.amount,
        decimals=leg.decimals,
        ui_amount=to_ui_amount(leg.amount, leg.decimals),
        account=leg.account,
        owner=leg.owner,
    )


def make_trade(
    intent: DecodedIntent,
    input_leg: ResolvedLeg,
    output_leg: ResolvedLeg,
    provenance: Provenance = Provenance.PROTOCOL,
) -> Trade:
    """Swap: input leg leaves the user, output leg arrives. Zero output is kept and flagged."""
    warnings = [
        w for w in (
            input_leg.mismatch("input"),
            output_leg.mismatch("output"),
            zero_output_warning(output_leg),
        )
        if w is not None
    ]
    return Trade(
        type=trade_type(input_leg.mint, output_leg.mint),
        amm=intent.protocol,
        program_id=intent.program_id,
        input_token=make_token_info(input_leg),
        output_token=make_token_info(output_leg),
        pool=intent.pool,
        instruction_index=intent.instruction_index,
        inner_index=intent.inner_index,
        idx=intent.idx,
        user=intent.user or input_leg.owner,
        provenance=provenance,
        warnings=warnings,
    )


def make_liquidity_event(
    intent: DecodedIntent,
    token_legs: list[ResolvedLeg],
    lp_leg: ResolvedLeg | None,
    provenance: Provenance = Provenance.PROTOCOL,
) -> LiquidityEvent:
    """Create/add: tokens in, LP minted (+). Remove: LP burned (-), tokens out."""
    sign = -1 if intent.kind == InstructionKind.REMOVE_LIQUIDITY else 1
    lp_amount = lp_leg.amount if lp_leg is not None else (intent.lp_amount or 0)
    return LiquidityEvent(
        protocol=intent.protocol,
        program_id=intent.program_id,
        kind=intent.kind,
        pool=intent.pool,
        tokens=[make_token_info(leg) for leg in token_legs],
        lp_mint=lp_leg.mint if lp_leg is not None else None,
        lp_delta=sign * lp_amount,
        instruction_index=intent.instruction_index,
        inner_index=intent.inner_index,
        idx=intent.idx,
        user=intent.user,
        provenance=provenance,
    )


def make_transfer_event(
    intent: DecodedIntent,
    source: ResolvedLeg,
    destination: ResolvedLeg | None,
    provenance: Provenance = Provenance.PROTOCOL,
) -> TransferEvent:
    return TransferEvent(
        mint=source.mint,
        amount=source.amount,
        decimals=source.decimals,
        ui_amount=to_ui_amount(source.amount, source.decimals),
        source=source.account,
        destination=destination.account if destination is not None else None,
        source_owner=intent.source_owner or source.owner or intent.user,
        destination_owner=intent.destination_owner or (destination.owner if destination is not None else None),
        program_id=intent.program_id,
        instruction_index=intent.instruction_index,
        inner_index=intent.inner_index,
        idx=intent.idx,
        provenance=provenance,
    )


def build_event(intent: DecodedIntent, reconciler: BalanceReconciler) -> Event | None:
    """Resolve an intent's legs and build the matching event. None when legs cannot be resolved."""
    position = (intent.instruction_index, intent.inner_index)

    if intent.kind == InstructionKind.SWAP:
        if intent.input_leg is None or intent.output_leg is None:
            return None
        input_leg = reconciler.resolve(intent.input_leg, position, outgoing=True)
        output_leg = reconciler.resolve(intent.output_leg, position, outgoing=False)
        if input_leg is None or output_leg is None:
            logger.debug("Swap %s at %s: unresolved legs", intent.protocol, intent.idx)
            return None
        return make_trade(intent, input_leg, output_leg)

    if intent.kind in (InstructionKind.CREATE_POOL, InstructionKind.ADD_LIQUIDITY, InstructionKind.REMOVE_LIQUIDITY):
        adding = intent.kind != InstructionKind.REMOVE_LIQUIDITY
        token_legs = [
            resolved for resolved in (
                reconciler.resolve(leg, position, outgoing=adding) for leg in intent.liquidity_legs
            )
            if resolved is not None
        ]
        lp_leg = None
        if intent.lp_leg is not None:
            lp_leg = reconciler.resolve(intent.lp_leg, position, outgoing=not adding)
        if not token_legs and lp_leg is None:
            return None
        return make_liquidity_event(intent, token_legs, lp_leg)

    if intent.kind == InstructionKind.TRANSFER:
        if intent.input_leg is None:
            return None
        source = reconciler.resolve(intent.input_leg, position, outgoing=True)
        if source is None and intent.output_leg is not None:
            # Source account closed without snapshot entries: take mint from the destination
            destination = reconciler.resolve(intent.output_leg, position, outgoing=False)
            if destination is None:
                return None
            source = reconciler.resolve(
                intent.input_leg.model_copy(update={"mint": destination.mint}), position, outgoing=True,
            )
            if source is None:
                return None
            return make_transfer_event(intent, source, destination)
        if source is None:
            return None
        destination = None
        if intent.output_leg is not None:
            destination = reconciler.resolve(
                intent.output_leg.model_copy(update={"mint": intent.output_leg.mint or source.mint}),
                position,
                outgoing=False,
            )
        return make_transfer_event(intent, source, destination)

    return None

"""Pumpfun Decoder — bonding-curve buys and sells, token launches and migrations.

The SOL side of a Pumpfun trade moves as lamports on the bonding curve account,
not through a token account, so it is declared as a native leg. Exact amounts
come from the program's self-CPI TradeEvent when the RPC includes it.

Create, Complete and Migrate self-CPI events become meme events.
"""

import logging

from dexparser.domain.enums import Capability, InstructionKind, MemeEventType, Protocol
from dexparser.parser.generic.base import DiscriminatorDecoder, Position
from dexparser.parser.utils.binary import BinaryReader
from dexparser.parser.utils.context import TransactionContext
from dexparser.parser.utils.programs import SOL_MINT
from dexparser.parser.utils.types import DecodedIntent, Instruction, MemeEvent, TokenLeg

logger = logging.getLogger(__name__)

PUMP_FUN = "6EF8rrecthR5Dkzon8Nwu78hRvfCKubJ14M5uBEwF6P"

BUY = bytes([102, 6, 61, 18, 1, 218, 235, 234])
SELL = bytes([51, 230, 133, 164, 1, 127, 131, 173])

TRADE_EVENT = bytes([189, 219, 127, 211, 78, 230, 97, 238])
CREATE_EVENT = bytes([27, 114, 169, 77, 222, 235, 99, 118])
COMPLETE_EVENT = bytes([95, 114, 97, 156, 212, 46, 152, 8])
MIGRATE_EVENT = bytes([189, 233, 93, 185, 92, 148, 234, 148])

# creator + timestamp were appended to CreateEvent later; older events end at user
CREATE_EVENT_TAIL = 32 + 8

# buy/sell: global, fee_recipient, mint, bonding_curve, associated_bonding_curve, associated_user, user, ...
MINT = 2
BONDING_CURVE = 3
ASSOCIATED_USER = 5
USER = 6


class PumpfunDecoder(DiscriminatorDecoder):
    """Handles Pumpfun buy/sell against the bonding curve and its lifecycle events."""

    PROTOCOL_NAME = Protocol.PUMPFUN.value
    PROGRAM_IDS = frozenset({PUMP_FUN})
    CAPABILITIES = frozenset({Capability.TRADES, Capability.MEME_EVENTS})
    INSTRUCTION_HANDLERS = {
        BUY: "_handle_buy",
        SELL: "_handle_sell",
    }
    MEME_EVENT_HANDLERS = {
        CREATE_EVENT: "_meme_create",
        COMPLETE_EVENT: "_meme_complete",
        MIGRATE_EVENT: "_meme_migrate",
    }

    def _handle_buy(
        self, instruction: Instruction, inner: list[Instruction], context: TransactionContext, position: Position,
    ) -> DecodedIntent:
        accounts = self._require_accounts(instruction, USER + 1)
        reader = self._reader(instruction)
        token_amount = reader.read_u64()
        reader.read_u64()  # max_sol_cost

        sol_amount = None
        event = self._trade_event(inner)
        if event is not None:
            sol_amount, token_amount = event

        mint = context.address(accounts[MINT])
        return self._make_intent(
            instruction,
            InstructionKind.SWAP,
            position,
            input_leg=TokenLeg(account_index=accounts[BONDING_CURVE], mint=SOL_MINT, amount=sol_amount, native=True),
            output_leg=TokenLeg(account_index=accounts[ASSOCIATED_USER], mint=mint, amount=token_amount),
            pool=context.address(accounts[BONDING_CURVE]),
            user=context.address(accounts[USER]),
        )

    def _handle_sell(
        self, instruction: Instruction, inner: list[Instruction], context: TransactionContext, position: Position,
    ) -> DecodedIntent:
        accounts = self._require_accounts(instruction, USER + 1)
        reader = self._reader(instruction)
        token_amount = reader.read_u64()
        reader.read_u64()  # min_sol_output

        sol_amount = None
        event = self._trade_event(inner)
        if event is not None:
            sol_amount, token_amount = event

        mint = context.address(accounts[MINT])
        return self._make_intent(
            instruction,
            InstructionKind.SWAP,
            position,
            input_leg=TokenLeg(account_index=accounts[ASSOCIATED_USER], mint=mint, amount=token_amount),
            output_leg=TokenLeg(account_index=accounts[BONDING_CURVE], mint=SOL_MINT, amount=sol_amount, native=True),
            pool=context.address(accounts[BONDING_CURVE]),
            user=context.address(accounts[USER]),
        )

    def _trade_event(self, inner: list[Instruction]) -> tuple[int, int] | None:
        """(sol_amount, token_amount) from the TradeEvent, if emitted."""
        reader = self._find_event(inner, TRADE_EVENT)
        if reader is None:
            return None
        reader.read_pubkey()  # mint
        sol_amount = reader.read_u64()
        token_amount = reader.read_u64()
        logger.debug("Pumpfun trade event: sol=%d token=%d", sol_amount, token_amount)
        return sol_amount, token_amount

    # --- Meme events ---

    def _meme_create(
        self, instruction: Instruction, reader: BinaryReader, context: TransactionContext, position: Position,
    ) -> MemeEvent:
        name = reader.read_string()
        symbol = reader.read_string()
        uri = reader.read_string()
        mint = reader.read_pubkey()
        bonding_curve = reader.read_pubkey()
        user = reader.read_pubkey()
        creator = None
        timestamp = None
        if reader.remaining >= CREATE_EVENT_TAIL:
            creator = reader.read_pubkey()
            timestamp = reader.read_i64()
        return self._make_meme_event(
            instruction,
            MemeEventType.CREATE,
            position,
            base_mint=mint,
            quote_mint=SOL_MINT,
            user=user,
            name=name,
            symbol=symbol,
            uri=uri,
            creator=creator or user,
            bonding_curve=bonding_curve,
            timestamp=timestamp,
        )

    def _meme_complete(self, instruction, reader, context, position) -> MemeEvent:
        user = reader.read_pubkey()
        mint = reader.read_pubkey()
        bonding_curve = reader.read_pubkey()
        timestamp = reader.read_i64()
        return self._make_meme_event(
            instruction,
            MemeEventType.COMPLETE,
            position,
            base_mint=mint,
            quote_mint=SOL_MINT,
            user=user,
            bonding_curve=bonding_curve,
            timestamp=timestamp,
        )

    def _meme_migrate(self, instruction, reader, context, position) -> MemeEvent:
        user = reader.read_pubkey()
        mint = reader.read_pubkey()
        mint_amount = reader.read_u64()
        sol_amount = reader.read_u64()
        reader.read_u64()  # pool_migration_fee
        bonding_curve = reader.read_pubkey()
        timestamp = reader.read_i64()
        pool = reader.read_pubkey()
        logger.debug("Pumpfun migration of %s: %d tokens, %d lamports", mint, mint_amount, sol_amount)
        return self._make_meme_event(
            instruction,
            MemeEventType.MIGRATE,
            position,
            base_mint=mint,
            quote_mint=SOL_MINT,
            user=user,
            bonding_curve=bonding_curve,
            pool=pool,
            pool_dex=Protocol.PUMPSWAP.value,
            timestamp=timestamp,
        )

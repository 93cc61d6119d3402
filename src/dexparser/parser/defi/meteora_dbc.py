"""Meteora DBC Decoder — dynamic bonding curve launches, trades and graduations.

Swaps become trades. Pool initialization and migration to DAMM / DAMM v2 become
meme events; they move no user tokens worth reconciling.
"""

import logging

from dexparser.domain.enums import Capability, InstructionKind, MemeEventType, Protocol
from dexparser.parser.generic.base import DiscriminatorDecoder, Position
from dexparser.parser.utils.binary import BinaryReader
from dexparser.parser.utils.context import TransactionContext
from dexparser.parser.utils.types import DecodedIntent, Instruction, MemeEvent, TokenLeg

logger = logging.getLogger(__name__)

METEORA_DBC = "dbcij3LWUppWqq96dh6gJWwBifmcGfLSB5D4DuSMaqN"

SWAP = bytes([248, 198, 158, 145, 225, 117, 135, 200])
SWAP_V2 = bytes([65, 75, 63, 76, 235, 91, 91, 136])
INITIALIZE_VIRTUAL_POOL_WITH_SPL_TOKEN = bytes([140, 85, 215, 176, 102, 54, 104, 79])
INITIALIZE_VIRTUAL_POOL_WITH_TOKEN2022 = bytes([169, 118, 51, 78, 145, 110, 220, 155])
MIGRATE_DAMM = bytes([27, 1, 48, 22, 180, 63, 118, 217])
MIGRATE_DAMM_V2 = bytes([156, 169, 230, 103, 53, 228, 80, 64])

# swap: pool_authority, config, pool, input_token_account, output_token_account,
#       base_vault, quote_vault, base_mint, quote_mint, payer, ...
SWAP_POOL = 2
SWAP_INPUT = 3
SWAP_OUTPUT = 4
SWAP_PAYER = 9

# swap2 modes
EXACT_IN = 0
EXACT_OUT = 2

# initialize_virtual_pool_*: config, pool_authority, creator, base_mint, quote_mint, pool, ...
CREATE_CONFIG = 0
CREATE_CREATOR = 2
CREATE_BASE_MINT = 3
CREATE_QUOTE_MINT = 4
CREATE_POOL = 5

# migration: virtual_pool, migration_metadata, config, pool_authority, pool, ...
MIGRATE_LAYOUTS = {
    MIGRATE_DAMM: {"base_mint": 7, "quote_mint": 8, "pool_dex": Protocol.METEORA_DAMM.value},
    MIGRATE_DAMM_V2: {"base_mint": 13, "quote_mint": 14, "pool_dex": Protocol.METEORA_DAMM_V2.value},
}
MIGRATE_VIRTUAL_POOL = 0
MIGRATE_CONFIG = 2
MIGRATE_POOL = 4


class MeteoraDBCDecoder(DiscriminatorDecoder):
    """Handles DBC swap/swap2 plus virtual pool creation and migration."""

    PROTOCOL_NAME = Protocol.METEORA_DBC.value
    PROGRAM_IDS = frozenset({METEORA_DBC})
    CAPABILITIES = frozenset({Capability.TRADES, Capability.MEME_EVENTS})
    INSTRUCTION_HANDLERS = {
        SWAP: "_handle_swap",
        SWAP_V2: "_handle_swap_v2",
    }
    MEME_EVENT_HANDLERS = {
        INITIALIZE_VIRTUAL_POOL_WITH_SPL_TOKEN: "_meme_create",
        INITIALIZE_VIRTUAL_POOL_WITH_TOKEN2022: "_meme_create",
        MIGRATE_DAMM: "_meme_migrate",
        MIGRATE_DAMM_V2: "_meme_migrate",
    }

    def _handle_swap(
        self, instruction: Instruction, inner: list[Instruction], context: TransactionContext, position: Position,
    ) -> DecodedIntent:
        reader = self._reader(instruction)
        amount_in = reader.read_u64()
        reader.read_u64()  # minimum_amount_out
        return self._swap(instruction, context, position, amount_in=amount_in)

    def _handle_swap_v2(self, instruction, inner, context, position) -> DecodedIntent:
        reader = self._reader(instruction)
        amount_0 = reader.read_u64()
        reader.read_u64()  # the bound on the other side
        mode = reader.read_u8()
        if mode == EXACT_IN:
            return self._swap(instruction, context, position, amount_in=amount_0)
        if mode == EXACT_OUT:
            return self._swap(instruction, context, position, amount_out=amount_0)
        # partial fill: amount_0 caps the input, both sides are measured
        return self._swap(instruction, context, position)

    def _swap(
        self,
        instruction: Instruction,
        context: TransactionContext,
        position: Position,
        amount_in: int | None = None,
        amount_out: int | None = None,
    ) -> DecodedIntent:
        accounts = self._require_accounts(instruction, SWAP_PAYER + 1)
        return self._make_intent(
            instruction,
            InstructionKind.SWAP,
            position,
            input_leg=TokenLeg(account_index=accounts[SWAP_INPUT], amount=amount_in),
            output_leg=TokenLeg(account_index=accounts[SWAP_OUTPUT], amount=amount_out),
            pool=context.address(accounts[SWAP_POOL]),
            user=context.address(accounts[SWAP_PAYER]),
        )

    # --- Meme events ---

    def _meme_create(
        self, instruction: Instruction, reader: BinaryReader, context: TransactionContext, position: Position,
    ) -> MemeEvent:
        accounts = self._require_accounts(instruction, CREATE_POOL + 1)
        name = reader.read_string()
        symbol = reader.read_string()
        uri = reader.read_string()
        creator = context.address(accounts[CREATE_CREATOR])
        pool = context.address(accounts[CREATE_POOL])
        return self._make_meme_event(
            instruction,
            MemeEventType.CREATE,
            position,
            base_mint=context.address(accounts[CREATE_BASE_MINT]),
            quote_mint=context.address(accounts[CREATE_QUOTE_MINT]),
            user=creator,
            name=name,
            symbol=symbol,
            uri=uri,
            creator=creator,
            bonding_curve=pool,
            pool=pool,
            platform_config=context.address(accounts[CREATE_CONFIG]),
        )

    def _meme_migrate(self, instruction, reader, context, position) -> MemeEvent:
        layout = MIGRATE_LAYOUTS[bytes(instruction.data[:self.DISCRIMINATOR_SIZE])]
        accounts = self._require_accounts(instruction, layout["quote_mint"] + 1)
        base_mint = context.address(accounts[layout["base_mint"]])
        logger.debug("DBC migration of %s to %s", base_mint, layout["pool_dex"])
        return self._make_meme_event(
            instruction,
            MemeEventType.MIGRATE,
            position,
            base_mint=base_mint,
            quote_mint=context.address(accounts[layout["quote_mint"]]),
            bonding_curve=context.address(accounts[MIGRATE_VIRTUAL_POOL]),
            pool=context.address(accounts[MIGRATE_POOL]),
            pool_dex=layout["pool_dex"],
            platform_config=context.address(accounts[MIGRATE_CONFIG]),
        )

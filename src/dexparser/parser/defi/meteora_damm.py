"""Meteora DAMM Decoders — dynamic AMM pool liquidity (Pools v1 and DAMM v2).

Pools v1 mints an LP token per deposit. DAMM v2 tracks liquidity on a position
NFT instead, so its events carry the position's liquidity delta as the LP amount.
"""

from dexparser.domain.enums import Capability, InstructionKind, Protocol
from dexparser.parser.generic.base import DiscriminatorDecoder, Position
from dexparser.parser.utils.context import TransactionContext
from dexparser.parser.utils.types import DecodedIntent, Instruction, TokenLeg

METEORA_DAMM = "Eo7WjKq67rjJQSZxS6z3YkapzY3eMj6Xy8X5EQVn5UaB"
METEORA_DAMM_V2 = "cpamdpZCGKUy5JxQXB4dcpGPiikHawvSWAd6mEn1sGG"

# --- Pools v1 ---

ADD_BALANCE_LIQUIDITY = bytes([168, 227, 50, 62, 189, 171, 84, 176])
ADD_IMBALANCE_LIQUIDITY = bytes([79, 35, 122, 84, 173, 15, 93, 191])
REMOVE_BALANCE_LIQUIDITY = bytes([133, 109, 44, 179, 56, 238, 114, 33])

# pool, lp_mint, user_pool_lp, a_vault_lp, b_vault_lp, a_vault, b_vault, a_vault_lp_mint,
# b_vault_lp_mint, a_token_vault, b_token_vault, user_a_token, user_b_token, user, ...
POOLS_POOL = 0
POOLS_LP_MINT = 1
POOLS_USER_LP = 2
POOLS_USER_A = 11
POOLS_USER_B = 12
POOLS_USER = 13

# --- DAMM v2 ---

INITIALIZE_POOL = bytes([95, 180, 10, 172, 84, 174, 232, 40])
INITIALIZE_CUSTOM_POOL = bytes([20, 161, 241, 24, 189, 221, 180, 2])
INITIALIZE_POOL_WITH_DYNAMIC_CONFIG = bytes([149, 82, 72, 197, 253, 252, 68, 15])
ADD_LIQUIDITY = bytes([181, 157, 89, 67, 143, 182, 52, 72])
REMOVE_LIQUIDITY = bytes([80, 85, 209, 72, 24, 206, 177, 108])
REMOVE_ALL_LIQUIDITY = bytes([10, 51, 61, 35, 112, 105, 24, 85])
CLAIM_POSITION_FEE = bytes([180, 38, 154, 17, 133, 33, 162, 211])

# add_liquidity: pool, position, token_a_account, token_b_account, token_a_vault, token_b_vault,
#                token_a_mint, token_b_mint, position_nft_account, owner, ...
ADD_LAYOUT = {"pool": 0, "token_a": 2, "token_b": 3, "mint_a": 6, "mint_b": 7, "owner": 9}
# remove/claim: pool_authority, pool, position, token_a_account, token_b_account, vaults, mints,
#               position_nft_account, owner, ...
REMOVE_LAYOUT = {"pool": 1, "token_a": 3, "token_b": 4, "mint_a": 7, "mint_b": 8, "owner": 10}
# pool creation: the creator funds the pool from its payer token accounts
INIT_LAYOUTS = {
    INITIALIZE_POOL: {"pool": 6, "mint_a": 8, "mint_b": 9, "token_a": 12, "token_b": 13, "owner": 0},
    INITIALIZE_CUSTOM_POOL: {"pool": 5, "mint_a": 7, "mint_b": 8, "token_a": 11, "token_b": 12, "owner": 0},
    INITIALIZE_POOL_WITH_DYNAMIC_CONFIG: {"pool": 7, "mint_a": 9, "mint_b": 10, "token_a": 13, "token_b": 14, "owner": 0},
}


class MeteoraPoolsDecoder(DiscriminatorDecoder):
    """Handles Meteora Pools (DAMM v1) balanced/imbalanced deposits and withdrawals."""

    PROTOCOL_NAME = Protocol.METEORA_DAMM.value
    PROGRAM_IDS = frozenset({METEORA_DAMM})
    CAPABILITIES = frozenset({Capability.LIQUIDITY})
    INSTRUCTION_HANDLERS = {
        ADD_BALANCE_LIQUIDITY: "_handle_add_balance",
        ADD_IMBALANCE_LIQUIDITY: "_handle_add_imbalance",
        REMOVE_BALANCE_LIQUIDITY: "_handle_remove_balance",
    }

    def _handle_add_balance(self, instruction, inner, context, position) -> DecodedIntent:
        pool_token_amount = self._reader(instruction).read_u64()
        return self._liquidity(instruction, context, position, InstructionKind.ADD_LIQUIDITY, pool_token_amount)

    def _handle_add_imbalance(self, instruction, inner, context, position) -> DecodedIntent:
        # leading u64 is only a minimum; the minted amount is measured
        return self._liquidity(instruction, context, position, InstructionKind.ADD_LIQUIDITY, None)

    def _handle_remove_balance(self, instruction, inner, context, position) -> DecodedIntent:
        pool_token_amount = self._reader(instruction).read_u64()
        return self._liquidity(instruction, context, position, InstructionKind.REMOVE_LIQUIDITY, pool_token_amount)

    def _liquidity(
        self,
        instruction: Instruction,
        context: TransactionContext,
        position: Position,
        kind: InstructionKind,
        lp_amount: int | None,
    ) -> DecodedIntent:
        accounts = self._require_accounts(instruction, POOLS_USER + 1)
        return self._make_intent(
            instruction,
            kind,
            position,
            liquidity_legs=[
                TokenLeg(account_index=accounts[POOLS_USER_A]),
                TokenLeg(account_index=accounts[POOLS_USER_B]),
            ],
            lp_leg=TokenLeg(
                account_index=accounts[POOLS_USER_LP],
                mint=context.address(accounts[POOLS_LP_MINT]),
                amount=lp_amount,
            ),
            pool=context.address(accounts[POOLS_POOL]),
            user=context.address(accounts[POOLS_USER]),
        )


class MeteoraDammV2Decoder(DiscriminatorDecoder):
    """Handles DAMM v2 pool creation, position deposits, withdrawals and fee claims."""

    PROTOCOL_NAME = Protocol.METEORA_DAMM_V2.value
    PROGRAM_IDS = frozenset({METEORA_DAMM_V2})
    CAPABILITIES = frozenset({Capability.LIQUIDITY})
    INSTRUCTION_HANDLERS = {
        **{d: "_handle_initialize_pool" for d in INIT_LAYOUTS},
        ADD_LIQUIDITY: "_handle_add_liquidity",
        REMOVE_LIQUIDITY: "_handle_remove_liquidity",
        REMOVE_ALL_LIQUIDITY: "_handle_remove_all_liquidity",
        CLAIM_POSITION_FEE: "_handle_remove_all_liquidity",
    }

    def _handle_initialize_pool(self, instruction, inner, context, position) -> DecodedIntent:
        discriminator = bytes(instruction.data[:self.DISCRIMINATOR_SIZE])
        liquidity = None
        if discriminator == INITIALIZE_POOL:
            # custom and dynamic-config params open with the fee schedule; liquidity comes later
            liquidity = self._reader(instruction).read_u128()
        return self._position(
            instruction, context, position, InstructionKind.CREATE_POOL, INIT_LAYOUTS[discriminator], liquidity,
        )

    def _handle_add_liquidity(self, instruction, inner, context, position) -> DecodedIntent:
        liquidity_delta = self._reader(instruction).read_u128()
        return self._position(instruction, context, position, InstructionKind.ADD_LIQUIDITY, ADD_LAYOUT, liquidity_delta)

    def _handle_remove_liquidity(self, instruction, inner, context, position) -> DecodedIntent:
        liquidity_delta = self._reader(instruction).read_u128()
        return self._position(
            instruction, context, position, InstructionKind.REMOVE_LIQUIDITY, REMOVE_LAYOUT, liquidity_delta,
        )

    def _handle_remove_all_liquidity(self, instruction, inner, context, position) -> DecodedIntent:
        return self._position(instruction, context, position, InstructionKind.REMOVE_LIQUIDITY, REMOVE_LAYOUT, None)

    def _position(
        self,
        instruction: Instruction,
        context: TransactionContext,
        position: Position,
        kind: InstructionKind,
        layout: dict[str, int],
        liquidity_delta: int | None,
    ) -> DecodedIntent:
        accounts = self._require_accounts(instruction, max(layout.values()) + 1)
        return self._make_intent(
            instruction,
            kind,
            position,
            liquidity_legs=[
                TokenLeg(account_index=accounts[layout["token_a"]], mint=context.address(accounts[layout["mint_a"]])),
                TokenLeg(account_index=accounts[layout["token_b"]], mint=context.address(accounts[layout["mint_b"]])),
            ],
            lp_amount=liquidity_delta,
            pool=context.address(accounts[layout["pool"]]),
            user=context.address(accounts[layout["owner"]]),
        )

"""Raydium AMM v4 Decoder — swapBaseIn/swapBaseOut plus deposit/withdraw.

Raydium v4 is a native (non-Anchor) program: the first payload byte is the
instruction tag. Swap account lists come in 17- and 18-account variants (the
latter with amm_target_orders); the user accounts are always the last three,
so they are addressed from the end.
"""

from dexparser.domain.enums import Capability, InstructionKind, Protocol
from dexparser.parser.generic.base import DiscriminatorDecoder, Position
from dexparser.parser.utils.context import TransactionContext
from dexparser.parser.utils.types import DecodedIntent, Instruction, TokenLeg

RAYDIUM_AMM_V4 = "675kPX9MHTjS2zt1qfr1NYHuzeLXfQM9H24wFSUt1Mp8"

# Instruction tags
DEPOSIT = bytes([3])
WITHDRAW = bytes([4])
SWAP_BASE_IN = bytes([9])
SWAP_BASE_OUT = bytes([11])

# Account positions
AMM_ACCOUNT = 1
DEPOSIT_LP_MINT = 5
DEPOSIT_USER_COIN = 9
DEPOSIT_USER_PC = 10
DEPOSIT_USER_LP = 11
DEPOSIT_USER_OWNER = 12


class RaydiumV4Decoder(DiscriminatorDecoder):
    """Handles Raydium AMM v4 swaps and liquidity deposits/withdrawals."""

    PROTOCOL_NAME = Protocol.RAYDIUM.value
    PROGRAM_IDS = frozenset({RAYDIUM_AMM_V4})
    CAPABILITIES = frozenset({Capability.TRADES, Capability.LIQUIDITY})
    DISCRIMINATOR_SIZE = 1
    INSTRUCTION_HANDLERS = {
        SWAP_BASE_IN: "_handle_swap_base_in",
        SWAP_BASE_OUT: "_handle_swap_base_out",
        DEPOSIT: "_handle_deposit",
        WITHDRAW: "_handle_withdraw",
    }

    def _handle_swap_base_in(
        self, instruction: Instruction, inner: list[Instruction], context: TransactionContext, position: Position,
    ) -> DecodedIntent:
        accounts = self._require_accounts(instruction, 17)
        reader = self._reader(instruction)
        amount_in = reader.read_u64()
        reader.read_u64()  # minimum_amount_out

        return self._make_intent(
            instruction,
            InstructionKind.SWAP,
            position,
            input_leg=TokenLeg(account_index=accounts[-3], amount=amount_in),
            output_leg=TokenLeg(account_index=accounts[-2]),
            pool=context.address(accounts[AMM_ACCOUNT]),
            user=context.address(accounts[-1]),
        )

    def _handle_swap_base_out(
        self, instruction: Instruction, inner: list[Instruction], context: TransactionContext, position: Position,
    ) -> DecodedIntent:
        accounts = self._require_accounts(instruction, 17)
        reader = self._reader(instruction)
        reader.read_u64()  # max_amount_in
        amount_out = reader.read_u64()

        return self._make_intent(
            instruction,
            InstructionKind.SWAP,
            position,
            input_leg=TokenLeg(account_index=accounts[-3]),
            output_leg=TokenLeg(account_index=accounts[-2], amount=amount_out),
            pool=context.address(accounts[AMM_ACCOUNT]),
            user=context.address(accounts[-1]),
        )

    def _handle_deposit(
        self, instruction: Instruction, inner: list[Instruction], context: TransactionContext, position: Position,
    ) -> DecodedIntent:
        # max_coin_amount / max_pc_amount are caps, not amounts: measure everything
        accounts = self._require_accounts(instruction, 13)
        return self._make_intent(
            instruction,
            InstructionKind.ADD_LIQUIDITY,
            position,
            liquidity_legs=[
                TokenLeg(account_index=accounts[DEPOSIT_USER_COIN]),
                TokenLeg(account_index=accounts[DEPOSIT_USER_PC]),
            ],
            lp_leg=TokenLeg(
                account_index=accounts[DEPOSIT_USER_LP],
                mint=context.address(accounts[DEPOSIT_LP_MINT]),
            ),
            pool=context.address(accounts[AMM_ACCOUNT]),
            user=context.address(accounts[DEPOSIT_USER_OWNER]),
        )

    def _handle_withdraw(
        self, instruction: Instruction, inner: list[Instruction], context: TransactionContext, position: Position,
    ) -> DecodedIntent:
        # 22-account (with withdraw queue / temp lp) and 20-account layouts share the tail:
        # ..., user_lp, user_coin, user_pc, user_owner, event_queue, bids, asks
        accounts = self._require_accounts(instruction, 20)
        lp_amount = self._reader(instruction).read_u64()

        return self._make_intent(
            instruction,
            InstructionKind.REMOVE_LIQUIDITY,
            position,
            liquidity_legs=[
                TokenLeg(account_index=accounts[-6]),
                TokenLeg(account_index=accounts[-5]),
            ],
            lp_leg=TokenLeg(
                account_index=accounts[-7],
                mint=context.address(accounts[DEPOSIT_LP_MINT]),
                amount=lp_amount,
            ),
            pool=context.address(accounts[AMM_ACCOUNT]),
            user=context.address(accounts[-4]),
        )

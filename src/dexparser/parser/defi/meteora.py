"""Meteora DLMM Decoder — bin-based swaps and position liquidity."""

from dexparser.domain.enums import Capability, InstructionKind, Protocol
from dexparser.parser.generic.base import DiscriminatorDecoder, Position
from dexparser.parser.utils.context import TransactionContext
from dexparser.parser.utils.types import DecodedIntent, Instruction, TokenLeg

METEORA_DLMM = "LBUZKhRxPF3XUpBCjp4YzTKgLccjZhTSDM9YuVaPwxo"

SWAP = bytes([248, 198, 158, 145, 225, 117, 135, 200])
SWAP_V2 = bytes([65, 75, 63, 76, 235, 91, 91, 136])

ADD_LIQUIDITY = bytes([181, 157, 89, 67, 143, 182, 52, 72])
ADD_LIQUIDITY_BY_STRATEGY = bytes([7, 3, 150, 127, 148, 40, 61, 200])
ADD_LIQUIDITY_BY_STRATEGY2 = bytes([3, 221, 149, 218, 111, 141, 118, 213])
ADD_LIQUIDITY_BY_WEIGHT = bytes([28, 140, 238, 99, 231, 162, 21, 149])
ADD_LIQUIDITY_ONE_SIDE = bytes([94, 155, 103, 151, 70, 95, 220, 165])
ADD_LIQUIDITY_BY_STRATEGY_ONE_SIDE = bytes([41, 5, 238, 175, 100, 225, 6, 205])
ADD_LIQUIDITY_ONE_SIDE_PRECISE = bytes([161, 194, 103, 84, 171, 71, 250, 154])

REMOVE_LIQUIDITY = bytes([80, 85, 209, 72, 24, 206, 177, 108])
REMOVE_LIQUIDITY_BY_RANGE = bytes([26, 82, 102, 152, 240, 74, 105, 26])
REMOVE_LIQUIDITY_BY_RANGE2 = bytes([204, 2, 195, 145, 53, 145, 145, 205])
REMOVE_ALL_LIQUIDITY = bytes([10, 51, 61, 35, 112, 105, 24, 85])

# swap: lb_pair, bitmap_ext, reserve_x, reserve_y, user_token_in, user_token_out,
#       token_x_mint, token_y_mint, oracle, host_fee_in, user, ...
SWAP_LB_PAIR = 0
SWAP_USER_TOKEN_IN = 4
SWAP_USER_TOKEN_OUT = 5
SWAP_USER = 10

# two-sided liquidity: position, lb_pair, bitmap_ext, user_token_x, user_token_y,
#                      reserve_x, reserve_y, token_x_mint, token_y_mint, ..., sender
LIQ_LB_PAIR = 1
LIQ_USER_TOKEN_X = 3
LIQ_USER_TOKEN_Y = 4
LIQ_TOKEN_X_MINT = 7
LIQ_TOKEN_Y_MINT = 8
LIQ_SENDER = 11

# one-sided add: position, lb_pair, bitmap_ext, user_token, reserve, token_mint, ..., sender
ONE_SIDE_USER_TOKEN = 3
ONE_SIDE_TOKEN_MINT = 5
ONE_SIDE_SENDER = 8

ADD_TWO_SIDED = {ADD_LIQUIDITY, ADD_LIQUIDITY_BY_STRATEGY, ADD_LIQUIDITY_BY_STRATEGY2, ADD_LIQUIDITY_BY_WEIGHT}
ADD_ONE_SIDED = {ADD_LIQUIDITY_ONE_SIDE, ADD_LIQUIDITY_BY_STRATEGY_ONE_SIDE, ADD_LIQUIDITY_ONE_SIDE_PRECISE}
REMOVE = {REMOVE_LIQUIDITY, REMOVE_LIQUIDITY_BY_RANGE, REMOVE_LIQUIDITY_BY_RANGE2, REMOVE_ALL_LIQUIDITY}


class MeteoraDLMMDecoder(DiscriminatorDecoder):
    """Handles DLMM swap/swap2 and the add/remove liquidity families."""

    PROTOCOL_NAME = Protocol.METEORA_DLMM.value
    PROGRAM_IDS = frozenset({METEORA_DLMM})
    CAPABILITIES = frozenset({Capability.TRADES, Capability.LIQUIDITY})
    INSTRUCTION_HANDLERS = {
        SWAP: "_handle_swap",
        SWAP_V2: "_handle_swap",
        **{d: "_handle_add_liquidity" for d in ADD_TWO_SIDED},
        **{d: "_handle_add_liquidity_one_side" for d in ADD_ONE_SIDED},
        **{d: "_handle_remove_liquidity" for d in REMOVE},
    }

    def _handle_swap(
        self, instruction: Instruction, inner: list[Instruction], context: TransactionContext, position: Position,
    ) -> DecodedIntent:
        accounts = self._require_accounts(instruction, SWAP_USER + 1)
        reader = self._reader(instruction)
        amount_in = reader.read_u64()
        reader.read_u64()  # min_amount_out

        return self._make_intent(
            instruction,
            InstructionKind.SWAP,
            position,
            input_leg=TokenLeg(account_index=accounts[SWAP_USER_TOKEN_IN], amount=amount_in),
            output_leg=TokenLeg(account_index=accounts[SWAP_USER_TOKEN_OUT]),
            pool=context.address(accounts[SWAP_LB_PAIR]),
            user=context.address(accounts[SWAP_USER]),
        )

    def _handle_add_liquidity(self, instruction, inner, context, position) -> DecodedIntent:
        return self._two_sided(instruction, context, position, InstructionKind.ADD_LIQUIDITY)

    def _handle_remove_liquidity(self, instruction, inner, context, position) -> DecodedIntent:
        return self._two_sided(instruction, context, position, InstructionKind.REMOVE_LIQUIDITY)

    def _handle_add_liquidity_one_side(
        self, instruction: Instruction, inner: list[Instruction], context: TransactionContext, position: Position,
    ) -> DecodedIntent:
        accounts = self._require_accounts(instruction, ONE_SIDE_SENDER + 1)
        return self._make_intent(
            instruction,
            InstructionKind.ADD_LIQUIDITY,
            position,
            liquidity_legs=[
                TokenLeg(
                    account_index=accounts[ONE_SIDE_USER_TOKEN],
                    mint=context.address(accounts[ONE_SIDE_TOKEN_MINT]),
                ),
            ],
            pool=context.address(accounts[LIQ_LB_PAIR]),
            user=context.address(accounts[ONE_SIDE_SENDER]),
        )

    def _two_sided(
        self,
        instruction: Instruction,
        context: TransactionContext,
        position: Position,
        kind: InstructionKind,
    ) -> DecodedIntent:
        accounts = self._require_accounts(instruction, LIQ_SENDER + 1)
        return self._make_intent(
            instruction,
            kind,
            position,
            liquidity_legs=[
                TokenLeg(account_index=accounts[LIQ_USER_TOKEN_X], mint=context.address(accounts[LIQ_TOKEN_X_MINT])),
                TokenLeg(account_index=accounts[LIQ_USER_TOKEN_Y], mint=context.address(accounts[LIQ_TOKEN_Y_MINT])),
            ],
            pool=context.address(accounts[LIQ_LB_PAIR]),
            user=context.address(accounts[LIQ_SENDER]),
        )

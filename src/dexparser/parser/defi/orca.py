"""Orca Whirlpool Decoder — concentrated-liquidity swaps and position liquidity changes."""

from dexparser.domain.enums import Capability, InstructionKind, Protocol
from dexparser.parser.generic.base import DiscriminatorDecoder, Position
from dexparser.parser.utils.context import TransactionContext
from dexparser.parser.utils.types import DecodedIntent, Instruction, TokenLeg

ORCA_WHIRLPOOL = "whirLbMiicVdio4qvUfM5KAg6Ct8VwpYzGff3uctyCc"

SWAP = bytes([248, 198, 158, 145, 225, 117, 135, 200])
SWAP_V2 = bytes([43, 4, 237, 11, 26, 201, 30, 98])
INCREASE_LIQUIDITY = bytes([46, 156, 243, 118, 13, 205, 251, 178])
DECREASE_LIQUIDITY = bytes([160, 38, 208, 111, 104, 91, 44, 1])
INCREASE_LIQUIDITY_V2 = bytes([133, 29, 89, 223, 69, 238, 176, 10])
DECREASE_LIQUIDITY_V2 = bytes([58, 127, 188, 62, 79, 82, 196, 96])

# swap: token_program, token_authority, whirlpool, owner_a, vault_a, owner_b, vault_b, tick_arrays x3, oracle
SWAP_LAYOUT = {"authority": 1, "whirlpool": 2, "owner_a": 3, "owner_b": 5, "min_accounts": 11}
# swapV2: token_program_a, token_program_b, memo, token_authority, whirlpool, mint_a, mint_b,
#         owner_a, vault_a, owner_b, vault_b, tick_arrays x3, oracle
SWAP_V2_LAYOUT = {"authority": 3, "whirlpool": 4, "mint_a": 5, "mint_b": 6, "owner_a": 7, "owner_b": 9, "min_accounts": 15}

# increase/decreaseLiquidity: whirlpool, token_program, position_authority, position,
#                             position_token_account, owner_a, owner_b, vault_a, vault_b, tick_lower, tick_upper
LIQUIDITY_LAYOUT = {"whirlpool": 0, "authority": 2, "owner_a": 5, "owner_b": 6, "min_accounts": 11}
# v2: whirlpool, token_program_a, token_program_b, memo, position_authority, position,
#     position_token_account, mint_a, mint_b, owner_a, owner_b, vault_a, vault_b, tick_lower, tick_upper
LIQUIDITY_V2_LAYOUT = {"whirlpool": 0, "authority": 4, "mint_a": 7, "mint_b": 8, "owner_a": 9, "owner_b": 10, "min_accounts": 15}


class OrcaWhirlpoolDecoder(DiscriminatorDecoder):
    """Handles Whirlpool swap/swapV2 and increase/decreaseLiquidity (v1 and v2)."""

    PROTOCOL_NAME = Protocol.ORCA.value
    PROGRAM_IDS = frozenset({ORCA_WHIRLPOOL})
    CAPABILITIES = frozenset({Capability.TRADES, Capability.LIQUIDITY})
    INSTRUCTION_HANDLERS = {
        SWAP: "_handle_swap",
        SWAP_V2: "_handle_swap_v2",
        INCREASE_LIQUIDITY: "_handle_increase_liquidity",
        DECREASE_LIQUIDITY: "_handle_decrease_liquidity",
        INCREASE_LIQUIDITY_V2: "_handle_increase_liquidity_v2",
        DECREASE_LIQUIDITY_V2: "_handle_decrease_liquidity_v2",
    }

    def _handle_swap(self, instruction, inner, context, position) -> DecodedIntent:
        return self._swap(instruction, context, position, SWAP_LAYOUT)

    def _handle_swap_v2(self, instruction, inner, context, position) -> DecodedIntent:
        return self._swap(instruction, context, position, SWAP_V2_LAYOUT)

    def _handle_increase_liquidity(self, instruction, inner, context, position) -> DecodedIntent:
        return self._liquidity(instruction, context, position, LIQUIDITY_LAYOUT, InstructionKind.ADD_LIQUIDITY)

    def _handle_decrease_liquidity(self, instruction, inner, context, position) -> DecodedIntent:
        return self._liquidity(instruction, context, position, LIQUIDITY_LAYOUT, InstructionKind.REMOVE_LIQUIDITY)

    def _handle_increase_liquidity_v2(self, instruction, inner, context, position) -> DecodedIntent:
        return self._liquidity(instruction, context, position, LIQUIDITY_V2_LAYOUT, InstructionKind.ADD_LIQUIDITY)

    def _handle_decrease_liquidity_v2(self, instruction, inner, context, position) -> DecodedIntent:
        return self._liquidity(instruction, context, position, LIQUIDITY_V2_LAYOUT, InstructionKind.REMOVE_LIQUIDITY)

    def _swap(
        self,
        instruction: Instruction,
        context: TransactionContext,
        position: Position,
        layout: dict[str, int],
    ) -> DecodedIntent:
        accounts = self._require_accounts(instruction, layout["min_accounts"])
        reader = self._reader(instruction)
        amount = reader.read_u64()
        reader.read_u64()  # other_amount_threshold
        reader.read_u128()  # sqrt_price_limit
        amount_specified_is_input = reader.read_bool()
        a_to_b = reader.read_bool()

        side_a = self._leg(accounts, context, layout, "a")
        side_b = self._leg(accounts, context, layout, "b")
        input_leg, output_leg = (side_a, side_b) if a_to_b else (side_b, side_a)
        if amount_specified_is_input:
            input_leg = input_leg.model_copy(update={"amount": amount})
        else:
            output_leg = output_leg.model_copy(update={"amount": amount})

        return self._make_intent(
            instruction,
            InstructionKind.SWAP,
            position,
            input_leg=input_leg,
            output_leg=output_leg,
            pool=context.address(accounts[layout["whirlpool"]]),
            user=context.address(accounts[layout["authority"]]),
        )

    def _liquidity(
        self,
        instruction: Instruction,
        context: TransactionContext,
        position: Position,
        layout: dict[str, int],
        kind: InstructionKind,
    ) -> DecodedIntent:
        accounts = self._require_accounts(instruction, layout["min_accounts"])
        liquidity_amount = self._reader(instruction).read_u128()
        # token_max_a/b (increase) and token_min_a/b (decrease) are bounds: measure the legs

        return self._make_intent(
            instruction,
            kind,
            position,
            liquidity_legs=[
                self._leg(accounts, context, layout, "a"),
                self._leg(accounts, context, layout, "b"),
            ],
            lp_amount=liquidity_amount,
            pool=context.address(accounts[layout["whirlpool"]]),
            user=context.address(accounts[layout["authority"]]),
        )

    @staticmethod
    def _leg(accounts: tuple[int, ...], context: TransactionContext, layout: dict[str, int], side: str) -> TokenLeg:
        mint_position = layout.get(f"mint_{side}")
        return TokenLeg(
            account_index=accounts[layout[f"owner_{side}"]],
            mint=context.address(accounts[mint_position]) if mint_position is not None else None,
        )

"""Jupiter v6 Decoder — aggregator route envelopes.

A Jupiter route executes its hops as inner instructions against the underlying
AMMs. The decoder emits a route envelope covering the user's source and
destination accounts; the pipeline replaces it with the decoded hops when any
hop belongs to a registered protocol.

All route variants end with the same fixed-size tail after the variable-length
route plan: ``u64 amount, u64 quoted_amount, u16 slippage_bps, u8 platform_fee_bps``.
For exact-in routes ``amount`` is the input; for exact-out routes it is the output.
"""

from dexparser.domain.enums import Capability, InstructionKind, Protocol
from dexparser.parser.generic.base import DiscriminatorDecoder, Position
from dexparser.parser.utils.binary import BinaryReader
from dexparser.parser.utils.context import TransactionContext
from dexparser.parser.utils.types import DecodedIntent, Instruction, TokenLeg

JUPITER_V6 = "JUP6LkbZbjS1jKKwapdHNy74zcZ3tLUZoi5QNyVTaV4"

ROUTE = bytes([229, 23, 203, 151, 122, 227, 173, 42])
ROUTE_WITH_TOKEN_LEDGER = bytes([150, 86, 71, 116, 167, 93, 14, 104])
SHARED_ACCOUNTS_ROUTE = bytes([193, 32, 155, 51, 65, 214, 156, 129])
EXACT_OUT_ROUTE = bytes([208, 51, 239, 151, 123, 43, 237, 92])
SHARED_ACCOUNTS_EXACT_OUT_ROUTE = bytes([176, 209, 105, 168, 154, 125, 69, 62])

ROUTE_TAIL_SIZE = 8 + 8 + 2 + 1
LEDGER_TAIL_SIZE = 8 + 2 + 1  # routeWithTokenLedger takes its input amount from the ledger

# Account positions per variant
ROUTE_ACCOUNTS = {"authority": 1, "source": 2, "destination": 3, "destination_mint": 5, "min_accounts": 9}
EXACT_OUT_ACCOUNTS = {
    "authority": 1, "source": 2, "destination": 3, "source_mint": 5, "destination_mint": 6, "min_accounts": 11,
}
SHARED_ACCOUNTS = {
    "authority": 2, "source": 3, "destination": 6, "source_mint": 7, "destination_mint": 8, "min_accounts": 13,
}


class JupiterDecoder(DiscriminatorDecoder):
    """Decodes Jupiter v6 route instructions into route envelopes."""

    PROTOCOL_NAME = Protocol.JUPITER.value
    PROGRAM_IDS = frozenset({JUPITER_V6})
    CAPABILITIES = frozenset({Capability.TRADES})
    INSTRUCTION_HANDLERS = {
        ROUTE: "_handle_route",
        ROUTE_WITH_TOKEN_LEDGER: "_handle_route_with_token_ledger",
        SHARED_ACCOUNTS_ROUTE: "_handle_shared_accounts_route",
        EXACT_OUT_ROUTE: "_handle_exact_out_route",
        SHARED_ACCOUNTS_EXACT_OUT_ROUTE: "_handle_shared_accounts_exact_out_route",
    }

    def _handle_route(self, instruction, inner, context, position) -> DecodedIntent:
        amount_in, _ = self._read_tail(instruction)
        return self._envelope(instruction, context, position, ROUTE_ACCOUNTS, amount_in=amount_in)

    def _handle_route_with_token_ledger(self, instruction, inner, context, position) -> DecodedIntent:
        self._require_tail(instruction, LEDGER_TAIL_SIZE)
        return self._envelope(instruction, context, position, ROUTE_ACCOUNTS)

    def _handle_shared_accounts_route(self, instruction, inner, context, position) -> DecodedIntent:
        amount_in, _ = self._read_tail(instruction)
        return self._envelope(instruction, context, position, SHARED_ACCOUNTS, amount_in=amount_in)

    def _handle_exact_out_route(self, instruction, inner, context, position) -> DecodedIntent:
        amount_out, _ = self._read_tail(instruction)
        return self._envelope(instruction, context, position, EXACT_OUT_ACCOUNTS, amount_out=amount_out)

    def _handle_shared_accounts_exact_out_route(self, instruction, inner, context, position) -> DecodedIntent:
        amount_out, _ = self._read_tail(instruction)
        return self._envelope(instruction, context, position, SHARED_ACCOUNTS, amount_out=amount_out)

    def _envelope(
        self,
        instruction: Instruction,
        context: TransactionContext,
        position: Position,
        layout: dict[str, int],
        amount_in: int | None = None,
        amount_out: int | None = None,
    ) -> DecodedIntent:
        accounts = self._require_accounts(instruction, layout["min_accounts"])

        def mint_at(key: str) -> str | None:
            return context.address(accounts[layout[key]]) if key in layout else None

        return self._make_intent(
            instruction,
            InstructionKind.SWAP,
            position,
            input_leg=TokenLeg(account_index=accounts[layout["source"]], mint=mint_at("source_mint"), amount=amount_in),
            output_leg=TokenLeg(
                account_index=accounts[layout["destination"]],
                mint=mint_at("destination_mint"),
                amount=amount_out,
            ),
            user=context.address(accounts[layout["authority"]]),
            is_route=True,
        )

    def _require_tail(self, instruction: Instruction, size: int) -> None:
        # The tail must fit after the discriminator; an empty route plan is still 4 bytes (vec length)
        self._reader(instruction).skip(4 + size)

    def _read_tail(self, instruction: Instruction) -> tuple[int, int]:
        """(amount, quoted_amount) from the fixed-size route tail."""
        self._require_tail(instruction, ROUTE_TAIL_SIZE)
        reader = BinaryReader(instruction.data, len(instruction.data) - ROUTE_TAIL_SIZE)
        amount = reader.read_u64()
        quoted = reader.read_u64()
        return amount, quoted

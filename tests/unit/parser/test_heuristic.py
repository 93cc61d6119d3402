from dexparser.domain.enums import Protocol, Provenance
from dexparser.parser.generic.heuristic import UnknownProtocolHeuristic
from dexparser.parser.utils.context import TransactionContext
from dexparser.parser.utils.types import Trade, TransferEvent
from dexparser.parser.utils.view import build_transaction_view

USER = "User1111111111111111111111111111111111111111"
UNKNOWN_DEX = "UnknownDex111111111111111111111111111111111"


def _make_unknown_swap(builder, extra_mint: bool = False):
    """Unregistered program: user pays 100 MintA and receives 2_000 MintB."""
    builder.instruction(UNKNOWN_DEX, [USER, "user_a", "user_b", "vault_a", "vault_b", "user_c"])
    builder.token_balance("user_a", "MintA", USER, 500, 400, 2)
    builder.token_balance("user_b", "MintB", USER, 0, 2_000, 3)
    builder.token_balance("vault_a", "MintA", "pool", 1_000, 1_100, 2)
    builder.token_balance("vault_b", "MintB", "pool", 9_000, 7_000, 3)
    if extra_mint:
        builder.token_balance("user_c", "MintC", USER, 10, 5, 0)
    builder.lamport_balance(USER, 1_000_000, 995_000)
    return TransactionContext(build_transaction_view(builder.build()))


class TestUnknownProtocolHeuristic:
    def test_one_out_one_in_is_swap(self, builder):
        context = _make_unknown_swap(builder)
        event = UnknownProtocolHeuristic().detect(0, context)

        assert isinstance(event, Trade)
        assert event.amm == Protocol.UNKNOWN.value
        assert event.provenance == Provenance.HEURISTIC
        assert event.program_id == UNKNOWN_DEX
        assert event.input_token.mint == "MintA"
        assert event.input_token.amount == 100
        assert event.input_token.decimals == 2
        assert event.output_token.mint == "MintB"
        assert event.output_token.amount == 2_000
        assert event.user == USER
        assert event.idx == "0"

    def test_third_mint_yields_nothing(self, builder):
        context = _make_unknown_swap(builder, extra_mint=True)
        assert UnknownProtocolHeuristic().detect(0, context) is None

    def test_single_mint_outflow_is_transfer(self, builder):
        builder.instruction(UNKNOWN_DEX, [USER, "user_a", "other"])
        builder.token_balance("user_a", "MintA", USER, 500, 200, 2)
        builder.token_balance("other", "MintA", "someone", 0, 300, 2)
        context = TransactionContext(build_transaction_view(builder.build()))
        event = UnknownProtocolHeuristic().detect(0, context)

        assert isinstance(event, TransferEvent)
        assert event.amount == 300
        assert event.source == "user_a"
        assert event.destination is None
        assert event.provenance == Provenance.HEURISTIC

    def test_single_mint_inflow_is_transfer(self, builder):
        builder.instruction(UNKNOWN_DEX, [USER, "user_b"])
        builder.token_balance("user_b", "MintB", USER, 0, 42, 0)
        context = TransactionContext(build_transaction_view(builder.build()))
        event = UnknownProtocolHeuristic().detect(0, context)

        assert isinstance(event, TransferEvent)
        assert event.destination == "user_b"
        assert event.source is None

    def test_accounts_not_owned_by_fee_payer_ignored(self, builder):
        builder.instruction(UNKNOWN_DEX, ["vault_a", "vault_b"])
        builder.token_balance("vault_a", "MintA", "pool", 1_000, 1_100, 2)
        builder.token_balance("vault_b", "MintB", "pool", 9_000, 7_000, 3)
        context = TransactionContext(build_transaction_view(builder.build()))
        assert UnknownProtocolHeuristic().detect(0, context) is None

    def test_untouched_accounts_ignored(self, builder):
        """Deltas of accounts the instruction does not reference do not count."""
        builder.instruction(UNKNOWN_DEX, [USER])
        builder.token_balance("user_a", "MintA", USER, 500, 400, 2)
        builder.token_balance("user_b", "MintB", USER, 0, 2_000, 3)
        context = TransactionContext(build_transaction_view(builder.build()))
        assert UnknownProtocolHeuristic().detect(0, context) is None

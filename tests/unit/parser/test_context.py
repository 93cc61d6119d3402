import struct

import pytest

from dexparser.exceptions import InternalInvariantError
from dexparser.parser.utils.context import TransactionContext
from dexparser.parser.utils.programs import SOL_MINT, TOKEN_PROGRAM_ID
from dexparser.parser.utils.view import build_transaction_view

USER = "User1111111111111111111111111111111111111111"


def _context(builder) -> TransactionContext:
    return TransactionContext(build_transaction_view(builder.build()))


class TestChildren:
    def test_top_level_owns_whole_group(self, raydium_swap):
        context = _context(raydium_swap)
        assert len(context.children(0, None)) == 2
        assert len(context.child_transfers(0, None)) == 2

    def test_inner_owns_deeper_stack_only(self, builder):
        outer = builder.instruction("Router", [USER])
        builder.inner_instruction(outer, "PoolA", ["a"])
        builder.token_transfer(outer, "x", "y", USER, 1, stack_height=3)
        builder.inner_instruction(outer, "PoolB", ["b"])
        builder.token_transfer(outer, "y", "z", USER, 1, stack_height=3)
        context = _context(builder)

        assert [ix.program_id for ix in context.children(0, 0)] == [TOKEN_PROGRAM_ID]
        assert [ix.program_id for ix in context.children(0, 2)] == [TOKEN_PROGRAM_ID]

    def test_missing_stack_heights_take_following_token_instructions(self, builder):
        outer = builder.instruction("Router", [USER])
        builder.inner_instruction(outer, "PoolA", ["a"])
        builder.token_transfer(outer, "x", "y", USER, 1)
        builder.inner_instruction(outer, "PoolB", ["b"])
        payload = builder.build()
        for ix in payload["meta"]["innerInstructions"][0]["instructions"]:
            del ix["stackHeight"]
        context = TransactionContext(build_transaction_view(payload))

        assert len(context.children(0, 0)) == 1
        assert context.children(0, 2) == []


class TestTokenMetadata:
    def test_snapshot_mints_and_decimals(self, raydium_swap):
        context = _context(raydium_swap)
        index = context.view.account_keys.index("user_token")

        assert context.mint_of(index) == "Mint1111111111111111111111111111111111111111"
        assert context.decimals_of("Mint1111111111111111111111111111111111111111") == 6
        assert context.owner_of(index) == USER
        assert context.has_snapshot(index)

    def test_sol_decimals_always_known(self, builder):
        assert _context(builder).decimals_of(SOL_MINT) == 9

    def test_transfer_checked_fills_missing_metadata(self, builder):
        outer = builder.instruction("Prog", [USER])
        data = bytes([12]) + struct.pack("<QB", 5_000, 4)
        builder.inner_instruction(outer, TOKEN_PROGRAM_ID, ["src", "MintQ", "dst", USER], data)
        context = _context(builder)

        assert context.mint_of(context.view.account_keys.index("dst")) == "MintQ"
        assert context.decimals_of("MintQ") == 4

    def test_token_deltas_skip_unchanged(self, raydium_swap):
        context = _context(raydium_swap)
        keys = context.view.account_keys
        deltas = context.token_deltas({keys.index("user_wsol"), keys.index("amm")})
        assert deltas == {keys.index("user_wsol"): -1_000_000_000}

    def test_check_index(self, builder):
        context = _context(builder)
        assert context.address(0) == USER
        with pytest.raises(InternalInvariantError):
            context.address(5)

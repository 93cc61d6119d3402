import struct

import base58
import pytest

from dexparser.engine.dex_parser import DexParser
from dexparser.parser.defi.raydium import RAYDIUM_AMM_V4
from dexparser.parser.registry import build_default_registry
from dexparser.parser.utils.programs import SOL_MINT, TOKEN_PROGRAM_ID
from dexparser.parser.utils.types import ParseConfig

USER = "User1111111111111111111111111111111111111111"
TOKEN_MINT = "Mint1111111111111111111111111111111111111111"


def token_transfer_data(amount: int) -> bytes:
    return bytes([3]) + struct.pack("<Q", amount)


class PayloadBuilder:
    """Assembles a json-encoded RPC transaction payload from account names.

    Account keys are registered on first use; the fee payer / signer is always key 0.
    """

    def __init__(self, signer: str = USER) -> None:
        self.keys: list[str] = []
        self.instructions: list[dict] = []
        self.inner: dict[int, list[dict]] = {}
        self.pre_tokens: list[dict] = []
        self.post_tokens: list[dict] = []
        self.lamports: dict[str, tuple[int, int]] = {}
        self.fee = 5000
        self.err = None
        self.signature = "sig1"
        self.key(signer)

    def key(self, name: str) -> int:
        if name not in self.keys:
            self.keys.append(name)
        return self.keys.index(name)

    def _ix(self, program: str, accounts: list[str], data: bytes, stack_height: int) -> dict:
        return {
            "programIdIndex": self.key(program),
            "accounts": [self.key(a) for a in accounts],
            "data": base58.b58encode(data).decode(),
            "stackHeight": stack_height,
        }

    def instruction(self, program: str, accounts: list[str], data: bytes = b"") -> int:
        self.instructions.append(self._ix(program, accounts, data, 1))
        return len(self.instructions) - 1

    def inner_instruction(
        self, outer: int, program: str, accounts: list[str], data: bytes = b"", stack_height: int = 2,
    ) -> None:
        self.inner.setdefault(outer, []).append(self._ix(program, accounts, data, stack_height))

    def token_transfer(self, outer: int, source: str, destination: str, authority: str, amount: int,
                       stack_height: int = 2) -> None:
        self.inner_instruction(
            outer, TOKEN_PROGRAM_ID, [source, destination, authority], token_transfer_data(amount), stack_height,
        )

    def token_balance(
        self, account: str, mint: str, owner: str, pre: int | None, post: int | None, decimals: int,
    ) -> None:
        index = self.key(account)
        for entries, amount in ((self.pre_tokens, pre), (self.post_tokens, post)):
            if amount is None:
                continue
            entries.append({
                "accountIndex": index,
                "mint": mint,
                "owner": owner,
                "uiTokenAmount": {"amount": str(amount), "decimals": decimals},
            })

    def lamport_balance(self, account: str, pre: int, post: int) -> None:
        self.key(account)
        self.lamports[account] = (pre, post)

    def build(self) -> dict:
        return {
            "slot": 250_000_000,
            "blockTime": 1_700_000_000,
            "transaction": {
                "signatures": [self.signature],
                "message": {
                    "header": {"numRequiredSignatures": 1},
                    "accountKeys": list(self.keys),
                    "instructions": list(self.instructions),
                },
            },
            "meta": {
                "err": self.err,
                "fee": self.fee,
                "computeUnitsConsumed": 60_000,
                "preBalances": [self.lamports.get(k, (0, 0))[0] for k in self.keys],
                "postBalances": [self.lamports.get(k, (0, 0))[1] for k in self.keys],
                "preTokenBalances": list(self.pre_tokens),
                "postTokenBalances": list(self.post_tokens),
                "innerInstructions": [
                    {"index": outer, "instructions": list(ixs)} for outer, ixs in sorted(self.inner.items())
                ],
                "logMessages": [],
            },
        }


@pytest.fixture()
def builder() -> PayloadBuilder:
    return PayloadBuilder()


@pytest.fixture(scope="session")
def registry():
    return build_default_registry()


@pytest.fixture()
def parser(registry) -> DexParser:
    return DexParser(registry=registry, config=ParseConfig())


RAYDIUM_SWAP_ACCOUNTS = [
    "amm", "amm_authority", "amm_open_orders", "pool_coin", "pool_pc", "serum_program", "serum_market",
    "serum_bids", "serum_asks", "serum_event_queue", "serum_coin_vault", "serum_pc_vault", "serum_vault_signer",
]


def add_raydium_swap(
    builder: PayloadBuilder,
    amount_in: int = 1_000_000_000,
    amount_out: int = 1_000_000,
    source: str = "user_wsol",
    destination: str = "user_token",
    pool_in: str = "pool_pc",
    pool_out: str = "pool_coin",
    base_out: bool = False,
) -> int:
    """Top-level Raydium v4 swap with its two inner token transfers. Returns the outer index.

    swapBaseIn declares amount_in; swapBaseOut declares amount_out and leaves the input to be measured.
    """
    accounts = [TOKEN_PROGRAM_ID, *RAYDIUM_SWAP_ACCOUNTS, source, destination, USER]
    if base_out:
        data = bytes([11]) + struct.pack("<QQ", 2 * amount_in, amount_out)
    else:
        data = bytes([9]) + struct.pack("<QQ", amount_in, 1)
    outer = builder.instruction(RAYDIUM_AMM_V4, accounts, data)
    builder.token_transfer(outer, source, pool_in, USER, amount_in)
    builder.token_transfer(outer, pool_out, destination, "amm_authority", amount_out)
    return outer


@pytest.fixture()
def make_builder():
    return PayloadBuilder


@pytest.fixture()
def raydium_swap(builder) -> PayloadBuilder:
    """User swaps 1 WSOL for 1 TOKEN (6 decimals) on Raydium v4."""
    add_raydium_swap(builder)
    builder.token_balance("user_wsol", SOL_MINT, USER, 2_000_000_000, 1_000_000_000, 9)
    builder.token_balance("user_token", TOKEN_MINT, USER, 0, 1_000_000, 6)
    builder.token_balance("pool_pc", SOL_MINT, "amm_authority", 10_000_000_000, 11_000_000_000, 9)
    builder.token_balance("pool_coin", TOKEN_MINT, "amm_authority", 500_000_000, 499_000_000, 6)
    builder.lamport_balance(USER, 5_000_000_000, 4_999_995_000)
    return builder


@pytest.fixture()
def add_swap():
    return add_raydium_swap

"""Core data types for the decoding pipeline."""

from decimal import Decimal

from pydantic import BaseModel
from pydantic.alias_generators import to_camel

from dexparser.domain.enums import InstructionKind, MemeEventType, Provenance, TradeType, TxStatus, WarningKind

SOL_DECIMALS = 9

# Records handed to callers serialize as camelCase and accept either casing on input
CAMEL = {"alias_generator": to_camel, "populate_by_name": True}
FROZEN_CAMEL = {**CAMEL, "frozen": True}


def to_ui_amount(amount: int, decimals: int) -> Decimal:
    """Raw integer amount → human-readable Decimal."""
    if amount == 0:
        return Decimal(0)
    return Decimal(str(amount)) / Decimal(10) ** decimals


# --- Transaction view ---


class Instruction(BaseModel):
    """One instruction with account references resolved to account-key indices."""

    program_id: str
    accounts: tuple[int, ...] = ()  # indices into TransactionView.account_keys
    data: bytes = b""
    stack_height: int | None = None  # 1 = top level, None when the RPC omits it

    model_config = {"frozen": True}


class TokenBalance(BaseModel):
    """One entry of a pre/post token balance snapshot."""

    account_index: int
    account: str
    mint: str
    owner: str | None = None
    amount: int  # raw, smallest unit
    decimals: int

    model_config = {"frozen": True}


class TransactionView(BaseModel):
    """Canonical, immutable representation of one executed transaction."""

    signature: str = ""
    signers: tuple[str, ...] = ()
    account_keys: tuple[str, ...]  # static keys, then loaded writable, then loaded readonly
    instructions: tuple[Instruction, ...] = ()
    inner_instructions: tuple[tuple[Instruction, ...], ...] = ()  # aligned with instructions
    log_messages: tuple[str, ...] = ()
    pre_token_balances: dict[int, TokenBalance] = {}
    post_token_balances: dict[int, TokenBalance] = {}
    pre_balances: tuple[int, ...] = ()  # lamports
    post_balances: tuple[int, ...] = ()
    fee: int = 0  # lamports
    compute_units: int | None = None
    status: TxStatus = TxStatus.SUCCESS
    slot: int = 0
    block_time: int | None = None
    version: str | int = "legacy"

    model_config = {"frozen": True}

    @property
    def fee_payer(self) -> str:
        return self.account_keys[0] if self.account_keys else ""

    def inner_group(self, outer_index: int) -> tuple[Instruction, ...]:
        if outer_index < len(self.inner_instructions):
            return self.inner_instructions[outer_index]
        return ()

    def token_delta(self, index: int) -> int:
        """post - pre raw token amount; a side missing from the snapshot counts as 0."""
        pre = self.pre_token_balances.get(index)
        post = self.post_token_balances.get(index)
        return (post.amount if post else 0) - (pre.amount if pre else 0)

    def lamport_delta(self, index: int) -> int:
        pre = self.pre_balances[index] if index < len(self.pre_balances) else 0
        post = self.post_balances[index] if index < len(self.post_balances) else 0
        return post - pre

    def token_balance(self, index: int) -> TokenBalance | None:
        """Post entry if present, else pre entry."""
        return self.post_token_balances.get(index) or self.pre_token_balances.get(index)


# --- Decoder output ---


class RawTransfer(BaseModel):
    """A single SPL Token / System transfer decoded from an instruction (before reconciliation)."""

    program_id: str
    source: int  # account index
    destination: int
    authority: int | None = None
    amount: int  # raw; lamports for System transfers
    mint_index: int | None = None  # transferChecked only
    decimals: int | None = None  # transferChecked only
    native: bool = False  # System program lamport transfer


class TokenLeg(BaseModel):
    """One side of a decoded instruction: which account moves tokens, and what the payload says."""

    account_index: int
    mint: str | None = None  # hint; required when native
    amount: int | None = None  # explicit payload amount, None = measure from balances
    native: bool = False  # measure lamports instead of token balance


class DecodedIntent(BaseModel):
    """What a decoder believes an instruction does, before amounts are resolved."""

    protocol: str
    program_id: str
    kind: InstructionKind
    instruction_index: int
    inner_index: int | None = None
    input_leg: TokenLeg | None = None
    output_leg: TokenLeg | None = None
    liquidity_legs: list[TokenLeg] = []
    lp_leg: TokenLeg | None = None
    lp_amount: int | None = None  # position liquidity for pools without an LP token
    pool: str | None = None
    user: str | None = None
    is_route: bool = False  # aggregator envelope, replaced by its hops when they decode
    source_owner: str | None = None  # transfers only
    destination_owner: str | None = None

    @property
    def idx(self) -> str:
        return format_idx(self.instruction_index, self.inner_index)


def format_idx(outer: int, inner: int | None) -> str:
    return str(outer) if inner is None else f"{outer}-{inner}"


# --- Events ---


class TokenInfo(BaseModel):
    mint: str
    amount: int  # raw
    decimals: int
    ui_amount: Decimal
    account: str | None = None  # token account address
    owner: str | None = None

    model_config = CAMEL


class ReconciliationMismatch(BaseModel):
    """Warning: declared payload amount and measured balance delta disagree, or output is zero."""

    kind: WarningKind
    side: str  # "input" | "output"
    declared: int | None = None
    measured: int | None = None

    model_config = CAMEL


class Trade(BaseModel):
    type: TradeType
    amm: str
    program_id: str
    input_token: TokenInfo
    output_token: TokenInfo
    pool: str | None = None
    instruction_index: int
    inner_index: int | None = None
    idx: str
    user: str | None = None
    route: str | None = None  # aggregator that routed this hop
    amms: list[str] | None = None  # hop protocols on a multi-hop aggregate
    provenance: Provenance = Provenance.PROTOCOL
    warnings: list[ReconciliationMismatch] = []

    model_config = CAMEL


class LiquidityEvent(BaseModel):
    protocol: str
    program_id: str
    kind: InstructionKind  # CREATE_POOL | ADD_LIQUIDITY | REMOVE_LIQUIDITY
    pool: str | None = None
    tokens: list[TokenInfo] = []
    lp_mint: str | None = None
    lp_delta: int = 0  # positive = LP minted to user, negative = burned
    instruction_index: int
    inner_index: int | None = None
    idx: str
    user: str | None = None
    provenance: Provenance = Provenance.PROTOCOL

    model_config = CAMEL


class TransferEvent(BaseModel):
    mint: str
    amount: int
    decimals: int
    ui_amount: Decimal
    source: str | None = None
    destination: str | None = None
    source_owner: str | None = None
    destination_owner: str | None = None
    program_id: str
    instruction_index: int
    inner_index: int | None = None
    idx: str
    provenance: Provenance = Provenance.PROTOCOL

    model_config = CAMEL


class MemeEvent(BaseModel):
    """Launchpad lifecycle record: a token created, its curve completed, or its liquidity migrated."""

    type: MemeEventType
    protocol: str
    program_id: str
    base_mint: str
    quote_mint: str
    user: str | None = None
    name: str | None = None
    symbol: str | None = None
    uri: str | None = None
    creator: str | None = None
    bonding_curve: str | None = None
    pool: str | None = None
    pool_dex: str | None = None  # AMM that received the migrated liquidity
    platform_config: str | None = None
    timestamp: int | None = None  # from the event body when the program emits one
    instruction_index: int
    inner_index: int | None = None
    idx: str

    model_config = CAMEL


class FeeInfo(BaseModel):
    amount: int = 0  # lamports
    decimals: int = SOL_DECIMALS
    ui_amount: Decimal = Decimal(0)

    model_config = CAMEL


class BalanceChange(BaseModel):
    """Signer balance before/after for one mint (SOL uses the native mint)."""

    mint: str
    pre: int
    post: int
    change: int
    decimals: int

    model_config = CAMEL


# --- Config / results ---


class ParseConfig(BaseModel):
    try_unknown_dex: bool = False  # enable the heuristic fallback
    throw_error: bool = False  # propagate view-building failures instead of state=False
    program_ids: list[str] | None = None  # allow-list
    ignore_program_ids: list[str] | None = None  # deny-list
    aggregate_trades: bool = True

    model_config = FROZEN_CAMEL

    def allows(self, program_id: str) -> bool:
        if self.ignore_program_ids and program_id in self.ignore_program_ids:
            return False
        if self.program_ids and program_id not in self.program_ids:
            return False
        return True


class ParseResult(BaseModel):
    """Output envelope of one per-transaction pipeline run."""

    state: bool = True
    signature: str = ""
    slot: int = 0
    block_time: int | None = None
    signer: str | None = None
    trades: list[Trade] = []
    liquidities: list[LiquidityEvent] = []
    transfers: list[TransferEvent] = []
    meme_events: list[MemeEvent] = []
    aggregate_trade: Trade | None = None
    fee: FeeInfo = FeeInfo()
    compute_units: int | None = None
    tx_status: TxStatus = TxStatus.SUCCESS
    sol_balance_change: BalanceChange | None = None
    token_balance_change: dict[str, BalanceChange] = {}
    unmatched: list[str] = []  # idx of recognized-program instructions that failed to decode
    error: str | None = None

    model_config = CAMEL

    @classmethod
    def failure(cls, error: str, **kwargs) -> "ParseResult":
        return cls(state=False, error=error, **kwargs)


class BlockParseResult(BaseModel):
    slot: int | None = None
    block_time: int | None = None
    transactions: list[ParseResult] = []

    model_config = CAMEL

from enum import Enum


class TradeType(str, Enum):
    """Trade direction relative to the quote tokens (SOL, USDC, USDT)."""

    BUY = "BUY"
    SELL = "SELL"
    SWAP = "SWAP"


class WarningKind(str, Enum):
    """Non-fatal reconciliation findings attached to a trade."""

    MISMATCH = "reconciliation_mismatch"
    ZERO_OUTPUT = "zero_output"


class MemeEventType(str, Enum):
    """Token lifecycle on launchpads: mint created, bonding curve filled, liquidity moved to an AMM."""

    CREATE = "CREATE"
    COMPLETE = "COMPLETE"
    MIGRATE = "MIGRATE"

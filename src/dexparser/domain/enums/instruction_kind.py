from enum import Enum


class InstructionKind(str, Enum):
    """Classification of decoded instructions by DEX operation type."""

    SWAP = "SWAP"
    CREATE_POOL = "CREATE_POOL"
    ADD_LIQUIDITY = "ADD_LIQUIDITY"
    REMOVE_LIQUIDITY = "REMOVE_LIQUIDITY"
    TRANSFER = "TRANSFER"

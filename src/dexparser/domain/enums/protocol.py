from enum import Enum


class Protocol(str, Enum):
    """Protocol names as they appear in trade and liquidity records."""

    JUPITER = "Jupiter"
    RAYDIUM = "Raydium"
    ORCA = "Orca"
    METEORA_DLMM = "MeteoraDLMM"
    METEORA_DAMM = "MeteoraDamm"
    METEORA_DAMM_V2 = "MeteoraDammV2"
    METEORA_DBC = "MeteoraDBC"
    PUMPFUN = "Pumpfun"
    PUMPSWAP = "Pumpswap"
    SPL_TOKEN = "SplToken"
    SYSTEM = "System"
    UNKNOWN = "Unknown DEX"
    MULTI_HOP = "MultiHop"


class Capability(str, Enum):
    """What kind of events a protocol decoder can produce."""

    TRADES = "TRADES"
    LIQUIDITY = "LIQUIDITY"
    TRANSFERS = "TRANSFERS"
    MEME_EVENTS = "MEME_EVENTS"

from dexparser.domain.enums.instruction_kind import InstructionKind
from dexparser.domain.enums.protocol import Capability, Protocol
from dexparser.domain.enums.status import Provenance, TxStatus
from dexparser.domain.enums.trade import MemeEventType, TradeType, WarningKind

__all__ = [
    "Capability",
    "InstructionKind",
    "MemeEventType",
    "Protocol",
    "Provenance",
    "TradeType",
    "TxStatus",
    "WarningKind",
]

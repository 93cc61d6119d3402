from enum import Enum


class TxStatus(str, Enum):
    """On-chain execution status of a transaction."""

    SUCCESS = "success"
    FAILED = "failed"


class Provenance(str, Enum):
    """Whether an event came from a protocol decoder or the unknown-DEX heuristic."""

    PROTOCOL = "protocol"
    HEURISTIC = "heuristic"

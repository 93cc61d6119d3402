"""ProtocolRegistry — program id → protocol descriptor lookup."""

from dataclasses import dataclass
from functools import lru_cache

from dexparser.domain.enums import Capability
from dexparser.parser.generic.base import BaseDecoder


@dataclass(frozen=True)
class ProtocolDescriptor:
    """A registered protocol: its program ids, capabilities and decoder."""

    name: str
    program_ids: frozenset[str]
    capabilities: frozenset[Capability]
    decoder: BaseDecoder

    @classmethod
    def from_decoder(cls, decoder: BaseDecoder) -> "ProtocolDescriptor":
        return cls(
            name=decoder.PROTOCOL_NAME,
            program_ids=frozenset(decoder.PROGRAM_IDS),
            capabilities=frozenset(decoder.CAPABILITIES),
            decoder=decoder,
        )

    def supports(self, capability: Capability) -> bool:
        return capability in self.capabilities


class ProtocolRegistry:
    """Registry mapping exact program id → ProtocolDescriptor.

    Populated at start-up, then frozen; lookups after that are read-only and
    safe to share across threads.
    """

    def __init__(self) -> None:
        self._descriptors: dict[str, ProtocolDescriptor] = {}
        self._frozen = False

    def register(self, descriptor: ProtocolDescriptor) -> None:
        if self._frozen:
            raise RuntimeError("ProtocolRegistry is frozen; register protocols before first use")
        for program_id in descriptor.program_ids:
            existing = self._descriptors.get(program_id)
            if existing is not None:
                raise ValueError(f"Program {program_id} already registered for {existing.name}")
        for program_id in descriptor.program_ids:
            self._descriptors[program_id] = descriptor

    def register_decoder(self, decoder: BaseDecoder) -> ProtocolDescriptor:
        """Register a decoder under the program ids it declares."""
        descriptor = ProtocolDescriptor.from_decoder(decoder)
        self.register(descriptor)
        return descriptor

    def freeze(self) -> "ProtocolRegistry":
        self._frozen = True
        return self

    @property
    def frozen(self) -> bool:
        return self._frozen

    def match(self, program_id: str) -> ProtocolDescriptor | None:
        return self._descriptors.get(program_id)


def build_default_registry() -> ProtocolRegistry:
    """Create a frozen ProtocolRegistry with all shipped protocol decoders registered."""
    from dexparser.parser.defi.jupiter import JupiterDecoder
    from dexparser.parser.defi.meteora import MeteoraDLMMDecoder
    from dexparser.parser.defi.meteora_damm import MeteoraDammV2Decoder, MeteoraPoolsDecoder
    from dexparser.parser.defi.meteora_dbc import MeteoraDBCDecoder
    from dexparser.parser.defi.orca import OrcaWhirlpoolDecoder
    from dexparser.parser.defi.pumpfun import PumpfunDecoder
    from dexparser.parser.defi.pumpswap import PumpswapDecoder
    from dexparser.parser.defi.raydium import RaydiumV4Decoder
    from dexparser.parser.generic.token import SystemTransferDecoder, TokenTransferDecoder

    registry = ProtocolRegistry()

    # Aggregators
    registry.register_decoder(JupiterDecoder())

    # AMMs
    registry.register_decoder(RaydiumV4Decoder())
    registry.register_decoder(OrcaWhirlpoolDecoder())
    registry.register_decoder(MeteoraDLMMDecoder())
    registry.register_decoder(MeteoraPoolsDecoder())
    registry.register_decoder(MeteoraDammV2Decoder())

    # Launchpad bonding curves and their AMMs
    registry.register_decoder(PumpfunDecoder())
    registry.register_decoder(PumpswapDecoder())
    registry.register_decoder(MeteoraDBCDecoder())

    # Plain transfers
    registry.register_decoder(TokenTransferDecoder())
    registry.register_decoder(SystemTransferDecoder())

    return registry.freeze()


@lru_cache(maxsize=1)
def get_default_registry() -> ProtocolRegistry:
    """Process-wide shared registry."""
    return build_default_registry()

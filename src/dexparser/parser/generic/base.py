"""Base decoder interfaces."""

from abc import ABC, abstractmethod

from dexparser.domain.enums import Capability, InstructionKind, MemeEventType
from dexparser.exceptions import DecodeError
from dexparser.parser.utils.binary import ANCHOR_EVENT_PREFIX, BinaryReader, has_prefix
from dexparser.parser.utils.context import TransactionContext
from dexparser.parser.utils.types import DecodedIntent, Instruction, MemeEvent, format_idx

# (outer instruction index, inner instruction index or None for top level)
Position = tuple[int, int | None]


class BaseDecoder(ABC):
    """Minimal interface all protocol decoders must implement."""

    PROTOCOL_NAME: str = "BaseDecoder"
    PROGRAM_IDS: frozenset[str] = frozenset()
    CAPABILITIES: frozenset[Capability] = frozenset()

    @abstractmethod
    def can_decode(self, instruction: Instruction) -> bool:
        """Quick check on discriminator / shape: should this decoder handle the instruction?"""

    @abstractmethod
    def decode(
        self,
        instruction: Instruction,
        inner_instructions: list[Instruction],
        context: TransactionContext,
        position: Position,
    ) -> DecodedIntent | None:
        """Parse the payload into a DecodedIntent. Raises DecodeError on malformed payloads."""

    def decode_meme_event(
        self, instruction: Instruction, context: TransactionContext, position: Position,
    ) -> MemeEvent | None:
        """Launchpad lifecycle record carried by this instruction, if any."""
        return None

    def _make_intent(self, instruction: Instruction, kind: InstructionKind, position: Position, **fields) -> DecodedIntent:
        """Helper to build a DecodedIntent stamped with this decoder's protocol and position."""
        return DecodedIntent(
            protocol=self.PROTOCOL_NAME,
            program_id=instruction.program_id,
            kind=kind,
            instruction_index=position[0],
            inner_index=position[1],
            **fields,
        )

    def _make_meme_event(
        self, instruction: Instruction, event_type: MemeEventType, position: Position, **fields,
    ) -> MemeEvent:
        return MemeEvent(
            type=event_type,
            protocol=self.PROTOCOL_NAME,
            program_id=instruction.program_id,
            instruction_index=position[0],
            inner_index=position[1],
            idx=format_idx(*position),
            **fields,
        )

    def _require_accounts(self, instruction: Instruction, count: int) -> tuple[int, ...]:
        if len(instruction.accounts) < count:
            raise DecodeError(
                f"{self.PROTOCOL_NAME}: expected at least {count} accounts, got {len(instruction.accounts)}"
            )
        return instruction.accounts


class DiscriminatorDecoder(BaseDecoder):
    """Declarative discriminator->handler mapping for protocol-specific decoders.

    Subclasses define:
        INSTRUCTION_HANDLERS: dict mapping discriminator bytes to handler method names
        DISCRIMINATOR_SIZE: 8 for Anchor programs, 1 for native programs

    Optionally:
        MEME_EVENT_HANDLERS: dict mapping instruction or Anchor event discriminators to handler method names

    Handler method signatures:
        def _handle_xxx(self, instruction, inner_instructions, context, position) -> DecodedIntent | None
        def _meme_xxx(self, instruction, reader, context, position) -> MemeEvent | None
    """

    DISCRIMINATOR_SIZE: int = 8
    INSTRUCTION_HANDLERS: dict[bytes, str] = {}
    MEME_EVENT_HANDLERS: dict[bytes, str] = {}

    def can_decode(self, instruction: Instruction) -> bool:
        return (
            instruction.program_id in self.PROGRAM_IDS
            and bytes(instruction.data[:self.DISCRIMINATOR_SIZE]) in self.INSTRUCTION_HANDLERS
        )

    def decode(
        self,
        instruction: Instruction,
        inner_instructions: list[Instruction],
        context: TransactionContext,
        position: Position,
    ) -> DecodedIntent | None:
        handler_name = self.INSTRUCTION_HANDLERS.get(bytes(instruction.data[:self.DISCRIMINATOR_SIZE]))
        if handler_name is None:
            return None
        handler_func = getattr(self, handler_name)
        return handler_func(instruction, inner_instructions, context, position)

    def _reader(self, instruction: Instruction) -> BinaryReader:
        """Reader positioned after the discriminator."""
        return BinaryReader(instruction.data, self.DISCRIMINATOR_SIZE)

    def _find_event(self, inner_instructions: list[Instruction], event_discriminator: bytes) -> BinaryReader | None:
        """Reader over the body of the first self-CPI Anchor event with the given discriminator."""
        prefix = ANCHOR_EVENT_PREFIX + event_discriminator
        for ix in inner_instructions:
            if ix.program_id in self.PROGRAM_IDS and has_prefix(ix.data, prefix):
                return BinaryReader(ix.data, len(prefix))
        return None

    def decode_meme_event(
        self, instruction: Instruction, context: TransactionContext, position: Position,
    ) -> MemeEvent | None:
        """Dispatch through MEME_EVENT_HANDLERS.

        Self-CPI Anchor events are keyed by the event discriminator after
        ANCHOR_EVENT_PREFIX, instructions by their own discriminator.
        """
        if instruction.program_id not in self.PROGRAM_IDS or not self.MEME_EVENT_HANDLERS:
            return None
        data = bytes(instruction.data)
        if has_prefix(data, ANCHOR_EVENT_PREFIX):
            offset = len(ANCHOR_EVENT_PREFIX) + 8
            key = data[len(ANCHOR_EVENT_PREFIX):offset]
        else:
            offset = self.DISCRIMINATOR_SIZE
            key = data[:offset]
        handler_name = self.MEME_EVENT_HANDLERS.get(key)
        if handler_name is None:
            return None
        handler_func = getattr(self, handler_name)
        return handler_func(instruction, BinaryReader(data, offset), context, position)

"""Decoders for plain SPL Token and System program transfers."""

from dexparser.domain.enums import Capability, InstructionKind, Protocol
from dexparser.parser.generic.base import BaseDecoder, Position
from dexparser.parser.utils.context import TransactionContext
from dexparser.parser.utils.programs import SOL_MINT, SYSTEM_PROGRAM_ID, TOKEN_PROGRAM_IDS
from dexparser.parser.utils.transfers import decode_transfer
from dexparser.parser.utils.types import DecodedIntent, Instruction, TokenLeg


class TokenTransferDecoder(BaseDecoder):
    """SPL Token / Token-2022 transfer and transferChecked."""

    PROTOCOL_NAME = Protocol.SPL_TOKEN.value
    PROGRAM_IDS = TOKEN_PROGRAM_IDS
    CAPABILITIES = frozenset({Capability.TRANSFERS})

    def can_decode(self, instruction: Instruction) -> bool:
        return instruction.program_id in self.PROGRAM_IDS and decode_transfer(instruction) is not None

    def decode(
        self,
        instruction: Instruction,
        inner_instructions: list[Instruction],
        context: TransactionContext,
        position: Position,
    ) -> DecodedIntent | None:
        transfer = decode_transfer(instruction)
        if transfer is None:
            return None

        mint = SOL_MINT if transfer.native else None
        if transfer.mint_index is not None:
            mint = context.address(transfer.mint_index)

        authority = context.address(transfer.authority) if transfer.authority is not None else None
        return self._make_intent(
            instruction,
            InstructionKind.TRANSFER,
            position,
            input_leg=TokenLeg(account_index=transfer.source, mint=mint, amount=transfer.amount, native=transfer.native),
            output_leg=TokenLeg(account_index=transfer.destination, mint=mint, amount=transfer.amount, native=transfer.native),
            user=authority,
        )


class SystemTransferDecoder(TokenTransferDecoder):
    """System program lamport transfer, reported as native SOL."""

    PROTOCOL_NAME = Protocol.SYSTEM.value
    PROGRAM_IDS = frozenset({SYSTEM_PROGRAM_ID})

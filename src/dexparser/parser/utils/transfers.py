"""Decode SPL Token and System program transfer instructions."""

import struct

from dexparser.parser.utils.programs import (
    SYSTEM_PROGRAM_ID,
    SYSTEM_TRANSFER,
    TOKEN_PROGRAM_IDS,
    TOKEN_TRANSFER,
    TOKEN_TRANSFER_CHECKED,
)
from dexparser.parser.utils.types import Instruction, RawTransfer


def decode_transfer(instruction: Instruction) -> RawTransfer | None:
    """Return the transfer an instruction performs, or None if it is not a plain transfer.

    SPL Token transfer:        [3][u64 amount]                 accounts: source, destination, authority
    SPL Token transferChecked: [12][u64 amount][u8 decimals]   accounts: source, mint, destination, authority
    System transfer:           [u32 2][u64 lamports]           accounts: from, to
    """
    data = instruction.data
    accounts = instruction.accounts

    if instruction.program_id in TOKEN_PROGRAM_IDS:
        if not data:
            return None
        tag = data[0]
        if tag == TOKEN_TRANSFER and len(data) >= 9 and len(accounts) >= 3:
            return RawTransfer(
                program_id=instruction.program_id,
                source=accounts[0],
                destination=accounts[1],
                authority=accounts[2],
                amount=struct.unpack_from("<Q", data, 1)[0],
            )
        if tag == TOKEN_TRANSFER_CHECKED and len(data) >= 10 and len(accounts) >= 4:
            return RawTransfer(
                program_id=instruction.program_id,
                source=accounts[0],
                destination=accounts[2],
                authority=accounts[3],
                amount=struct.unpack_from("<Q", data, 1)[0],
                mint_index=accounts[1],
                decimals=data[9],
            )
        return None

    if instruction.program_id == SYSTEM_PROGRAM_ID:
        if len(data) >= 12 and len(accounts) >= 2 and struct.unpack_from("<I", data, 0)[0] == SYSTEM_TRANSFER:
            return RawTransfer(
                program_id=instruction.program_id,
                source=accounts[0],
                destination=accounts[1],
                authority=accounts[0],
                amount=struct.unpack_from("<Q", data, 4)[0],
                native=True,
            )
    return None

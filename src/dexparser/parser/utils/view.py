"""Build a TransactionView from an RPC transaction payload.

Accepts both shapes the RPC returns:
- structured: ``transaction`` is a ``{"signatures", "message"}`` dict (``json`` / ``jsonParsed`` encodings)
- raw: ``transaction`` is ``[<data>, "base64" | "base58"]``, a bare base64 string, or bytes

Account references are resolved against static keys followed by the address-table
addresses loaded at execution (``meta.loadedAddresses``: writable, then readonly).
"""

import base64
import binascii
import logging
import struct
from typing import Any

import base58
from pydantic import ValidationError
from solders.message import MessageV0
from solders.transaction import VersionedTransaction

from dexparser.domain.enums import TxStatus
from dexparser.exceptions import DecodeError, UnsupportedEncodingError
from dexparser.parser.utils.programs import (
    SYSTEM_PROGRAM_ID,
    SYSTEM_TRANSFER,
    TOKEN_PROGRAM_IDS,
    TOKEN_TRANSFER,
    TOKEN_TRANSFER_CHECKED,
)
from dexparser.parser.utils.types import Instruction, TokenBalance, TransactionView

logger = logging.getLogger(__name__)

SUPPORTED_VERSIONS = ("legacy", 0)

# (program id or key index, account addresses or key indices, payload, stack height)
_PendingInstruction = tuple[int | str, list[int | str], bytes, int | None]


def build_transaction_view(payload: dict) -> TransactionView:
    """Normalize one transaction payload. Raises DecodeError / UnsupportedEncodingError."""
    if not isinstance(payload, dict):
        raise DecodeError(f"Transaction payload must be an object, got {type(payload).__name__}")

    meta = payload.get("meta")
    if not isinstance(meta, dict):
        raise DecodeError("Transaction payload has no meta section")
    tx = payload.get("transaction")
    if tx is None:
        raise DecodeError("Transaction payload has no transaction section")

    version = payload.get("version", "legacy")
    if version is None:
        version = "legacy"
    if version not in SUPPORTED_VERSIONS:
        raise UnsupportedEncodingError(f"Unsupported transaction version: {version!r}")

    if isinstance(tx, dict):
        signatures, signers, static_keys, pending, lookup_count, resolved = _read_structured(tx)
    else:
        signatures, signers, static_keys, pending, lookup_count, raw_version = _read_raw(_decode_raw(tx))
        resolved = False
        version = raw_version

    if resolved:
        account_keys = static_keys
    else:
        account_keys = _resolve_account_keys(static_keys, meta, lookup_count)

    key_index: dict[str, int] = {}
    for i, key in enumerate(account_keys):
        key_index.setdefault(key, i)

    instructions = tuple(_resolve_instruction(p, account_keys, key_index) for p in pending)
    inner = _read_inner_instructions(meta, len(instructions), account_keys, key_index)

    block_time = payload.get("blockTime")
    try:
        return TransactionView(
            signature=signatures[0] if signatures else "",
            signers=tuple(signers),
            account_keys=tuple(account_keys),
            instructions=instructions,
            inner_instructions=inner,
            log_messages=tuple(_as_list(meta.get("logMessages"), "meta.logMessages")),
            pre_token_balances=_read_token_balances(meta.get("preTokenBalances"), account_keys),
            post_token_balances=_read_token_balances(meta.get("postTokenBalances"), account_keys),
            pre_balances=_read_lamports(meta.get("preBalances")),
            post_balances=_read_lamports(meta.get("postBalances")),
            fee=_as_int(meta.get("fee", 0), "meta.fee"),
            compute_units=_read_compute_units(meta),
            status=TxStatus.SUCCESS if meta.get("err") is None else TxStatus.FAILED,
            slot=_as_int(payload.get("slot") or 0, "slot"),
            block_time=None if block_time is None else _as_int(block_time, "blockTime"),
            version=version,
        )
    except (ValidationError, TypeError, ValueError, AttributeError) as e:
        raise DecodeError(f"Malformed transaction payload: {e}") from e


# --- Raw encoded transactions ---


def _decode_raw(tx: Any) -> bytes:
    if isinstance(tx, (bytes, bytearray)):
        return bytes(tx)
    if isinstance(tx, str):
        encoded, encoding = tx, "base64"
    elif isinstance(tx, (list, tuple)) and len(tx) == 2:
        encoded, encoding = tx
    else:
        raise DecodeError("Unrecognized transaction section shape")

    if encoding == "base64":
        try:
            return base64.b64decode(encoded, validate=True)
        except (binascii.Error, ValueError) as e:
            raise DecodeError(f"Invalid base64 transaction: {e}") from e
    if encoding == "base58":
        try:
            return base58.b58decode(encoded)
        except ValueError as e:
            raise DecodeError(f"Invalid base58 transaction: {e}") from e
    raise UnsupportedEncodingError(f"Unsupported transaction encoding: {encoding!r}")


def _read_raw(raw: bytes):
    try:
        tx = VersionedTransaction.from_bytes(raw)
    except Exception as e:
        raise DecodeError(f"Cannot deserialize transaction bytes: {e}") from e

    message = tx.message
    static_keys = [str(key) for key in message.account_keys]
    signers = static_keys[:message.header.num_required_signatures]
    signatures = [str(sig) for sig in tx.signatures]

    pending: list[_PendingInstruction] = [
        (ix.program_id_index, list(ix.accounts), bytes(ix.data), None)
        for ix in message.instructions
    ]

    lookup_count = 0
    version: str | int = "legacy"
    if isinstance(message, MessageV0):
        version = 0
        for lookup in message.address_table_lookups:
            lookup_count += len(lookup.writable_indexes) + len(lookup.readonly_indexes)

    return signatures, signers, static_keys, pending, lookup_count, version


# --- Structured (json / jsonParsed) transactions ---


def _read_structured(tx: dict):
    message = tx.get("message")
    if not isinstance(message, dict):
        raise DecodeError("Transaction has no message")
    raw_keys = _as_list(message.get("accountKeys"), "message.accountKeys")
    if not raw_keys:
        raise DecodeError("Message has no account keys")

    keys: list[str] = []
    signers: list[str] = []
    resolved = False
    for key in raw_keys:
        if isinstance(key, dict):
            pubkey = key.get("pubkey")
            if not pubkey:
                raise DecodeError("Account key entry without pubkey")
            keys.append(pubkey)
            if key.get("signer"):
                signers.append(pubkey)
            # jsonParsed already lists lookup-table addresses inline
            if key.get("source") == "lookupTable":
                resolved = True
        else:
            keys.append(str(key))

    if not signers:
        header = _as_dict(message.get("header"), "message.header")
        signers = keys[:_as_int(header.get("numRequiredSignatures", 1), "numRequiredSignatures")]

    lookup_count = 0
    for lookup in _as_list(message.get("addressTableLookups"), "message.addressTableLookups"):
        lookup = _as_dict(lookup, "addressTableLookups entry")
        lookup_count += len(_as_list(lookup.get("writableIndexes"), "writableIndexes"))
        lookup_count += len(_as_list(lookup.get("readonlyIndexes"), "readonlyIndexes"))

    instructions = _as_list(message.get("instructions"), "message.instructions")
    pending = [_read_structured_instruction(ix) for ix in instructions]
    signatures = _as_list(tx.get("signatures"), "transaction.signatures")
    return signatures, signers, keys, pending, lookup_count, resolved


def _read_structured_instruction(ix: dict) -> _PendingInstruction:
    if not isinstance(ix, dict):
        raise DecodeError("Instruction entry is not an object")
    stack_height = ix.get("stackHeight")
    if stack_height is not None:
        stack_height = _as_int(stack_height, "stackHeight")

    if "programIdIndex" in ix:
        program: int | str = _as_int(ix["programIdIndex"], "programIdIndex")
    elif "programId" in ix:
        program = ix["programId"]
    else:
        raise DecodeError("Instruction has neither programIdIndex nor programId")

    if "parsed" in ix:
        if not isinstance(program, str):
            raise DecodeError("Parsed instruction without programId")
        accounts, data = _encode_parsed(program, ix["parsed"])
        return program, accounts, data, stack_height

    accounts = _as_list(ix.get("accounts"), "instruction.accounts")
    return program, accounts, _decode_data(ix.get("data", "")), stack_height


def _decode_data(data: Any) -> bytes:
    if isinstance(data, (list, tuple)) and len(data) == 2:
        encoded, encoding = data
        if encoding == "base64":
            try:
                return base64.b64decode(encoded, validate=True)
            except (binascii.Error, ValueError) as e:
                raise DecodeError(f"Invalid base64 instruction data: {e}") from e
        if encoding != "base58":
            raise UnsupportedEncodingError(f"Unsupported instruction data encoding: {encoding!r}")
        data = encoded
    if not isinstance(data, str):
        raise DecodeError("Instruction data must be an encoded string")
    try:
        return base58.b58decode(data)
    except ValueError as e:
        raise DecodeError(f"Invalid base58 instruction data: {e}") from e


def _encode_parsed(program_id: str, parsed: Any) -> tuple[list[int | str], bytes]:
    """Re-encode RPC-parsed token/system transfers to their on-chain byte layout.

    Anything else keeps no accounts and an empty payload.
    """
    if not isinstance(parsed, dict):
        return [], b""
    kind = parsed.get("type")
    info = parsed.get("info") or {}

    try:
        if program_id in TOKEN_PROGRAM_IDS and kind == "transfer":
            authority = info.get("authority") or info.get("multisigAuthority")
            data = bytes([TOKEN_TRANSFER]) + struct.pack("<Q", int(info["amount"]))
            return [info["source"], info["destination"], authority], data
        if program_id in TOKEN_PROGRAM_IDS and kind == "transferChecked":
            authority = info.get("authority") or info.get("multisigAuthority")
            token_amount = info["tokenAmount"]
            data = (
                bytes([TOKEN_TRANSFER_CHECKED])
                + struct.pack("<Q", int(token_amount["amount"]))
                + bytes([int(token_amount["decimals"])])
            )
            return [info["source"], info["mint"], info["destination"], authority], data
        if program_id == SYSTEM_PROGRAM_ID and kind == "transfer":
            data = struct.pack("<IQ", SYSTEM_TRANSFER, int(info["lamports"]))
            return [info["source"], info["destination"]], data
    except (KeyError, TypeError, ValueError, struct.error) as e:
        raise DecodeError(f"Malformed parsed {kind} instruction: {e}") from e

    return [], b""


# --- Account resolution ---


def _resolve_account_keys(static_keys: list[str], meta: dict, lookup_count: int) -> list[str]:
    loaded = _as_dict(meta.get("loadedAddresses"), "meta.loadedAddresses")
    writable = _as_list(loaded.get("writable"), "loadedAddresses.writable")
    readonly = _as_list(loaded.get("readonly"), "loadedAddresses.readonly")
    if lookup_count and len(writable) + len(readonly) != lookup_count:
        raise DecodeError(
            f"Address table lookups reference {lookup_count} accounts "
            f"but meta.loadedAddresses has {len(writable) + len(readonly)}"
        )
    return static_keys + writable + readonly


def _resolve_index(ref: int | str, account_keys: list[str], key_index: dict[str, int]) -> int:
    if isinstance(ref, str):
        if ref not in key_index:
            raise DecodeError(f"Account {ref} is not in the transaction's account keys")
        return key_index[ref]
    if not isinstance(ref, int) or ref < 0 or ref >= len(account_keys):
        raise DecodeError(f"Account index {ref!r} outside {len(account_keys)} resolved keys")
    return ref


def _resolve_instruction(
    pending: _PendingInstruction,
    account_keys: list[str],
    key_index: dict[str, int],
) -> Instruction:
    program, accounts, data, stack_height = pending
    if isinstance(program, int):
        program_id = account_keys[_resolve_index(program, account_keys, key_index)]
    else:
        program_id = program
    return Instruction(
        program_id=program_id,
        accounts=tuple(_resolve_index(a, account_keys, key_index) for a in accounts if a is not None),
        data=data,
        stack_height=stack_height,
    )


def _read_inner_instructions(
    meta: dict,
    outer_count: int,
    account_keys: list[str],
    key_index: dict[str, int],
) -> tuple[tuple[Instruction, ...], ...]:
    groups: list[list[Instruction]] = [[] for _ in range(outer_count)]
    for group in _as_list(meta.get("innerInstructions"), "meta.innerInstructions"):
        outer = _as_dict(group, "inner instruction group").get("index")
        if not isinstance(outer, int) or outer < 0 or outer >= outer_count:
            raise DecodeError(f"Inner instruction group points at missing instruction {outer!r}")
        for ix in _as_list(group.get("instructions"), "inner instruction group instructions"):
            pending = _read_structured_instruction(ix)
            groups[outer].append(_resolve_instruction(pending, account_keys, key_index))
    return tuple(tuple(g) for g in groups)


# --- Meta sections ---


def _read_token_balances(entries: Any, account_keys: list[str]) -> dict[int, TokenBalance]:
    balances: dict[int, TokenBalance] = {}
    for entry in _as_list(entries, "token balances"):
        try:
            index = int(entry["accountIndex"])
            if index < 0:
                raise IndexError(index)
            ui = entry["uiTokenAmount"]
            balance = TokenBalance(
                account_index=index,
                account=account_keys[index],
                mint=entry["mint"],
                owner=entry.get("owner"),
                amount=int(ui["amount"]),
                decimals=int(ui["decimals"]),
            )
        except (KeyError, TypeError, ValueError, IndexError) as e:
            raise DecodeError(f"Malformed token balance entry: {e!r}") from e
        balances[index] = balance
    return balances


def _read_lamports(values: Any) -> tuple[int, ...]:
    return tuple(_as_int(v, "lamport balance") for v in _as_list(values, "lamport balances"))


def _read_compute_units(meta: dict) -> int | None:
    units = meta.get("computeUnitsConsumed")
    return None if units is None else _as_int(units, "computeUnitsConsumed")


def _as_int(value: Any, field: str) -> int:
    try:
        return int(value)
    except (TypeError, ValueError) as e:
        raise DecodeError(f"Field {field} is not an integer: {value!r}") from e


def _as_list(value: Any, field: str) -> list:
    """Missing or null sections read as empty."""
    if value is None:
        return []
    if not isinstance(value, (list, tuple)):
        raise DecodeError(f"Field {field} must be a list, got {type(value).__name__}")
    return list(value)


def _as_dict(value: Any, field: str) -> dict:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise DecodeError(f"Field {field} must be an object, got {type(value).__name__}")
    return value

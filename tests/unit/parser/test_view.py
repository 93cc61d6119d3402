"""Tests for build_transaction_view: structured, jsonParsed and raw encoded payloads."""

import base64

import pytest
from solders.hash import Hash
from solders.keypair import Keypair
from solders.message import MessageV0
from solders.pubkey import Pubkey
from solders.system_program import TransferParams, transfer
from solders.transaction import VersionedTransaction

from dexparser.domain.enums import TxStatus
from dexparser.exceptions import DecodeError, UnsupportedEncodingError
from dexparser.parser.utils.programs import SOL_MINT, SYSTEM_PROGRAM_ID, TOKEN_PROGRAM_ID
from dexparser.parser.utils.transfers import decode_transfer
from dexparser.parser.utils.view import build_transaction_view

USER = "User1111111111111111111111111111111111111111"


def _make_raw_payload(lamports: int = 1_000) -> tuple[dict, Pubkey, Pubkey]:
    """A real v0 transaction: payer sends lamports to a fresh recipient."""
    payer = Keypair()
    recipient = Keypair().pubkey()
    ix = transfer(TransferParams(from_pubkey=payer.pubkey(), to_pubkey=recipient, lamports=lamports))
    message = MessageV0.try_compile(payer.pubkey(), [ix], [], Hash.default())
    tx = VersionedTransaction(message, [payer])
    payload = {
        "slot": 7,
        "version": 0,
        "transaction": [base64.b64encode(bytes(tx)).decode(), "base64"],
        "meta": {
            "err": None,
            "fee": 5000,
            "preBalances": [10_000_000, 0, 1],
            "postBalances": [9_994_000, lamports, 1],
            "preTokenBalances": [],
            "postTokenBalances": [],
            "innerInstructions": [],
            "loadedAddresses": {"writable": [], "readonly": []},
        },
    }
    return payload, payer.pubkey(), recipient


class TestStructuredPayload:
    def test_basic_fields(self, raydium_swap):
        view = build_transaction_view(raydium_swap.build())

        assert view.signature == "sig1"
        assert view.signers == (USER,)
        assert view.fee_payer == USER
        assert view.fee == 5000
        assert view.compute_units == 60_000
        assert view.status == TxStatus.SUCCESS
        assert view.slot == 250_000_000
        assert view.block_time == 1_700_000_000

    def test_instructions_and_inner_groups_align(self, raydium_swap):
        view = build_transaction_view(raydium_swap.build())

        assert len(view.instructions) == 1
        assert len(view.inner_instructions) == 1
        assert len(view.inner_group(0)) == 2
        assert view.inner_group(0)[0].program_id == TOKEN_PROGRAM_ID
        assert view.inner_group(0)[0].stack_height == 2
        assert view.inner_group(5) == ()

    def test_token_balances_keyed_by_account_index(self, raydium_swap):
        view = build_transaction_view(raydium_swap.build())
        index = view.account_keys.index("user_wsol")

        assert view.pre_token_balances[index].mint == SOL_MINT
        assert view.token_delta(index) == -1_000_000_000
        assert view.token_balance(index).owner == USER

    def test_failed_transaction_status(self, raydium_swap):
        raydium_swap.err = {"InstructionError": [0, {"Custom": 30}]}
        view = build_transaction_view(raydium_swap.build())
        assert view.status == TxStatus.FAILED

    def test_lookup_table_addresses_appended(self, builder):
        """Loaded addresses follow the static keys: writable first, then readonly."""
        payload = builder.build()
        payload["version"] = 0
        payload["transaction"]["message"]["addressTableLookups"] = [
            {"accountKey": "Lut1", "writableIndexes": [3], "readonlyIndexes": [9]},
        ]
        payload["meta"]["loadedAddresses"] = {"writable": ["LoadedW"], "readonly": ["LoadedR"]}
        payload["transaction"]["message"]["instructions"] = [
            {"programIdIndex": 2, "accounts": [0, 1], "data": ""},
        ]

        view = build_transaction_view(payload)

        assert view.account_keys == (USER, "LoadedW", "LoadedR")
        assert view.instructions[0].program_id == "LoadedR"
        assert view.version == 0

    def test_lookup_count_mismatch(self, builder):
        payload = builder.build()
        payload["version"] = 0
        payload["transaction"]["message"]["addressTableLookups"] = [
            {"accountKey": "Lut1", "writableIndexes": [3, 4], "readonlyIndexes": []},
        ]
        payload["meta"]["loadedAddresses"] = {"writable": ["LoadedW"], "readonly": []}

        with pytest.raises(DecodeError):
            build_transaction_view(payload)

    def test_account_index_out_of_range(self, builder):
        payload = builder.build()
        payload["transaction"]["message"]["instructions"] = [
            {"programIdIndex": 0, "accounts": [42], "data": ""},
        ]
        with pytest.raises(DecodeError):
            build_transaction_view(payload)

    def test_inner_group_for_missing_instruction(self, raydium_swap):
        payload = raydium_swap.build()
        payload["meta"]["innerInstructions"][0]["index"] = 3
        with pytest.raises(DecodeError):
            build_transaction_view(payload)

    def test_invalid_base58_data(self, raydium_swap):
        payload = raydium_swap.build()
        payload["transaction"]["message"]["instructions"][0]["data"] = "0OIl"
        with pytest.raises(DecodeError):
            build_transaction_view(payload)


class TestJsonParsedPayload:
    def _make_parsed_payload(self) -> dict:
        return {
            "slot": 1,
            "transaction": {
                "signatures": ["sigParsed"],
                "message": {
                    "accountKeys": [
                        {"pubkey": USER, "signer": True, "writable": True, "source": "transaction"},
                        {"pubkey": "src", "signer": False, "writable": True, "source": "transaction"},
                        {"pubkey": "dst", "signer": False, "writable": True, "source": "transaction"},
                        {"pubkey": "mintX", "signer": False, "writable": False, "source": "transaction"},
                        {"pubkey": TOKEN_PROGRAM_ID, "signer": False, "writable": False, "source": "transaction"},
                    ],
                    "instructions": [
                        {
                            "programId": TOKEN_PROGRAM_ID,
                            "parsed": {
                                "type": "transferChecked",
                                "info": {
                                    "source": "src",
                                    "mint": "mintX",
                                    "destination": "dst",
                                    "authority": USER,
                                    "tokenAmount": {"amount": "2500", "decimals": 3},
                                },
                            },
                        },
                    ],
                },
            },
            "meta": {"err": None, "fee": 5000, "preBalances": [], "postBalances": []},
        }

    def test_parsed_transfer_reencoded(self):
        view = build_transaction_view(self._make_parsed_payload())
        transfer = decode_transfer(view.instructions[0])

        assert view.signers == (USER,)
        assert transfer is not None
        assert transfer.amount == 2500
        assert transfer.decimals == 3
        assert view.account_keys[transfer.mint_index] == "mintX"
        assert view.account_keys[transfer.destination] == "dst"

    def test_parsed_transfer_missing_amount(self):
        payload = self._make_parsed_payload()
        del payload["transaction"]["message"]["instructions"][0]["parsed"]["info"]["tokenAmount"]
        with pytest.raises(DecodeError):
            build_transaction_view(payload)


class TestRawPayload:
    def test_v0_transaction_decoded(self):
        payload, payer, recipient = _make_raw_payload(lamports=1_000)
        view = build_transaction_view(payload)

        assert view.version == 0
        assert view.fee_payer == str(payer)
        assert view.signers == (str(payer),)
        ix = view.instructions[0]
        assert ix.program_id == SYSTEM_PROGRAM_ID
        transfer = decode_transfer(ix)
        assert transfer.native is True
        assert transfer.amount == 1_000
        assert view.account_keys[transfer.destination] == str(recipient)

    def test_garbage_bytes(self):
        payload, _, _ = _make_raw_payload()
        payload["transaction"] = [base64.b64encode(b"\x00\x01\x02").decode(), "base64"]
        with pytest.raises(DecodeError):
            build_transaction_view(payload)

    def test_invalid_base64(self):
        payload, _, _ = _make_raw_payload()
        payload["transaction"] = ["not base64!!", "base64"]
        with pytest.raises(DecodeError):
            build_transaction_view(payload)

    def test_unknown_encoding(self):
        payload, _, _ = _make_raw_payload()
        payload["transaction"] = ["abc", "zstd"]
        with pytest.raises(UnsupportedEncodingError):
            build_transaction_view(payload)


class TestPayloadValidation:
    def test_not_an_object(self):
        with pytest.raises(DecodeError):
            build_transaction_view(["not", "a", "payload"])

    def test_missing_meta(self, builder):
        payload = builder.build()
        del payload["meta"]
        with pytest.raises(DecodeError):
            build_transaction_view(payload)

    def test_missing_transaction(self, builder):
        payload = builder.build()
        del payload["transaction"]
        with pytest.raises(DecodeError):
            build_transaction_view(payload)

    def test_unsupported_version(self, builder):
        payload = builder.build()
        payload["version"] = 1
        with pytest.raises(UnsupportedEncodingError):
            build_transaction_view(payload)

    def test_negative_token_balance_index(self, raydium_swap):
        payload = raydium_swap.build()
        payload["meta"]["preTokenBalances"][0]["accountIndex"] = -1
        with pytest.raises(DecodeError):
            build_transaction_view(payload)

    def test_block_time_not_an_integer(self, raydium_swap):
        payload = raydium_swap.build()
        payload["blockTime"] = "yesterday"
        with pytest.raises(DecodeError):
            build_transaction_view(payload)

    def test_inner_group_not_an_object(self, raydium_swap):
        payload = raydium_swap.build()
        payload["meta"]["innerInstructions"] = [5]
        with pytest.raises(DecodeError):
            build_transaction_view(payload)

    def test_inner_group_instructions_not_a_list(self, raydium_swap):
        payload = raydium_swap.build()
        payload["meta"]["innerInstructions"][0]["instructions"] = 7
        with pytest.raises(DecodeError):
            build_transaction_view(payload)

    def test_token_balances_not_a_list(self, raydium_swap):
        payload = raydium_swap.build()
        payload["meta"]["preTokenBalances"] = 5
        with pytest.raises(DecodeError):
            build_transaction_view(payload)

    def test_instruction_accounts_not_a_list(self, raydium_swap):
        payload = raydium_swap.build()
        payload["transaction"]["message"]["instructions"][0]["accounts"] = 3
        with pytest.raises(DecodeError):
            build_transaction_view(payload)

    def test_stack_height_not_an_integer(self, raydium_swap):
        payload = raydium_swap.build()
        payload["meta"]["innerInstructions"][0]["instructions"][0]["stackHeight"] = "deep"
        with pytest.raises(DecodeError):
            build_transaction_view(payload)

    def test_lookup_entry_not_an_object(self, raydium_swap):
        payload = raydium_swap.build()
        payload["transaction"]["message"]["addressTableLookups"] = ["table"]
        with pytest.raises(DecodeError):
            build_transaction_view(payload)

    def test_loaded_addresses_not_an_object(self, raydium_swap):
        payload = raydium_swap.build()
        payload["meta"]["loadedAddresses"] = ["writable"]
        with pytest.raises(DecodeError):
            build_transaction_view(payload)

    def test_signature_of_wrong_type(self, raydium_swap):
        payload = raydium_swap.build()
        payload["transaction"]["signatures"] = [12345]
        with pytest.raises(DecodeError):
            build_transaction_view(payload)

    def test_log_messages_not_a_list(self, raydium_swap):
        payload = raydium_swap.build()
        payload["meta"]["logMessages"] = 9
        with pytest.raises(DecodeError):
            build_transaction_view(payload)

"""TransactionContext — read-only working set for decoding one transaction."""

from dexparser.exceptions import InternalInvariantError
from dexparser.parser.utils.programs import SOL_MINT, TOKEN_PROGRAM_IDS
from dexparser.parser.utils.transfers import decode_transfer
from dexparser.parser.utils.types import SOL_DECIMALS, Instruction, RawTransfer, TransactionView


class TransactionContext:
    """Account lookups and child-instruction spans shared by decoders, reconciler and heuristic.

    Decoders use the address/children helpers only; balance helpers serve the
    reconciler and the heuristic.
    """

    def __init__(self, view: TransactionView) -> None:
        self._view = view
        self._mint_decimals: dict[str, int] = {SOL_MINT: SOL_DECIMALS}
        self._account_mints: dict[int, str] = {}
        for balances in (view.pre_token_balances, view.post_token_balances):
            for tb in balances.values():
                self._mint_decimals.setdefault(tb.mint, tb.decimals)
                self._account_mints.setdefault(tb.account_index, tb.mint)
        self._index_checked_transfers()

    @property
    def view(self) -> TransactionView:
        return self._view

    @property
    def signer(self) -> str:
        return self._view.signers[0] if self._view.signers else self._view.fee_payer

    def check_index(self, index: int) -> int:
        if index < 0 or index >= len(self._view.account_keys):
            raise InternalInvariantError(
                f"Account index {index} outside {len(self._view.account_keys)} account keys"
            )
        return index

    def address(self, index: int) -> str:
        return self._view.account_keys[self.check_index(index)]

    # --- Instruction tree ---

    def children(self, outer_index: int, inner_index: int | None) -> list[Instruction]:
        """Instructions executed on behalf of the given one.

        A top-level instruction owns its whole inner group. An inner instruction owns
        the following entries with a deeper stack height; without stack heights, the
        directly following token-program instructions.
        """
        group = self._view.inner_group(outer_index)
        if inner_index is None:
            return list(group)

        parent = group[inner_index]
        result: list[Instruction] = []
        for ix in group[inner_index + 1:]:
            if parent.stack_height is not None and ix.stack_height is not None:
                if ix.stack_height <= parent.stack_height:
                    break
            elif ix.program_id not in TOKEN_PROGRAM_IDS:
                break
            result.append(ix)
        return result

    def child_transfers(self, outer_index: int, inner_index: int | None) -> list[RawTransfer]:
        transfers = []
        for ix in self.children(outer_index, inner_index):
            transfer = decode_transfer(ix)
            if transfer is not None and not transfer.native:
                transfers.append(transfer)
        return transfers

    # --- Token metadata ---

    def _index_checked_transfers(self) -> None:
        """transferChecked carries mint + decimals; use it for accounts missing from the snapshots."""
        groups = [self._view.instructions, *self._view.inner_instructions]
        for group in groups:
            for ix in group:
                transfer = decode_transfer(ix)
                if transfer is None or transfer.mint_index is None or transfer.mint_index >= len(self._view.account_keys):
                    continue
                mint = self._view.account_keys[transfer.mint_index]
                self._account_mints.setdefault(transfer.source, mint)
                self._account_mints.setdefault(transfer.destination, mint)
                if transfer.decimals is not None:
                    self._mint_decimals.setdefault(mint, transfer.decimals)

    def mint_of(self, index: int) -> str | None:
        return self._account_mints.get(index)

    def decimals_of(self, mint: str) -> int | None:
        return self._mint_decimals.get(mint)

    def owner_of(self, index: int) -> str | None:
        tb = self._view.token_balance(index)
        return tb.owner if tb else None

    def has_snapshot(self, index: int) -> bool:
        return index in self._view.pre_token_balances or index in self._view.post_token_balances

    def token_deltas(self, indices: set[int]) -> dict[int, int]:
        """Non-zero raw token deltas for the given accounts that appear in a snapshot."""
        deltas: dict[int, int] = {}
        for index in sorted(indices):
            if not self.has_snapshot(index):
                continue
            delta = self._view.token_delta(index)
            if delta != 0:
                deltas[index] = delta
        return deltas

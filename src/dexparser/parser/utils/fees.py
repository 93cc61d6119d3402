"""Transaction fee and signer balance-change utilities."""

from dexparser.parser.utils.programs import SOL_MINT
from dexparser.parser.utils.types import SOL_DECIMALS, BalanceChange, FeeInfo, TransactionView, to_ui_amount


def make_fee_info(view: TransactionView) -> FeeInfo:
    """meta.fee is already in lamports."""
    return FeeInfo(amount=view.fee, decimals=SOL_DECIMALS, ui_amount=to_ui_amount(view.fee, SOL_DECIMALS))


def sol_balance_change(view: TransactionView, signer: str) -> BalanceChange | None:
    """Lamport balance before/after for the signer's own account (fee included)."""
    if signer not in view.account_keys:
        return None
    index = view.account_keys.index(signer)
    if index >= len(view.pre_balances) or index >= len(view.post_balances):
        return None
    pre = view.pre_balances[index]
    post = view.post_balances[index]
    return BalanceChange(mint=SOL_MINT, pre=pre, post=post, change=post - pre, decimals=SOL_DECIMALS)


def token_balance_changes(view: TransactionView, signer: str) -> dict[str, BalanceChange]:
    """Per-mint token balance change across all token accounts owned by the signer.

    Mints whose total did not move are omitted.
    """
    totals: dict[str, list[int]] = {}
    decimals: dict[str, int] = {}
    for side, balances in ((0, view.pre_token_balances), (1, view.post_token_balances)):
        for tb in balances.values():
            if tb.owner != signer:
                continue
            totals.setdefault(tb.mint, [0, 0])[side] += tb.amount
            decimals.setdefault(tb.mint, tb.decimals)

    changes: dict[str, BalanceChange] = {}
    for mint, (pre, post) in totals.items():
        if pre == post:
            continue
        changes[mint] = BalanceChange(mint=mint, pre=pre, post=post, change=post - pre, decimals=decimals[mint])
    return changes

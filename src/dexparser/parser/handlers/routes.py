"""Multi-hop aggregation: collapse chained swap hops into one user-level trade."""

import logging

from dexparser.domain.enums import Protocol, Provenance
from dexparser.parser.handlers.common import trade_type
from dexparser.parser.utils.types import TokenInfo, Trade

logger = logging.getLogger(__name__)


def _chains(tail: TokenInfo, head: TokenInfo) -> bool:
    """Does ``head`` (a hop input) continue from ``tail`` (a route's last output)?"""
    if tail.account and head.account:
        return tail.account == head.account
    return tail.mint == head.mint


def build_routes(trades: list[Trade]) -> list[list[Trade]]:
    """Group trades into routes, scanning in instruction order.

    Each trade extends the earliest open route whose last output feeds its
    input; otherwise it opens a new route.
    """
    routes: list[list[Trade]] = []
    for trade in trades:
        for route in routes:
            if _chains(route[-1].output_token, trade.input_token):
                route.append(trade)
                break
        else:
            routes.append([trade])
    return routes


def merge_route(route: list[Trade]) -> Trade:
    """One trade for one route. A single hop is returned as a copy."""
    first, last = route[0], route[-1]
    if len(route) == 1:
        return first.model_copy(deep=True)

    routers = {hop.route for hop in route}
    provenance = (
        Provenance.HEURISTIC
        if any(hop.provenance == Provenance.HEURISTIC for hop in route)
        else Provenance.PROTOCOL
    )
    warnings = [w for w in first.warnings if w.side == "input"] + [w for w in last.warnings if w.side == "output"]
    return Trade(
        type=trade_type(first.input_token.mint, last.output_token.mint),
        amm=Protocol.MULTI_HOP.value,
        program_id=first.program_id,
        input_token=first.input_token.model_copy(),
        output_token=last.output_token.model_copy(),
        pool=first.pool,
        instruction_index=first.instruction_index,
        inner_index=first.inner_index,
        idx=first.idx,
        user=first.user,
        route=routers.pop() if len(routers) == 1 else None,
        amms=[hop.amm for hop in route],
        provenance=provenance,
        warnings=[w.model_copy() for w in warnings],
    )


def aggregate_trades(trades: list[Trade]) -> Trade | None:
    """Summarize the transaction's trades as the single user-level swap.

    Among disjoint routes, the largest first-hop input wins; ties keep the earliest.
    """
    if not trades:
        return None
    routes = build_routes(trades)
    best = routes[0]
    for route in routes[1:]:
        if route[0].input_token.ui_amount > best[0].input_token.ui_amount:
            best = route
    if len(routes) > 1:
        logger.debug("%d disjoint routes; aggregating the one starting at %s", len(routes), best[0].idx)
    return merge_route(best)

"""Command line entry point.

Usage:
    reallocator simulate MARKET_ID --chain-id 1 --borrow 1000000
"""

import argparse
import asyncio
import logging
import sys
from decimal import Decimal, InvalidOperation
from typing import List, Optional

from rich.console import Console
from rich.table import Table
from rich.text import Text

from config.settings import get_settings
from reallocator.core.models import Asset, BorrowSimulation, MarketProjection, SimulationSeries
from reallocator.data import MorphoAPIClient
from reallocator.engine.simulation import (
    DEFAULT_SERIES_STEPS,
    MarketSimulationService,
    simulate_borrow,
    simulate_series,
)
from reallocator.errors import DataSourceError
from reallocator.utils.formatting import format_token_amount, format_wad

logger = logging.getLogger(__name__)


def parse_amount(amount: str, decimals: int) -> int:
    """Convert a token amount such as '1500.5' to raw units."""
    try:
        value = Decimal(amount.replace("_", "").replace(",", ""))
    except InvalidOperation:
        raise ValueError(f"Invalid amount: {amount}") from None
    if value < 0:
        raise ValueError(f"Amount must be non-negative, got {amount}")
    return int(value * (10**decimals))


def series_table(series: SimulationSeries, asset: Asset) -> Table:
    table = Table(title="Borrow sweep")
    table.add_column("Share of liquidity", justify="right")
    table.add_column("Borrow", justify="right")
    table.add_column("Utilization", justify="right")
    table.add_column("Borrow APY", justify="right", style="cyan")

    for percentage, amount, utilization, apy in zip(
        series.percentages,
        series.borrow_amounts,
        series.utilization_series,
        series.apy_series,
    ):
        table.add_row(
            f"{percentage:.0f}%",
            format_token_amount(amount, asset),
            f"{utilization:.2f}%",
            f"{apy:.2f}%",
        )
    return table


def _projection_row(table: Table, label: str, projection: MarketProjection, asset: Asset) -> None:
    table.add_row(
        label,
        format_token_amount(projection.liquidity, asset),
        format_wad(projection.utilization),
        format_wad(projection.borrow_apy),
    )


def borrow_table(result: BorrowSimulation, asset: Asset) -> Table:
    table = Table(title=f"Borrow of {format_token_amount(result.requested_liquidity, asset)}")
    table.add_column("Step")
    table.add_column("Liquidity", justify="right")
    table.add_column("Utilization", justify="right")
    table.add_column("Borrow APY", justify="right", style="cyan")

    if result.simulation is not None:
        target = result.simulation.target_market
        _projection_row(table, "Current", target.pre_reallocation, asset)
        _projection_row(table, "After reallocation", target.post_reallocation, asset)
        _projection_row(table, "After borrow", target.post_borrow, asset)

    if result.reallocation is not None:
        for vault, withdrawals in result.reallocation.withdrawals_per_vault.items():
            for withdrawal in withdrawals:
                table.add_row(
                    f"  from {vault[:10]}…",
                    format_token_amount(withdrawal.amount, asset),
                    withdrawal.market_id[:10],
                    "",
                )
    return table


def _reason_text(result: BorrowSimulation) -> Text:
    if result.reason is None:
        return Text("")
    style = "green" if result.reason.type == "success" else "red"
    return Text(result.reason.message, style=style)


async def run_simulation(
    market_id: str,
    chain_id: int,
    borrow: str,
    steps: int,
    console: Console,
) -> int:
    settings = get_settings()
    client = MorphoAPIClient(settings)
    service = MarketSimulationService(client, settings=settings)

    try:
        try:
            snapshot, shared = await service.load(market_id, chain_id)
        except DataSourceError as e:
            console.print(Text(str(e), style="red"))
            return 1
        targets = await client.fetch_market_targets(chain_id)
    finally:
        await client.close()

    supply_target = (
        targets.supply_target_utilization.get(market_id)
        or settings.default_supply_target_utilization
    )
    asset = snapshot.loan_asset
    requested = parse_amount(borrow, asset.decimals)
    logger.info(f"Simulating {requested} {asset.symbol} on {market_id}, target {supply_target}")

    console.print(series_table(simulate_series(snapshot, shared, steps, supply_target), asset))
    result = simulate_borrow(snapshot, shared, requested, supply_target)
    console.print(borrow_table(result, asset))
    console.print(_reason_text(result))

    return 0 if result.reason is None or result.reason.type == "success" else 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="reallocator",
        description="Morpho Blue PublicAllocator reallocation planner",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    simulate = subparsers.add_parser("simulate", help="Simulate a borrow with shared liquidity")
    simulate.add_argument("market_id", help="Market unique key")
    simulate.add_argument("--chain-id", type=int, default=1, help="Chain id (default: 1)")
    simulate.add_argument("--borrow", required=True, help="Amount to borrow, in token units")
    simulate.add_argument(
        "--steps",
        type=int,
        default=DEFAULT_SERIES_STEPS,
        help=f"Points of the borrow sweep (default: {DEFAULT_SERIES_STEPS})",
    )
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    console = Console()
    try:
        return asyncio.run(
            run_simulation(args.market_id, args.chain_id, args.borrow, args.steps, console)
        )
    except ValueError as e:
        console.print(Text(str(e), style="red"))
        return 1


if __name__ == "__main__":
    sys.exit(main())

"""
recordledger demo: run the sealed-bid auction end to end.

    1. bidder A places a bid
    2. bidder B places a bid
    3. the auctioneer resolves the two bids
    4. the auctioneer finishes the winning bid, handing it back to its bidder
    5. finishing the losing bid is refused with AlreadySpent

Every account is ephemeral. With --ledger the transaction log is written to
disk and can be checked afterwards with `recordledger verify`.
"""

import sys
from pathlib import Path
from typing import Optional

import click

from recordledger.cli._output import BAR_HEAVY, BAR_LIGHT, Color, row_fail, row_info, row_ok
from recordledger.core.crypto import Account
from recordledger.core.exceptions import AlreadySpent, RecordLedgerError
from recordledger.core.log import configure_logging
from recordledger.ledger.ledger import Ledger
from recordledger.programs.auction import auction_program
from recordledger.runtime.vm import VM


@click.command(name="demo")
@click.option("--amount-a", type=click.IntRange(min=0), default=100, show_default=True,
              help="Bid placed by bidder A.")
@click.option("--amount-b", type=click.IntRange(min=0), default=150, show_default=True,
              help="Bid placed by bidder B.")
@click.option("--ledger", "ledger_path", type=click.Path(), default=None, metavar="PATH",
              help="Write the transaction log to PATH.")
@click.option("--log-level", default="WARNING", show_default=True,
              type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False))
@click.option("--no-color", is_flag=True, default=False, help="Disable ANSI color output.")
def demo_command(
    amount_a:    int,
    amount_b:    int,
    ledger_path: Optional[str],
    log_level:   str,
    no_color:    bool,
) -> None:
    """
    Run a two-bidder auction and print each step.

    \b
    Examples:
      recordledger demo
      recordledger demo --amount-a 200 --amount-b 200
      recordledger demo --ledger demo.jsonl && recordledger verify demo.jsonl
    """
    Color.configure(not no_color)
    configure_logging(log_level)

    auctioneer = Account.generate()
    bidder_a = Account.generate()
    bidder_b = Account.generate()

    node = Account.generate()
    path = Path(ledger_path) if ledger_path else None
    if path is not None and path.exists():
        click.echo(Color.red(f"\n  ERROR: {path} already exists\n"), err=True)
        sys.exit(2)

    vm = VM(account=node, ledger=Ledger(node, path))
    vm.deploy(auction_program(auctioneer.address))

    click.echo()
    click.echo(Color.bold(f"  {BAR_HEAVY}"))
    click.echo(Color.bold(  "  recordledger  ·  Sealed-bid Auction"))
    click.echo(Color.bold(f"  {BAR_HEAVY}"))
    click.echo()
    click.echo(row_info("Auctioneer", auctioneer.address))
    click.echo(row_info("Bidder A", bidder_a.address))
    click.echo(row_info("Bidder B", bidder_b.address))
    click.echo()

    try:
        tx_a = vm.execute_as(bidder_a, "auction.aleo", "place_bid",
                             bidder=bidder_a.address, amount=amount_a)
        bid_a = tx_a.outputs[0]
        click.echo(row_ok("place_bid", f"A bids {amount_a}  ->  {bid_a.ref[:20]}..."))

        tx_b = vm.execute_as(bidder_b, "auction.aleo", "place_bid",
                             bidder=bidder_b.address, amount=amount_b)
        bid_b = tx_b.outputs[0]
        click.echo(row_ok("place_bid", f"B bids {amount_b}  ->  {bid_b.ref[:20]}..."))

        resolved = vm.execute_as(auctioneer, "auction.aleo", "resolve",
                                 first=bid_a, second=bid_b).outputs[0]
        winner = "A" if resolved["bidder"] == bidder_a.address else "B"
        click.echo(row_ok("resolve", f"bidder {winner} wins with {resolved['amount']}"))

        finished = vm.execute_as(auctioneer, "auction.aleo", "finish",
                                 bid=resolved).outputs[0]
        click.echo(row_ok("finish", f"winning bid returned to bidder {winner}"))
        click.echo(row_info("", finished.to_literal()))
    except RecordLedgerError as e:
        click.echo(row_fail("error", f"{e.kind}: {e}"))
        sys.exit(1)

    try:
        vm.execute_as(auctioneer, "auction.aleo", "finish", bid=bid_b)
    except AlreadySpent as e:
        click.echo(row_ok("finish again", f"refused: {e.kind}"))
    else:
        click.echo(row_fail("finish again", "an already-spent bid was accepted"))
        sys.exit(1)

    stats = vm.ledger.get_stats()
    click.echo()
    click.echo(f"  {BAR_LIGHT}")
    click.echo(row_info("Transactions", ", ".join(
        f"{k}: {v}" for k, v in sorted(stats["by_status"].items())
    )))
    if path is not None:
        click.echo(row_info("Ledger", str(path)))
    click.echo(f"  {BAR_LIGHT}")
    click.echo()

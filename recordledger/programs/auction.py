"""
First-price sealed-bid auction.

    place_bid(bidder, amount) -> Bid      caller must be `bidder`
    resolve(first, second)    -> Bid      caller must be the auctioneer
    finish(bid)               -> Bid      caller must be the auctioneer

Bids are owned by the auctioneer until finish() hands the winning bid back
to its bidder with is_winner set. Resolving compares amounts only and the
first bid wins ties, so the outcome never depends on anything but the
argument order the auctioneer chose.

No mapping state is used.
"""

from recordledger.core.types import ADDRESS, BOOLEAN, U64
from recordledger.runtime.auth import caller_is, caller_is_arg
from recordledger.runtime.program import Program


def auction_program(auctioneer: str, program_id: str = "auction.aleo") -> Program:
    """Build the auction program for a fixed auctioneer address."""
    ADDRESS.check(auctioneer, "auctioneer")

    auction = Program(program_id)
    Bid = auction.record("Bid", bidder=ADDRESS, amount=U64, is_winner=BOOLEAN)
    is_auctioneer = caller_is(auctioneer, role="auctioneer")

    @auction.transition(
        inputs={"bidder": ADDRESS, "amount": U64},
        requires=caller_is_arg("bidder"),
    )
    def place_bid(ctx, bidder, amount):
        return ctx.new_record(
            Bid,
            owner=auctioneer,
            bidder=bidder,
            amount=amount,
            is_winner=False,
        )

    @auction.transition(
        inputs={"first": Bid, "second": Bid},
        requires=is_auctioneer,
    )
    def resolve(ctx, first, second):
        winner = first if first["amount"] >= second["amount"] else second
        return ctx.new_record(
            Bid,
            owner=auctioneer,
            bidder=winner["bidder"],
            amount=winner["amount"],
            is_winner=winner["is_winner"],
        )

    @auction.transition(
        inputs={"bid": Bid},
        requires=is_auctioneer,
    )
    def finish(ctx, bid):
        return ctx.new_record(
            Bid,
            owner=bid["bidder"],
            bidder=bid["bidder"],
            amount=bid["amount"],
            is_winner=True,
        )

    return auction

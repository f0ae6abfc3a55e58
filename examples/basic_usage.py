"""
recordledger: Basic Usage Example

Demonstrates:
- Deploying the auction and token programs on an in-memory VM
- Private records moving between owners
- Public balances updated by finalize
- A rejected transaction leaving no trace but its log entry
"""

from recordledger import VM, Account, ArithmeticOverflow, auction_program, token_program


def main():
    """Basic recordledger usage."""

    print("=" * 60)
    print("recordledger: Basic Usage Example")
    print("=" * 60)
    print()

    auctioneer = Account.generate()
    alice = Account.generate()
    bob = Account.generate()

    vm = VM()
    vm.deploy(auction_program(auctioneer.address))
    vm.deploy(token_program())
    print(f"VM ready: {vm}")
    print()

    # 1. Auction
    print("1. Sealed-bid auction")
    bid_a = vm.execute_as(alice, "auction.aleo", "place_bid",
                          bidder=alice.address, amount=100).outputs[0]
    bid_b = vm.execute_as(bob, "auction.aleo", "place_bid",
                          bidder=bob.address, amount=150).outputs[0]
    resolved = vm.execute_as(auctioneer, "auction.aleo", "resolve",
                             first=bid_a, second=bid_b).outputs[0]
    winner = vm.execute_as(auctioneer, "auction.aleo", "finish",
                           bid=resolved).outputs[0]
    print(f"   winner record: {winner.to_literal()}")
    print()

    # 2. Token
    print("2. Token balances")
    vm.execute_as(alice, "token.aleo", "mint_public", receiver=alice.address, amount=50)
    vm.execute_as(alice, "token.aleo", "transfer_public_to_private",
                  receiver=bob.address, amount=20)
    print(f"   alice public balance: {vm.mapping_value('token.aleo', 'account', alice.address)}")
    for token in vm.records_of(bob.address, "token.aleo"):
        print(f"   bob private token:    {token.to_literal()}")
    print()

    # 3. Rejection
    print("3. Overdraft")
    try:
        vm.execute_as(alice, "token.aleo", "transfer_public", receiver=bob.address, amount=31)
    except ArithmeticOverflow as e:
        print(f"   rejected: {e.kind}: {e}")
    print(f"   alice public balance: {vm.mapping_value('token.aleo', 'account', alice.address)}")
    print()

    stats = vm.ledger.get_stats()
    print("=" * 60)
    print(f"Transactions: {stats['by_status']}")
    print(f"Log valid:    {vm.ledger.verify() == []}")
    print("=" * 60)


if __name__ == "__main__":
    main()

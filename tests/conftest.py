"""
Shared fixtures.

Every test gets fresh, ephemeral accounts and an in-memory VM with the
auction and token programs deployed.
"""

import logging

import pytest

from recordledger import VM, Account, auction_program, token_program


@pytest.fixture(autouse=True)
def _reset_logging():
    """Drop handlers installed by configure_logging() so they never outlive a test."""
    yield
    logger = logging.getLogger("recordledger")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    logger.setLevel(logging.NOTSET)


@pytest.fixture
def auctioneer() -> Account:
    return Account.generate()


@pytest.fixture
def alice() -> Account:
    return Account.generate()


@pytest.fixture
def bob() -> Account:
    return Account.generate()


@pytest.fixture
def vm(auctioneer) -> VM:
    machine = VM()
    machine.deploy(auction_program(auctioneer.address))
    machine.deploy(token_program())
    return machine


@pytest.fixture
def place_bid(vm):
    """place_bid(account, amount) -> Bid record, signed by the bidder."""
    def _place(account: Account, amount: int):
        tx = vm.execute_as(
            account, "auction.aleo", "place_bid",
            bidder=account.address, amount=amount,
        )
        return tx.outputs[0]
    return _place

"""
recordledger keygen: create an account key and print its address.
"""

import sys
from pathlib import Path

import click

from recordledger.core.crypto import Account


@click.command(name="keygen")
@click.argument("path", type=click.Path(dir_okay=False))
@click.option("--force", is_flag=True, default=False, help="Overwrite an existing key file.")
def keygen_command(path: str, force: bool) -> None:
    """
    Write a new Ed25519 account key to PATH (PEM) and print its address.

    \b
    Examples:
      recordledger keygen keys/auctioneer.pem
    """
    key_path = Path(path)
    if key_path.exists() and not force:
        click.echo(f"Key file already exists: {key_path} (use --force to overwrite)", err=True)
        sys.exit(2)

    account = Account.generate()
    account.save(key_path)
    click.echo(account.address)

"""
recordledger/cli/__init__.py

recordledger CLI: root Click command group.

Registered in pyproject.toml as:

    [project.scripts]
    recordledger = "recordledger.cli:cli"

Adding a new command:
    1. Create recordledger/cli/your_command.py with a @click.command()
    2. Import it here
    3. cli.add_command(your_command)
"""

import click

from recordledger.cli.demo import demo_command
from recordledger.cli.keygen import keygen_command
from recordledger.cli.verify import verify_command


@click.group()
@click.version_option(package_name="recordledger")
def cli() -> None:
    """
    recordledger: record-based confidential ledger.

    \b
    Commands:
      demo      Run the sealed-bid auction end to end.
      keygen    Create an account key and print its address.
      verify    Verify a transaction log: chain, hashes, signatures.

    \b
    Quick start:
      recordledger demo --ledger demo.jsonl
      recordledger verify demo.jsonl
    """
    pass


cli.add_command(demo_command)
cli.add_command(keygen_command)
cli.add_command(verify_command)

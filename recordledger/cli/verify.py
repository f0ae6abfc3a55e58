"""
recordledger/cli/verify.py

recordledger verify: transaction log verification
===================================================

Usage:
    recordledger verify <ledger>                  Human output (default)
    recordledger verify <ledger> --format json    Machine-readable JSON
    recordledger verify <ledger> --quiet          Exit code only
    recordledger verify <ledger> --no-color       Disable ANSI

Exit codes:
    0  Log fully valid  (chain + data hashes + signatures)
    1  Log has violations
    2  Error  (file missing, malformed JSON)
"""

import json
import sys
import time
from pathlib import Path
from typing import List

import click

from recordledger.cli._output import BAR_HEAVY, BAR_LIGHT, Color, row_fail, row_info, row_ok
from recordledger.core.exceptions import LedgerError
from recordledger.ledger.ledger import Ledger


# ── CLI command ───────────────────────────────────────────────────────────────

@click.command(name="verify")
@click.argument("ledger", type=click.Path(exists=False))
@click.option(
    "--format", "fmt",
    type=click.Choice(["human", "json"], case_sensitive=False),
    default="human",
    show_default=True,
    help="Output format: human (default) or json (CI/automation).",
)
@click.option(
    "--quiet",
    is_flag=True,
    default=False,
    help="Suppress all output. Use exit code only (0=valid, 1=invalid, 2=error).",
)
@click.option(
    "--no-color",
    is_flag=True,
    default=False,
    help="Disable ANSI color output.",
)
def verify_command(ledger: str, fmt: str, quiet: bool, no_color: bool) -> None:
    """
    Verify a transaction log: hash chain, data hashes and signatures.

    LEDGER is the path to a .jsonl transaction log.

    \b
    Examples:
      recordledger verify data/ledger.jsonl
      recordledger verify data/ledger.jsonl --format json
      recordledger verify data/ledger.jsonl --quiet && echo "clean"
    """
    Color.configure(not no_color)
    fmt = fmt.lower()
    ledger_path = Path(ledger)

    if not ledger_path.exists():
        _emit_error(f"Ledger not found: {ledger}", fmt, quiet)
        sys.exit(2)

    t_start = time.perf_counter()
    try:
        log = Ledger(account=None, ledger_path=ledger_path, verify_on_load=False)
    except LedgerError as e:
        _emit_error(str(e), fmt, quiet)
        sys.exit(2)

    violations = log.verify()
    elapsed = time.perf_counter() - t_start
    stats = log.get_stats()
    ledger_valid = not violations

    if quiet:
        sys.exit(0 if ledger_valid else 1)

    if fmt == "json":
        _output_json(ledger_path, stats, violations, elapsed, ledger_valid)
    else:
        _output_human(ledger_path, log, stats, violations, elapsed, ledger_valid)

    sys.exit(0 if ledger_valid else 1)


# ── Human output ──────────────────────────────────────────────────────────────

def _output_human(
    ledger_path:  Path,
    log:          Ledger,
    stats:        dict,
    violations:   List[str],
    elapsed:      float,
    ledger_valid: bool,
) -> None:
    total = stats["total_entries"]
    signers = sorted({e.signer for e in log.get_all_entries()})

    click.echo()
    click.echo(Color.bold(f"  {BAR_HEAVY}"))
    click.echo(Color.bold(  "  recordledger  ·  Transaction Log Verification"))
    click.echo(Color.bold(f"  {BAR_HEAVY}"))
    click.echo()

    click.echo(row_info("Ledger",  str(ledger_path)))
    click.echo(row_info("Entries", f"{total:,}"))
    click.echo(row_info("Signers", ", ".join(s[:20] + "..." for s in signers) or "-"))
    click.echo()

    chain_v = [v for v in violations if v.startswith(("chain break", "index"))]
    data_v  = [v for v in violations if v.startswith("data hash")]
    sig_v   = [v for v in violations if v.startswith("invalid signature")]

    if not chain_v:
        click.echo(row_ok("Chain", "intact"))
    else:
        click.echo(row_fail("Chain", Color.red(f"{len(chain_v)} break(s) detected")))

    if not data_v:
        click.echo(row_ok("Data hashes", f"{total:,} / {total:,} match"))
    else:
        click.echo(row_fail("Data hashes", Color.red(f"{len(data_v)} mismatch(es)")))

    if not sig_v:
        click.echo(row_ok("Signatures", f"{total:,} / {total:,} valid"))
    else:
        click.echo(row_fail(
            "Signatures",
            f"{total - len(sig_v):,} valid  " + Color.red(f"{len(sig_v):,} INVALID"),
        ))

    click.echo()

    by_status = stats["by_status"]
    if by_status:
        counts_str = "  ".join(
            f"{Color.cyan(k)}: {v:,}" for k, v in sorted(by_status.items())
        )
        click.echo(row_info("Transactions", counts_str))
    if stats["first_entry_time"]:
        click.echo(row_info("First entry", stats["first_entry_time"]))
        click.echo(row_info("Last entry", stats["last_entry_time"]))
    if stats["head_hash"]:
        head = stats["head_hash"]
        click.echo(row_info("Chain head", Color.cyan(head[:16] + "..." + head[-8:])))
    click.echo(row_info("Verified", f"{elapsed:.3f}s"))
    click.echo()

    if violations:
        click.echo(f"  {BAR_LIGHT}")
        for v in violations:
            click.echo(f"  {Color.yellow(v)}")
        click.echo(f"  {BAR_LIGHT}")
        click.echo()

    click.echo(f"  {BAR_LIGHT}")
    if ledger_valid:
        click.echo(Color.green(Color.bold(
            "  VALID  ·  0 violations  ·  log integrity confirmed"
        )))
    else:
        click.echo(Color.red(Color.bold(
            f"  INVALID  ·  {len(violations)} violation(s)  ·  log integrity compromised"
        )))
    click.echo(f"  {BAR_LIGHT}")
    click.echo()


# ── JSON output ───────────────────────────────────────────────────────────────

def _output_json(
    ledger_path:  Path,
    stats:        dict,
    violations:   List[str],
    elapsed:      float,
    ledger_valid: bool,
) -> None:
    out = {
        "recordledger_verify": {
            "ledger":           str(ledger_path),
            "total_entries":    stats["total_entries"],
            "by_status":        stats["by_status"],
            "ledger_valid":     ledger_valid,
            "chain_head_hash":  stats["head_hash"],
            "first_timestamp":  stats["first_entry_time"],
            "last_timestamp":   stats["last_entry_time"],
            "elapsed_seconds":  round(elapsed, 3),
            "violation_count":  len(violations),
            "violations":       violations,
        }
    }
    click.echo(json.dumps(out, indent=2))


# ── Error output ──────────────────────────────────────────────────────────────

def _emit_error(msg: str, fmt: str, quiet: bool) -> None:
    """Emit error in the correct format. Never raises."""
    if quiet:
        return
    if fmt == "json":
        click.echo(json.dumps({
            "recordledger_verify": {
                "error":        msg,
                "ledger_valid": False,
            }
        }))
    else:
        click.echo(Color.red(f"\n  ERROR: {msg}\n"), err=True)

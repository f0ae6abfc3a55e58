"""
Token with public and private balances.

Public balances live in the `account` mapping and only change in finalize.
Private balances are `token` records that move between owners by being
consumed and re-created.

    mint_public(receiver, amount)                       → account[receiver] += amount
    mint_private(receiver, amount) -> token
    transfer_public(receiver, amount)                   → account[caller] -= amount
                                                          account[receiver] += amount
    transfer_private(sender, receiver, amount) -> (token, token)
    transfer_private_to_public(sender, receiver, amount) -> token
                                                        → account[receiver] += amount
    transfer_public_to_private(receiver, amount) -> token
                                                        → account[caller] -= amount

All arithmetic is checked. Spending more than a balance raises
ArithmeticOverflow and the whole transaction is rejected.
"""

from typing import Optional

from recordledger.core.types import ADDRESS, U64
from recordledger.runtime.auth import caller_is
from recordledger.runtime.program import Program, Public


def token_program(admin: Optional[str] = None, program_id: str = "token.aleo") -> Program:
    """
    Build the token program. When `admin` is given, only that address may
    mint; otherwise minting is open.
    """
    token = Program(program_id)
    Token = token.record("token", amount=U64)
    token.mapping("account", ADDRESS, U64)

    minter = caller_is(ADDRESS.check(admin, "admin"), role="admin") if admin else None

    # ── Minting ───────────────────────────────────────────────

    @token.transition(
        inputs={"receiver": Public(ADDRESS), "amount": Public(U64)},
        requires=minter,
        finalize=True,
    )
    def mint_public(ctx, receiver, amount):
        ctx.finalize(receiver, amount)

    @token.finalize("mint_public", inputs={"receiver": ADDRESS, "amount": U64})
    def finalize_mint_public(ctx, receiver, amount):
        return ctx.mappings.increment("account", receiver, amount)

    @token.transition(
        inputs={"receiver": ADDRESS, "amount": U64},
        requires=minter,
    )
    def mint_private(ctx, receiver, amount):
        return ctx.new_record(Token, owner=receiver, amount=amount)

    # ── Public transfers ──────────────────────────────────────

    @token.transition(
        inputs={"receiver": Public(ADDRESS), "amount": Public(U64)},
        finalize=True,
    )
    def transfer_public(ctx, receiver, amount):
        ctx.finalize(ctx.caller, receiver, amount)

    @token.finalize(
        "transfer_public",
        inputs={"sender": ADDRESS, "receiver": ADDRESS, "amount": U64},
    )
    def finalize_transfer_public(ctx, sender, receiver, amount):
        ctx.mappings.decrement("account", sender, amount)
        ctx.mappings.increment("account", receiver, amount)

    # ── Private transfers ─────────────────────────────────────

    @token.transition(inputs={"sender": Token, "receiver": ADDRESS, "amount": U64})
    def transfer_private(ctx, sender, receiver, amount):
        difference = U64.sub(sender["amount"], amount)
        remaining = ctx.new_record(Token, owner=sender.owner, amount=difference)
        transferred = ctx.new_record(Token, owner=receiver, amount=amount)
        return remaining, transferred

    # ── Crossing the public/private boundary ──────────────────

    @token.transition(
        inputs={"sender": Token, "receiver": Public(ADDRESS), "amount": Public(U64)},
        finalize=True,
    )
    def transfer_private_to_public(ctx, sender, receiver, amount):
        difference = U64.sub(sender["amount"], amount)
        remaining = ctx.new_record(Token, owner=sender.owner, amount=difference)
        ctx.finalize(receiver, amount)
        return remaining

    @token.finalize(
        "transfer_private_to_public",
        inputs={"receiver": ADDRESS, "amount": U64},
    )
    def finalize_transfer_private_to_public(ctx, receiver, amount):
        ctx.mappings.increment("account", receiver, amount)

    @token.transition(
        inputs={"receiver": ADDRESS, "amount": Public(U64)},
        finalize=True,
    )
    def transfer_public_to_private(ctx, receiver, amount):
        transferred = ctx.new_record(Token, owner=receiver, amount=amount)
        ctx.finalize(ctx.caller, amount)
        return transferred

    @token.finalize(
        "transfer_public_to_private",
        inputs={"sender": ADDRESS, "amount": U64},
    )
    def finalize_transfer_public_to_private(ctx, sender, amount):
        ctx.mappings.decrement("account", sender, amount)

    return token

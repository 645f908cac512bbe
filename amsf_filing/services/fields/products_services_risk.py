"""
Tab 2: Products & Services Risk (sections 2.1 to 2.10).

Payment methods (cheques, wire transfers, virtual currencies), off-plan
sales and the rental management activity.
"""

from amsf_filing.models.managed_property import ManagedProperty
from amsf_filing.models.transaction import RENTAL_THRESHOLD_EUR, Transaction
from amsf_filing.services.fields.context import BY_CLIENT, NON, WITH_CLIENT, oui_non, to_money
from amsf_filing.services.fields.registry import field, setting_field

PAID_BY_CHECK = Transaction.payment_method == "CHECK"
PAID_BY_WIRE = Transaction.payment_method == "WIRE"
PAID_IN_CRYPTO = Transaction.payment_method == "CRYPTO"


# ── 2.1 Cheques with clients ────────────────────────────────────────────


@field("a2101W")
def cheques_with_clients(ctx):
    return oui_non(ctx.transactions(WITH_CLIENT, PAID_BY_CHECK).first() is not None)


@field("a2101WRP")
def cheque_count_with_clients(ctx):
    return ctx.transactions(WITH_CLIENT, PAID_BY_CHECK).count()


@field("a2102W")
def cheque_value_with_clients(ctx):
    return ctx.sum_value(ctx.transactions(WITH_CLIENT, PAID_BY_CHECK))


@field("a2102BW")
def large_cheques_with_clients(ctx):
    return ctx.transactions(
        WITH_CLIENT, PAID_BY_CHECK, Transaction.transaction_value >= RENTAL_THRESHOLD_EUR,
    ).count()


# ── 2.2 Cheques by clients ──────────────────────────────────────────────


@field("a2101B")
def cheques_by_clients(ctx):
    return oui_non(ctx.transactions(BY_CLIENT, PAID_BY_CHECK).first() is not None)


@field("a2102B")
def cheque_count_by_clients(ctx):
    return ctx.transactions(BY_CLIENT, PAID_BY_CHECK).count()


@field("a2102BB")
def cheque_value_by_clients(ctx):
    return ctx.sum_value(ctx.transactions(BY_CLIENT, PAID_BY_CHECK))


# ── 2.3 Wire transfers with clients ─────────────────────────────────────


@field("a2104W")
def wires_with_clients(ctx):
    return oui_non(ctx.transactions(WITH_CLIENT, PAID_BY_WIRE).first() is not None)


@field("a2104WRP")
def wire_count_with_clients(ctx):
    return ctx.transactions(WITH_CLIENT, PAID_BY_WIRE).count()


@field("a2105W")
def wire_value_with_clients(ctx):
    return ctx.sum_value(ctx.transactions(WITH_CLIENT, PAID_BY_WIRE))


# ── 2.7 Virtual currencies ──────────────────────────────────────────────

setting_field("a2201A", "flag", NON)


@field("a2201D")
def crypto_payments(ctx):
    return oui_non(ctx.transactions(PAID_IN_CRYPTO).first() is not None)


@field("a2202")
def crypto_count(ctx):
    return ctx.transactions(PAID_IN_CRYPTO).count()


@field("a2203")
def crypto_value(ctx):
    return ctx.sum_value(ctx.transactions(PAID_IN_CRYPTO))


# ── 2.8 Agent for purchases and sales ───────────────────────────────────

setting_field("aIR2391", "flag", NON)
setting_field("aIR2392", "int", 0)


@field("aIR2393")
def off_plan_value(ctx):
    return to_money(ctx.setting_decimal("air2393"))


# ── 2.9 Agent for rentals ───────────────────────────────────────────────


@field("aIR234")
def managed_properties(ctx):
    return ctx.managed_properties().count()


@field("aIR236")
def rental_transactions(ctx):
    return ctx.rentals().count()


@field("aIR2313")
def high_rent_properties(ctx):
    return ctx.managed_properties(ManagedProperty.monthly_rent >= RENTAL_THRESHOLD_EUR).count()


@field("aIR2316")
def low_rent_properties(ctx):
    return ctx.managed_properties(ManagedProperty.monthly_rent < RENTAL_THRESHOLD_EUR).count()


# ── 2.10 Comments ───────────────────────────────────────────────────────

setting_field("a2501", "text")


@field("a2501A")
def has_products_services_comments(ctx):
    return oui_non(ctx.setting_text("a2501"))

"""
Tab 4: Internal Controls (sections C1.1 to C1.15).

Most answers describe the entity's procedures and come straight from
organization settings (key = lower-cased element code unless noted). The
computed ones draw on clients, trainings and suspicious transaction reports.
"""

from decimal import ROUND_HALF_UP, Decimal

from amsf_filing.models.client import Client
from amsf_filing.models.compliance import StrReport, Training
from amsf_filing.services.fields.context import NON, OUI, oui_non
from amsf_filing.services.fields.distribution_risk import (
    relies_on_foreign_third_parties,
    relies_on_local_third_parties,
)
from amsf_filing.services.fields.registry import field, setting_field

REINFORCED = Client.due_diligence_level == "REINFORCED"


def _trainings(ctx):
    return Training.query.filter(
        Training.organization_id == ctx.organization_id,
        Training.training_date >= ctx.year_start,
        Training.training_date <= ctx.year_end,
    )


def _str_reports(ctx, *criteria):
    return StrReport.query.filter(
        StrReport.organization_id == ctx.organization_id,
        StrReport.kept(),
        StrReport.report_date >= ctx.year_start,
        StrReport.report_date <= ctx.year_end,
        *criteria,
    )


def percentage(part, total) -> Decimal:
    """(part / total) × 100 rounded to 2 places; 0 when total is 0."""
    if not total:
        return Decimal("0.00")
    pct = Decimal(part) * Decimal(100) / Decimal(total)
    return pct.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


# ── C1.1 Structure ──────────────────────────────────────────────────────

setting_field("aC1102A", "int", 0)
setting_field("aC1102", "int", None, key="total_employees")
setting_field("aC1101Z", "text")
setting_field("aC114", "flag", OUI)
setting_field("aC1106", "flag", NON)
setting_field("aC1518A", "flag", NON)

# ── C1.2 Policies and procedures ────────────────────────────────────────

for _code in ("aC1201", "aC1202", "aC1203", "aC1204", "aC1205", "aC1207",
              "aC1209B", "aC1208", "aC1209"):
    setting_field(_code, "flag", OUI)
setting_field("aC1206", "text")
setting_field("aC1209C", "flag", NON)

# ── C1.3 Governance ─────────────────────────────────────────────────────

for _code in ("aC1301", "aC1302", "aC1303", "aC1304"):
    setting_field(_code, "flag", OUI)

# ── C1.4 Compliance and violations ──────────────────────────────────────

setting_field("aC1401", "flag", NON)
setting_field("aC1402", "int", 0)
setting_field("aC1403", "text")


# ── C1.5 Training ───────────────────────────────────────────────────────


@field("aC1501")
def training_provided(ctx):
    return oui_non(_trainings(ctx).first() is not None)


@field("aC1503B")
def staff_trained(ctx):
    return sum(t.staff_count or 0 for t in _trainings(ctx))


@field("aC1506")
def training_sessions(ctx):
    return _trainings(ctx).count()


# ── C1.6 Customer due diligence ─────────────────────────────────────────

for _code in ("aC1625", "aC1626", "aC1627", "aC168", "aC1630", "aC1601", "aC1602",
              "aC1631", "aC1633", "aC1634", "aC1635", "aC1636", "aC1637", "aC1608",
              "aC1635A", "aC1638A", "aC1639A", "aC1641A", "aC1640A", "aC1642A",
              "aC1614", "aC1615", "aC1620", "aC1617", "aC1618", "aC1621"):
    setting_field(_code, "flag", OUI)
for _code in ("aC1629", "aC1622A", "aC1622B"):
    setting_field(_code, "flag", NON)
setting_field("aC1612", "text")
setting_field("aC1619", "text")
setting_field("aC1616C", "text")
setting_field("aC1616B", "text", "A chaque transaction")
setting_field("aC1616A", "text", "Annuellement")


@field("aC1609")
def high_risk_clients(ctx):
    return ctx.clients(Client.risk_level == "HIGH").count()


@field("aC1610")
def medium_risk_clients(ctx):
    return ctx.clients(Client.risk_level == "MEDIUM").count()


@field("aC1611")
def clients_under_cdd(ctx):
    return ctx.clients().count()


@field("aC1612A")
def has_high_risk_clients(ctx):
    return oui_non(high_risk_clients(ctx) > 0)


@field("aC1622F")
def relies_on_third_parties(ctx):
    return oui_non(
        OUI in (relies_on_local_third_parties(ctx), relies_on_foreign_third_parties(ctx))
    )


# ── C1.7 Enhanced due diligence ─────────────────────────────────────────


@field("aC1701")
def new_enhanced_dd_clients(ctx):
    return ctx.new_clients(REINFORCED).count()


@field("aC1702")
def enhanced_dd_clients(ctx):
    return ctx.clients(REINFORCED).count()


@field("aC1703")
def enhanced_dd_share(ctx):
    return percentage(enhanced_dd_clients(ctx), ctx.clients().count())


# ── C1.8 Risk assessments ───────────────────────────────────────────────

for _code in ("aB1801B", "aC1801", "aC1802", "aC1806", "aC1807"):
    setting_field(_code, "flag", OUI)
setting_field("aC1813", "flag", NON)
setting_field("aC1814W", "text")


@field("aC1811")
def high_risk_rated_clients(ctx):
    return high_risk_clients(ctx)


@field("aC1812")
def risk_rated_clients(ctx):
    return ctx.clients(Client.risk_level.isnot(None)).count()


# ── C1.9 to C1.13 Audit, records, sanctions, PEPs, cash ─────────────────

setting_field("aC1904", "flag", NON)
for _code in ("aC11101", "aC11102", "aC11103", "aC11104", "aC11105",
              "aC11201", "aC1125A", "aC12333",
              "aC11301", "aC11304", "aC11305", "aC11306", "aC11307"):
    setting_field(_code, "flag", NON)
setting_field("aC12236", "int", 0)
setting_field("aC12237", "int", 0)
setting_field("aC11302", "text")
setting_field("aC11303", "text")
setting_field("aC11401", "flag", OUI)
setting_field("aC11402", "flag", OUI)
setting_field("aC11403", "text")


# ── C1.14 Suspicious transaction reporting ──────────────────────────────

setting_field("aC11508", "flag", NON)


@field("aC11501B")
def filed_str(ctx):
    return oui_non(_str_reports(ctx).first() is not None)


@field("aC11502")
def str_count(ctx):
    return _str_reports(ctx).count()


@field("aC11504")
def str_linked_to_transaction(ctx):
    return _str_reports(ctx, StrReport.transaction_id.isnot(None)).count()


# ── C1.15 Comments ──────────────────────────────────────────────────────

setting_field("aC11601", "text")


@field("aC116A")
def has_controls_comments(ctx):
    return oui_non(ctx.setting_text("ac11601"))

"""
Tab 3: Distribution Risk (sections 3.1 to 3.7).

Third-party identification, onboarding channels, due diligence structure,
entity finances, rejected and terminated relationships.

"New" always means ``became_client_at`` within the reporting year.
"""

from decimal import Decimal

from amsf_filing.models.client import Client
from amsf_filing.services.fields.context import NON, OUI, oui_non, to_money
from amsf_filing.services.fields.registry import field, setting_field

IS_NATURAL_PERSON = Client.client_type == "NATURAL_PERSON"
IS_LEGAL_ENTITY = Client.client_type == "LEGAL_ENTITY"

LOCAL_THIRD_PARTY = (Client.third_party_cdd.is_(True), Client.third_party_cdd_type == "LOCAL")
FOREIGN_THIRD_PARTY = (Client.third_party_cdd.is_(True), Client.third_party_cdd_type == "FOREIGN")
NON_FACE_TO_FACE = Client.non_face_to_face.is_(True)
INTRODUCED = Client.introduced_by_third_party.is_(True)
SIMPLIFIED = Client.due_diligence_level == "SIMPLIFIED"
REINFORCED = Client.due_diligence_level == "REINFORCED"


def enhanced_dd_bucket(count: int) -> str:
    """AMSF range label for the number of new clients under enhanced due diligence."""
    if count <= 0:
        return "Aucun"
    if count <= 5:
        return "1-5"
    if count <= 10:
        return "6-10"
    return "Plus de 10"


# ── 3.1 Identification ──────────────────────────────────────────────────


@field("a3101")
def relies_on_local_third_parties(ctx):
    return oui_non(ctx.clients(*LOCAL_THIRD_PARTY).first() is not None)


@field("a3102")
def local_third_parties_by_country(ctx):
    return ctx.count_by(
        ctx.clients(*LOCAL_THIRD_PARTY), Client.third_party_cdd_country, Client.id,
    )


@field("a3103")
def relies_on_foreign_third_parties(ctx):
    return oui_non(ctx.clients(*FOREIGN_THIRD_PARTY).first() is not None)


@field("a3104")
def foreign_third_parties_by_country(ctx):
    return ctx.count_by(
        ctx.clients(*FOREIGN_THIRD_PARTY), Client.third_party_cdd_country, Client.id,
    )


@field("a3105")
def new_clients_identified_by_third_parties(ctx):
    return ctx.new_clients(Client.third_party_cdd.is_(True)).count()


# ── 3.2 Onboarding ──────────────────────────────────────────────────────


@field("aB3206")
def new_natural_persons(ctx):
    return ctx.new_clients(IS_NATURAL_PERSON).count()


@field("aB3207")
def new_legal_entities(ctx):
    return ctx.new_clients(IS_LEGAL_ENTITY).count()


@field("a3209")
def has_non_face_to_face(ctx):
    return oui_non(ctx.clients(NON_FACE_TO_FACE).first() is not None)


@field("a3210C")
def new_natural_persons_non_face_to_face(ctx):
    return ctx.new_clients(IS_NATURAL_PERSON, NON_FACE_TO_FACE).count()


@field("a3211C")
def new_legal_entities_non_face_to_face(ctx):
    return ctx.new_clients(IS_LEGAL_ENTITY, NON_FACE_TO_FACE).count()


@field("a3201")
def has_introduced_clients(ctx):
    return oui_non(ctx.clients(INTRODUCED).first() is not None)


@field("a3202")
def introduced_by_country(ctx):
    return ctx.count_by(ctx.clients(INTRODUCED), Client.introducer_country, Client.id)


@field("a3203")
def new_introduced_clients(ctx):
    return ctx.new_clients(INTRODUCED).count()


@field("a3204")
def introduced_natural_persons(ctx):
    return ctx.clients(INTRODUCED, IS_NATURAL_PERSON).count()


@field("a3205")
def introduced_legal_entities_and_trusts(ctx):
    return ctx.clients(INTRODUCED, Client.client_type.in_(("LEGAL_ENTITY", "TRUST"))).count()


# ── 3.3 Structure ───────────────────────────────────────────────────────

setting_field("aIR33LF", "text", "SAM")
setting_field("a3306A", "text")
setting_field("a3307", "flag", NON)
setting_field("a3308", "text")
setting_field("a3210B", "flag", NON)
setting_field("a3211B", "text")
setting_field("a3210", "flag", NON)
setting_field("a3211", "text")


@field("a3301")
def simplified_dd_clients(ctx):
    return ctx.clients(SIMPLIFIED).count()


@field("aIR328")
def applies_simplified_dd(ctx):
    return oui_non(simplified_dd_clients(ctx) > 0)


@field("a3302")
def simplified_dd_applied(ctx):
    return oui_non(simplified_dd_clients(ctx) > 0)


@field("a3303")
def new_simplified_dd_clients(ctx):
    return ctx.new_clients(SIMPLIFIED).count()


@field("a3304C")
def applies_enhanced_dd(ctx):
    return oui_non(ctx.clients(REINFORCED).first() is not None)


@field("a3304")
def enhanced_dd_applied(ctx):
    return oui_non(ctx.clients(REINFORCED).first() is not None)


@field("a3305")
def new_enhanced_dd_range(ctx):
    return enhanced_dd_bucket(ctx.new_clients(REINFORCED).count())


@field("a3306")
def enhanced_dd_natural_persons_by_nationality(ctx):
    return ctx.count_by(ctx.natural_persons(REINFORCED), Client.nationality, Client.id)


@field("a3306B")
def enhanced_dd_by_residence(ctx):
    return ctx.count_by(ctx.clients(REINFORCED), Client.residence_country, Client.id)


# ── 3.4 Entity finances ─────────────────────────────────────────────────

setting_field("a3802", "decimal", Decimal("0"))
setting_field("a3803", "decimal", Decimal("0"))


@field("a3804")
def management_revenue(ctx):
    total = sum(
        (p.annual_revenue(ctx.year) for p in ctx.managed_properties()),
        Decimal("0"),
    )
    return to_money(total)


@field("a381")
def total_revenue(ctx):
    """Configured total, otherwise the sum of the three revenue lines."""
    configured = ctx.setting_decimal("total_revenue", None)
    if configured is not None:
        return to_money(configured)
    return to_money(
        ctx.setting_decimal("a3802") + ctx.setting_decimal("a3803") + management_revenue(ctx)
    )


# ── 3.5 Rejected relationships ──────────────────────────────────────────

setting_field("a3402", "flag", OUI)


@field("a3401")
def rejected_prospects(ctx):
    return ctx.new_clients(Client.rejection_reason.isnot(None)).count()


@field("a3403")
def rejected_for_aml(ctx):
    return ctx.new_clients(Client.rejection_reason == "AML_CFT").count()


# ── 3.6 Terminated relationships ────────────────────────────────────────

setting_field("a3415", "flag", OUI)


@field("a3414")
def terminated_relationships(ctx):
    return ctx.clients(ctx.in_year(Client.relationship_ended_at)).count()


@field("a3416")
def terminated_for_aml(ctx):
    return ctx.clients(
        ctx.in_year(Client.relationship_ended_at),
        Client.relationship_end_reason == "AML_CONCERN",
    ).count()


# ── 3.7 Comments ────────────────────────────────────────────────────────

setting_field("a3701", "text")


@field("a3701A")
def has_distribution_risk_comments(ctx):
    return oui_non(ctx.setting_text("a3701"))

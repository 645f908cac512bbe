"""
Tab 1: Customer Risk (sections 1.1 to 1.12).

Client totals by type, nationality and residence; beneficial owners;
trusts; PEPs; VASPs; Monegasque client sectors.

Count rules:
    - purchases and sales count 1 each
    - a rental counts one unit per lease month when the monthly rent is
      at least EUR 10,000, otherwise 0
    - a1105B == a1403B + a1403R + a1502B + a1806TOLA
"""

from sqlalchemy import or_

from amsf_filing.models.client import (
    BUSINESS_SECTORS,
    HNWI_THRESHOLD,
    UHNWI_THRESHOLD,
    BeneficialOwner,
    Client,
)
from amsf_filing.models.transaction import PURCHASE_SALE_TYPES, Transaction
from amsf_filing.services.fields.context import (
    BY_CLIENT,
    JURISDICTION,
    NON,
    OUI,
    WITH_CLIENT,
    oui_non,
)
from amsf_filing.services.fields.registry import field, setting_field

NOT_DUAL_AGENT = or_(Transaction.agency_role.is_(None), Transaction.agency_role != "DUAL_AGENT")

IS_NATURAL_PERSON = Client.client_type == "NATURAL_PERSON"
IS_LEGAL_ENTITY = Client.client_type == "LEGAL_ENTITY"
IS_TRUST = Client.client_type == "TRUST"

IS_HNWI = BeneficialOwner.net_worth_eur > HNWI_THRESHOLD
IS_UHNWI = BeneficialOwner.net_worth_eur > UHNWI_THRESHOLD


def _exists(query):
    return query.first() is not None


def _five_year_purchase_sales(ctx):
    return ctx.five_year_transactions(Transaction.transaction_type.in_(PURCHASE_SALE_TYPES))


# ── 1.1 Active in reporting cycle ───────────────────────────────────────


@field("aACTIVE")
def has_activity(ctx):
    return oui_non(_exists(ctx.transactions()))


@field("aACTIVEPS")
def has_purchase_sale_activity(ctx):
    return oui_non(_exists(ctx.purchase_sales()))


@field("aACTIVERENTALS")
def has_rental_activity(ctx):
    return oui_non(_exists(ctx.qualifying_rentals()))


# ── 1.2 Clients summary ─────────────────────────────────────────────────


@field("a1101")
def total_clients(ctx):
    return ctx.clients().count()


@field("a1102")
def monegasque_nationals(ctx):
    return ctx.natural_persons(Client.nationality == "MC").count()


@field("a1103")
def foreign_residents(ctx):
    return ctx.natural_persons(
        Client.residence_status == "RESIDENT", Client.nationality != "MC",
    ).count()


@field("a1104")
def non_residents(ctx):
    return ctx.natural_persons(Client.residence_status == "NON_RESIDENT").count()


@field("a1105B")
def transactions_by_clients(ctx):
    purchase_sales = ctx.count_units(ctx.purchase_sales(BY_CLIENT))
    rentals = ctx.count_units(ctx.rentals(BY_CLIENT, IS_NATURAL_PERSON))
    return purchase_sales + rentals


@field("a1106B")
def funds_by_clients(ctx):
    return ctx.sum_value(ctx.purchase_sales(BY_CLIENT))


@field("a1106BRENTALS")
def rental_funds_by_clients(ctx):
    return ctx.sum_rental_value(ctx.qualifying_rentals(BY_CLIENT))


@field("a1105W")
def transactions_with_clients(ctx):
    return (
        ctx.count_units(ctx.purchase_sales(WITH_CLIENT))
        + ctx.count_units(ctx.rentals(WITH_CLIENT))
    )


@field("a1106W")
def funds_with_clients(ctx):
    return ctx.sum_value(ctx.purchase_sales(WITH_CLIENT))


# ── 1.3 Beneficial owners ───────────────────────────────────────────────


def _bo_by_nationality(ctx, *criteria):
    return ctx.count_by(
        ctx.beneficial_owners(*criteria), BeneficialOwner.nationality, BeneficialOwner.id,
    )


setting_field("a1204S", "flag", OUI)
setting_field("a1203D", "flag", NON)
setting_field("a1204S1", "flag", OUI)


@field("a1204O")
def bo_by_nationality(ctx):
    return _bo_by_nationality(ctx)


@field("a1203")
def bo_foreign_residents(ctx):
    return _bo_by_nationality(
        ctx, BeneficialOwner.residence_country == "MC", BeneficialOwner.nationality != "MC",
    )


@field("a1202O")
def bo_non_residents(ctx):
    return _bo_by_nationality(ctx, BeneficialOwner.residence_country != "MC")


@field("a1202OB")
def bo_of_legal_entities(ctx):
    return ctx.beneficial_owners(IS_LEGAL_ENTITY).count()


@field("a120425O")
def bo_25_percent(ctx):
    return _bo_by_nationality(ctx, BeneficialOwner.ownership_percentage >= 25)


@field("a1207O")
def bo_hnwi(ctx):
    return _bo_by_nationality(ctx, IS_HNWI)


@field("a1210O")
def bo_uhnwi(ctx):
    return _bo_by_nationality(ctx, IS_UHNWI)


# ── 1.4 Distinguishing client types ─────────────────────────────────────


@field("a11201BCD")
def has_hnwi_owners(ctx):
    return oui_non(_exists(ctx.beneficial_owners(IS_HNWI)))


@field("a11201BCDU")
def has_uhnwi_owners(ctx):
    return oui_non(_exists(ctx.beneficial_owners(IS_UHNWI)))


@field("a1801")
def has_trusts(ctx):
    return oui_non(_exists(ctx.trusts()))


@field("a13601")
def has_vasps(ctx):
    return oui_non(_exists(ctx.clients(Client.is_vasp.is_(True))))


# ── 1.5 Natural persons ─────────────────────────────────────────────────

setting_field("aIR129", "flag", NON)
setting_field("aIR1210", "int", 0)


@field("a1401R")
def natural_persons_with_rentals(ctx):
    return ctx.count_distinct_clients(ctx.rentals(IS_NATURAL_PERSON))


@field("a1401")
def natural_persons_by_nationality(ctx):
    return ctx.count_by(ctx.natural_persons(), Client.nationality, Client.id)


@field("a1403B")
def natural_person_purchase_sales(ctx):
    return ctx.count_units(ctx.purchase_sales(BY_CLIENT, IS_NATURAL_PERSON))


@field("a1404B")
def natural_person_funds(ctx):
    return ctx.sum_value(ctx.purchase_sales(BY_CLIENT, IS_NATURAL_PERSON))


@field("a1403R")
def natural_person_rental_months(ctx):
    return ctx.count_units(ctx.rentals(BY_CLIENT, IS_NATURAL_PERSON))


@field("aIR233")
def clients_by_jurisdiction(ctx):
    return ctx.count_by(ctx.clients(), JURISDICTION, Client.id)


@field("aIR233B")
def unique_buyers(ctx):
    return ctx.count_distinct_clients(
        ctx.transactions(Transaction.transaction_type == "PURCHASE", NOT_DUAL_AGENT)
    )


@field("aIR233S")
def unique_sellers(ctx):
    return ctx.count_distinct_clients(
        ctx.transactions(Transaction.transaction_type == "SALE", NOT_DUAL_AGENT)
    )


@field("aIR235B_1")
def purchase_count(ctx):
    return ctx.transactions(Transaction.transaction_type == "PURCHASE").count()


@field("aIR235B_2")
def purchase_value(ctx):
    return ctx.sum_value(ctx.transactions(Transaction.transaction_type == "PURCHASE"))


@field("aIR235S")
def sale_count(ctx):
    return ctx.transactions(Transaction.transaction_type == "SALE").count()


@field("aIR117")
def investment_purchase_sales(ctx):
    return ctx.purchase_sales(Transaction.purchase_purpose == "INVESTMENT").count()


@field("aIR237B")
def five_year_count_by_jurisdiction(ctx):
    return ctx.count_by(_five_year_purchase_sales(ctx), JURISDICTION, Transaction.id)


@field("aIR238B")
def value_by_jurisdiction(ctx):
    return ctx.sum_by(ctx.purchase_sales(), JURISDICTION)


@field("aIR239B")
def five_year_value_by_jurisdiction(ctx):
    return ctx.sum_by(_five_year_purchase_sales(ctx), JURISDICTION)


# ── 1.6 Legal persons ───────────────────────────────────────────────────

setting_field("a155", "flag", NON)


@field("a1501")
def legal_entities_by_country(ctx):
    return ctx.count_by(ctx.legal_entities(), Client.incorporation_country, Client.id)


@field("a1502B")
def legal_entity_purchase_sales(ctx):
    return ctx.count_units(ctx.purchase_sales(BY_CLIENT, IS_LEGAL_ENTITY))


@field("a1503B")
def legal_entity_funds(ctx):
    return ctx.sum_value(ctx.purchase_sales(BY_CLIENT, IS_LEGAL_ENTITY))


@field("a11206B")
def monegasque_legal_entities(ctx):
    return ctx.legal_entities(Client.incorporation_country == "MC").count()


@field("a112012B")
def foreign_legal_entities(ctx):
    return ctx.legal_entities(Client.incorporation_country != "MC").count()


# ── 1.7 Trusts and other legal arrangements ─────────────────────────────

setting_field("a11006", "text")


@field("a1802BTOLA")
def identifies_trusts(ctx):
    return oui_non(_exists(ctx.trusts()))


@field("a1802TOLA")
def trust_count(ctx):
    return ctx.trusts().count()


@field("a1807ATOLA")
def monegasque_trusts(ctx):
    return ctx.trusts(Client.incorporation_country == "MC").count()


@field("a11001BTOLA")
def has_trust_transactions(ctx):
    return oui_non(_exists(ctx.transactions(IS_TRUST)))


@field("a1806TOLA")
def trust_purchase_sales(ctx):
    return ctx.count_units(ctx.purchase_sales(BY_CLIENT, IS_TRUST))


@field("a1807TOLA")
def trust_funds(ctx):
    return ctx.sum_value(ctx.purchase_sales(BY_CLIENT, IS_TRUST))


@field("a1808")
def professional_trustees_by_nationality(ctx):
    return ctx.count_by(
        ctx.trusts(Client.is_professional_trustee.is_(True)),
        Client.trustee_nationality, Client.id,
    )


@field("a1809")
def trusts_by_country(ctx):
    return ctx.count_by(ctx.trusts(), Client.incorporation_country, Client.id)


@field("a3208TOLA")
def new_trusts(ctx):
    return ctx.new_clients(IS_TRUST).count()


@field("a3212CTOLA")
def new_trusts_non_face_to_face(ctx):
    return ctx.new_clients(IS_TRUST, Client.non_face_to_face.is_(True)).count()


# ── 1.8 PEPs ────────────────────────────────────────────────────────────

IS_PEP = Client.is_pep.is_(True)


@field("a11301")
def has_pep_clients(ctx):
    return oui_non(_exists(ctx.clients(IS_PEP)))


@field("a11302RES")
def peps_by_residence(ctx):
    return ctx.count_by(ctx.clients(IS_PEP), Client.residence_country, Client.id)


@field("a11302")
def peps_by_nationality(ctx):
    return ctx.count_by(ctx.clients(IS_PEP), Client.nationality, Client.id)


@field("a11304B")
def pep_purchase_sales(ctx):
    return ctx.purchase_sales(IS_PEP).count()


@field("a11305B")
def pep_funds(ctx):
    return ctx.sum_value(ctx.purchase_sales(IS_PEP))


@field("a11307")
def pep_beneficial_owners(ctx):
    return ctx.beneficial_owners(BeneficialOwner.is_pep.is_(True)).count()


@field("a11309B")
def pep_owner_purchase_sales(ctx):
    return ctx.purchase_sales(
        Client.beneficial_owners.any(BeneficialOwner.is_pep.is_(True))
    ).count()


# ── 1.9 Virtual asset service providers ─────────────────────────────────


def _vasp_fields(vasp_type, identifies, by_country, tx_count, funds, has_clients):
    of_type = (Client.is_vasp.is_(True), Client.vasp_type == vasp_type)

    setting_field(identifies, "flag", NON)

    @field(by_country)
    def clients_by_country(ctx):
        return ctx.count_by(ctx.clients(*of_type), JURISDICTION, Client.id)

    @field(tx_count)
    def transaction_count(ctx):
        return ctx.transactions(*of_type).count()

    @field(funds)
    def transaction_funds(ctx):
        return ctx.sum_value(ctx.transactions(*of_type))

    @field(has_clients)
    def has_vasp_type(ctx):
        return oui_non(_exists(ctx.clients(*of_type)))


_vasp_fields("CUSTODIAN", "a13601A", "a13601CW", "a13603BB", "a13604BB", "a13602A")
_vasp_fields("EXCHANGE", "a13601B", "a13601EP", "a13603AB", "a13604AB", "a13602B")
_vasp_fields("ICO", "a13601C", "a13601ICO", "a13603CACB", "a13604CB", "a13602C")
_vasp_fields("OTHER", "a13601C2", "a13601OTHER", "a13603DB", "a13604DB", "a13602D")

setting_field("a13604E", "text")


@field("a13501B")
def vasp_clients(ctx):
    return oui_non(_exists(ctx.clients(Client.is_vasp.is_(True))))


# ── 1.10 Second nationalities ───────────────────────────────────────────


@field("a1402")
def second_nationalities(ctx):
    return ctx.count_by(ctx.natural_persons(), Client.second_nationality, Client.id)


# ── 1.11 Monegasque client types ────────────────────────────────────────

# Element codes in the order of BUSINESS_SECTORS
SECTOR_ELEMENTS = (
    "a11502B", "a11602B", "a11702B", "a11802B", "a12002B", "a12102B", "a12202B",
    "a12302B", "a12302C", "a12402B", "a12502B", "a12602B", "a12702B", "a12802B",
    "a12902B", "a13002B", "a13202B", "a13302B", "a13402B", "a13702B", "a13802B",
    "a13902B", "a14102B", "a14202B", "a14302B", "a14402B", "a14502B", "a14602B",
    "a14702B",
)


def _sector_field(code, sector):
    @field(code)
    def monegasque_clients_in_sector(ctx):
        return ctx.clients(JURISDICTION == "MC", Client.business_sector == sector).count()


for _code, _sector in zip(SECTOR_ELEMENTS, BUSINESS_SECTORS):
    _sector_field(_code, _sector)


@field("aC171")
def monegasque_purchase_sales(ctx):
    return oui_non(_exists(ctx.purchase_sales(JURISDICTION == "MC")))


@field("aMLES")
def monegasque_legal_entities_by_form(ctx):
    return ctx.count_by(
        ctx.legal_entities(Client.incorporation_country == "MC"),
        Client.legal_entity_type, Client.id,
    )


# ── 1.12 Comments ───────────────────────────────────────────────────────

setting_field("a14001", "text")


@field("a14801")
def has_customer_risk_comments(ctx):
    return oui_non(ctx.setting_text("a14001"))

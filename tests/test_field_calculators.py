"""
Field calculator tests.

Covers:
  - End-to-end counts over kept / discarded clients
  - Purchase/sale funds vs. rental exclusion
  - Rental threshold (10 000 € / month) and lease-month count units
  - Transactions of a discarded client are ignored
  - Beneficial owner wealth tiers by nationality
  - Parent / child consistency (a1105B == sum of per-client-type counts)
  - Settings-backed answers and defaults
  - Percentages (0 total → 0.00)
  - Five-year window bounds, dual-agent exclusion, jurisdiction key
  - New clients by onboarding date, not record creation
  - Registry completeness against the shipped manifest
"""

from datetime import date, datetime, timezone
from decimal import Decimal

import pytest

from amsf_filing.core.exceptions import ValidationError
from amsf_filing.core.values import Dimensional, Scalar
from amsf_filing.models import db
from amsf_filing.models.client import BeneficialOwner, Client
from amsf_filing.models.organization import Setting
from amsf_filing.models.transaction import Transaction
from amsf_filing.services.calculation_engine import calculate_all, calculate_field
from amsf_filing.services.fields import FIELD_CALCULATORS, check_completeness
from amsf_filing.services.fields.controls import percentage
from amsf_filing.taxonomy.manifest import load_manifest


# ── Helpers ──────────────────────────────────────────────────────────────


def _make_client(org, **kw):
    defaults = dict(
        organization_id=org.id, name="Client", client_type="NATURAL_PERSON",
        nationality="FR", residence_status="NON_RESIDENT",
        became_client_at=datetime(2025, 3, 1, tzinfo=timezone.utc),
    )
    defaults.update(kw)
    c = Client(**defaults)
    db.session.add(c)
    db.session.flush()
    return c


def _make_tx(org, client, **kw):
    defaults = dict(
        organization_id=org.id, client_id=client.id, transaction_type="PURCHASE",
        direction="BY_CLIENT", transaction_date=date(2025, 6, 1),
        transaction_value=Decimal("100000"),
    )
    defaults.update(kw)
    tx = Transaction(**defaults)
    db.session.add(tx)
    db.session.flush()
    return tx


def _calc(code, org, year=2025):
    return calculate_field(code, org, year)


# ═════════════════════════════════════════════════════════════════════════════
# End-to-end scenario
# ═════════════════════════════════════════════════════════════════════════════


class TestEndToEnd:
    def test_client_count_excludes_discarded(self, organization):
        for name in ("A", "B", "C"):
            _make_client(organization, name=name)
        gone = _make_client(organization, name="D")
        gone.discard()
        db.session.commit()

        assert _calc("a1101", organization) == Scalar("3")

    def test_purchase_funds(self, organization):
        c = _make_client(organization)
        _make_tx(organization, c, transaction_value=Decimal("500000"))
        db.session.commit()

        assert _calc("a1106B", organization) == Scalar("500000.00")

    def test_rental_excluded_from_funds_but_counted_in_months(self, organization):
        c = _make_client(organization)
        _make_tx(organization, c, transaction_type="RENTAL",
                 transaction_value=Decimal("15000"), rental_duration_months=6)
        db.session.commit()

        assert _calc("a1106B", organization) == Scalar("0.00")
        assert _calc("a1105B", organization) == Scalar("6")
        assert _calc("a1106BRENTALS", organization) == Scalar("90000.00")

    def test_activity_flags(self, organization):
        assert _calc("aACTIVE", organization) == Scalar("Non")
        c = _make_client(organization)
        _make_tx(organization, c)
        db.session.commit()
        assert _calc("aACTIVE", organization) == Scalar("Oui")
        assert _calc("aACTIVEPS", organization) == Scalar("Oui")
        assert _calc("aACTIVERENTALS", organization) == Scalar("Non")

    def test_other_year_transactions_ignored(self, organization):
        c = _make_client(organization)
        _make_tx(organization, c, transaction_date=date(2024, 12, 31))
        _make_tx(organization, c, transaction_date=date(2026, 1, 1))
        db.session.commit()
        assert _calc("a1105B", organization) == Scalar("0")


# ═════════════════════════════════════════════════════════════════════════════
# Rental threshold
# ═════════════════════════════════════════════════════════════════════════════


class TestRentalThreshold:
    def test_at_threshold_counts_each_month(self, organization):
        c = _make_client(organization)
        _make_tx(organization, c, transaction_type="RENTAL",
                 transaction_value=Decimal("10000"), rental_duration_months=12)
        db.session.commit()
        assert _calc("a1105B", organization) == Scalar("12")

    def test_below_threshold_counts_nothing(self, organization):
        c = _make_client(organization)
        _make_tx(organization, c, transaction_type="RENTAL",
                 transaction_value=Decimal("9999"), rental_duration_months=12)
        db.session.commit()
        assert _calc("a1105B", organization) == Scalar("0")
        assert _calc("aACTIVERENTALS", organization) == Scalar("Non")

    def test_with_client_rentals_counted_separately(self, organization):
        c = _make_client(organization)
        _make_tx(organization, c, direction="WITH_CLIENT", transaction_type="RENTAL",
                 transaction_value=Decimal("12000"), rental_duration_months=3)
        _make_tx(organization, c, direction=None)
        db.session.commit()
        assert _calc("a1105W", organization) == Scalar("4")
        assert _calc("a1105B", organization) == Scalar("0")


class TestDiscardedRecords:
    def test_discarded_transaction_ignored(self, organization):
        c = _make_client(organization)
        tx = _make_tx(organization, c)
        tx.discard()
        db.session.commit()
        assert _calc("a1105B", organization) == Scalar("0")

    def test_transactions_of_discarded_client_ignored(self, organization):
        c = _make_client(organization)
        _make_tx(organization, c, transaction_value=Decimal("250000"))
        c.discard()
        db.session.commit()
        assert _calc("a1106B", organization) == Scalar("0.00")


# ═════════════════════════════════════════════════════════════════════════════
# Dimensional values & beneficial owners
# ═════════════════════════════════════════════════════════════════════════════


class TestBeneficialOwners:
    def _owner(self, client, nationality, net_worth):
        bo = BeneficialOwner(client_id=client.id, name=f"BO {nationality}",
                             nationality=nationality, net_worth_eur=Decimal(net_worth))
        db.session.add(bo)
        return bo

    def test_hnwi_strictly_above_threshold(self, organization):
        c = _make_client(organization, client_type="LEGAL_ENTITY", nationality=None,
                         incorporation_country="MC", legal_entity_type="SCI")
        self._owner(c, "FR", "5000000")
        self._owner(c, "IT", "5000000.01")
        self._owner(c, "IT", "60000000")
        db.session.commit()

        assert _calc("a1207O", organization) == Dimensional({"IT": "2"})
        assert _calc("a1210O", organization) == Dimensional({"IT": "1"})
        assert _calc("a11201BCD", organization) == Scalar("Oui")

    def test_nationality_breakdown(self, organization):
        _make_client(organization, nationality="FR")
        _make_client(organization, nationality="FR")
        _make_client(organization, nationality="MC")
        _make_client(organization, nationality=None)
        db.session.commit()

        assert _calc("a1401", organization) == Dimensional({"FR": "2", "MC": "1"})
        assert _calc("a1102", organization) == Scalar("1")


# ═════════════════════════════════════════════════════════════════════════════
# Parent / child consistency
# ═════════════════════════════════════════════════════════════════════════════


class TestParentChildSums:
    def test_by_client_total_equals_sum_of_children(self, organization):
        person = _make_client(organization)
        company = _make_client(organization, client_type="LEGAL_ENTITY", nationality=None,
                               incorporation_country="LU", legal_entity_type="SARL")
        trust = _make_client(organization, client_type="TRUST", nationality=None,
                             incorporation_country="GB")
        _make_tx(organization, person)
        _make_tx(organization, person, transaction_type="RENTAL",
                 transaction_value=Decimal("11000"), rental_duration_months=5)
        _make_tx(organization, company, transaction_type="SALE")
        _make_tx(organization, company)
        _make_tx(organization, trust)
        db.session.commit()

        values = calculate_all(organization, 2025)
        children = sum(int(values[c].text) for c in ("a1403B", "a1403R", "a1502B", "a1806TOLA"))
        assert int(values["a1105B"].text) == children == 9


# ═════════════════════════════════════════════════════════════════════════════
# Settings-backed calculators
# ═════════════════════════════════════════════════════════════════════════════


class TestSettingsFields:
    def test_default_when_setting_missing(self, organization):
        assert _calc("a1204S", organization) == Scalar("Oui")
        assert _calc("aC1102", organization) == Scalar(None)

    def test_setting_overrides_default(self, organization):
        db.session.add(Setting(organization_id=organization.id, key="a1204s",
                               value="false", value_type="boolean"))
        db.session.add(Setting(organization_id=organization.id, key="total_employees",
                               value="12", value_type="integer"))
        db.session.commit()
        assert _calc("a1204S", organization) == Scalar("Non")
        assert _calc("aC1102", organization) == Scalar("12")

    def test_signatory_from_settings(self, organization):
        db.session.add(Setting(organization_id=organization.id, key="signatory_name",
                               value="  Marie Curie "))
        db.session.commit()
        assert _calc("aS1", organization) == Scalar("Marie Curie")


# ═════════════════════════════════════════════════════════════════════════════
# Percentages & registry
# ═════════════════════════════════════════════════════════════════════════════


class TestPercentage:
    @pytest.mark.parametrize("part,total,expected", [
        (0, 0, "0.00"),
        (5, 0, "0.00"),
        (1, 3, "33.33"),
        (2, 3, "66.67"),
        (4, 4, "100.00"),
    ])
    def test_percentage(self, part, total, expected):
        assert percentage(part, total) == Decimal(expected)

    def test_enhanced_dd_share(self, organization):
        _make_client(organization, due_diligence_level="REINFORCED")
        _make_client(organization, due_diligence_level="STANDARD")
        _make_client(organization)
        _make_client(organization)
        db.session.commit()
        assert _calc("aC1703", organization) == Scalar("25.00")

    def test_enhanced_dd_share_without_clients(self, organization):
        assert _calc("aC1703", organization) == Scalar("0.00")


# ═════════════════════════════════════════════════════════════════════════════
# Windows, roles and keys
# ═════════════════════════════════════════════════════════════════════════════


class TestFiveYearWindow:
    def test_window_start_inclusive(self, organization):
        client = _make_client(organization)
        _make_tx(organization, client, transaction_date=date(2021, 1, 1),
                 transaction_value=Decimal("200000"))
        _make_tx(organization, client, transaction_date=date(2020, 12, 31),
                 transaction_value=Decimal("300000"))
        _make_tx(organization, client, transaction_date=date(2025, 12, 31),
                 transaction_value=Decimal("100000"))
        db.session.commit()

        assert _calc("aIR237B", organization) == Dimensional({"FR": "2"})
        assert _calc("aIR239B", organization) == Dimensional({"FR": "300000.00"})

    def test_rentals_excluded(self, organization):
        client = _make_client(organization)
        _make_tx(organization, client, transaction_type="RENTAL", transaction_date=date(2023, 5, 1),
                 transaction_value=Decimal("20000"), rental_duration_months=12)
        db.session.commit()
        assert _calc("aIR237B", organization) == Dimensional({})


class TestDualAgent:
    def test_dual_agent_not_a_unique_buyer_or_seller(self, organization):
        buyer = _make_client(organization, name="Buyer")
        seller = _make_client(organization, name="Seller")
        both = _make_client(organization, name="Both sides")
        _make_tx(organization, buyer, agency_role="BUYER_AGENT")
        _make_tx(organization, seller, transaction_type="SALE", agency_role="SELLER_AGENT")
        _make_tx(organization, both, agency_role="DUAL_AGENT")
        _make_tx(organization, both, transaction_type="SALE", agency_role="DUAL_AGENT")
        db.session.commit()

        assert _calc("aIR233B", organization) == Scalar("1")
        assert _calc("aIR233S", organization) == Scalar("1")

    def test_missing_role_counted(self, organization):
        buyer = _make_client(organization)
        _make_tx(organization, buyer, agency_role=None)
        db.session.commit()
        assert _calc("aIR233B", organization) == Scalar("1")


class TestJurisdictionKey:
    def test_nationality_or_incorporation_country(self, organization):
        _make_client(organization, name="Person FR", nationality="FR", incorporation_country="LU")
        _make_client(organization, name="Person IT", nationality="IT")
        _make_client(organization, name="SCI", client_type="LEGAL_ENTITY",
                     nationality=None, incorporation_country="LU")
        _make_client(organization, name="Trust", client_type="TRUST",
                     nationality="FR", incorporation_country="LU")
        db.session.commit()

        assert _calc("aIR233", organization) == Dimensional({"FR": "1", "IT": "1", "LU": "2"})


class TestNewClients:
    def test_onboarding_date_not_record_creation(self, organization):
        _make_client(organization, name="Onboarded 2025",
                     became_client_at=datetime(2025, 3, 1, tzinfo=timezone.utc),
                     created_at=datetime(2023, 1, 10, tzinfo=timezone.utc))
        _make_client(organization, name="Imported 2025",
                     became_client_at=datetime(2024, 11, 30, tzinfo=timezone.utc),
                     created_at=datetime(2025, 2, 1, tzinfo=timezone.utc))
        db.session.commit()

        assert _calc("aB3206", organization) == Scalar("1")
        assert _calc("aB3206", organization, year=2024) == Scalar("1")


class TestRegistry:
    def test_every_manifest_element_has_calculator(self):
        report = check_completeness(load_manifest("2025"))
        assert report == {"missing": [], "unknown": []}

    def test_unknown_code_raises(self, organization):
        with pytest.raises(ValidationError):
            calculate_field("zNOPE", organization, 2025)

    def test_calculate_all_follows_manifest_order(self, organization):
        manifest = load_manifest("2025")
        values = calculate_all(organization, 2025, manifest)
        assert list(values) == [c for c in manifest.codes if c in FIELD_CALCULATORS]

"""
Query helpers shared by every field calculator.

A ``FieldContext`` wraps one (organization, year) pair. It holds no cached
data: settings and records are queried on each call so that a recalculation
always reflects the current database state.

Conventions:
    - discarded clients and transactions are excluded everywhere
    - transactions of a discarded client are excluded too
    - "purchase/sale" queries never include rentals
"""

from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import case, func, or_

from amsf_filing.models import db
from amsf_filing.models.client import BeneficialOwner, Client
from amsf_filing.models.managed_property import ManagedProperty
from amsf_filing.models.organization import Setting, cast_value
from amsf_filing.models.transaction import (
    PURCHASE_SALE_TYPES,
    RENTAL_THRESHOLD_EUR,
    Transaction,
    year_bounds,
)

OUI = "Oui"
NON = "Non"

_TWO_PLACES = Decimal("0.01")

# Single country key: nationality for natural persons, incorporation country otherwise
JURISDICTION = case(
    (Client.client_type == "NATURAL_PERSON", Client.nationality),
    else_=Client.incorporation_country,
)

# AMSF count units: 1 per purchase/sale; lease months for rentals at or above the threshold
COUNT_UNITS = case(
    (Transaction.transaction_type != "RENTAL", 1),
    (Transaction.transaction_value >= RENTAL_THRESHOLD_EUR,
     func.coalesce(Transaction.rental_duration_months, 1)),
    else_=0,
)

# Directional filters: WITH_CLIENT is the complement of BY_CLIENT
BY_CLIENT = Transaction.direction == "BY_CLIENT"
WITH_CLIENT = or_(Transaction.direction.is_(None), Transaction.direction != "BY_CLIENT")


def oui_non(flag) -> str:
    return OUI if flag else NON


def to_money(raw) -> Decimal:
    if raw is None:
        return Decimal("0.00")
    return Decimal(str(raw)).quantize(_TWO_PLACES)


class FieldContext:
    """Data access for calculating the survey of ``organization`` for ``year``."""

    def __init__(self, organization, year: int):
        self.organization = organization
        self.year = year

    @property
    def organization_id(self):
        return self.organization.id

    # ── Time windows ─────────────────────────────────────────────────────

    @property
    def year_start(self):
        return year_bounds(self.year)[0]

    @property
    def year_end(self):
        return year_bounds(self.year)[1]

    @property
    def five_year_start(self):
        return year_bounds(self.year - 4)[0]

    def _year_instants(self):
        start = datetime(self.year, 1, 1, tzinfo=timezone.utc)
        end = datetime(self.year + 1, 1, 1, tzinfo=timezone.utc)
        return start, end

    def in_year(self, column):
        """Criterion for a DateTime column falling within the calendar year."""
        start, end = self._year_instants()
        return (column >= start) & (column < end)

    # ── Clients ──────────────────────────────────────────────────────────

    def clients(self, *criteria):
        q = Client.query.filter(Client.organization_id == self.organization_id, Client.kept())
        if criteria:
            q = q.filter(*criteria)
        return q

    def natural_persons(self, *criteria):
        return self.clients(Client.client_type == "NATURAL_PERSON", *criteria)

    def legal_entities(self, *criteria):
        return self.clients(Client.client_type == "LEGAL_ENTITY", *criteria)

    def trusts(self, *criteria):
        return self.clients(Client.client_type == "TRUST", *criteria)

    def new_clients(self, *criteria):
        """Clients onboarded (``became_client_at``) during the year."""
        return self.clients(self.in_year(Client.became_client_at), *criteria)

    def beneficial_owners(self, *criteria):
        q = (
            BeneficialOwner.query
            .join(Client, BeneficialOwner.client_id == Client.id)
            .filter(Client.organization_id == self.organization_id, Client.kept())
        )
        if criteria:
            q = q.filter(*criteria)
        return q

    # ── Transactions ─────────────────────────────────────────────────────

    def _transactions(self, start, end, *criteria):
        q = (
            Transaction.query
            .join(Client, Transaction.client_id == Client.id)
            .filter(
                Transaction.organization_id == self.organization_id,
                Transaction.kept(),
                Client.kept(),
                Transaction.transaction_date >= start,
                Transaction.transaction_date <= end,
            )
        )
        if criteria:
            q = q.filter(*criteria)
        return q

    def transactions(self, *criteria):
        """Kept transactions dated within the year."""
        return self._transactions(self.year_start, self.year_end, *criteria)

    def five_year_transactions(self, *criteria):
        """Kept transactions dated within [year-4, year]."""
        return self._transactions(self.five_year_start, self.year_end, *criteria)

    def purchase_sales(self, *criteria):
        return self.transactions(Transaction.transaction_type.in_(PURCHASE_SALE_TYPES), *criteria)

    def rentals(self, *criteria):
        return self.transactions(Transaction.transaction_type == "RENTAL", *criteria)

    def qualifying_rentals(self, *criteria):
        return self.rentals(Transaction.transaction_value >= RENTAL_THRESHOLD_EUR, *criteria)

    def managed_properties(self, *criteria):
        """Management contracts overlapping the year."""
        q = ManagedProperty.query.filter(
            ManagedProperty.organization_id == self.organization_id,
            ManagedProperty.management_start_date <= self.year_end,
            (ManagedProperty.management_end_date.is_(None))
            | (ManagedProperty.management_end_date >= self.year_start),
        )
        if criteria:
            q = q.filter(*criteria)
        return q

    # ── Aggregates ───────────────────────────────────────────────────────

    @staticmethod
    def count_units(query) -> int:
        """Sum of AMSF count units over a transaction query."""
        total = query.with_entities(func.coalesce(func.sum(COUNT_UNITS), 0)).scalar()
        return int(total or 0)

    @staticmethod
    def sum_value(query) -> Decimal:
        total = query.with_entities(func.sum(Transaction.transaction_value)).scalar()
        return to_money(total)

    @staticmethod
    def sum_rental_value(query) -> Decimal:
        """Monthly rent × lease months (at least one month)."""
        amount = Transaction.transaction_value * func.coalesce(Transaction.rental_duration_months, 1)
        total = query.with_entities(func.sum(amount)).scalar()
        return to_money(total)

    @staticmethod
    def count_distinct_clients(query) -> int:
        return query.with_entities(func.count(func.distinct(Transaction.client_id))).scalar() or 0

    @staticmethod
    def count_by(query, key_column, count_column) -> dict:
        """Group ``query`` by ``key_column``; blank keys are dropped."""
        rows = (
            query.with_entities(key_column, func.count(func.distinct(count_column)))
            .group_by(key_column)
            .all()
        )
        return {key: int(n) for key, n in rows if key}

    @staticmethod
    def sum_by(query, key_column) -> dict:
        rows = (
            query.with_entities(key_column, func.sum(Transaction.transaction_value))
            .group_by(key_column)
            .all()
        )
        return {key: to_money(total) for key, total in rows if key}

    # ── Settings ─────────────────────────────────────────────────────────

    def setting(self, key):
        return (
            db.session.query(Setting)
            .filter(Setting.organization_id == self.organization_id, Setting.key == key)
            .first()
        )

    def setting_text(self, key, default=None):
        s = self.setting(key)
        if s is None or s.value is None or str(s.value).strip() == "":
            return default
        return str(s.value).strip()

    def setting_flag(self, key, default=NON):
        """Oui/Non answer; boolean-typed settings accept true/false spellings."""
        s = self.setting(key)
        if s is None or s.typed_value is None:
            return default
        if s.value_type == "boolean":
            return oui_non(s.typed_value)
        text = str(s.typed_value).strip().lower()
        if text in ("oui", "true", "1", "yes"):
            return OUI
        if text in ("non", "false", "0", "no"):
            return NON
        return default

    def setting_int(self, key, default=0):
        value = cast_value(self.setting_text(key), "integer")
        return default if value is None else value

    def setting_decimal(self, key, default=Decimal("0")):
        value = cast_value(self.setting_text(key), "decimal")
        return default if value is None else value

"""
Survey field calculators, one per taxonomy element.

Importing this package registers every calculator module into
``FIELD_CALCULATORS``.

Usage:
    from amsf_filing.services.fields import FIELD_CALCULATORS, FieldContext

    ctx = FieldContext(organization, 2025)
    FIELD_CALCULATORS["a1101"](ctx)       # 3
"""

from amsf_filing.services.fields import (  # noqa: F401
    controls,
    customer_risk,
    distribution_risk,
    products_services_risk,
    signatories,
)
from amsf_filing.services.fields.context import FieldContext  # noqa: F401
from amsf_filing.services.fields.registry import (  # noqa: F401
    FIELD_CALCULATORS,
    check_completeness,
)

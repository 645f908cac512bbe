"""Tab 5: Signatories (section S1)."""

from amsf_filing.services.fields.context import NON
from amsf_filing.services.fields.registry import setting_field

setting_field("aS1", "text", key="signatory_name")
setting_field("aS2", "text", key="signatory_title")
setting_field("aINCOMPLETE", "flag", NON)

from .team_member import TeamMember
from .form_template import FormTemplate, KpiVersion, FormKpiBinding
from .scoring import ScoringRule, Target
from .lead_source import LeadSource
from .daily_metric import DailyMetric
from .submission import Submission
from .extraction_audit import ExtractionAudit
from .quoted_household_detail import QuotedHouseholdDetail
from .household import Household, HouseholdQuote, HouseholdSale, HouseholdStatusChange

__all__ = [
    "TeamMember", "FormTemplate", "KpiVersion", "FormKpiBinding", "ScoringRule", "Target",
    "LeadSource", "DailyMetric", "Submission", "ExtractionAudit", "QuotedHouseholdDetail",
    "Household", "HouseholdQuote", "HouseholdSale", "HouseholdStatusChange",
]

"""Order analytics tables.

1. Headline - month-over-month delivered orders, per vertical, QA checks
2. Churn - period-over-period retained/churned/new/reactivated customers
3. Cohorts - cohort retention and lifetime value by offset
4. Survival - subscription category survival curves
5. Waterfall - monthly active-base reconciliation
6. Catalogue - per-SKU revenue, cost of goods and take rate
"""

from .catalogue import CatalogueRow, CatalogueSummary, CatalogueTotals, compute_catalogue
from .churn import (
    ActiveCountRow,
    ChurnSummary,
    PeriodTransition,
    TransitionRow,
    build_transition_series,
    classify_transition,
    compute_churn_summary,
)
from .cohorts import (
    CohortDimension,
    CohortMetric,
    CustomerCohort,
    LtvRow,
    RetentionRow,
    assign_customer_cohorts,
    compute_ltv,
    compute_retention,
)
from .headline import (
    HeadlineSummary,
    MomOrdersByVerticalRow,
    MomOrdersRow,
    OrdersQA,
    compute_headline,
)
from .survival import SurvivalRow, compute_survival
from .waterfall import WaterfallRow, compute_waterfall

__all__ = [
    # Catalogue
    "CatalogueRow",
    "CatalogueSummary",
    "CatalogueTotals",
    "compute_catalogue",
    # Churn
    "ActiveCountRow",
    "ChurnSummary",
    "PeriodTransition",
    "TransitionRow",
    "build_transition_series",
    "classify_transition",
    "compute_churn_summary",
    # Cohorts
    "CohortDimension",
    "CohortMetric",
    "CustomerCohort",
    "LtvRow",
    "RetentionRow",
    "assign_customer_cohorts",
    "compute_ltv",
    "compute_retention",
    # Headline
    "HeadlineSummary",
    "MomOrdersByVerticalRow",
    "MomOrdersRow",
    "OrdersQA",
    "compute_headline",
    # Survival and waterfall
    "SurvivalRow",
    "compute_survival",
    "WaterfallRow",
    "compute_waterfall",
]

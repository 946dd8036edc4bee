# Budget versioning, rollup, variance and forecast engine

from buildledger.engine.errors import (
    BudgetEngineError,
    ValidationError,
    InvalidState,
    InvalidTransition,
    NotFound,
    ConflictError,
)

from buildledger.engine.cost_codes import (
    NAHB_COST_CODES,
    CostCodeRow,
    create_cost_code,
    list_cost_codes,
    get_cost_code,
    get_cost_codes_by_ids,
    deactivate_cost_code,
    delete_cost_code,
    seed_nahb_cost_codes,
    import_cost_codes,
)

from buildledger.engine.budget_ledger import (
    BudgetLineInput,
    BudgetBreakdown,
    CostCodeBreakdown,
    create_budget,
    replace_budget_lines,
    update_budget_status,
    duplicate_budget_version,
    get_budget,
    list_budgets,
    get_active_budget,
    get_budget_with_actuals,
    margin_status,
    list_active_project_ids,
)

from buildledger.engine.rollup import (
    UNALLOCATED,
    ProjectRollup,
    get_committed_by_cost_code,
    get_actual_by_cost_code,
    get_invoiced_by_cost_code,
    get_project_rollup,
)

from buildledger.engine.change_orders import (
    ChangeOrderTotals,
    get_change_order_totals,
    get_change_order_adjustments,
)

from buildledger.engine.thresholds import (
    VarianceThresholds,
    VarianceClassification,
    classify_variance,
    margin_below_floor,
)

from buildledger.engine.variance import (
    VarianceScanResult,
    check_variance_alerts,
    list_variance_alerts,
    acknowledge_variance_alert,
    scan_org,
)

from buildledger.engine.forecast import (
    ForecastRow,
    ForecastReport,
    build_forecast_row,
    get_forecast_report,
)

from buildledger.engine.snapshots import (
    take_budget_snapshot,
    list_budget_snapshots,
    get_variance_trend,
)

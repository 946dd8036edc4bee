"""Tests for budget versioning, line replacement and status transitions."""

import pytest

from buildledger.engine.budget_ledger import (
    BudgetLineInput, create_budget, duplicate_budget_version, get_active_budget,
    get_budget, get_budget_with_actuals, list_active_project_ids, list_budgets, margin_status,
    replace_budget_lines, update_budget_status, validate_lines,
)
from buildledger.engine.errors import InvalidState, InvalidTransition, NotFound, ValidationError
from buildledger.models import Budget, BudgetLine, BudgetStatus

from conftest import ORG_ID, OTHER_ORG_ID, PROJECT_ID


def _lines(db, budget_id):
    return (
        db.query(BudgetLine)
        .filter(BudgetLine.budget_id == budget_id)
        .order_by(BudgetLine.sort_order)
        .all()
    )


class TestCreateBudget:
    """Tests for createBudget."""
    
    def test_versions_increase_from_one(self, db, make_budget):
        """Test N budgets get versions 1..N even if none are approved."""
        versions = [make_budget([]).version for _ in range(4)]
        
        assert versions == [1, 2, 3, 4]
    
    def test_versions_are_per_project(self, db, make_budget):
        """Test each project numbers its own versions."""
        make_budget([])
        make_budget([])
        other = make_budget([], project_id=PROJECT_ID + 1)
        
        assert other.version == 1
    
    def test_defaults_to_draft_with_total(self, db, make_cost_code, make_budget):
        """Test status defaults to draft and total is the sum of lines."""
        framing = make_cost_code()
        budget = make_budget([(framing.id, 300000), (None, 25000)])
        
        assert budget.status == BudgetStatus.DRAFT
        assert budget.total_cents == 325000
        assert [line.amount_cents for line in budget.lines] == [300000, 25000]
        assert budget.lines[1].cost_code_id is None
    
    def test_created_approved_sets_approved_at(self, db, make_budget):
        """Test creating directly as approved stamps approved_at."""
        budget = make_budget([], status=BudgetStatus.APPROVED)
        
        assert budget.approved_at is not None
    
    def test_negative_amount_rejected(self, db):
        """Test a negative amount fails and nothing is written."""
        lines = [BudgetLineInput(description="Credit", amount_cents=-1)]
        
        with pytest.raises(ValidationError) as exc_info:
            create_budget(db, ORG_ID, PROJECT_ID, lines)
        
        assert "0" in exc_info.value.details
        assert db.query(Budget).count() == 0
    
    def test_foreign_cost_code_rejected(self, db, make_cost_code):
        """Test a cost code from another org fails validation."""
        theirs = make_cost_code(org_id=OTHER_ORG_ID)
        lines = [BudgetLineInput(description="Framing", amount_cents=100, cost_code_id=theirs.id)]
        
        with pytest.raises(ValidationError):
            create_budget(db, ORG_ID, PROJECT_ID, lines)
    
    def test_unknown_status_rejected(self, db):
        """Test an unknown status string is a validation error."""
        with pytest.raises(ValidationError):
            create_budget(db, ORG_ID, PROJECT_ID, [], status="archived")


class TestValidateLines:
    """Tests for line list validation."""
    
    def test_non_list_rejected(self):
        """Test a dict is not accepted as a line list."""
        with pytest.raises(ValidationError):
            validate_lines({"description": "x", "amount_cents": 1})
    
    def test_float_amount_rejected(self):
        """Test float amounts are refused."""
        with pytest.raises(ValidationError):
            validate_lines([BudgetLineInput(description="Paint", amount_cents=10.5)])
    
    def test_negative_override_rejected(self):
        """Test a negative estimate override in metadata is refused."""
        line = BudgetLineInput(description="Paint", amount_cents=100, metadata={"estimate_remaining_cents": -5})
        
        with pytest.raises(ValidationError) as exc_info:
            validate_lines([line])
        assert "estimate_remaining_cents" in exc_info.value.details["0"][0]


class TestReplaceBudgetLines:
    """Tests for replaceBudgetLines."""
    
    def test_replaces_whole_set(self, db, make_cost_code, make_budget):
        """Test the new line set fully supersedes the old one."""
        a, b = make_cost_code(), make_cost_code()
        budget = make_budget([(a.id, 1000), (b.id, 2000)])
        old_ids = {line.id for line in _lines(db, budget.id)}
        
        replace_budget_lines(db, ORG_ID, budget.id, [
            BudgetLineInput(description="Only line", amount_cents=5000, cost_code_id=b.id),
        ])
        
        lines = _lines(db, budget.id)
        assert [(l.cost_code_id, l.amount_cents) for l in lines] == [(b.id, 5000)]
        assert not old_ids & {l.id for l in lines}
        assert db.get(Budget, budget.id).total_cents == 5000
    
    def test_failed_replace_keeps_old_lines(self, db, make_cost_code, make_budget):
        """Test a validation failure leaves the previous set untouched."""
        a = make_cost_code()
        budget = make_budget([(a.id, 1000)])
        
        with pytest.raises(ValidationError):
            replace_budget_lines(db, ORG_ID, budget.id, [
                BudgetLineInput(description="Good", amount_cents=10),
                BudgetLineInput(description="Bad", amount_cents=-10),
            ])
        
        lines = _lines(db, budget.id)
        assert [(l.cost_code_id, l.amount_cents) for l in lines] == [(a.id, 1000)]
    
    def test_replace_with_empty_list(self, db, make_budget):
        """Test an empty list clears the budget."""
        budget = make_budget([(None, 1000)])
        
        replace_budget_lines(db, ORG_ID, budget.id, [])
        assert _lines(db, budget.id) == []
    
    def test_locked_budget_is_immutable(self, db, make_budget):
        """Test replacing lines on a locked budget fails with InvalidState."""
        budget = make_budget([(None, 1000)])
        update_budget_status(db, ORG_ID, budget.id, BudgetStatus.APPROVED)
        update_budget_status(db, ORG_ID, budget.id, BudgetStatus.LOCKED)
        
        with pytest.raises(InvalidState):
            replace_budget_lines(db, ORG_ID, budget.id, [])
        assert len(_lines(db, budget.id)) == 1
    
    def test_other_org_not_found(self, db, make_budget):
        """Test another org's budget is invisible."""
        budget = make_budget([])
        
        with pytest.raises(NotFound):
            replace_budget_lines(db, OTHER_ORG_ID, budget.id, [])


class TestUpdateBudgetStatus:
    """Tests for updateBudgetStatus."""
    
    def test_draft_approved_locked(self, db, make_budget):
        """Test the legal path stamps approval and lock times."""
        budget = make_budget([])
        
        approved = update_budget_status(db, ORG_ID, budget.id, "approved")
        assert approved.status == BudgetStatus.APPROVED
        assert approved.approved_at is not None
        
        locked = update_budget_status(db, ORG_ID, budget.id, BudgetStatus.LOCKED)
        assert locked.status == BudgetStatus.LOCKED
        assert locked.locked_at is not None
    
    def test_reapproval_is_noop(self, db, make_budget):
        """Test approving an approved budget succeeds without changes."""
        budget = make_budget([], status=BudgetStatus.APPROVED)
        approved_at = budget.approved_at
        
        again = update_budget_status(db, ORG_ID, budget.id, BudgetStatus.APPROVED)
        assert again.status == BudgetStatus.APPROVED
        assert again.approved_at == approved_at
    
    @pytest.mark.parametrize("start, target", [
        (BudgetStatus.DRAFT, BudgetStatus.LOCKED),
        (BudgetStatus.DRAFT, BudgetStatus.DRAFT),
        (BudgetStatus.APPROVED, BudgetStatus.DRAFT),
        (BudgetStatus.LOCKED, BudgetStatus.APPROVED),
        (BudgetStatus.LOCKED, BudgetStatus.DRAFT),
        (BudgetStatus.LOCKED, BudgetStatus.LOCKED),
    ])
    def test_illegal_transitions(self, db, make_budget, start, target):
        """Test every move outside draft->approved->locked is refused."""
        budget = make_budget([], status=start)
        
        with pytest.raises(InvalidTransition):
            update_budget_status(db, ORG_ID, budget.id, target)
        assert db.get(Budget, budget.id).status == start


class TestActiveBudget:
    """Tests for read-time active budget derivation."""
    
    def test_none_until_approved(self, db, make_budget):
        """Test a project with only drafts has no active budget."""
        make_budget([])
        
        assert get_active_budget(db, ORG_ID, PROJECT_ID) is None
        assert get_budget_with_actuals(db, ORG_ID, PROJECT_ID) is None
    
    def test_latest_approval_wins(self, db, make_budget):
        """Test approving a newer version makes it active and keeps history."""
        v1 = make_budget([(None, 1000)], status=BudgetStatus.APPROVED)
        v2 = make_budget([(None, 2000)])
        
        assert get_active_budget(db, ORG_ID, PROJECT_ID).id == v1.id
        
        update_budget_status(db, ORG_ID, v2.id, BudgetStatus.APPROVED)
        assert get_active_budget(db, ORG_ID, PROJECT_ID).id == v2.id
        assert db.get(Budget, v1.id).status == BudgetStatus.APPROVED
    
    def test_locked_budget_stays_active(self, db, make_budget):
        """Test locking does not deactivate a budget."""
        budget = make_budget([], status=BudgetStatus.APPROVED)
        update_budget_status(db, ORG_ID, budget.id, BudgetStatus.LOCKED)
        
        assert get_active_budget(db, ORG_ID, PROJECT_ID).id == budget.id
    
    def test_active_project_ids(self, db, make_budget):
        """Test only projects with an approved or locked budget are listed."""
        make_budget([], status=BudgetStatus.APPROVED, project_id=5)
        make_budget([], project_id=6)
        make_budget([], status=BudgetStatus.LOCKED, project_id=7)
        
        assert list_active_project_ids(db, ORG_ID) == [5, 7]


class TestDuplicateBudgetVersion:
    """Tests for duplicateBudgetVersion."""
    
    def test_copy_is_independent(self, db, make_cost_code, make_budget):
        """Test the copy has new line ids and editing it leaves the source alone."""
        a, b = make_cost_code(), make_cost_code()
        source = make_budget([(a.id, 1000), (b.id, 2000)], status=BudgetStatus.APPROVED)
        update_budget_status(db, ORG_ID, source.id, BudgetStatus.LOCKED)
        source_lines = [(l.id, l.cost_code_id, l.amount_cents) for l in _lines(db, source.id)]
        
        copy = duplicate_budget_version(db, ORG_ID, PROJECT_ID, source.id)
        
        assert copy.version == 2
        assert copy.status == BudgetStatus.DRAFT
        assert copy.source_budget_id == source.id
        copy_lines = _lines(db, copy.id)
        assert [(l.cost_code_id, l.amount_cents) for l in copy_lines] == [(a.id, 1000), (b.id, 2000)]
        assert not {l.id for l in copy_lines} & {line_id for line_id, _, _ in source_lines}
        
        replace_budget_lines(db, ORG_ID, copy.id, [BudgetLineInput(description="New", amount_cents=1)])
        assert [(l.id, l.cost_code_id, l.amount_cents) for l in _lines(db, source.id)] == source_lines
    
    def test_copies_metadata(self, db, make_cost_code, make_budget):
        """Test line metadata is carried over by value."""
        a = make_cost_code()
        source = make_budget([(a.id, 1000)], metadata={a.id: {"estimate_remaining_cents": 250}})
        
        copy = duplicate_budget_version(db, ORG_ID, PROJECT_ID, source.id)
        assert _lines(db, copy.id)[0].metadata_model.estimate_remaining_cents == 250
    
    def test_wrong_project_not_found(self, db, make_budget):
        """Test duplicating into a different project is refused."""
        source = make_budget([])
        
        with pytest.raises(NotFound):
            duplicate_budget_version(db, ORG_ID, PROJECT_ID + 1, source.id)


class TestReads:
    """Tests for budget lookups."""
    
    def test_get_budget_scoped_to_org(self, db, make_budget):
        """Test another org sees NotFound."""
        budget = make_budget([])
        
        assert get_budget(db, ORG_ID, budget.id).id == budget.id
        with pytest.raises(NotFound):
            get_budget(db, OTHER_ORG_ID, budget.id)
    
    def test_list_newest_first(self, db, make_budget):
        """Test versions are listed newest first."""
        for _ in range(3):
            make_budget([])
        
        assert [b.version for b in list_budgets(db, ORG_ID, PROJECT_ID)] == [3, 2, 1]


class TestBudgetWithActuals:
    """Tests for the budget-vs-actuals breakdown."""
    
    def test_unbudgeted_spend_is_visible(self, db, make_cost_code, make_budget, make_commitment, thresholds):
        """Test a code with spend but no budget line appears with budget 0."""
        budgeted, unbudgeted = make_cost_code(), make_cost_code()
        make_budget([(budgeted.id, 100000)], status=BudgetStatus.APPROVED)
        make_commitment([(unbudgeted.id, 1, 40000)])
        
        breakdown = get_budget_with_actuals(db, ORG_ID, PROJECT_ID, thresholds)
        row = breakdown.row_for(unbudgeted.id)
        
        assert row.budget_cents == 0
        assert row.committed_cents == 40000
        assert row.status == "over"
    
    def test_lines_for_same_code_are_summed(self, db, make_cost_code, make_budget):
        """Test two lines on one code make one row."""
        framing = make_cost_code()
        make_budget([(framing.id, 1000), (framing.id, 500)], status=BudgetStatus.APPROVED)
        
        breakdown = get_budget_with_actuals(db, ORG_ID, PROJECT_ID)
        assert len(breakdown.rows) == 1
        assert breakdown.row_for(framing.id).budget_cents == 1500
    
    def test_summary_totals(self, db, make_cost_code, make_budget, make_bill):
        """Test summary variance is adjusted budget minus actual."""
        framing = make_cost_code()
        make_budget([(framing.id, 200000)], status=BudgetStatus.APPROVED)
        make_bill(cost_code_id=framing.id, total_cents=50000)
        
        summary = get_budget_with_actuals(db, ORG_ID, PROJECT_ID).summary
        assert summary["total_budget_cents"] == 200000
        assert summary["total_actual_cents"] == 50000
        assert summary["total_variance_cents"] == 150000
        assert summary["variance_percent"] == 25
    
    def test_draft_does_not_participate(self, db, make_cost_code, make_budget):
        """Test a newer draft does not replace the active budget's figures."""
        framing = make_cost_code()
        make_budget([(framing.id, 1000)], status=BudgetStatus.APPROVED)
        make_budget([(framing.id, 999999)])
        
        breakdown = get_budget_with_actuals(db, ORG_ID, PROJECT_ID)
        assert breakdown.budget.version == 1
        assert breakdown.row_for(framing.id).budget_cents == 1000
    
    def test_rows_unclassified_without_thresholds(self, db, make_cost_code, make_budget, make_commitment):
        """Test rows carry no status unless thresholds are passed in."""
        framing = make_cost_code()
        make_budget([(framing.id, 1000)], status=BudgetStatus.APPROVED)
        make_commitment([(framing.id, 1, 5000)])
        
        breakdown = get_budget_with_actuals(db, ORG_ID, PROJECT_ID)
        
        assert breakdown.row_for(framing.id).status is None
        assert breakdown.to_dict()["breakdown"][0]["status"] is None


class TestGrossMargin:
    """Tests for invoiced revenue and gross margin in the summary."""
    
    @pytest.fixture
    def framing(self, make_cost_code, make_budget):
        cost_code = make_cost_code(name="Framing")
        make_budget([(cost_code.id, 200000)], status=BudgetStatus.APPROVED)
        return cost_code
    
    def test_margin_on_invoiced_revenue(self, db, framing, make_bill, make_invoice):
        """Test margin is invoiced minus actual, as a percent of invoiced."""
        make_bill(cost_code_id=framing.id, total_cents=88000)
        make_invoice(lines=[(framing.id, 100000)])
        
        breakdown = get_budget_with_actuals(db, ORG_ID, PROJECT_ID)
        summary = breakdown.summary
        
        assert breakdown.row_for(framing.id).invoiced_cents == 100000
        assert summary["total_invoiced_cents"] == 100000
        assert summary["gross_margin_cents"] == 12000
        assert summary["gross_margin_percent"] == 12
        assert summary["status"] == "warning"
    
    def test_nothing_invoiced_has_no_margin(self, db, framing, make_bill):
        """Test margin percent and status stay empty until something is billed."""
        make_bill(cost_code_id=framing.id, total_cents=5000)
        
        summary = get_budget_with_actuals(db, ORG_ID, PROJECT_ID).summary
        
        assert summary["total_invoiced_cents"] == 0
        assert summary["gross_margin_cents"] == -5000
        assert summary["gross_margin_percent"] is None
        assert summary["status"] is None
    
    def test_margin_percent_rounds_half_up(self, db, framing, make_bill, make_invoice):
        """Test 12.5% margin reports as 13."""
        make_bill(cost_code_id=framing.id, total_cents=700)
        make_invoice(total_cents=800)
        
        assert get_budget_with_actuals(db, ORG_ID, PROJECT_ID).summary["gross_margin_percent"] == 13
    
    @pytest.mark.parametrize("percent, expected", [
        (None, None), (-20, "critical"), (9, "critical"), (10, "warning"), (19, "warning"), (20, "healthy"),
    ])
    def test_margin_status_bands(self, percent, expected):
        """Test the critical/warning/healthy boundaries."""
        assert margin_status(percent) == expected
    
    def test_negative_margin_is_critical(self, db, framing, make_bill, make_invoice):
        """Test spending more than was billed is critical."""
        make_bill(cost_code_id=framing.id, total_cents=150000)
        make_invoice(lines=[(framing.id, 100000)])
        
        summary = get_budget_with_actuals(db, ORG_ID, PROJECT_ID).summary
        
        assert summary["gross_margin_percent"] == -50
        assert summary["status"] == "critical"

"""Tests for the committed, actual and invoiced rollup."""

from buildledger.engine.budget_ledger import get_budget_with_actuals
from buildledger.engine.rollup import (
    UNALLOCATED, get_actual_by_cost_code, get_committed_by_cost_code, get_invoiced_by_cost_code,
    get_project_rollup,
)
from buildledger.models import BudgetStatus, CommitmentStatus, InvoiceStatus, VendorBillStatus

from conftest import ORG_ID, OTHER_ORG_ID, PROJECT_ID


class TestCommittedRollup:
    """Tests for commitment aggregation."""
    
    def test_only_approved_and_complete_count(self, db, make_cost_code, make_commitment):
        """Test draft and canceled commitments are excluded."""
        framing = make_cost_code()
        make_commitment([(framing.id, 1, 1000)], status=CommitmentStatus.APPROVED)
        make_commitment([(framing.id, 1, 2000)], status=CommitmentStatus.COMPLETE)
        make_commitment([(framing.id, 1, 4000)], status=CommitmentStatus.DRAFT)
        make_commitment([(framing.id, 1, 8000)], status=CommitmentStatus.CANCELED)
        
        assert get_committed_by_cost_code(db, ORG_ID, PROJECT_ID) == {framing.id: 3000}
    
    def test_quantity_times_unit_cost(self, db, make_cost_code, make_commitment):
        """Test lines extend quantity by unit cost with half-up rounding."""
        drywall = make_cost_code()
        make_commitment([(drywall.id, "120.5", 1850), (drywall.id, "0.5", 1)])
        
        # 120.5 * 1850 = 222925, 0.5 * 1 = 0.5 -> 1
        assert get_committed_by_cost_code(db, ORG_ID, PROJECT_ID) == {drywall.id: 222926}
    
    def test_unallocated_bucket_reconciles(self, db, make_cost_code, make_commitment):
        """Test lines without a cost code are kept so totals reconcile."""
        framing = make_cost_code()
        commitment = make_commitment([(framing.id, 2, 5000), (None, 1, 750)])
        
        committed = get_committed_by_cost_code(db, ORG_ID, PROJECT_ID)
        assert committed == {framing.id: 10000, UNALLOCATED: 750}
        assert sum(committed.values()) == sum(line.amount_cents for line in commitment.lines)
    
    def test_scoped_to_org_and_project(self, db, make_cost_code, make_commitment):
        """Test other projects and orgs are not included."""
        framing = make_cost_code()
        make_commitment([(framing.id, 1, 1000)], project_id=PROJECT_ID + 1)
        make_commitment([(framing.id, 1, 1000)], org_id=OTHER_ORG_ID)
        
        assert get_committed_by_cost_code(db, ORG_ID, PROJECT_ID) == {}
    
    def test_status_change_moves_amount(self, db, make_cost_code, make_budget, make_commitment):
        """Test approving a draft commitment shows up on the next read, once."""
        framing = make_cost_code()
        make_budget([(framing.id, 100000)], status=BudgetStatus.APPROVED)
        make_commitment([(framing.id, 1, 30000)])
        draft = make_commitment([(framing.id, 1, 20000)], status=CommitmentStatus.DRAFT)
        
        before = get_budget_with_actuals(db, ORG_ID, PROJECT_ID)
        assert sum(r.committed_cents for r in before.rows) == 30000
        
        draft.status = CommitmentStatus.APPROVED
        db.commit()
        
        after = get_budget_with_actuals(db, ORG_ID, PROJECT_ID)
        assert sum(r.committed_cents for r in after.rows) == 50000
        assert after.row_for(framing.id).committed_cents == 50000


class TestActualRollup:
    """Tests for vendor bill aggregation."""
    
    def test_only_accepted_bills_count(self, db, make_cost_code, make_bill):
        """Test pending bills are excluded; approved, partial and paid count."""
        framing = make_cost_code()
        make_bill(cost_code_id=framing.id, total_cents=100, status=VendorBillStatus.PENDING)
        make_bill(cost_code_id=framing.id, total_cents=200, status=VendorBillStatus.APPROVED)
        make_bill(cost_code_id=framing.id, total_cents=400, status=VendorBillStatus.PARTIAL)
        make_bill(cost_code_id=framing.id, total_cents=800, status=VendorBillStatus.PAID)
        
        assert get_actual_by_cost_code(db, ORG_ID, PROJECT_ID) == {framing.id: 1400}
    
    def test_bill_uses_commitment_line_code(self, db, make_cost_code, make_commitment, make_bill):
        """Test a bill with no code of its own follows its commitment line."""
        electrical = make_cost_code()
        commitment = make_commitment([(electrical.id, 1, 90000)])
        make_bill(total_cents=15000, commitment_line_id=commitment.lines[0].id)
        
        assert get_actual_by_cost_code(db, ORG_ID, PROJECT_ID) == {electrical.id: 15000}
    
    def test_bill_lines_split_across_codes(self, db, make_cost_code, make_bill):
        """Test itemized bills are attributed line by line."""
        framing, roofing = make_cost_code(), make_cost_code()
        make_bill(lines=[(framing.id, 3000), (roofing.id, 2000)])
        
        assert get_actual_by_cost_code(db, ORG_ID, PROJECT_ID) == {framing.id: 3000, roofing.id: 2000}
    
    def test_uncoded_bill_line_falls_back_to_bill(self, db, make_cost_code, make_bill):
        """Test a bill line without a code uses the bill's code."""
        framing = make_cost_code()
        make_bill(cost_code_id=framing.id, lines=[(None, 700)])
        
        assert get_actual_by_cost_code(db, ORG_ID, PROJECT_ID) == {framing.id: 700}
    
    def test_uncoded_bill_is_unallocated(self, db, make_bill):
        """Test a bill with no code anywhere lands in the unallocated bucket."""
        make_bill(total_cents=900)
        
        assert get_actual_by_cost_code(db, ORG_ID, PROJECT_ID) == {UNALLOCATED: 900}


class TestInvoicedRollup:
    """Tests for invoiced revenue per cost code."""
    
    def test_only_sent_and_paid_count(self, db, make_cost_code, make_invoice):
        """Test draft and void invoices are not revenue."""
        framing = make_cost_code()
        for status, cents in [
            (InvoiceStatus.DRAFT, 1), (InvoiceStatus.SENT, 10), (InvoiceStatus.PARTIAL, 100),
            (InvoiceStatus.PAID, 1000), (InvoiceStatus.VOID, 10000),
        ]:
            make_invoice(lines=[(framing.id, cents)], status=status)
        
        assert get_invoiced_by_cost_code(db, ORG_ID, PROJECT_ID) == {framing.id: 1110}
    
    def test_lines_split_across_codes(self, db, make_cost_code, make_invoice):
        """Test each invoice line is booked to its own code."""
        framing, paint = make_cost_code(), make_cost_code()
        make_invoice(lines=[(framing.id, 700), (paint.id, 300), (None, 50)])
        
        assert get_invoiced_by_cost_code(db, ORG_ID, PROJECT_ID) == {framing.id: 700, paint.id: 300, UNALLOCATED: 50}
    
    def test_invoice_without_lines_is_unallocated(self, db, make_invoice):
        """Test a header-only invoice counts its total as unallocated revenue."""
        make_invoice(total_cents=2500)
        
        assert get_invoiced_by_cost_code(db, ORG_ID, PROJECT_ID) == {UNALLOCATED: 2500}
    
    def test_scoped_to_org_and_project(self, db, make_invoice):
        """Test other projects and orgs are ignored."""
        make_invoice(total_cents=100, project_id=PROJECT_ID + 1)
        make_invoice(total_cents=100, org_id=OTHER_ORG_ID)
        
        assert get_invoiced_by_cost_code(db, ORG_ID, PROJECT_ID) == {}


class TestProjectRollup:
    """Tests for the combined rollup."""
    
    def test_totals(self, db, make_cost_code, make_commitment, make_bill):
        """Test totals and the union of cost codes."""
        framing, paint = make_cost_code(), make_cost_code()
        make_commitment([(framing.id, 1, 5000)])
        make_bill(cost_code_id=paint.id, total_cents=1200)
        
        rollup = get_project_rollup(db, ORG_ID, PROJECT_ID)
        assert rollup.total_committed_cents == 5000
        assert rollup.total_actual_cents == 1200
        assert rollup.cost_code_ids == {framing.id, paint.id}
    
    def test_invoiced_total(self, db, make_cost_code, make_invoice):
        """Test invoiced-only codes join the cost code set."""
        roofing = make_cost_code()
        make_invoice(lines=[(roofing.id, 4000)])
        
        rollup = get_project_rollup(db, ORG_ID, PROJECT_ID)
        assert rollup.total_invoiced_cents == 4000
        assert rollup.cost_code_ids == {roofing.id}

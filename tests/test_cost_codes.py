"""Tests for the cost code registry."""

import pytest

from buildledger.engine.cost_codes import (
    NAHB_COST_CODES, CostCodeRow, create_cost_code, deactivate_cost_code,
    delete_cost_code, get_cost_codes_by_ids, import_cost_codes, list_cost_codes,
    require_cost_codes_in_org, seed_nahb_cost_codes,
)
from buildledger.engine.errors import ConflictError, NotFound, ValidationError
from buildledger.models import CostCode, CostCodeStandard

from conftest import ORG_ID, OTHER_ORG_ID


class TestCreateAndList:
    """Tests for adding and listing cost codes."""
    
    def test_create(self, db):
        """Test a new code is stored active."""
        cost_code = create_cost_code(db, ORG_ID, "06-100", "Rough Framing", division="06")
        
        assert cost_code.id is not None
        assert cost_code.is_active
        assert cost_code.standard == CostCodeStandard.CUSTOM
    
    def test_duplicate_code_conflicts(self, db):
        """Test the same code twice in one org is rejected."""
        create_cost_code(db, ORG_ID, "06-100", "Rough Framing")
        
        with pytest.raises(ConflictError):
            create_cost_code(db, ORG_ID, "06-100", "Framing again")
    
    def test_same_code_in_other_org(self, db):
        """Test codes are unique per org only."""
        create_cost_code(db, ORG_ID, "06-100", "Rough Framing")
        other = create_cost_code(db, OTHER_ORG_ID, "06-100", "Rough Framing")
        
        assert other.org_id == OTHER_ORG_ID
    
    def test_blank_name_rejected(self, db):
        """Test blank names fail validation."""
        with pytest.raises(ValidationError):
            create_cost_code(db, ORG_ID, "01-000", "   ")
    
    def test_list_is_ordered_and_hides_inactive(self, db, make_cost_code):
        """Test listing sorts by code and skips deactivated codes by default."""
        make_cost_code(code="09-000")
        make_cost_code(code="01-000")
        make_cost_code(code="05-000", is_active=False)
        
        codes = [c.code for c in list_cost_codes(db, ORG_ID)]
        assert codes == ["01-000", "09-000"]
        
        all_codes = [c.code for c in list_cost_codes(db, ORG_ID, include_inactive=True)]
        assert all_codes == ["01-000", "05-000", "09-000"]


class TestLookup:
    """Tests for org-scoped id lookups."""
    
    def test_by_ids_skips_other_orgs(self, db, make_cost_code):
        """Test ids from another org are not returned."""
        mine = make_cost_code()
        theirs = make_cost_code(org_id=OTHER_ORG_ID)
        
        found = get_cost_codes_by_ids(db, ORG_ID, [mine.id, theirs.id, None])
        assert set(found) == {mine.id}
    
    def test_require_in_org(self, db, make_cost_code):
        """Test foreign ids are reported in the error details."""
        mine = make_cost_code()
        theirs = make_cost_code(org_id=OTHER_ORG_ID)
        
        require_cost_codes_in_org(db, ORG_ID, [mine.id, None])
        with pytest.raises(ValidationError) as exc_info:
            require_cost_codes_in_org(db, ORG_ID, [mine.id, theirs.id])
        assert exc_info.value.details == {"cost_code_ids": [theirs.id]}


class TestDeactivateAndDelete:
    """Tests for soft-deprecation and deletion."""
    
    def test_deactivate(self, db, make_cost_code):
        """Test deactivation flips is_active."""
        cost_code = make_cost_code()
        
        deactivate_cost_code(db, ORG_ID, cost_code.id)
        assert db.get(CostCode, cost_code.id).is_active is False
    
    def test_delete_unreferenced(self, db, make_cost_code):
        """Test an unused code is removed."""
        cost_code = make_cost_code()
        cost_code_id = cost_code.id
        
        assert delete_cost_code(db, ORG_ID, cost_code_id) is True
        assert db.get(CostCode, cost_code_id) is None
    
    def test_delete_referenced_deactivates(self, db, make_cost_code, make_budget):
        """Test a code used by a budget line is kept but deactivated."""
        cost_code = make_cost_code()
        make_budget([(cost_code.id, 10000)])
        
        assert delete_cost_code(db, ORG_ID, cost_code.id) is False
        kept = db.get(CostCode, cost_code.id)
        assert kept is not None
        assert kept.is_active is False
    
    def test_invoice_reference_deactivates(self, db, make_cost_code, make_invoice):
        """Test a code billed on an invoice line is kept."""
        cost_code = make_cost_code()
        make_invoice(lines=[(cost_code.id, 500)])
        
        assert delete_cost_code(db, ORG_ID, cost_code.id) is False
        assert db.get(CostCode, cost_code.id).is_active is False
    
    def test_delete_other_org_not_found(self, db, make_cost_code):
        """Test another org's code cannot be touched."""
        theirs = make_cost_code(org_id=OTHER_ORG_ID)
        
        with pytest.raises(NotFound):
            delete_cost_code(db, ORG_ID, theirs.id)


class TestSeedAndImport:
    """Tests for bulk loading."""
    
    def test_seed_nahb_is_idempotent(self, db):
        """Test seeding twice inserts the list once."""
        assert seed_nahb_cost_codes(db, ORG_ID) == len(NAHB_COST_CODES)
        assert seed_nahb_cost_codes(db, ORG_ID) == 0
        
        codes = list_cost_codes(db, ORG_ID)
        assert len(codes) == len(NAHB_COST_CODES)
        assert all(c.standard == CostCodeStandard.NAHB for c in codes)
    
    def test_import_upserts(self, db, make_cost_code):
        """Test existing codes are updated and reactivated, new ones created."""
        make_cost_code(code="01-000", name="Old name", is_active=False)
        
        stats = import_cost_codes(db, ORG_ID, [
            CostCodeRow(code="01-000", name="General Requirements", division="01"),
            CostCodeRow(code="02-000", name="Site Work", division="02"),
        ])
        
        assert stats == {"created": 1, "updated": 1}
        codes = {c.code: c for c in list_cost_codes(db, ORG_ID)}
        assert codes["01-000"].name == "General Requirements"
        assert codes["01-000"].is_active
        assert codes["02-000"].division == "02"
    
    def test_import_rejects_blank_rows_before_writing(self, db):
        """Test one bad row stops the whole import."""
        with pytest.raises(ValidationError):
            import_cost_codes(db, ORG_ID, [
                CostCodeRow(code="01-000", name="General Requirements"),
                CostCodeRow(code="", name="No code"),
            ])
        
        assert list_cost_codes(db, ORG_ID, include_inactive=True) == []

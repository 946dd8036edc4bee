"""
Shared pytest fixtures for the BuildLedger test suite.

Provides:
    - engine: in-memory SQLite engine with all tables (per test)
    - db: Session bound to that engine
    - make_cost_code / make_budget / make_commitment / make_change_order / make_bill / make_invoice:
      factories that insert committed rows
    - thresholds: default 90/100 variance thresholds
    - client: FastAPI TestClient whose get_db uses the test engine
"""

import itertools
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import buildledger.models  # noqa: F401  registers models on Base
from buildledger.db.postgres import Base, get_db
from buildledger.engine.budget_ledger import BudgetLineInput, create_budget
from buildledger.engine.thresholds import VarianceThresholds
from buildledger.models import (
    BillLine, BudgetStatus, ChangeOrder, ChangeOrderLine, ChangeOrderStatus,
    Commitment, CommitmentLine, CommitmentStatus, CostCode, CostCodeStandard,
    Invoice, InvoiceLine, InvoiceStatus,
    VendorBill, VendorBillStatus,
)

ORG_ID = 1
OTHER_ORG_ID = 2
PROJECT_ID = 100


def _enable_foreign_keys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


@pytest.fixture
def engine():
    """Fresh in-memory database per test."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    event.listen(engine, "connect", _enable_foreign_keys)
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def thresholds():
    return VarianceThresholds(approaching_percent=90, overrun_percent=100)


# ── Factories ────────────────────────────────────────────────────────────


@pytest.fixture
def make_cost_code(db):
    """Insert a cost code; code and name are generated when omitted."""
    counter = itertools.count(1)

    def _make(code=None, name=None, org_id=ORG_ID, is_active=True):
        n = next(counter)
        cost_code = CostCode(
            org_id=org_id,
            code=code or f"90-{n:03d}",
            name=name or f"Cost code {n}",
            standard=CostCodeStandard.CUSTOM,
            is_active=is_active,
        )
        db.add(cost_code)
        db.commit()
        return cost_code

    return _make


@pytest.fixture
def make_budget(db):
    """Create a budget through the ledger from (cost_code_id, amount_cents) pairs."""

    def _make(lines, status=BudgetStatus.DRAFT, project_id=PROJECT_ID, org_id=ORG_ID, metadata=None):
        inputs = [
            BudgetLineInput(
                description=f"Line {idx + 1}",
                amount_cents=amount,
                cost_code_id=cost_code_id,
                metadata=(metadata or {}).get(cost_code_id),
            )
            for idx, (cost_code_id, amount) in enumerate(lines)
        ]
        return create_budget(db, org_id, project_id, inputs, status=status)

    return _make


@pytest.fixture
def make_commitment(db):
    """Insert a commitment from (cost_code_id, quantity, unit_cost_cents) lines."""

    def _make(lines, status=CommitmentStatus.APPROVED, project_id=PROJECT_ID, org_id=ORG_ID, title="Subcontract"):
        commitment = Commitment(
            org_id=org_id,
            project_id=project_id,
            title=title,
            status=status,
            lines=[
                CommitmentLine(
                    org_id=org_id,
                    cost_code_id=cost_code_id,
                    description=f"Item {idx + 1}",
                    quantity=Decimal(str(quantity)),
                    unit_cost_cents=unit_cost_cents,
                    sort_order=idx,
                )
                for idx, (cost_code_id, quantity, unit_cost_cents) in enumerate(lines)
            ],
        )
        commitment.total_cents = commitment.lines_total_cents
        db.add(commitment)
        db.commit()
        return commitment

    return _make


@pytest.fixture
def make_change_order(db):
    """Insert a change order, either with (cost_code_id, cents) lines or a single tag."""

    def _make(
        total_cents=0,
        status=ChangeOrderStatus.APPROVED,
        cost_code_id=None,
        lines=None,
        days_impact=0,
        project_id=PROJECT_ID,
        org_id=ORG_ID,
    ):
        change_order = ChangeOrder(
            org_id=org_id,
            project_id=project_id,
            title="Change order",
            status=status,
            total_cents=total_cents,
            days_impact=days_impact,
            cost_code_id=cost_code_id,
            lines=[
                ChangeOrderLine(
                    org_id=org_id,
                    cost_code_id=line_cost_code_id,
                    description=f"CO item {idx + 1}",
                    quantity=Decimal("1"),
                    unit_cost_cents=cents,
                    sort_order=idx,
                )
                for idx, (line_cost_code_id, cents) in enumerate(lines or [])
            ],
        )
        if lines:
            change_order.total_cents = sum(cents for _, cents in lines)
        db.add(change_order)
        db.commit()
        return change_order

    return _make


@pytest.fixture
def make_bill(db):
    """Insert a vendor bill, either with (cost_code_id, cents) lines or a header total."""

    def _make(
        total_cents=0,
        status=VendorBillStatus.APPROVED,
        cost_code_id=None,
        commitment_line_id=None,
        lines=None,
        project_id=PROJECT_ID,
        org_id=ORG_ID,
    ):
        bill = VendorBill(
            org_id=org_id,
            project_id=project_id,
            cost_code_id=cost_code_id,
            commitment_line_id=commitment_line_id,
            bill_number="B-1",
            status=status,
            total_cents=total_cents,
            lines=[
                BillLine(
                    org_id=org_id,
                    cost_code_id=line_cost_code_id,
                    description=f"Bill item {idx + 1}",
                    quantity=Decimal("1"),
                    unit_cost_cents=cents,
                )
                for idx, (line_cost_code_id, cents) in enumerate(lines or [])
            ],
        )
        if lines:
            bill.total_cents = sum(cents for _, cents in lines)
        db.add(bill)
        db.commit()
        return bill

    return _make


@pytest.fixture
def make_invoice(db):
    """Insert an owner invoice, either with (cost_code_id, cents) lines or a header total."""

    def _make(
        total_cents=0,
        status=InvoiceStatus.SENT,
        lines=None,
        project_id=PROJECT_ID,
        org_id=ORG_ID,
    ):
        invoice = Invoice(
            org_id=org_id,
            project_id=project_id,
            invoice_number="INV-1",
            status=status,
            total_cents=total_cents,
            lines=[
                InvoiceLine(
                    org_id=org_id,
                    cost_code_id=line_cost_code_id,
                    description=f"Draw item {idx + 1}",
                    quantity=Decimal("1"),
                    unit_price_cents=cents,
                    sort_order=idx,
                )
                for idx, (line_cost_code_id, cents) in enumerate(lines or [])
            ],
        )
        if lines:
            invoice.total_cents = sum(cents for _, cents in lines)
        db.add(invoice)
        db.commit()
        return invoice

    return _make


# ── API ──────────────────────────────────────────────────────────────────


@pytest.fixture
def client(session_factory):
    """TestClient with each request getting its own session on the test engine."""
    from buildledger.api.main import app

    def _get_test_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _get_test_db
    with TestClient(app) as test_client:
        test_client.headers.update({"X-Org-Id": str(ORG_ID)})
        yield test_client
    app.dependency_overrides.clear()

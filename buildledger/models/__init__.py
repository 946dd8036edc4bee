"""SQLAlchemy models."""

from .cost_code import CostCode, CostCodeStandard
from .budget import (
    Budget, BudgetLine, BudgetLineMetadata, BudgetSnapshot,
    BudgetStatus, ACTIVE_BUDGET_STATUSES,
)
from .commitment import Commitment, CommitmentLine, CommitmentStatus, COMMITTED_STATUSES
from .change_order import (
    ChangeOrder, ChangeOrderLine, ChangeOrderStatus, PENDING_CHANGE_ORDER_STATUSES,
)
from .vendor_bill import VendorBill, BillLine, VendorBillStatus, ACTUAL_COST_STATUSES
from .invoice import Invoice, InvoiceLine, InvoiceStatus, INVOICED_STATUSES
from .variance_alert import (
    VarianceAlert, VarianceAlertType, VarianceAlertStatus,
)

__all__ = [
    'CostCode',
    'CostCodeStandard',
    'Budget',
    'BudgetLine',
    'BudgetLineMetadata',
    'BudgetSnapshot',
    'BudgetStatus',
    'ACTIVE_BUDGET_STATUSES',
    'Commitment',
    'CommitmentLine',
    'CommitmentStatus',
    'COMMITTED_STATUSES',
    'ChangeOrder',
    'ChangeOrderLine',
    'ChangeOrderStatus',
    'PENDING_CHANGE_ORDER_STATUSES',
    'VendorBill',
    'BillLine',
    'VendorBillStatus',
    'ACTUAL_COST_STATUSES',
    'Invoice',
    'InvoiceLine',
    'InvoiceStatus',
    'INVOICED_STATUSES',
    'VarianceAlert',
    'VarianceAlertType',
    'VarianceAlertStatus',
]

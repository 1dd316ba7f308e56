from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, Field


class ScopeFields(BaseModel):
    scope_type: Literal["STORE", "CASHIER"]
    cashier_id: str | None = None


class TheoreticalBreakdownRow(BaseModel):
    payment_method_id: int
    payment_method_name: str
    is_cash: bool
    theoretical_amount: Decimal
    theoretical_count: int


class TheoreticalSummaryResponse(ScopeFields):
    start_date: datetime
    end_date: datetime
    total_sales: Decimal
    total_returns: Decimal
    net_total: Decimal
    total_transactions: int
    total_customers: int
    average_ticket: Decimal
    has_transactions: bool
    breakdown: list[TheoreticalBreakdownRow]


class NegativeStockItemResponse(BaseModel):
    product_id: str
    sku: str
    name: str
    stock_quantity: Decimal


class StockValidationResponse(ScopeFields):
    valid: bool
    negative_stock_count: int
    negative_stock_items: list[NegativeStockItemResponse]


class PeriodSuggestionResponse(ScopeFields):
    start_date: datetime
    end_date: datetime
    last_approved_end: datetime | None


class DenominationRow(BaseModel):
    face_value: Decimal
    kind: str


class DenominationCatalogResponse(BaseModel):
    currency_code: str
    denominations: list[DenominationRow]


class TheoreticalSnapshot(BaseModel):
    start_date: datetime
    end_date: datetime
    total_sales: Decimal
    total_returns: Decimal
    net_total: Decimal
    total_transactions: int = Field(ge=0)
    total_customers: int = Field(ge=0)
    average_ticket: Decimal
    breakdown: list[TheoreticalBreakdownRow]


class PaymentActualRequest(BaseModel):
    payment_method_id: int
    actual_amount: Decimal | None = None
    actual_count: int | None = None
    notes: str | None = None


class DenominationCountRequest(BaseModel):
    face_value: Decimal
    quantity: int


class CashClosureSubmitRequest(ScopeFields):
    start_date: datetime
    end_date: datetime
    theoretical: TheoreticalSnapshot
    payments: list[PaymentActualRequest] = Field(default_factory=list)
    denominations: list[DenominationCountRequest] = Field(default_factory=list)
    cashier_name: str | None = None
    notes: str | None = None
    confirm_discrepancy: bool = False


class PaymentBreakdownResponse(BaseModel):
    payment_method_id: int
    payment_method_name: str
    is_cash: bool
    theoretical_amount: Decimal
    theoretical_count: int
    actual_amount: Decimal
    actual_count: int | None
    difference: Decimal
    notes: str | None


class DenominationLineResponse(BaseModel):
    face_value: Decimal
    kind: str
    quantity: int
    subtotal: Decimal


class ReconciliationPreviewResponse(BaseModel):
    theoretical_total: Decimal
    actual_total: Decimal
    difference: Decimal
    difference_percentage: Decimal
    is_significant: bool
    requires_confirmation: bool
    cash_total: Decimal | None
    payments: list[PaymentBreakdownResponse]


class CashClosureResponse(ScopeFields):
    id: str
    closure_number: int
    start_date: datetime
    end_date: datetime
    cashier_name: str
    submitted_by: str | None
    theoretical_total: Decimal
    theoretical_sales: Decimal
    theoretical_returns: Decimal
    total_transactions: int
    total_customers: int
    average_ticket: Decimal
    actual_total: Decimal
    difference: Decimal
    difference_percentage: Decimal
    is_significant: bool
    discrepancy_confirmed: bool
    notes: str | None
    status: str
    supervisor_name: str | None
    supervisor_validated_at: datetime | None
    rejection_reason: str | None
    created_at: datetime
    updated_at: datetime
    payment_breakdowns: list[PaymentBreakdownResponse]
    denominations: list[DenominationLineResponse]


class CashClosureListResponse(BaseModel):
    items: list[CashClosureResponse]
    page: int
    page_size: int
    total_pages: int
    total_items: int


class CashClosureActionRequest(BaseModel):
    action: Literal["APPROVE", "REJECT"]
    supervisor_name: str | None = None
    rejection_reason: str | None = None

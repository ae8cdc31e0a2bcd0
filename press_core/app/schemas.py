from typing import Optional, List
from datetime import datetime
from decimal import Decimal
from pydantic import BaseModel, EmailStr, Field, validator

from .models import (
    JobStatus, PaymentStatus, PaymentType, PaymentMethod,
    AdjustmentType, UsageType, WasteType,
)


# =============================================================================
# AUTH / USERS
# =============================================================================

class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"
    role: str = "worker"


class UserCreate(BaseModel):
    full_name: str
    email: EmailStr
    username: str
    password: str = Field(..., min_length=6)
    role: str = "worker"


class UserOut(BaseModel):
    id: int
    full_name: str
    email: EmailStr
    username: str
    role: str
    created_at: datetime

    class Config:
        from_attributes = True


class ChangePasswordIn(BaseModel):
    old_password: str
    new_password: str


# =============================================================================
# INVENTORY
# =============================================================================

class InventoryItemCreate(BaseModel):
    """Stock and threshold are given in the item's unit of measure"""
    material_name: str = Field(..., min_length=1, max_length=200)
    category: str = "paper"
    unit_of_measure: str = "reams"
    paper_size: Optional[str] = None
    paper_type: Optional[str] = None
    grammage: Optional[int] = None
    supplier: Optional[str] = None
    sheets_per_unit: int = Field(500, gt=0)
    current_stock: Decimal = Field(Decimal("0"), ge=0)
    threshold: Decimal = Field(Decimal("0"), ge=0)
    unit_cost: Decimal = Field(Decimal("0"), ge=0)


class InventoryItemUpdate(BaseModel):
    material_name: Optional[str] = Field(None, min_length=1, max_length=200)
    category: Optional[str] = None
    unit_of_measure: Optional[str] = None
    paper_size: Optional[str] = None
    paper_type: Optional[str] = None
    grammage: Optional[int] = None
    supplier: Optional[str] = None
    sheets_per_unit: Optional[int] = Field(None, gt=0)
    threshold: Optional[Decimal] = Field(None, ge=0)
    unit_cost: Optional[Decimal] = Field(None, ge=0)


class StockDisplay(BaseModel):
    total_sheets: int
    reams: int
    sheets: int
    display: str
    display_short: str


class InventoryItemOut(BaseModel):
    id: int
    material_name: str
    category: str
    unit_of_measure: str
    paper_size: Optional[str]
    paper_type: Optional[str]
    grammage: Optional[int]
    supplier: Optional[str]
    sheets_per_unit: int
    current_stock_sheets: int
    threshold_sheets: int
    unit_cost: Decimal
    cost_per_sheet: Decimal
    is_active: bool
    created_at: datetime
    updated_at: Optional[datetime]
    stock_display: Optional[str] = None
    stock_status: Optional[str] = None

    class Config:
        from_attributes = True


class StockAdjustRequest(BaseModel):
    """Manual stock change; quantity is in the item's unit of measure"""
    adjustment_type: AdjustmentType
    quantity: Decimal = Field(..., ge=0)
    reason: str = Field(..., min_length=1)
    notes: Optional[str] = None
    unit_cost: Optional[Decimal] = Field(None, ge=0)

    @validator('adjustment_type')
    def validate_type(cls, v):
        if v == AdjustmentType.CORRECTION:
            raise ValueError("Corrections are made through job material edits")
        return v


class StockAdjustmentOut(BaseModel):
    id: int
    material_id: int
    adjustment_type: AdjustmentType
    sheets_change: int
    stock_before: int
    stock_after: int
    reason: Optional[str]
    notes: Optional[str]
    job_id: Optional[int]
    adjusted_by: Optional[int]
    adjusted_at: datetime

    class Config:
        from_attributes = True


class SheetCalculationRequest(BaseModel):
    reams: int = 0
    sheets: int = 0
    sheets_per_ream: int = 500
    cost_per_ream: Optional[Decimal] = None


# =============================================================================
# MATERIALS / WASTE
# =============================================================================

class MaterialLineIn(BaseModel):
    """
    One material line on a job. `id` identifies an existing usage line when
    replacing a job's materials; new lines leave it empty.
    """
    id: Optional[int] = None
    material_id: Optional[int] = None
    material_name: str = Field(..., min_length=1)
    paper_size: Optional[str] = None
    paper_type: Optional[str] = None
    grammage: Optional[int] = None
    quantity: int = Field(..., ge=0, description="Quantity in sheets")
    unit_cost: Optional[Decimal] = Field(None, ge=0)
    usage_type: UsageType = UsageType.PRODUCTION
    notes: Optional[str] = None
    update_inventory: bool = True


class MaterialUsageOut(BaseModel):
    id: int
    job_id: int
    material_id: Optional[int]
    material_name: str
    paper_size: Optional[str]
    paper_type: Optional[str]
    grammage: Optional[int]
    quantity_sheets: int
    sheets_short: int
    unit_cost: Decimal
    total_cost: Decimal
    usage_type: UsageType
    inventory_updated: bool
    notes: Optional[str]
    recorded_by: Optional[int]
    recorded_at: datetime

    class Config:
        from_attributes = True


class WasteLineIn(BaseModel):
    type: WasteType = WasteType.OTHER
    description: Optional[str] = None
    material_id: Optional[int] = None
    quantity: int = Field(0, ge=0)
    unit_cost: Decimal = Field(Decimal("0"), ge=0)
    total_cost: Optional[Decimal] = Field(None, ge=0)
    waste_reason: Optional[str] = None
    update_inventory: bool = False


class WasteExpenseOut(BaseModel):
    id: int
    job_id: int
    material_id: Optional[int]
    type: WasteType
    description: Optional[str]
    quantity: int
    unit_cost: Decimal
    total_cost: Decimal
    waste_reason: Optional[str]
    inventory_updated: bool
    created_at: datetime

    class Config:
        from_attributes = True


class MaterialsUpdateRequest(BaseModel):
    materials: List[MaterialLineIn] = []
    edit_reason: str
    return_stock_on_delete: Optional[bool] = None
    allow_fuzzy_match: Optional[bool] = None


class MaterialEditHistoryOut(BaseModel):
    id: int
    material_usage_id: Optional[int]
    job_id: int
    material_id: Optional[int]
    previous_material_name: Optional[str]
    previous_paper_size: Optional[str]
    previous_paper_type: Optional[str]
    previous_grammage: Optional[int]
    previous_quantity: Optional[int]
    previous_unit_cost: Optional[Decimal]
    previous_total_cost: Optional[Decimal]
    new_material_name: Optional[str]
    new_paper_size: Optional[str]
    new_paper_type: Optional[str]
    new_grammage: Optional[int]
    new_quantity: Optional[int]
    new_unit_cost: Optional[Decimal]
    new_total_cost: Optional[Decimal]
    stock_delta_sheets: int
    previous_material_id: Optional[int] = None
    returned_sheets: int = 0
    edit_reason: str
    edited_by: Optional[int]
    edited_at: datetime

    class Config:
        from_attributes = True


# =============================================================================
# JOBS
# =============================================================================

class JobCreate(BaseModel):
    customer_id: Optional[int] = None
    customer_name: Optional[str] = None
    customer_phone: Optional[str] = None
    customer_email: Optional[EmailStr] = None
    description: Optional[str] = None
    total_cost: Decimal = Field(..., ge=0)
    mode_of_payment: Optional[str] = None
    delivery_deadline: Optional[datetime] = None
    worker_id: Optional[int] = None


class JobUpdate(BaseModel):
    description: Optional[str] = None
    total_cost: Optional[Decimal] = Field(None, ge=0)
    mode_of_payment: Optional[str] = None
    delivery_deadline: Optional[datetime] = None


class JobStatusUpdate(BaseModel):
    status: JobStatus
    materials: List[MaterialLineIn] = []
    waste: List[WasteLineIn] = []
    allow_fuzzy_match: Optional[bool] = None


class JobOut(BaseModel):
    id: int
    ticket_id: str
    customer_id: int
    worker_id: int
    description: Optional[str]
    total_cost: Decimal
    amount_paid: Decimal
    balance: Decimal
    payment_status: PaymentStatus
    status: JobStatus
    mode_of_payment: Optional[str]
    date_requested: Optional[datetime]
    delivery_deadline: Optional[datetime]
    created_at: datetime
    updated_at: Optional[datetime]

    class Config:
        from_attributes = True


class CustomerOut(BaseModel):
    id: int
    name: str
    phone: Optional[str]
    email: Optional[str]
    total_jobs_count: int
    total_amount_billed: Decimal
    total_amount_paid: Decimal
    first_interaction_date: Optional[datetime]
    last_interaction_date: Optional[datetime]

    class Config:
        from_attributes = True


class CustomerDetailOut(CustomerOut):
    outstanding_balance: Decimal = Decimal("0")
    jobs: List[JobOut] = []


class PaymentOut(BaseModel):
    id: int
    job_id: int
    amount: Decimal
    payment_type: PaymentType
    payment_method: PaymentMethod
    receipt_number: str
    notes: Optional[str]
    recorded_by: Optional[str]
    date: datetime

    class Config:
        from_attributes = True


class JobDetailOut(JobOut):
    customer_name: Optional[str] = None
    materials: List[MaterialUsageOut] = []
    waste: List[WasteExpenseOut] = []
    payments: List[PaymentOut] = []
    edit_history: List[MaterialEditHistoryOut] = []


# =============================================================================
# PAYMENTS
# =============================================================================

class PaymentCreate(BaseModel):
    job_id: int
    amount: Decimal = Field(..., gt=0)
    payment_type: PaymentType
    payment_method: PaymentMethod
    notes: Optional[str] = None

    @validator('amount')
    def validate_amount(cls, v):
        return v.quantize(Decimal("0.01"))


class PaymentRecorded(BaseModel):
    payment: PaymentOut
    job: JobOut


class PaymentListItem(BaseModel):
    payment: PaymentOut
    ticket_id: str
    customer_name: Optional[str] = None


class PaymentListOut(BaseModel):
    payments: List[PaymentListItem] = []
    total: int
    total_amount: Decimal


class ReceiptOut(BaseModel):
    payment: PaymentOut
    ticket_id: str
    description: Optional[str] = None
    total_cost: Decimal
    amount_paid: Decimal
    balance: Decimal
    date_requested: Optional[datetime] = None
    delivery_deadline: Optional[datetime] = None
    customer_name: Optional[str] = None
    customer_phone: Optional[str] = None
    customer_email: Optional[str] = None
    payment_history: List[PaymentOut] = []


# =============================================================================
# NOTIFICATIONS
# =============================================================================

class NotificationOut(BaseModel):
    id: int
    user_id: Optional[int]
    role: Optional[str]
    title: str
    message: str
    type: str
    related_entity_id: Optional[int]
    priority: str
    read: bool
    created_at: datetime

    class Config:
        from_attributes = True

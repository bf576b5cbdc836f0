from pydantic import BaseModel, ConfigDict, Field
from typing import List, Optional
from datetime import datetime


class BatchRequest(BaseModel):
    batch_size: int = Field(10, ge=1, le=500)


class OrderPrepareRequest(BaseModel):
    date_from: Optional[datetime] = None
    date_to: Optional[datetime] = None
    status: Optional[str] = Field(None, examples=["completed"])


class PrepareResponse(BaseModel):
    inserted: int
    skipped: int
    total: int


class BatchResponse(BaseModel):
    processed: int
    errors: int
    remaining: int
    reset: Optional[int] = None


class StatusCounts(BaseModel):
    pending: int = 0
    success: int = 0
    error: int = 0
    total: int = 0


class ProductStats(BaseModel):
    products: StatusCounts
    variations: StatusCounts


class OrderStats(StatusCounts):
    total_value: float = 0.0
    average_value: float = 0.0


class ProductErrorRow(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    unit_key: str
    source_parent_id: int
    source_variant_id: Optional[int] = None
    dest_parent_id: Optional[int] = None
    message: Optional[str] = None
    updated_at: datetime


class CustomerErrorRow(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    source_user_id: int
    customer_email: str
    customer_type: str
    message: Optional[str] = None
    updated_at: datetime


class OrderErrorRow(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    source_order_id: int
    order_status: str
    order_total: float
    order_date: datetime
    message: Optional[str] = None
    updated_at: datetime


class DependencyCheck(BaseModel):
    passed: bool
    message: str


class OrderReadiness(BaseModel):
    products_migrated: DependencyCheck
    customers_migrated: DependencyCheck
    categories_mapped: DependencyCheck
    orders_prepared: DependencyCheck
    ready: bool


class VerificationCounts(BaseModel):
    pending: int = 0
    verified: int = 0
    failed: int = 0
    total: int = 0


class VerificationTable(BaseModel):
    exists: bool
    table_name: str
    stats: VerificationCounts
    message: str


class PopulateResponse(BaseModel):
    inserted: int
    skipped: int
    errors: int


class VerifyBatchResponse(BaseModel):
    verified: int
    failed: int
    remaining: int
    reset: Optional[int] = None


class WeightBatchResponse(BaseModel):
    updated: int
    failed: int
    remaining: int
    messages: List[str] = []


class CleanupResponse(BaseModel):
    deleted: int
    cutoff: str


class VerificationRow(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    unit_key: str
    source_parent_id: int
    source_variant_id: Optional[int] = None
    dest_parent_id: int
    dest_variant_id: Optional[int] = None
    verification_status: str
    verification_message: Optional[str] = None
    last_verified: Optional[datetime] = None

# saleflow/schemas/billing/usage_schemas.py

from typing import Optional

from pydantic import BaseModel


class UsageCounter(BaseModel):
    used: int
    # None means unlimited
    limit: Optional[int]


class PlanUsage(BaseModel):
    plan: str
    sales: UsageCounter
    variants: UsageCounter

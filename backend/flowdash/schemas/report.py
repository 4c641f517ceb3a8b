from pydantic import BaseModel
from typing import Optional


class ProductionReportRow(BaseModel):
    product_name: str
    color: Optional[str] = None
    design: Optional[str] = None
    total_production: int

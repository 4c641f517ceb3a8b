"""
Bulk product import from CSV.

Expected header: name, sku, category, design, color, quality, packaging[, image_url].
``quality`` and ``packaging`` may hold several comma-separated values.
Row numbers in the report count the header as row 1.
"""
import csv
import io
from typing import List, Optional

from fastapi import HTTPException, status
from pydantic import BaseModel, ValidationError, field_validator
from sqlalchemy.orm import Session

from flowdash.core.db_transaction import db_transaction
from flowdash.core.logging_config import get_logger
from flowdash.models.product import AttributeTypeEnum, Product
from flowdash.services.product_service import ensure_attribute, with_default_packaging

logger = get_logger("import_service")

REQUIRED_COLUMNS = ("name", "sku", "category", "design", "color", "quality", "packaging")


class ProductCsvRow(BaseModel):
    name: str
    sku: str
    category: str
    design: str
    color: str
    quality: str
    packaging: str
    image_url: Optional[str] = None

    @field_validator('name', 'sku', 'category', 'design', 'color', 'quality', 'packaging', mode='before')
    @classmethod
    def required_text(cls, v, info):
        v = (v or "").strip()
        if not v:
            raise ValueError(f"{info.field_name.capitalize()} is required")
        return v

    @field_validator('image_url', mode='before')
    @classmethod
    def optional_url(cls, v):
        v = (v or "").strip()
        if not v:
            return None
        if not (v.startswith("http://") or v.startswith("https://") or v.startswith("/")):
            raise ValueError("Image URL must be a valid URL")
        return v

    @property
    def qualities(self) -> List[str]:
        return [q.strip() for q in self.quality.split(",") if q.strip()]

    @property
    def packaging_types(self) -> List[str]:
        return [p.strip() for p in self.packaging.split(",") if p.strip()]


def _error_messages(exc: ValidationError) -> List[str]:
    messages = []
    for err in exc.errors():
        msg = err.get("msg", "Invalid value")
        # pydantic prefixes custom messages with "Value error, "
        if msg.startswith("Value error, "):
            msg = msg[len("Value error, "):]
        messages.append(msg)
    return messages


def decode_csv(raw: bytes) -> str:
    try:
        return raw.decode("utf-8-sig")
    except UnicodeDecodeError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Error parsing CSV file"
        )


def import_products(db: Session, content: str, organization_id: int) -> dict:
    reader = csv.DictReader(io.StringIO(content))
    if not reader.fieldnames:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="CSV file is empty")
    header = {(f or "").strip().lower() for f in reader.fieldnames}
    missing = [c for c in REQUIRED_COLUMNS if c not in header]
    if missing:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Missing required columns: {', '.join(missing)}"
        )

    all_rows = []
    for raw_row in reader:
        row = {(k or "").strip().lower(): (v if isinstance(v, str) else "") for k, v in raw_row.items()}
        if not any(value.strip() for value in row.values()):
            continue
        all_rows.append(row)

    error_rows = []
    to_create: List[ProductCsvRow] = []
    skus_in_file = set()
    for index, row in enumerate(all_rows):
        row_number = index + 2
        try:
            parsed = ProductCsvRow(**{k: row.get(k) for k in ProductCsvRow.model_fields})
        except ValidationError as e:
            error_rows.append({"row": row_number, "errors": _error_messages(e)})
            continue
        if parsed.sku in skus_in_file:
            error_rows.append({"row": row_number, "errors": [f"Duplicate SKU '{parsed.sku}' in this CSV file."]})
            continue
        skus_in_file.add(parsed.sku)
        to_create.append(parsed)

    existing_skus = {
        sku for (sku,) in db.query(Product.sku).filter(Product.organization_id == organization_id).all()
    }
    to_insert = [p for p in to_create if p.sku not in existing_skus]
    skipped = [{"sku": p.sku, "name": p.name} for p in to_create if p.sku in existing_skus]

    with db_transaction(db, "import_products"):
        known = {}
        for item in to_insert:
            ensure_attribute(db, organization_id, AttributeTypeEnum.CATEGORY, item.category, known)
            ensure_attribute(db, organization_id, AttributeTypeEnum.DESIGN, item.design, known)
            ensure_attribute(db, organization_id, AttributeTypeEnum.COLOR, item.color, known)
            qualities = [
                ensure_attribute(db, organization_id, AttributeTypeEnum.QUALITY, q, known)
                for q in item.qualities
            ]
            packaging = [
                ensure_attribute(db, organization_id, AttributeTypeEnum.PACKAGING_TYPE, p, known)
                for p in with_default_packaging(item.packaging_types)
            ]
            product = Product(
                organization_id=organization_id,
                name=item.name,
                sku=item.sku,
                category=item.category,
                design=item.design,
                color=item.color,
                image_url=item.image_url,
                is_archived=False,
            )
            product.qualities = _unique(qualities)
            product.packaging_types = _unique(packaging)
            db.add(product)

    logger.info(
        f"CSV import: {len(all_rows)} rows, {len(to_insert)} imported, "
        f"{len(skipped)} skipped, {len(error_rows)} errors",
        extra={"organization_id": organization_id},
    )
    return {
        "totalRows": len(all_rows),
        "importedCount": len(to_insert),
        "skippedCount": len(skipped),
        "errorCount": len(error_rows),
        "importedProducts": [{"sku": p.sku, "name": p.name} for p in to_insert],
        "skippedProducts": skipped,
        "errorRows": error_rows,
    }


def _unique(attributes):
    seen = []
    for attribute in attributes:
        if attribute is not None and attribute not in seen:
            seen.append(attribute)
    return seen

"""
Supplier bulk upload from CSV or Excel sheets.

Columns are matched by their template header ("Company Name*") with plain
fallbacks ("Company Name", "name"). Rows are keyed by email when present,
otherwise by (name, phone).
"""
import io
import logging
from typing import Dict, List, Optional

import pandas as pd
from pydantic import BaseModel, Field

from pcdungeon.database import create_document, db, utcnow
from pcdungeon.errors import ValidationError

logger = logging.getLogger(__name__)

COLUMN_ALIASES = {
    "name": ("Company Name*", "Company Name", "name"),
    "contact": ("Contact Person*", "Contact Person", "contact"),
    "email": ("Email", "email"),
    "phone": ("Phone*", "Phone", "phone"),
    "website": ("Website", "website"),
    "location": ("Location", "location"),
    "address": ("Address*", "Address", "address"),
}
REQUIRED = ("name", "contact", "phone", "address")
MAX_REPORTED_ERRORS = 10


class RowError(BaseModel):
    row: int
    message: str


class UploadReport(BaseModel):
    created: int = 0
    updated: int = 0
    errors: List[RowError] = Field(default_factory=list)

    @property
    def has_errors(self) -> bool:
        return bool(self.errors)

    def summary(self) -> dict:
        return {
            "created": self.created,
            "updated": self.updated,
            "errors": len(self.errors),
            "error_details": [e.model_dump() for e in self.errors[:MAX_REPORTED_ERRORS]],
        }


def read_sheet(filename: str, content: bytes) -> pd.DataFrame:
    name = (filename or "").lower()
    if name.endswith(".csv"):
        reader = pd.read_csv
    elif name.endswith((".xlsx", ".xls")):
        reader = pd.read_excel
    else:
        raise ValidationError("Unsupported file format. Please use CSV or Excel files.")
    try:
        frame = reader(io.BytesIO(content), dtype=str, keep_default_na=False)
    except (ValueError, pd.errors.ParserError) as exc:
        raise ValidationError(f"Failed to parse file: {exc}")
    frame.columns = [str(c).strip().replace('"', "") for c in frame.columns]
    if frame.empty:
        raise ValidationError("File is empty or has no data rows")
    return frame


def map_row(row: Dict[str, str]) -> Dict[str, Optional[str]]:
    mapped = {}
    for field, aliases in COLUMN_ALIASES.items():
        value = None
        for alias in aliases:
            raw = row.get(alias)
            if raw is not None and str(raw).strip():
                value = str(raw).strip()
                break
        mapped[field] = value
    if mapped["email"]:
        mapped["email"] = mapped["email"].lower()
    return mapped


def _find_existing(data: dict) -> Optional[dict]:
    if data["email"]:
        return db["supplier"].find_one({"email": data["email"]})
    return db["supplier"].find_one({"name": data["name"], "phone": data["phone"]})


def import_suppliers(frame: pd.DataFrame) -> UploadReport:
    report = UploadReport()
    # row numbers are 1-based and count the header line
    for offset, record in enumerate(frame.to_dict(orient="records")):
        row_number = offset + 2
        data = map_row(record)
        if not any(data.values()):
            continue
        if any(not data[f] for f in REQUIRED):
            report.errors.append(RowError(
                row=row_number,
                message="Missing required fields (Company Name, Contact Person, Phone, Address)"))
            continue
        existing = _find_existing(data)
        if existing:
            update = {k: v for k, v in data.items() if v is not None}
            update["updated_at"] = utcnow()
            db["supplier"].update_one({"_id": existing["_id"]}, {"$set": update})
            report.updated += 1
        else:
            doc = {k: v for k, v in data.items() if v is not None}
            doc.update({"products": [], "comments": [], "ratings": [], "average_rating": 0})
            create_document("supplier", doc)
            report.created += 1
    logger.info("Supplier upload: created=%d updated=%d errors=%d",
                report.created, report.updated, len(report.errors))
    return report

"""
Custom build assembly.

``assemble`` validates a list of ``(category, component, quantity)``
selections against the catalog and prices it. Incompatibilities found by the
compatibility resolver are returned as warnings only; they never block a
save. Whether they are computed at all is controlled by the
``enable_compatibility_check`` setting.
"""
import logging
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from pcdungeon import compatibility, pricing, settings_store
from pcdungeon.database import db, find_many_by_ids
from pcdungeon.errors import ValidationError

logger = logging.getLogger(__name__)


class BuildAssessment(BaseModel):
    total_price: float = 0
    errors: List[str] = Field(default_factory=list)
    missing_categories: List[str] = Field(default_factory=list)
    warnings: List[compatibility.CompatibilityIssue] = Field(default_factory=list)
    compatibility_checked: bool = False

    @property
    def is_valid(self) -> bool:
        return not self.errors


def missing_required_categories(selections: List[dict], categories: List[dict]) -> List[dict]:
    covered = {str(s["category"]) for s in selections}
    return [c for c in categories
            if c.get("required") and c.get("is_active", True) and str(c["_id"]) not in covered]


def line_total(component: dict, quantity: int) -> float:
    return pricing.build_price(component) * quantity


def assemble(selections: List[dict], categories: List[dict], components: Dict[str, dict],
             rules: Optional[List[dict]] = None, strict: bool = True) -> BuildAssessment:
    categories_by_id = {str(c["_id"]): c for c in categories}
    assessment = BuildAssessment()
    chosen = []

    missing = missing_required_categories(selections, categories)
    if missing:
        names = [c["name"] for c in missing]
        assessment.missing_categories = names
        assessment.errors.append(f"Build is missing required categories: {', '.join(names)}")

    total = 0.0
    for sel in selections:
        category_id, component_id = str(sel["category"]), str(sel["component"])
        quantity = int(sel.get("quantity") or 1)
        category = categories_by_id.get(category_id)
        component = components.get(component_id)
        if category is None:
            assessment.errors.append(f"Category {category_id} not found")
            continue
        if component is None or not component.get("is_active", True):
            assessment.errors.append(f"Component {component_id} not found")
            continue
        if str(component.get("category")) != category_id:
            assessment.errors.append(
                f"Component '{component.get('name')}' does not belong to category '{category['name']}'")
            continue
        total += line_total(component, quantity)
        chosen.append(component)

    assessment.total_price = round(total, 2)

    if rules is not None:
        assessment.compatibility_checked = True
        assessment.warnings = compatibility.find_incompatibilities(chosen, rules)

    if strict and assessment.errors:
        raise ValidationError("; ".join(assessment.errors))
    return assessment


def evaluate(selections: List[dict], strict: bool = True) -> BuildAssessment:
    """Load the catalog context for ``selections`` and run ``assemble``."""
    categories = list(db["category"].find({"is_active": True}))
    components = find_many_by_ids("component", [str(s["component"]) for s in selections])
    rules = None
    if settings_store.get_value("enable_compatibility_check", True):
        rules = list(db["compatibilityrule"].find({"is_active": True}).sort([("created_at", 1), ("_id", 1)]))
    assessment = assemble(selections, categories, components, rules=rules, strict=strict)
    if assessment.warnings:
        logger.info("Build has %d compatibility warnings", len(assessment.warnings))
    return assessment

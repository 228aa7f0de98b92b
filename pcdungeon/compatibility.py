"""
Tag-based compatibility between components.

A rule joins two categories and lists ``(source_tag, target_tag, compatible)``
tuples. Lookup is symmetric at the category-pair level: a rule authored as
CPU -> Motherboard also answers Motherboard -> CPU, with the tags swapped.

Resolution order for ``is_compatible(a, b, rules)``:

1. an explicit ``incompatible_with`` link in either direction is a hard "no";
2. no active rule for the category pair means compatible;
3. otherwise the first tuple (rules in creation order, tuples in list order)
   whose tags both match decides;
4. with no matching tuple, the pair is compatible unless some matching rule
   whitelists tags (has a ``compatible: true`` tuple), in which case
   anything not whitelisted is incompatible.
"""
from itertools import combinations
from typing import Iterable, List, Optional, Tuple

from pydantic import BaseModel


class CompatibilityIssue(BaseModel):
    components: Tuple[str, str]
    names: Tuple[str, str]
    message: str


def normalize_rule_tuples(tuples: Iterable[dict]) -> List[dict]:
    """Collapse duplicate ``(source_tag, target_tag)`` pairs, last one wins."""
    merged = {}
    for t in tuples:
        key = (t["source_tag"].strip().lower(), t["target_tag"].strip().lower())
        merged.pop(key, None)
        merged[key] = {"source_tag": t["source_tag"].strip(), "target_tag": t["target_tag"].strip(),
                       "compatible": bool(t.get("compatible", True))}
    return list(merged.values())


def _id(doc: dict) -> str:
    return str(doc.get("_id", doc.get("id", "")))


def _tags(component: dict) -> set:
    return {t.strip().lower() for t in component.get("tags") or [] if t}


def explicitly_incompatible(a: dict, b: dict) -> bool:
    a_links = {str(x) for x in (a.get("compatibility") or {}).get("incompatible_with") or []}
    b_links = {str(x) for x in (b.get("compatibility") or {}).get("incompatible_with") or []}
    return _id(b) in a_links or _id(a) in b_links


def rules_for_pair(a: dict, b: dict, rules: Iterable[dict]) -> List[Tuple[dict, dict, dict]]:
    """Active rules touching the pair, each oriented as ``(rule, source, target)``.

    ``rules`` must already be in creation order.
    """
    cat_a, cat_b = str(a.get("category")), str(b.get("category"))
    oriented = []
    for rule in rules:
        if not rule.get("is_active", True):
            continue
        src, tgt = str(rule.get("source_category")), str(rule.get("target_category"))
        if (src, tgt) == (cat_a, cat_b):
            oriented.append((rule, a, b))
        elif (src, tgt) == (cat_b, cat_a):
            oriented.append((rule, b, a))
    return oriented


def check_pair(a: dict, b: dict, rules: Iterable[dict]) -> Optional[str]:
    """Return a reason string when ``a`` and ``b`` are incompatible, else None."""
    if explicitly_incompatible(a, b):
        return "Marked as incompatible"

    oriented = rules_for_pair(a, b, rules)
    if not oriented:
        return None

    whitelisted = False
    for rule, source, target in oriented:
        source_tags, target_tags = _tags(source), _tags(target)
        for t in rule.get("rules") or []:
            if t.get("compatible", True):
                whitelisted = True
            if t["source_tag"].lower() in source_tags and t["target_tag"].lower() in target_tags:
                if t.get("compatible", True):
                    return None
                return f"{rule.get('name', 'Rule')}: {t['source_tag']} is not compatible with {t['target_tag']}"

    if whitelisted:
        names = ", ".join(r.get("name", "rule") for r, _, _ in oriented)
        return f"No matching compatible tags ({names})"
    return None


def is_compatible(a: dict, b: dict, rules: Iterable[dict]) -> bool:
    return check_pair(a, b, list(rules)) is None


def find_incompatibilities(components: List[dict], rules: Iterable[dict]) -> List[CompatibilityIssue]:
    rules = list(rules)
    issues = []
    for a, b in combinations(components, 2):
        if _id(a) == _id(b):
            continue
        reason = check_pair(a, b, rules)
        if reason:
            issues.append(CompatibilityIssue(
                components=(_id(a), _id(b)),
                names=(a.get("name", ""), b.get("name", "")),
                message=reason,
            ))
    return issues

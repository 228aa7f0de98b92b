import math
from typing import Any, Dict, Optional

from pcdungeon.database import serialize_document


def success(data: Any = None, message: Optional[str] = None, **extra) -> Dict[str, Any]:
    body: Dict[str, Any] = {"status": "success"}
    body.update(extra)
    body["data"] = serialize_document(data)
    if message:
        body["message"] = message
    return body


def page_info(total: int, page: int, limit: int, results: int) -> Dict[str, int]:
    return {
        "results": results,
        "total_results": total,
        "current_page": page,
        "total_pages": math.ceil(total / limit) if limit else 0,
    }

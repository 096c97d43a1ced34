# dispensary/compliance/engine.py
from datetime import datetime, timezone
from typing import Any, Iterable, List, Optional
from sqlalchemy.orm import Session
from ..config import settings
from ..utils.logging import logger
from .dosage import compute_dosage, day_window
from .repository import find_store, find_user
from .rules import resolve_rule
from .subject import validate_subject
from .types import ComplianceResult, LineItem, Violation, STORE_STATE_UNKNOWN

def _as_line_items(items: Iterable[Any]) -> List[LineItem]:
    return [i if isinstance(i, LineItem) else LineItem.model_validate(i) for i in items]

def check_order_compliance(
    db: Session,
    user_id: str,
    store_id: str,
    items: Iterable[Any],
    now: Optional[datetime] = None,
) -> ComplianceResult:
    """
    Gate for order creation. Reads only.

    Violations come back in evaluation order (user, store, verification,
    DOB/underage, dosage). A missing store short-circuits with
    STORE_STATE_UNKNOWN; a missing user skips the dosage check. Database
    errors and InvalidTimezoneError (bad store timezone) are not caught here.
    """
    now = now or datetime.now(timezone.utc)
    line_items = _as_line_items(items)

    store = find_store(db, store_id)
    if store is None or not store.state_code:
        logger.info("Compliance check user=%s store=%s: store state unknown", user_id, store_id)
        return ComplianceResult.from_violations([Violation(
            code=STORE_STATE_UNKNOWN,
            message="Store location is required for compliance checking.",
        )])

    rule = resolve_rule(db, store.state_code)
    window = day_window(now, store.timezone or settings.COMPLIANCE_TIMEZONE)

    user = find_user(db, user_id)
    violations = validate_subject(user, rule, window.day)
    if user is not None:
        violations += compute_dosage(db, user_id, store_id, line_items, rule, window)

    result = ComplianceResult.from_violations(violations)
    logger.info(
        "Compliance check user=%s store=%s state=%s valid=%s codes=%s",
        user_id, store_id, store.state_code, result.is_valid, result.codes(),
    )
    return result

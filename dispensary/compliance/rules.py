# dispensary/compliance/rules.py
from typing import Optional
from sqlalchemy.orm import Session
from ..utils.logging import logger
from .repository import find_rule, normalize_state_code
from .types import RuleSnapshot

def resolve_rule(db: Session, state_code: str) -> Optional[RuleSnapshot]:
    """
    Jurisdiction rule for a state, or None.
    None is the permissive default: the engine applies no age or dosage checks.
    """
    rule = find_rule(db, state_code)
    if rule is None:
        logger.warning("No compliance rule for state %s; permissive default applies",
                       normalize_state_code(state_code))
    return rule

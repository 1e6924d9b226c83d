"""
Nudge Engine

Runs every nudge rule for one user and returns the deliveries created.

Per rule:
1. NudgeGate.should_skip (disabled / muted / cooldown)
2. rule.evaluate (read-only ledger heuristics)
3. NudgeDeliveryService.deliver (commit + best-effort push)

A failing rule is logged and skipped; the others still run.

Usage:
    engine = NudgeEngine(db, dispatcher=get_dispatcher())
    new_nudges = engine.run_checks(user_id)
"""
import logging
from datetime import datetime
from typing import List, Optional, Sequence

from sqlalchemy.orm import Session

from ...models.db_models import NudgeDeliveryDB
from .delivery import NudgeDeliveryService
from .gate import NudgeGate
from .ledger_reader import LedgerReader
from .rules import RULES, NudgeRule, RuleContext, NUDGE_TIMEZONE, to_naive_utc


logger = logging.getLogger(__name__)


class NudgeEngine:
    """Coordinator for the rule set."""

    def __init__(
        self,
        db: Session,
        dispatcher=None,
        rules: Sequence[NudgeRule] = RULES,
        tz=NUDGE_TIMEZONE,
    ):
        self.db = db
        self.rules = tuple(rules)
        self.tz = tz
        self.gate = NudgeGate(db)
        self.ledger = LedgerReader(db)
        self.deliveries = NudgeDeliveryService(db, dispatcher=dispatcher)

    def run_checks(self, user_id: str, now: Optional[datetime] = None) -> List[NudgeDeliveryDB]:
        """
        Evaluate all rules for `user_id` in their fixed order.

        Args:
            user_id: User to check
            now: Evaluation instant (default: current UTC time)

        Returns:
            Deliveries created in this run, in rule order
        """
        now = to_naive_utc(now) if now is not None else datetime.utcnow()
        ctx = RuleContext(user_id=user_id, now=now, ledger=self.ledger, tz=self.tz)

        created: List[NudgeDeliveryDB] = []
        for rule in self.rules:
            try:
                delivery = self._run_rule(rule, ctx)
            except Exception as e:
                logger.error(f"Nudge rule {rule.code.value} failed for user {user_id}: {e}")
                self.db.rollback()
                continue
            if delivery is not None:
                created.append(delivery)

        logger.info(f"Nudge check for user {user_id}: {len(created)} new of {len(self.rules)} rules")
        return created

    def _run_rule(self, rule: NudgeRule, ctx: RuleContext) -> Optional[NudgeDeliveryDB]:
        if self.gate.should_skip(ctx.user_id, rule.code, ctx.now):
            return None

        candidate = rule.evaluate(ctx)
        if candidate is None:
            return None

        return self.deliveries.deliver(ctx.user_id, candidate, now=ctx.now)

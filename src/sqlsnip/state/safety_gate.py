"""Safety gate in front of query execution.

Modification statements are assessed by the gateway before they run; an
unsafe assessment, or one with warnings, blocks execution until the user
confirms.
"""

import logging
from dataclasses import dataclass

from ..dialects import SqlDialect
from ..gateway import SafetyCheck, SqlIntelligence
from .models import GatePhase

logger = logging.getLogger(__name__)

MODIFICATION_KEYWORDS = ("UPDATE", "DELETE", "INSERT", "DROP", "TRUNCATE")


def is_modification_query(sql: str) -> bool:
    """Whether ``sql`` starts with a data- or schema-modifying keyword.

    This is a plain prefix test, so a leading comment or quoted identifier
    hides the keyword.
    """
    return sql.strip().upper().startswith(MODIFICATION_KEYWORDS)


@dataclass(frozen=True)
class GateDecision:
    """Outcome of evaluating a statement: ``RUNNING`` or ``BLOCKED``."""

    phase: GatePhase
    assessment: SafetyCheck | None = None

    @property
    def blocked(self) -> bool:
        return self.phase is GatePhase.BLOCKED


class SafetyGate:
    """Decides whether a statement may run immediately.

    Args:
        intelligence: Gateway used for the safety assessment
    """

    def __init__(self, intelligence: SqlIntelligence):
        self._intelligence = intelligence

    @staticmethod
    def requires_check(code: str, skip_check: bool = False) -> bool:
        return not skip_check and is_modification_query(code)

    async def evaluate(
        self,
        code: str,
        dialect: SqlDialect | str = SqlDialect.POSTGRESQL,
        skip_check: bool = False,
    ) -> GateDecision:
        """Assess ``code`` and decide the next gate phase.

        Fails open: if the assessment itself raises, the statement runs.
        """
        if not self.requires_check(code, skip_check):
            return GateDecision(GatePhase.RUNNING)

        try:
            assessment = await self._intelligence.check_safety(code, dialect)
        except Exception:
            logger.exception("Safety check failed, proceeding with execution")
            return GateDecision(GatePhase.RUNNING)

        if assessment.requires_approval:
            logger.info("Execution blocked pending approval: %d warning(s)", len(assessment.warnings))
            return GateDecision(GatePhase.BLOCKED, assessment)
        return GateDecision(GatePhase.RUNNING, assessment)

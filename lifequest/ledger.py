"""XP ledger: the single write path for every XP award.

Task completion, journal finalization and the manual award endpoints all
go through grant_xp(). Order of operations:

    1. validate the target (exists, owned by the caller)  → no write on failure
    2. append the XpGrant row                              → audit trail
    3. update the entity's numeric fields                  → may fail

If step 3 raises, the exception propagates and the ledger row from step 2
stays. replay_stat_totals() rebuilds stat totals from the ledger for
exactly that situation. Direct progression edits also leave a ledger row
(record_progression_edit), so a replay never undoes them.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import date

from pydantic import BaseModel, Field

from lifequest.errors import UnknownOrUnauthorizedEntity
from lifequest.models import (
    EntityType,
    FamilyMember,
    SourceType,
    Stat,
    StatAward,
    XpApplication,
    XpGrant,
    utcnow,
)
from lifequest.progression import apply_xp, connection_level, current_level_xp, validate_progression
from lifequest.storage import Storage

logger = logging.getLogger(__name__)


class GrantOutcome(BaseModel):
    grant: XpGrant
    progression: XpApplication | None = None  # stats only
    entity: Stat | FamilyMember | None = None


class AppliedAward(BaseModel):
    award: StatAward
    grant: XpGrant
    progression: XpApplication | None = None


class AwardFailure(BaseModel):
    stat_id: str
    xp_amount: int
    route: str
    error: str


class AwardReport(BaseModel):
    applied: list[AppliedAward] = Field(default_factory=list)
    failures: list[AwardFailure] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Target lookup
# ---------------------------------------------------------------------------

def _load_target(
    storage: Storage, owner_user_id: str, entity_type: EntityType, entity_id: str
) -> Stat | FamilyMember | None:
    if entity_type == "character_stat":
        target = storage.get_stat(entity_id)
    elif entity_type == "family_member":
        target = storage.get_family_member(entity_id)
    else:
        # goals, projects and adventures carry no XP field yet
        return None
    if target is None:
        raise UnknownOrUnauthorizedEntity(entity_type, entity_id)
    if target.user_id != owner_user_id:
        raise UnknownOrUnauthorizedEntity(entity_type, entity_id, forbidden=True)
    return target


def _update_stat(storage: Storage, stat: Stat, xp_amount: int) -> tuple[Stat, XpApplication]:
    result = apply_xp(stat.total_xp, stat.current_level, xp_amount)
    stat.total_xp = result.new_total_xp
    stat.current_level = result.new_level
    stat.current_xp = max(0, current_level_xp(result.new_total_xp, result.new_level))
    stat.updated_at = utcnow()
    storage.save_stat(stat)
    return stat, result


def _update_family_member(storage: Storage, member: FamilyMember, xp_amount: int) -> FamilyMember:
    member.connection_xp = max(0, member.connection_xp + xp_amount)
    member.connection_level = connection_level(member.connection_xp)
    member.updated_at = utcnow()
    storage.save_family_member(member)
    return member


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def grant_xp(
    storage: Storage,
    owner_user_id: str,
    entity_type: EntityType,
    entity_id: str,
    xp_amount: int,
    source_type: SourceType,
    source_id: str | None = None,
    reason: str = "",
) -> GrantOutcome:
    """Record one award in the ledger, then apply it to the entity."""
    target = _load_target(storage, owner_user_id, entity_type, entity_id)

    grant = storage.append_grant(XpGrant(
        user_id=owner_user_id,
        entity_type=entity_type,
        entity_id=entity_id,
        xp_amount=xp_amount,
        source_type=source_type,
        source_id=source_id,
        reason=reason,
    ))
    logger.info(
        "xp grant %s: %+d to %s %s (source %s %s)",
        grant.id, xp_amount, entity_type, entity_id, source_type, source_id,
    )

    if isinstance(target, Stat):
        stat, result = _update_stat(storage, target, xp_amount)
        if result.leveled_up:
            logger.info("stat %s leveled %d -> %d", stat.id, result.old_level, result.new_level)
        return GrantOutcome(grant=grant, progression=result, entity=stat)
    if isinstance(target, FamilyMember):
        member = _update_family_member(storage, target, xp_amount)
        return GrantOutcome(grant=grant, entity=member)
    return GrantOutcome(grant=grant)


def apply_awards(
    storage: Storage,
    owner_user_id: str,
    awards: Iterable[StatAward],
    source_type: SourceType,
    source_id: str | None = None,
    reason: str = "",
) -> AwardReport:
    """Grant each award independently; one failure never blocks the rest.

    Missing secondary targets (legacy stat_id, focus stat) are skipped.
    Missing primary targets and unexpected errors are recorded as failures.
    """
    report = AwardReport()
    for award in awards:
        try:
            outcome = grant_xp(
                storage, owner_user_id, "character_stat", award.stat_id,
                award.xp_amount, source_type, source_id, reason,
            )
        except UnknownOrUnauthorizedEntity as e:
            if not award.is_primary:
                logger.debug("skipping %s award target %s: %s", award.route, award.stat_id, e)
                continue
            logger.warning("award to %s failed: %s", award.stat_id, e)
            report.failures.append(AwardFailure(
                stat_id=award.stat_id, xp_amount=award.xp_amount, route=award.route, error=str(e),
            ))
        except Exception as e:
            logger.exception("award to %s failed", award.stat_id)
            report.failures.append(AwardFailure(
                stat_id=award.stat_id, xp_amount=award.xp_amount, route=award.route, error=str(e),
            ))
        else:
            report.applied.append(AppliedAward(
                award=award, grant=outcome.grant, progression=outcome.progression,
            ))
    return report


def list_grants(
    storage: Storage,
    owner_user_id: str,
    *,
    entity_type: str | None = None,
    entity_id: str | None = None,
    source_type: str | None = None,
    source_id: str | None = None,
    limit: int | None = None,
    offset: int = 0,
) -> list[XpGrant]:
    """Owner's ledger rows, newest first, optionally filtered."""
    grants = list(reversed(storage.list_grants(owner_user_id)))
    if entity_type is not None:
        grants = [g for g in grants if g.entity_type == entity_type]
    if entity_id is not None:
        grants = [g for g in grants if g.entity_id == entity_id]
    if source_type is not None:
        grants = [g for g in grants if g.source_type == source_type]
    if source_id is not None:
        grants = [g for g in grants if g.source_id == source_id]
    grants.sort(key=lambda g: g.created_at, reverse=True)
    grants = grants[offset:]
    if limit is not None:
        grants = grants[:limit]
    return grants


def replay_stat_totals(storage: Storage, owner_user_id: str) -> list[Stat]:
    """Rebuild every stat of the owner from its ledger rows.

    Grants are replayed oldest first through apply_xp starting from level 1
    and 0 XP. Stats whose stored values differ are rewritten; the corrected
    stats are returned.
    """
    by_stat: dict[str, list[XpGrant]] = {}
    for grant in storage.list_grants(owner_user_id):
        if grant.entity_type == "character_stat":
            by_stat.setdefault(grant.entity_id, []).append(grant)

    corrected = []
    for stat in storage.list_stats(owner_user_id):
        total, level = 0, 1
        for grant in by_stat.get(stat.id, []):
            result = apply_xp(total, level, grant.xp_amount)
            total, level = result.new_total_xp, result.new_level
        if (total, level) == (stat.total_xp, stat.current_level):
            continue
        logger.warning(
            "stat %s out of sync with ledger: stored %d XP/L%d, ledger %d XP/L%d",
            stat.id, stat.total_xp, stat.current_level, total, level,
        )
        stat.total_xp = total
        stat.current_level = level
        stat.current_xp = current_level_xp(total, level)
        stat.updated_at = utcnow()
        storage.save_stat(stat)
        corrected.append(stat)
    return corrected


def record_progression_edit(
    storage: Storage,
    owner_user_id: str,
    stat_id: str,
    total_xp: int,
    current_level: int,
    current_xp: int | None = None,
) -> Stat:
    """Directly set a stat's total XP and level.

    The pair has to fit the curve (InconsistentProgressionEdit otherwise).
    The difference to the stored total is written to the ledger as a signed
    manual grant, so replay_stat_totals() lands on the edited values.
    """
    stat = _load_target(storage, owner_user_id, "character_stat", stat_id)
    validate_progression(total_xp, current_level, current_xp)

    delta = total_xp - stat.total_xp
    if delta:
        storage.append_grant(XpGrant(
            user_id=owner_user_id,
            entity_type="character_stat",
            entity_id=stat.id,
            xp_amount=delta,
            source_type="manual",
            reason="Direct progression edit",
        ))
    stat.total_xp = total_xp
    stat.current_level = current_level
    stat.current_xp = current_level_xp(total_xp, current_level)
    stat.updated_at = utcnow()
    storage.save_stat(stat)
    logger.info("stat %s edited to %d XP / L%d (ledger %+d)", stat.id, total_xp, current_level, delta)
    return stat


# ---------------------------------------------------------------------------
# Aggregation
# ---------------------------------------------------------------------------

class StatXpTotal(BaseModel):
    stat_id: str
    stat_name: str
    total_xp: int


def xp_by_stat(
    storage: Storage,
    owner_user_id: str,
    start: date | None = None,
    end: date | None = None,
    source_type: str | None = None,
) -> list[StatXpTotal]:
    """Net XP per stat from grants created between start and end (inclusive days).

    Used for quest and weekly summaries. Grants to deleted stats are left
    out, and so are stats with no grants in the window.
    """
    if start is not None and end is not None and start > end:
        raise ValueError("start must not be after end")

    totals: dict[str, int] = {}
    for grant in storage.list_grants(owner_user_id):
        if grant.entity_type != "character_stat":
            continue
        if source_type is not None and grant.source_type != source_type:
            continue
        day = grant.created_at.date()
        if (start is not None and day < start) or (end is not None and day > end):
            continue
        totals[grant.entity_id] = totals.get(grant.entity_id, 0) + grant.xp_amount

    return [
        StatXpTotal(stat_id=stat.id, stat_name=stat.name, total_xp=totals[stat.id])
        for stat in storage.list_stats(owner_user_id)
        if stat.id in totals
    ]

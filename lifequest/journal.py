"""Journal finalization and the journal XP heuristic.

A finalized entry awards the same amount to every stat it is tagged with:

    base   = clamp(words / 10, 5, 50), x1.5 if a tag mentions reflection,
             growth, achievement, challenge or learning
    amount = base                       if the entry reads positive
           = -floor(base * 0.5)         if negative phrases outnumber positive

Linked family members receive the positive base amount as connection XP.
After the XP is written the LLM may add a title and summary; that step is
optional and its failures are only logged. Stats pushed over a threshold get
level titles the same way task completion gives them.
"""

from __future__ import annotations

import logging
import math

from pydantic import BaseModel, Field

from lifequest.errors import UnknownOrUnauthorizedEntity
from lifequest.ledger import AppliedAward, AwardFailure, apply_awards, grant_xp
from lifequest.leveling import title_leveled_awards
from lifequest.llm import LLM, parse_json_output
from lifequest.models import JournalEntry, StatAward, XpGrant, utcnow
from lifequest.prompts import JOURNAL_ENRICHMENT_TEMPLATE, render_prompt
from lifequest.storage import Storage

logger = logging.getLogger(__name__)

MIN_JOURNAL_XP = 5
MAX_JOURNAL_XP = 50
MEANINGFUL_TAGS = ("reflection", "growth", "achievement", "challenge", "learning")

NEGATIVE_PATTERNS = (
    "failed", "failure", "gave up", "quit", "disappointed", "frustrated",
    "couldn't", "didn't try", "avoided", "procrastinated", "lazy",
    "angry", "upset", "sad", "depressed", "terrible", "awful", "horrible",
)
POSITIVE_PATTERNS = (
    "succeeded", "achieved", "accomplished", "completed", "finished",
    "tried", "attempted", "practiced", "learned", "improved", "better",
    "happy", "proud", "excited", "great", "amazing", "wonderful", "excellent",
)


class JournalFinalization(BaseModel):
    journal: JournalEntry
    awards: list[AppliedAward] = Field(default_factory=list)
    failures: list[AwardFailure] = Field(default_factory=list)
    family_grants: list[XpGrant] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Heuristic (pure)
# ---------------------------------------------------------------------------

def journal_base_xp(content: str, content_tags: list[str]) -> int:
    words = len(content.split())
    base = min(max(words / 10, MIN_JOURNAL_XP), MAX_JOURNAL_XP)
    tags = [t.lower() for t in content_tags]
    if any(m in tag for tag in tags for m in MEANINGFUL_TAGS):
        base *= 1.5
    return math.floor(base)


def is_positive(content: str) -> bool:
    """Ties and neutral text count as positive."""
    text = content.lower()
    negative = sum(1 for p in NEGATIVE_PATTERNS if p in text)
    positive = sum(1 for p in POSITIVE_PATTERNS if p in text)
    return positive >= negative


def journal_xp_awards(content: str, content_tags: list[str], stat_ids: list[str]) -> list[StatAward]:
    if not stat_ids:
        return []
    amount = journal_base_xp(content, content_tags)
    if not is_positive(content):
        amount = -math.floor(amount * 0.5)
    return [
        StatAward(stat_id=sid, xp_amount=amount, route="linked")
        for sid in dict.fromkeys(stat_ids)
    ]


# ---------------------------------------------------------------------------
# Finalization
# ---------------------------------------------------------------------------

def _reason(content: str, positive: bool) -> str:
    preview = content[:50] + ("..." if len(content) > 50 else "")
    action = "practicing" if positive else "struggling"
    return f'Journal entry shows {action}: "{preview}"'


async def finalize_journal(
    storage: Storage,
    llm: LLM | None,
    user_id: str,
    journal_id: str,
    titles_enabled: bool = True,
) -> JournalFinalization:
    entry = storage.get_journal(journal_id)
    if entry is None:
        raise UnknownOrUnauthorizedEntity("journal", journal_id)
    if entry.user_id != user_id:
        raise UnknownOrUnauthorizedEntity("journal", journal_id, forbidden=True)
    if entry.is_finalized:
        raise ValueError("Journal entry is already finalized")

    entry.is_finalized = True
    entry.finalized_at = utcnow()
    storage.save_journal(entry)

    reason = _reason(entry.content, is_positive(entry.content))
    awards = journal_xp_awards(entry.content, entry.content_tags, entry.stat_ids)
    report = apply_awards(storage, user_id, awards, "journal", entry.id, reason)
    result = JournalFinalization(journal=entry, awards=report.applied, failures=report.failures)

    family_xp = journal_base_xp(entry.content, entry.content_tags)
    for member_id in dict.fromkeys(entry.family_member_ids):
        try:
            outcome = grant_xp(
                storage, user_id, "family_member", member_id, family_xp,
                "journal", entry.id, "Mentioned in journal entry",
            )
        except UnknownOrUnauthorizedEntity as e:
            logger.warning("Journal %s: skipping family member: %s", entry.id, e)
            continue
        result.family_grants.append(outcome.grant)

    if titles_enabled:
        await title_leveled_awards(storage, llm, user_id, report.applied)
    if llm is not None:
        await _enrich(storage, llm, entry)
    return result


async def _enrich(storage: Storage, llm: LLM, entry: JournalEntry) -> None:
    """Ask the LLM for a title and summary. Failures are logged and ignored."""
    try:
        prompt = render_prompt(JOURNAL_ENRICHMENT_TEMPLATE, {
            "content": entry.content, "tags": entry.content_tags,
        })
        raw = await llm("journal_enrichment", prompt)
    except Exception as e:
        logger.warning("Journal enrichment failed for %s: %s", entry.id, e)
        return

    data = parse_json_output(raw)
    if not data:
        return
    title, summary = data.get("title"), data.get("summary")
    if isinstance(title, str) and title.strip() and not entry.title:
        entry.title = title.strip()
    if isinstance(summary, str) and summary.strip():
        entry.summary = summary.strip()
    storage.save_journal(entry)

"""Create a demo account for development/testing."""

import logging
import shutil

from lifequest.auth import TokenAuth
from lifequest.ledger import grant_xp
from lifequest.models import AdHocTask, FamilyMember, Focus, JournalEntry, Task, XpGrant, utcnow
from lifequest.onboarding import onboard_user
from lifequest.storage import Storage

logger = logging.getLogger(__name__)

DEMO_EMAIL = "demo@lifequest.local"

# Stats whose stored level lags their XP, so the level-up flow has
# something to do: 400 XP @ L1, 700 XP @ L1, 1200 XP @ L2.
LAGGING_STATS = {
    "Physical Health": (400, 1),
    "Mental Wellness": (700, 1),
    "Professional Growth": (1200, 2),
}


def create_demo_data(storage: Storage, auth: TokenAuth | None = None) -> str | None:
    """Wipe existing tables and create a fresh demo user.

    Returns a bearer token for the demo user when `auth` is given.
    """
    tables = storage.base_path / "tables"
    if tables.exists():
        shutil.rmtree(tables)
    tables.mkdir(parents=True, exist_ok=True)

    user, character, stats = onboard_user(
        storage,
        email=DEMO_EMAIL,
        name="Demo Player",
        character_name="Aria",
        character_class="Ranger",
        backstory="A former office dweller who traded spreadsheets for trail maps.",
    )
    by_name = {s.name: s for s in stats}

    for name, (total_xp, level) in LAGGING_STATS.items():
        stat = by_name[name]
        # ledgered so a replay keeps the XP
        storage.append_grant(XpGrant(
            user_id=user.id, entity_type="character_stat", entity_id=stat.id,
            xp_amount=total_xp, source_type="manual", reason="Imported progress",
        ))
        stat.total_xp = total_xp
        stat.current_level = level
        stat.current_xp = 0
        storage.save_stat(stat)

    storage.save_focus(Focus(
        user_id=user.id, name="Move Monday", day_of_week=0, stat_id=by_name["Physical Health"].id,
    ))
    kid = storage.save_family_member(FamilyMember(
        user_id=user.id, name="Milo", relationship="son", interests=["lego", "dinosaurs"],
    ))
    grant_xp(storage, user.id, "family_member", kid.id, 150, "manual", None, "Built a lego castle together")

    adhoc = storage.save_adhoc_task(AdHocTask(
        user_id=user.id, title="Fix the bike", stat_id=by_name["Creative Expression"].id, custom_xp=40,
    ))
    today = utcnow().date()
    storage.save_task(Task(
        user_id=user.id, title=adhoc.title, source="ad-hoc", estimated_xp=40,
        stat_id=adhoc.stat_id, adhoc_task_id=adhoc.id, task_date=today,
    ))
    storage.save_task(Task(
        user_id=user.id, title="Morning run", source="external", estimated_xp=30,
        linked_stat_ids=[by_name["Physical Health"].id, by_name["Mental Wellness"].id],
        task_date=today,
    ))
    storage.save_task(Task(user_id=user.id, title="Buy milk", source="todo", task_date=today))
    storage.save_journal(JournalEntry(
        user_id=user.id,
        content="Finished a long run and felt proud. Learned that pacing matters.",
        content_tags=["growth"],
        stat_ids=[by_name["Physical Health"].id],
        family_member_ids=[kid.id],
    ))

    logger.info("Demo data created for %s (character %s)", DEMO_EMAIL, character.name)
    return auth.issue(user.id, user.email) if auth else None

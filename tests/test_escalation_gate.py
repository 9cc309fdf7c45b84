"""
Escalation gate tests: open matter counting and override handling.
"""

import pytest

from workday.models import db
from workday.models.day_close import DayCloseOverride
from workday.models.escalation import EscalationMatter, EscalationMatterMember
from workday.services import escalation_gate
from workday.services.escalation_gate import compute_paused


def _matter(status, *workers):
    matter = EscalationMatter(title=f"{status} matter", status=status)
    db.session.add(matter)
    db.session.flush()
    for worker in workers:
        db.session.add(EscalationMatterMember(matter_id=matter.id, user_id=worker.id))
    db.session.commit()
    return matter


class TestComputePaused:
    @pytest.mark.parametrize("open_count, override, expected", [
        (3, False, True),
        (3, True, False),
        (0, False, False),
        (0, True, False),
    ])
    def test_truth_table(self, open_count, override, expected):
        assert compute_paused(open_count, override) is expected


class TestEvaluate:
    def test_counts_only_non_closed(self, member):
        _matter("OPEN", member)
        _matter("IN_PROGRESS", member)
        _matter("ESCALATED", member)
        _matter("CLOSED", member)

        state = escalation_gate.evaluate(member.id)

        assert state.open_count == 3
        assert state.paused is True
        assert state.override_active is False

    def test_other_workers_matters_ignored(self, member, make_worker):
        other = make_worker("Omar Other")
        _matter("OPEN", other)

        assert escalation_gate.evaluate(member.id).paused is False

    def test_shared_matter_counts_for_each_member(self, member, make_worker):
        other = make_worker("Omar Other")
        _matter("OPEN", member, other)

        assert escalation_gate.evaluate(member.id).open_count == 1
        assert escalation_gate.evaluate(other.id).open_count == 1

    def test_to_dict(self, member):
        assert escalation_gate.evaluate(member.id).to_dict() == {
            "paused": False, "open_count": 0, "override_active": False,
        }


class TestOverride:
    def test_active_override_unpauses(self, member, admin):
        _matter("OPEN", member)

        escalation_gate.set_override(member.id, True, actor_id=admin.id)
        state = escalation_gate.evaluate(member.id)

        assert state.paused is False
        assert state.open_count == 1
        assert state.override_active is True

    def test_toggle_keeps_single_row(self, member, admin):
        escalation_gate.set_override(member.id, True, actor_id=admin.id, reason="  ")
        override = escalation_gate.set_override(member.id, False, actor_id=admin.id)

        assert override.active is False
        assert override.reason is None
        rows = db.session.execute(db.select(DayCloseOverride)).scalars().all()
        assert len(rows) == 1

    def test_inactive_override_does_not_unpause(self, member, admin):
        _matter("OPEN", member)
        escalation_gate.set_override(member.id, False, actor_id=admin.id)

        assert escalation_gate.evaluate(member.id).paused is True

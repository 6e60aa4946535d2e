"""Session lifecycle and assignment matrix against a real database."""
from datetime import datetime, timezone

import pytest
from sqlalchemy import func, select

from app.core.exceptions import (
    AlreadyAssignedError,
    IllegalStateTransitionError,
    NotFoundError,
    ValidationError,
)
from app.models import AssessmentAssignment, OrganizationMembership
from app.schemas.session import (
    AssignmentBulkRequest,
    AssignmentCreateRequest,
    AssignmentUpdateRequest,
    SessionCreateRequest,
    SessionUpdateRequest,
)
from app.services.assignment_service import AssignmentService
from app.services.session_service import SessionService
from tests.conftest import create_assignment, create_template, create_user


def session_request(graph, **overrides) -> SessionCreateRequest:
    values = {
        "organization_id": graph.org.id,
        "template_id": graph.template.id,
        "name": "Autumn review",
        "start_at": datetime(2024, 1, 1, tzinfo=timezone.utc),
        "end_at": datetime(2024, 1, 2, tzinfo=timezone.utc),
    }
    values.update(overrides)
    return SessionCreateRequest(**values)


async def live_assignment_count(db, session_id: int) -> int:
    result = await db.execute(
        select(func.count(AssessmentAssignment.id)).where(
            AssessmentAssignment.session_id == session_id,
            AssessmentAssignment.deleted_at.is_(None),
        )
    )
    return result.scalar_one()


class TestSessionService:

    async def test_create_scheduled(self, db_session, graph):
        session = await SessionService(db_session).create(session_request(graph))
        assert session.state == "SCHEDULED"
        assert session.organization_id == graph.org.id

    async def test_create_requires_active_template(self, db_session, graph):
        draft = await create_template(db_session, graph.org, state="DRAFT", slug="draft-template")
        with pytest.raises(ValidationError) as exc:
            await SessionService(db_session).create(session_request(graph, template_id=draft.id))
        assert exc.value.message == "Template must be ACTIVE"

    async def test_create_rejects_inverted_window(self, db_session, graph):
        request = session_request(
            graph,
            start_at=datetime(2024, 1, 2, tzinfo=timezone.utc),
            end_at=datetime(2024, 1, 1, tzinfo=timezone.utc),
        )
        with pytest.raises(ValidationError) as exc:
            await SessionService(db_session).create(request)
        assert exc.value.field == "end_at"

    async def test_create_rejects_unknown_organization(self, db_session, graph):
        with pytest.raises(ValidationError):
            await SessionService(db_session).create(session_request(graph, organization_id=999))

    async def test_transition_follows_table(self, db_session, graph):
        service = SessionService(db_session)
        with pytest.raises(IllegalStateTransitionError):
            await service.update(graph.session.id, SessionUpdateRequest(state="COMPLETED"))

        session = await service.update(graph.session.id, SessionUpdateRequest(state="IN_PROGRESS"))
        assert session.state == "IN_PROGRESS"
        session = await service.update(graph.session.id, SessionUpdateRequest(state="COMPLETED"))
        assert session.state == "COMPLETED"

        with pytest.raises(IllegalStateTransitionError):
            await service.update(graph.session.id, SessionUpdateRequest(state="IN_PROGRESS"))

    async def test_forced_transition(self, db_session, graph):
        session = await SessionService(db_session).update(
            graph.session.id, SessionUpdateRequest(state="COMPLETED", force=True)
        )
        assert session.state == "COMPLETED"

    async def test_soft_delete_cancels(self, db_session, graph):
        service = SessionService(db_session)
        deleted = await service.soft_delete(graph.session.id)
        assert deleted.state == "CANCELLED"
        assert deleted.deleted_at is not None
        with pytest.raises(NotFoundError):
            await service.get(graph.session.id)

    async def test_question_count(self, db_session, graph):
        counts = await SessionService(db_session).get_question_count(graph.session.id)
        assert counts == {"session_id": graph.session.id, "template_id": graph.template.id, "total": 4}

    async def test_list_for_user(self, db_session, graph):
        await create_assignment(db_session, graph.session, graph.respondent)
        await create_assignment(db_session, graph.session, graph.respondent, graph.peer, perspective="PEER")
        entries, total, page, page_size = await SessionService(db_session).list_for_user(graph.respondent.id)

        assert total == 1
        assert entries[0]["session"].id == graph.session.id
        assert sorted(entries[0]["perspectives"]) == ["PEER", "SELF"]

    async def test_questions_for_perspective(self, db_session, graph):
        await create_assignment(db_session, graph.session, graph.respondent)
        projection = await SessionService(db_session).get_questions_for_user_perspective(
            graph.session.id, graph.respondent.id, "SELF"
        )
        questions = projection["sections"][0]["questions"]
        assert [q["template_question_id"] for q in questions] == [link.id for link in graph.links]
        assert projection["responses"] == []

    async def test_questions_for_missing_assignment(self, db_session, graph):
        with pytest.raises(NotFoundError):
            await SessionService(db_session).get_questions_for_user_perspective(
                graph.session.id, graph.peer.id, "SELF"
            )

    async def test_questions_non_self_needs_subject(self, db_session, graph):
        with pytest.raises(ValidationError):
            await SessionService(db_session).get_questions_for_user_perspective(
                graph.session.id, graph.peer.id, "PEER"
            )


class TestAssignmentService:

    async def test_self_defaults_subject(self, db_session, graph):
        assignment = await AssignmentService(db_session).add(
            AssignmentCreateRequest(session_id=graph.session.id, respondent_user_id=graph.respondent.id)
        )
        assert assignment.perspective == "SELF"
        assert assignment.subject_user_id == graph.respondent.id

    async def test_self_with_explicit_subject_is_kept(self, db_session, graph):
        assignment = await AssignmentService(db_session).add(
            AssignmentCreateRequest(
                session_id=graph.session.id,
                respondent_user_id=graph.respondent.id,
                subject_user_id=graph.peer.id,
                perspective="SELF",
            )
        )
        assert assignment.subject_user_id == graph.peer.id

    async def test_non_self_requires_subject(self, db_session, graph):
        with pytest.raises(ValidationError) as exc:
            await AssignmentService(db_session).add(
                AssignmentCreateRequest(
                    session_id=graph.session.id, respondent_user_id=graph.respondent.id, perspective="PEER"
                )
            )
        assert exc.value.field == "subject_user_id"

    async def test_invalid_perspective(self, db_session, graph):
        with pytest.raises(ValidationError):
            await AssignmentService(db_session).add(
                AssignmentCreateRequest(
                    session_id=graph.session.id, respondent_user_id=graph.respondent.id, perspective="BOSS"
                )
            )

    async def test_unknown_user(self, db_session, graph):
        with pytest.raises(ValidationError) as exc:
            await AssignmentService(db_session).add(
                AssignmentCreateRequest(session_id=graph.session.id, respondent_user_id=9999)
            )
        assert exc.value.details["user_ids"] == [9999]

    async def test_duplicate_tuple(self, db_session, graph):
        service = AssignmentService(db_session)
        request = AssignmentCreateRequest(session_id=graph.session.id, respondent_user_id=graph.respondent.id)
        await service.add(request)
        with pytest.raises(AlreadyAssignedError):
            await service.add(request)
        assert await live_assignment_count(db_session, graph.session.id) == 1

    async def test_remove_then_add_restores_row(self, db_session, graph):
        service = AssignmentService(db_session)
        request = AssignmentCreateRequest(session_id=graph.session.id, respondent_user_id=graph.respondent.id)
        first = await service.add(request)
        await service.remove(first.id)
        assert await live_assignment_count(db_session, graph.session.id) == 0

        again = await service.add(request)
        assert again.id == first.id
        assert again.deleted_at is None

    async def test_restore(self, db_session, graph):
        service = AssignmentService(db_session)
        assignment = await create_assignment(db_session, graph.session, graph.respondent)
        await service.remove(assignment.id)

        restored = await service.restore(assignment.id)
        assert restored.deleted_at is None
        with pytest.raises(NotFoundError):
            await service.restore(assignment.id)

    async def test_removed_assignment_cannot_be_removed_or_updated(self, db_session, graph):
        service = AssignmentService(db_session)
        assignment = await create_assignment(db_session, graph.session, graph.respondent)
        assert await service.remove(assignment.id) == {"id": assignment.id}

        with pytest.raises(NotFoundError):
            await service.remove(assignment.id)
        with pytest.raises(NotFoundError):
            await service.update(assignment.id, AssignmentUpdateRequest(perspective="SELF"))

    async def test_update_into_taken_tuple(self, db_session, graph):
        await create_assignment(db_session, graph.session, graph.respondent, graph.peer, perspective="PEER")
        manager = await create_assignment(
            db_session, graph.session, graph.respondent, graph.peer, perspective="MANAGER"
        )
        with pytest.raises(AlreadyAssignedError):
            await AssignmentService(db_session).update(manager.id, AssignmentUpdateRequest(perspective="PEER"))

    async def test_bulk_fan_out_dedupes(self, db_session, graph):
        reviewer = await create_user(db_session, "Reviewer", graph.org)
        first = await create_user(db_session, "First", graph.org)
        second = await create_user(db_session, "Second", graph.org)
        request = AssignmentBulkRequest(
            session_id=graph.session.id,
            perspective="PEER",
            respondent_user_id=reviewer.id,
            subject_user_ids=[first.id, second.id, second.id],
        )
        service = AssignmentService(db_session)

        assert await service.bulk_assign(request) == {"created": 2}
        assignments = await service.list(graph.session.id)
        assert {a.respondent_user_id for a in assignments} == {reviewer.id}
        assert sorted(a.subject_user_id for a in assignments) == sorted([first.id, second.id])

        assert await service.bulk_assign(request) == {"created": 0}
        assert await live_assignment_count(db_session, graph.session.id) == 2

    async def test_bulk_fan_out_rejects_self(self, db_session, graph):
        with pytest.raises(ValidationError):
            await AssignmentService(db_session).bulk_assign(
                AssignmentBulkRequest(
                    session_id=graph.session.id,
                    perspective="SELF",
                    respondent_user_id=graph.respondent.id,
                    subject_user_ids=[graph.peer.id],
                )
            )

    async def test_bulk_self(self, db_session, graph):
        service = AssignmentService(db_session)
        request = AssignmentBulkRequest(
            session_id=graph.session.id, user_ids=[graph.respondent.id, graph.peer.id, graph.peer.id]
        )
        assert await service.bulk_assign(request) == {"created": 2}
        assert await service.bulk_assign(request) == {"created": 0}

    async def test_bulk_is_all_or_nothing_on_unknown_user(self, db_session, graph):
        with pytest.raises(ValidationError):
            await AssignmentService(db_session).bulk_assign(
                AssignmentBulkRequest(session_id=graph.session.id, user_ids=[graph.respondent.id, 9999])
            )
        assert await live_assignment_count(db_session, graph.session.id) == 0

    async def test_bulk_non_self_without_respondent(self, db_session, graph):
        with pytest.raises(ValidationError):
            await AssignmentService(db_session).bulk_assign(
                AssignmentBulkRequest(session_id=graph.session.id, perspective="PEER", user_ids=[graph.peer.id])
            )

    async def test_ensure_self_assignment_is_idempotent(self, db_session, graph):
        service = AssignmentService(db_session)
        first, created = await service.ensure_self_assignment(graph.session.id, graph.peer.id)
        assert created is True
        second, created = await service.ensure_self_assignment(graph.session.id, graph.peer.id)
        assert created is False
        assert second.id == first.id

    async def test_ensure_self_assignment_joins_organization(self, db_session, graph):
        newcomer = await create_user(db_session, "Newcomer")
        await AssignmentService(db_session).ensure_self_assignment(
            graph.session.id, newcomer.id, join_organization=True
        )
        result = await db_session.execute(
            select(OrganizationMembership).where(OrganizationMembership.user_id == newcomer.id)
        )
        membership = result.scalar_one()
        assert membership.organization_id == graph.org.id
        assert membership.roles == ["MEMBER"]

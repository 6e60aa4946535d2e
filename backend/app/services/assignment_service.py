"""Assignment matrix service.

An assignment binds (session, respondent, subject, perspective). The store's
unique constraint on that tuple is the authority; the existence checks here
only produce a friendlier error, and a constraint violation that slips past
them is reported as AlreadyAssignedError.
"""
import logging
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import atomic
from app.core.exceptions import AlreadyAssignedError, NotFoundError, ValidationError
from app.models.enums import PERSPECTIVE_VALUES, OrgRole, Perspective
from app.models.session import AssessmentAssignment, AssessmentSession
from app.repositories.assignment import AssignmentRepository
from app.repositories.organization import MembershipRepository, UserRepository
from app.repositories.session import SessionRepository
from app.schemas.session import AssignmentBulkRequest, AssignmentCreateRequest, AssignmentUpdateRequest

logger = logging.getLogger(__name__)


def validate_perspective(value: Optional[str]) -> str:
    """Perspective literal, defaulting to SELF when omitted."""
    if not value:
        return Perspective.SELF.value
    if value not in PERSPECTIVE_VALUES:
        raise ValidationError("Invalid perspective", field="perspective", details={"value": value})
    return value


def _unique_ids(values: List[Any]) -> List[int]:
    """De-duplicate ids keeping first-seen order; non-numeric entries are dropped."""
    seen: List[int] = []
    for value in values:
        try:
            number = int(value)
        except (TypeError, ValueError):
            continue
        if number not in seen:
            seen.append(number)
    return seen


class AssignmentService:
    """Service for the (session, respondent, subject, perspective) matrix."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.repository = AssignmentRepository(db)
        self.session_repository = SessionRepository(db)
        self.user_repository = UserRepository(db)
        self.membership_repository = MembershipRepository(db)

    async def _ensure_session(self, session_id: int) -> AssessmentSession:
        session = await self.session_repository.get_active(session_id)
        if not session:
            raise ValidationError("Invalid sessionId", field="session_id")
        return session

    async def _ensure_users(self, user_ids: List[int]) -> None:
        found = {u.id for u in await self.user_repository.get_active_many(user_ids)}
        missing = [uid for uid in user_ids if uid not in found]
        if missing:
            raise ValidationError("Invalid userId", field="user_id", details={"user_ids": missing})

    async def _write(self, session_id: int, respondent_user_id: int, subject_user_id: int, perspective: str, work):
        """Run ``work`` in a savepoint, mapping a tuple collision to AlreadyAssignedError."""
        try:
            async with atomic(self.db):
                return await work()
        except IntegrityError as e:
            logger.info(f"[ASSIGNMENT_SERVICE] Unique tuple violation in session {session_id}: {e.orig}")
            raise AlreadyAssignedError(
                "Assignment already exists",
                details={
                    "session_id": session_id,
                    "respondent_user_id": respondent_user_id,
                    "subject_user_id": subject_user_id,
                    "perspective": perspective,
                },
            )

    async def add(self, data: AssignmentCreateRequest) -> AssessmentAssignment:
        await self._ensure_session(data.session_id)
        perspective = validate_perspective(data.perspective)
        respondent_id = data.respondent_user_id
        subject_id = data.subject_user_id
        if subject_id is None:
            if perspective != Perspective.SELF.value:
                raise ValidationError("subjectUserId required for non-SELF", field="subject_user_id")
            subject_id = respondent_id
        await self._ensure_users(_unique_ids([respondent_id, subject_id]))

        existing = await self.repository.get_by_tuple(data.session_id, respondent_id, subject_id, perspective)
        if existing and existing.deleted_at is None:
            raise AlreadyAssignedError(
                "Assignment already exists", details={"assignment_id": existing.id}
            )

        async def work():
            if existing:
                existing.deleted_at = None
                await self.db.flush()
                return existing
            return await self.repository.create(
                session_id=data.session_id,
                respondent_user_id=respondent_id,
                subject_user_id=subject_id,
                perspective=perspective,
            )

        assignment = await self._write(data.session_id, respondent_id, subject_id, perspective, work)
        logger.info(
            f"[ASSIGNMENT_SERVICE] Assigned user {respondent_id} -> subject {subject_id} "
            f"({perspective}) in session {data.session_id}"
        )
        return assignment

    async def bulk_assign(self, data: AssignmentBulkRequest) -> Dict[str, int]:
        """Create many assignments atomically; existing live rows are skipped."""
        await self._ensure_session(data.session_id)
        perspective = validate_perspective(data.perspective)

        if data.respondent_user_id and data.subject_user_ids is not None:
            return await self._bulk_fan_out(data.session_id, data.respondent_user_id, data.subject_user_ids, perspective)

        if data.user_ids is None:
            raise ValidationError("userIds required", field="user_ids")
        if perspective != Perspective.SELF.value:
            raise ValidationError(
                "For non-SELF bulk, use respondentUserId + subjectUserIds", field="perspective"
            )
        return await self._bulk_self(data.session_id, data.user_ids)

    async def _bulk_fan_out(
        self, session_id: int, respondent_id: int, subject_user_ids: List[Any], perspective: str
    ) -> Dict[str, int]:
        if perspective == Perspective.SELF.value:
            raise ValidationError("Use userIds for SELF bulk", field="perspective")
        subject_ids = _unique_ids(subject_user_ids)
        if not subject_ids:
            raise ValidationError("subjectUserIds required", field="subject_user_ids")
        await self._ensure_users(_unique_ids([respondent_id] + subject_ids))

        rows = await self.repository.rows_for_subjects(session_id, respondent_id, perspective, subject_ids)
        by_subject = {row.subject_user_id: row for row in rows}

        async def work():
            created = 0
            for subject_id in subject_ids:
                row = by_subject.get(subject_id)
                if row is not None and row.deleted_at is None:
                    continue
                if row is not None:
                    row.deleted_at = None
                else:
                    self.db.add(
                        AssessmentAssignment(
                            session_id=session_id,
                            respondent_user_id=respondent_id,
                            subject_user_id=subject_id,
                            perspective=perspective,
                        )
                    )
                created += 1
            return created

        created = await self._write(session_id, respondent_id, None, perspective, work)
        logger.info(
            f"[ASSIGNMENT_SERVICE] Bulk fan-out for respondent {respondent_id} in session {session_id}: "
            f"{created} created of {len(subject_ids)}"
        )
        return {"created": created}

    async def _bulk_self(self, session_id: int, user_ids: List[Any]) -> Dict[str, int]:
        perspective = Perspective.SELF.value
        respondent_ids = _unique_ids(user_ids)
        await self._ensure_users(respondent_ids)
        if not respondent_ids:
            return {"created": 0}

        rows = await self.repository.self_rows_for(session_id, perspective, respondent_ids)
        by_respondent = {row.respondent_user_id: row for row in rows}

        async def work():
            created = 0
            for user_id in respondent_ids:
                row = by_respondent.get(user_id)
                if row is not None and row.deleted_at is None:
                    continue
                if row is not None:
                    row.deleted_at = None
                else:
                    self.db.add(
                        AssessmentAssignment(
                            session_id=session_id,
                            respondent_user_id=user_id,
                            subject_user_id=user_id,
                            perspective=perspective,
                        )
                    )
                created += 1
            return created

        created = await self._write(session_id, None, None, perspective, work)
        logger.info(f"[ASSIGNMENT_SERVICE] Bulk SELF in session {session_id}: {created} created")
        return {"created": created}

    async def list(self, session_id: int) -> List[AssessmentAssignment]:
        """Live assignments with respondent and subject loaded."""
        await self._ensure_session(session_id)
        return await self.repository.list_for_session(session_id)

    async def get(self, assignment_id: int) -> AssessmentAssignment:
        assignment = await self.repository.get_active(assignment_id)
        if not assignment:
            raise NotFoundError("Assignment not found")
        return assignment

    async def update(self, assignment_id: int, data: AssignmentUpdateRequest) -> AssessmentAssignment:
        # The tuple is not re-checked here; the store constraint still applies.
        existing = await self.repository.get_active(assignment_id)
        if not existing:
            raise NotFoundError("Assignment not found")
        perspective = validate_perspective(data.perspective) if data.perspective else existing.perspective
        subject_id = data.subject_user_id if data.subject_user_id is not None else existing.subject_user_id
        if subject_id != existing.subject_user_id:
            await self._ensure_users([subject_id])

        async def work():
            existing.perspective = perspective
            existing.subject_user_id = subject_id
            await self.db.flush()
            return existing

        return await self._write(existing.session_id, existing.respondent_user_id, subject_id, perspective, work)

    async def remove(self, assignment_id: int) -> Dict[str, int]:
        existing = await self.repository.get_active(assignment_id)
        if not existing:
            raise NotFoundError("Assignment not found")
        await self.repository.soft_delete(assignment_id)
        logger.info(f"[ASSIGNMENT_SERVICE] Removed assignment {assignment_id}")
        return {"id": assignment_id}

    async def restore(self, assignment_id: int) -> AssessmentAssignment:
        existing = await self.repository.get_by_id(assignment_id)
        if not existing or existing.deleted_at is None:
            raise NotFoundError("Soft-deleted assignment not found")
        holder = await self.repository.get_by_tuple(
            existing.session_id, existing.respondent_user_id, existing.subject_user_id, existing.perspective
        )
        if holder and holder.id != existing.id and holder.deleted_at is None:
            raise AlreadyAssignedError("Assignment already exists", details={"assignment_id": holder.id})
        return await self.repository.update(assignment_id, deleted_at=None)

    async def ensure_self_assignment(
        self, session_id: int, user_id: int, join_organization: bool = False
    ) -> Tuple[AssessmentAssignment, bool]:
        """Idempotent SELF assignment; returns ``(assignment, created)``.

        A soft-deleted row is restored and reported as created. With
        ``join_organization`` the user also gets a MEMBER membership in the
        session's organization when missing.
        """
        session = await self._ensure_session(session_id)
        await self._ensure_users([user_id])
        perspective = Perspective.SELF.value

        if join_organization:
            await self.membership_repository.ensure(user_id, session.organization_id, [OrgRole.MEMBER.value])

        existing = await self.repository.get_by_tuple(session_id, user_id, user_id, perspective)
        if existing and existing.deleted_at is None:
            return existing, False

        async def work():
            if existing:
                existing.deleted_at = None
                await self.db.flush()
                return existing
            return await self.repository.create(
                session_id=session_id,
                respondent_user_id=user_id,
                subject_user_id=user_id,
                perspective=perspective,
            )

        try:
            assignment = await self._write(session_id, user_id, user_id, perspective, work)
        except AlreadyAssignedError:
            # lost a race with a concurrent insert
            winner = await self.repository.get_by_tuple(session_id, user_id, user_id, perspective)
            if winner is None:
                raise
            return winner, False
        return assignment, True

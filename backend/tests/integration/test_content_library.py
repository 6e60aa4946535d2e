"""Question banks, option sets and questions against a real database."""
import pytest
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import select

from app.core.exceptions import (
    InsufficientAccessLevelError,
    NotFoundError,
    ResourceNotLinkedError,
    ValidationError,
)
from app.models import OptionSetOption
from app.models.enums import AccessLevel
from app.schemas.question_bank import (
    OptionInput,
    OptionSetCreateRequest,
    OptionSetUpdateRequest,
    OptionUpdateRequest,
    QuestionBankCreateRequest,
    QuestionBankUpdateRequest,
    QuestionCreateRequest,
    QuestionUpdateRequest,
)
from app.services.access_service import ResourceAccessService
from app.services.question_bank_service import OptionSetService, QuestionBankService, QuestionService


def options(*values):
    return [OptionInput(value=v, label=v.title()) for v in values]


async def stored_values(db, option_set_id: int):
    result = await db.execute(
        select(OptionSetOption.value)
        .where(OptionSetOption.option_set_id == option_set_id)
        .order_by(OptionSetOption.order)
    )
    return list(result.scalars().all())


class TestQuestionBankService:

    async def test_create_grants_creator_admin(self, db_session, graph):
        bank = await QuestionBankService(db_session).create(
            QuestionBankCreateRequest(name="Leadership", description="Shared items"), graph.org.id
        )
        level = await ResourceAccessService(db_session).check_bank(bank.id, graph.org.id, AccessLevel.ADMIN)
        assert level == AccessLevel.ADMIN

    async def test_list_only_visible_banks(self, db_session, graph):
        service = QuestionBankService(db_session)
        items, total, _, _ = await service.list(graph.org.id)
        assert [b.id for b in items] == [graph.bank.id]

        _, total, _, _ = await service.list(graph.other_org.id)
        assert total == 0

        _, total, _, _ = await service.list(graph.org.id, search="nothing-matches")
        assert total == 0

    async def test_unlinked_organization_is_denied(self, db_session, graph):
        with pytest.raises(ResourceNotLinkedError):
            await QuestionBankService(db_session).get(graph.bank.id, graph.other_org.id)

    async def test_shared_bank_respects_link_level(self, db_session, graph):
        service = QuestionBankService(db_session)
        await service.link_organization(graph.bank.id, graph.other_org.id, "USE", graph.org.id)

        assert (await service.get(graph.bank.id, graph.other_org.id)).id == graph.bank.id
        items, _, _, _ = await service.list(graph.other_org.id)
        assert [b.id for b in items] == [graph.bank.id]
        with pytest.raises(InsufficientAccessLevelError):
            await service.update(graph.bank.id, QuestionBankUpdateRequest(name="Hijacked"), graph.other_org.id)

    async def test_update_count_and_soft_delete(self, db_session, graph):
        service = QuestionBankService(db_session)
        updated = await service.update(graph.bank.id, QuestionBankUpdateRequest(name="Renamed"), graph.org.id)
        assert updated.name == "Renamed"
        assert await service.count_questions(graph.bank.id, graph.org.id) == 4

        await service.soft_delete(graph.bank.id, graph.org.id)
        with pytest.raises(NotFoundError):
            await service.get(graph.bank.id, graph.org.id)


class TestOptionSetService:

    async def test_create_with_ordered_options(self, db_session, graph):
        option_set = await OptionSetService(db_session).create(
            OptionSetCreateRequest(name="Agreement", options=options("disagree", "neutral", "agree")),
            graph.org.id,
        )
        assert [o.value for o in option_set.options] == ["disagree", "neutral", "agree"]
        assert [o.order for o in option_set.options] == [0, 1, 2]

    async def test_create_rejects_repeated_values(self, db_session, graph):
        service = OptionSetService(db_session)
        with pytest.raises(ValidationError) as exc:
            await service.create(OptionSetCreateRequest(name="Broken", options=options("yes", "yes")), graph.org.id)
        assert exc.value.field == "options"

        _, total, _, _ = await service.list(graph.org.id)
        assert total == 0

    async def test_bulk_replace_options(self, db_session, graph):
        service = OptionSetService(db_session)
        option_set = await service.create(OptionSetCreateRequest(name="Scale", options=options("a", "b")), graph.org.id)

        replaced = await service.bulk_replace_options(option_set.id, options("x", "y", "z"), graph.org.id)
        assert [o.value for o in replaced] == ["x", "y", "z"]

    async def test_bulk_replace_is_all_or_nothing(self, db_session, graph):
        service = OptionSetService(db_session)
        option_set = await service.create(OptionSetCreateRequest(name="Scale", options=options("a", "b")), graph.org.id)

        with pytest.raises(ValidationError):
            await service.bulk_replace_options(option_set.id, options("x", "y", "x"), graph.org.id)

        assert await stored_values(db_session, option_set.id) == ["a", "b"]

    async def test_update_replaces_options(self, db_session, graph):
        service = OptionSetService(db_session)
        option_set = await service.create(OptionSetCreateRequest(name="Scale", options=options("a")), graph.org.id)

        updated = await service.update(
            option_set.id, OptionSetUpdateRequest(name="Renamed", options=options("b", "c")), graph.org.id
        )
        assert updated.name == "Renamed"
        assert [o.value for o in updated.options] == ["b", "c"]

    async def test_update_and_remove_one_option(self, db_session, graph):
        service = OptionSetService(db_session)
        option_set = await service.create(OptionSetCreateRequest(name="Scale", options=options("a", "b")), graph.org.id)
        first, second = await service.list_options(option_set.id, graph.org.id)

        changed = await service.update_option(option_set.id, first.id, OptionUpdateRequest(label="Alpha"), graph.org.id)
        assert changed.label == "Alpha"

        with pytest.raises(ValidationError):
            await service.update_option(option_set.id, first.id, OptionUpdateRequest(value="b"), graph.org.id)

        assert await service.remove_option(option_set.id, second.id, graph.org.id) == second.id
        assert await stored_values(db_session, option_set.id) == ["a"]
        with pytest.raises(NotFoundError):
            await service.remove_option(option_set.id, second.id, graph.org.id)

    async def test_other_organization_needs_a_link(self, db_session, graph):
        service = OptionSetService(db_session)
        option_set = await service.create(OptionSetCreateRequest(name="Private"), graph.org.id)

        with pytest.raises(ResourceNotLinkedError):
            await service.get(option_set.id, graph.other_org.id)

        await service.link_organization(option_set.id, graph.other_org.id, "EDIT", graph.org.id)
        await service.bulk_replace_options(option_set.id, options("shared"), graph.other_org.id)
        with pytest.raises(InsufficientAccessLevelError):
            await service.soft_delete(option_set.id, graph.other_org.id)


class TestQuestionService:

    async def test_create_with_inline_options(self, db_session, graph):
        question = await QuestionService(db_session).create(
            QuestionCreateRequest(bank_id=graph.bank.id, text="Pick one", type="SINGLE_CHOICE", options=options("x", "y")),
            graph.org.id,
        )
        assert [o.value for o in question.options] == ["x", "y"]
        assert question.option_values() == ["x", "y"]

    async def test_create_with_option_set(self, db_session, graph):
        option_set = await OptionSetService(db_session).create(
            OptionSetCreateRequest(name="Agreement", options=options("agree", "disagree")), graph.org.id
        )
        question = await QuestionService(db_session).create(
            QuestionCreateRequest(
                bank_id=graph.bank.id, text="Agree?", type="SINGLE_CHOICE", option_set_id=option_set.id
            ),
            graph.org.id,
        )
        assert question.option_values() == ["agree", "disagree"]

    async def test_option_set_and_inline_options_are_exclusive(self, db_session, graph):
        option_set = await OptionSetService(db_session).create(
            OptionSetCreateRequest(name="Agreement", options=options("agree")), graph.org.id
        )
        with pytest.raises(ValidationError) as exc:
            await QuestionService(db_session).create(
                QuestionCreateRequest(
                    bank_id=graph.bank.id,
                    text="Both",
                    type="SINGLE_CHOICE",
                    option_set_id=option_set.id,
                    options=options("x"),
                ),
                graph.org.id,
            )
        assert exc.value.field == "options"

    async def test_unknown_option_set(self, db_session, graph):
        with pytest.raises(ValidationError) as exc:
            await QuestionService(db_session).create(
                QuestionCreateRequest(bank_id=graph.bank.id, text="Missing", type="SINGLE_CHOICE", option_set_id=999),
                graph.org.id,
            )
        assert exc.value.field == "option_set_id"

    async def test_unknown_bank(self, db_session, graph):
        with pytest.raises(NotFoundError):
            await QuestionService(db_session).create(
                QuestionCreateRequest(bank_id=999, text="Nowhere", type="TEXT"), graph.org.id
            )

    def test_scale_bounds_checked_on_create_request(self):
        with pytest.raises(PydanticValidationError):
            QuestionCreateRequest(bank_id=1, text="Rate", type="SCALE", min_scale=5, max_scale=1)

    async def test_scale_bounds_checked_on_update(self, db_session, graph):
        with pytest.raises(ValidationError) as exc:
            await QuestionService(db_session).update(graph.scale.id, QuestionUpdateRequest(min_scale=9), graph.org.id)
        assert exc.value.field == "min_scale"

    async def test_update_replaces_inline_options(self, db_session, graph):
        question = await QuestionService(db_session).update(
            graph.choice.id, QuestionUpdateRequest(text="Pick a level", options=options("one", "two")), graph.org.id
        )
        assert question.text == "Pick a level"
        assert question.option_values() == ["one", "two"]

    async def test_list_by_type_and_soft_delete(self, db_session, graph):
        service = QuestionService(db_session)
        items, total, _, _ = await service.list(graph.bank.id, graph.org.id, type="BOOLEAN")
        assert total == 1 and items[0].id == graph.flag.id

        await service.soft_delete(graph.flag.id, graph.org.id)
        _, total, _, _ = await service.list(graph.bank.id, graph.org.id)
        assert total == 3
        with pytest.raises(NotFoundError):
            await service.get(graph.flag.id, graph.org.id)

    async def test_other_organization_cannot_write_into_bank(self, db_session, graph):
        with pytest.raises(ResourceNotLinkedError):
            await QuestionService(db_session).create(
                QuestionCreateRequest(bank_id=graph.bank.id, text="Intruder", type="TEXT"), graph.other_org.id
            )

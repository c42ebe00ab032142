"""
Persistence gateway tests - filters, ordering, transactions and change notifications
"""
import pytest

from handoff.errors import ProviderError, ValidationError
from handoff.models.comment import Comment
from handoff.models.deliverable import Deliverable
from handoff.models.project import ProjectStep
from handoff.models.user import User
from handoff.services.gateway import PersistenceGateway
from handoff.services.realtime import INSERT, UPDATE, DELETE


def _recorder(realtime, table, column, value):
    received = []
    realtime.subscribe(table, column, value, received.append)
    return received


async def test_query_filters_and_order(gateway, seed_data):
    project_id = seed_data["project"].id
    steps = await gateway.query(ProjectStep, {"project_id": project_id}, order_by=["-order_index"])
    assert [s.title for s in steps] == ["Launch", "Design", "Brief"]


async def test_query_in_filter(gateway, seed_data):
    ids = [seed_data["brief"].id, seed_data["launch"].id]
    steps = await gateway.query(ProjectStep, {"id": ids}, order_by=["order_index"])
    assert [s.title for s in steps] == ["Brief", "Launch"]


async def test_query_null_filter(gateway, seed_data):
    designer_comments = await gateway.query(Comment, {"client_id": None})
    assert {c.content for c in designer_comments} == {"Here is the revised design.", "Brief attached."}


async def test_query_one_maybe_single(gateway, seed_data):
    assert await gateway.query_one(ProjectStep, {"id": "missing"}) is None
    step = await gateway.query_one(ProjectStep, {"title": "Design"})
    assert step.id == seed_data["design"].id


async def test_count(gateway, seed_data):
    assert await gateway.count(Deliverable, {"step_id": seed_data["design"].id}) == 2
    assert await gateway.count(Deliverable) == 3


async def test_unknown_column_rejected(gateway, seed_data):
    with pytest.raises(ValidationError):
        await gateway.query(ProjectStep, {"name": "Design"})
    with pytest.raises(ValidationError):
        await gateway.query(ProjectStep, order_by=["-position"])


async def test_insert_publishes_change(gateway, realtime, seed_data):
    project_id = seed_data["project"].id
    received = _recorder(realtime, "project_steps", "project_id", project_id)

    [step] = await gateway.insert(ProjectStep, [{"project_id": project_id, "title": "Handover", "order_index": 3}])

    assert step.id
    assert len(received) == 1
    assert received[0].event == INSERT
    assert received[0].new["title"] == "Handover"
    assert received[0].new["status"] == "upcoming"


async def test_update_and_delete_publish_old_and_new(gateway, realtime, seed_data):
    project_id = seed_data["project"].id
    received = _recorder(realtime, "project_steps", "project_id", project_id)

    rows = await gateway.update(ProjectStep, {"id": seed_data["launch"].id}, {"title": "Go-live"})
    assert [r.title for r in rows] == ["Go-live"]
    assert received[-1].event == UPDATE
    assert received[-1].old["title"] == "Launch"
    assert received[-1].new["title"] == "Go-live"

    deleted = await gateway.delete(ProjectStep, {"id": seed_data["launch"].id})
    assert len(deleted) == 1
    assert received[-1].event == DELETE
    assert received[-1].old["id"] == seed_data["launch"].id
    assert await gateway.query_one(ProjectStep, {"id": seed_data["launch"].id}) is None


async def test_update_without_filter_refused(gateway, seed_data):
    with pytest.raises(ValidationError):
        await gateway.update(ProjectStep, {}, {"title": "x"})
    with pytest.raises(ValidationError):
        await gateway.delete(ProjectStep, None)


async def test_upsert_inserts_then_updates(gateway, realtime, seed_data):
    received = _recorder(realtime, "users", "id", "u-fixed")

    await gateway.upsert(User, [{"id": "u-fixed", "email": "fixed@test.com", "full_name": "First"}])
    await gateway.upsert(User, [{"id": "u-fixed", "email": "fixed@test.com", "full_name": "Second"}])

    user = await gateway.query_one(User, {"id": "u-fixed"})
    assert user.full_name == "Second"
    assert [c.event for c in received] == [INSERT, UPDATE]
    assert await gateway.count(User, {"email": "fixed@test.com"}) == 1


async def test_unit_of_work_buffers_until_commit(gateway, realtime, seed_data):
    project_id = seed_data["project"].id
    received = _recorder(realtime, "project_steps", "project_id", project_id)

    async with gateway.unit_of_work():
        await gateway.insert(ProjectStep, [{"project_id": project_id, "title": "QA", "order_index": 3}])
        await gateway.update(ProjectStep, {"id": seed_data["launch"].id}, {"order_index": 4})
        assert received == []

    assert [c.event for c in received] == [INSERT, UPDATE]


async def test_unit_of_work_rolls_back_on_error(gateway, realtime, seed_data):
    project_id = seed_data["project"].id
    received = _recorder(realtime, "project_steps", "project_id", project_id)

    with pytest.raises(RuntimeError):
        async with gateway.unit_of_work():
            await gateway.insert(ProjectStep, [{"project_id": project_id, "title": "QA", "order_index": 3}])
            raise RuntimeError("boom")

    assert received == []
    assert await gateway.count(ProjectStep, {"project_id": project_id}) == 3


async def test_nested_unit_of_work_joins_outer(gateway, seed_data):
    project_id = seed_data["project"].id
    async with gateway.unit_of_work():
        async with gateway.unit_of_work():
            await gateway.insert(ProjectStep, [{"project_id": project_id, "title": "QA", "order_index": 3}])
        assert gateway.in_unit_of_work
    assert not gateway.in_unit_of_work
    assert await gateway.count(ProjectStep, {"project_id": project_id}) == 4


async def test_constraint_violation_normalised(gateway, seed_data):
    """A second latest version on one step trips the partial unique index"""
    # Ids are read up front; the rollback expires every loaded row
    step_id, project_id = seed_data["design"].id, seed_data["design"].project_id
    with pytest.raises(ProviderError) as exc_info:
        await gateway.insert(Deliverable, [{
            "project_id": project_id,
            "step_id": step_id,
            "title": "Duplicate latest",
            "version_number": 3,
            "is_latest": True,
            "status": "pending",
        }])
    assert exc_info.value.kind == "provider"
    assert "UNIQUE" not in exc_info.value.message

    # The session is usable again after the rollback
    assert await gateway.count(Deliverable, {"step_id": step_id}) == 2


async def test_gateway_without_realtime(db_session, seed_data):
    plain = PersistenceGateway(db_session)
    [step] = await plain.insert(ProjectStep, [{"project_id": seed_data["project"].id, "title": "QA"}])
    assert step.order_index == 0

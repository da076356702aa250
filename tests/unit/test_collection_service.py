"""CollectionService tests: typed records bound to one collection."""

import pytest
from pydantic import BaseModel

from fireaccess.application.dtos.query import Where
from fireaccess.application.services.collection_service import CollectionService
from fireaccess.application.services.document_service import DocumentService
from fireaccess.domain.exceptions import DocumentValidationError, NotFoundError


class Task(BaseModel):
    id: str
    title: str
    done: bool = False
    priority: int = 0


class NoIdModel(BaseModel):
    title: str


@pytest.fixture
def tasks(documents: DocumentService) -> CollectionService[Task]:
    return CollectionService(documents, "tasks", Task)


class TestCollectionService:
    async def test_create_from_mapping_returns_record(self, tasks: CollectionService[Task]) -> None:
        task = await tasks.create({"title": "write tests"})
        assert isinstance(task, Task)
        assert task.title == "write tests"
        assert task.done is False
        assert await tasks.read(task.id) == task

    async def test_create_from_model_does_not_store_its_id(
        self, tasks: CollectionService[Task], store
    ) -> None:
        task = await tasks.create(Task(id="ignored", title="ship"), custom_id="t1")
        assert task.id == "t1"
        assert store.collections["tasks"]["t1"] == {"title": "ship", "done": False, "priority": 0}

    async def test_update_returns_merged_record(self, tasks: CollectionService[Task]) -> None:
        task = await tasks.create({"title": "ship", "priority": 2})
        updated = await tasks.update(task.id, {"done": True})
        assert updated == Task(id=task.id, title="ship", done=True, priority=2)

    async def test_update_missing_raises_not_found(self, tasks: CollectionService[Task]) -> None:
        with pytest.raises(NotFoundError):
            await tasks.update("ghost", {"done": True})

    async def test_delete_then_read(self, tasks: CollectionService[Task]) -> None:
        task = await tasks.create({"title": "tmp"})
        await tasks.delete(task.id)
        assert await tasks.read(task.id) is None

    async def test_get_all_and_query(self, tasks: CollectionService[Task]) -> None:
        await tasks.create({"title": "a", "done": True}, custom_id="a")
        await tasks.create({"title": "b"}, custom_id="b")
        assert sorted(t.id for t in await tasks.get_all()) == ["a", "b"]
        assert [t.id for t in await tasks.query([Where("done", "==", True)])] == ["a"]

    async def test_malformed_payload_raises_validation_error(
        self, tasks: CollectionService[Task], store
    ) -> None:
        store.collections["tasks"]["bad"] = {"done": "not-a-bool-at-all"}
        with pytest.raises(DocumentValidationError) as exc_info:
            await tasks.read("bad")
        err = exc_info.value
        assert err.error_code == "DOCUMENT_VALIDATION_ERROR"
        assert err.details["collection"] == "tasks"
        assert err.details["model"] == "Task"
        assert err.details["document_id"] == "bad"
        assert {tuple(e["loc"]) for e in err.details["errors"]} >= {("title",), ("done",)}

    async def test_malformed_payload_fails_get_all(self, tasks: CollectionService[Task], store) -> None:
        store.collections["tasks"]["bad"] = {"title": ["not", "a", "string"]}
        with pytest.raises(DocumentValidationError):
            await tasks.get_all()

    def test_model_without_id_field_is_rejected(self, documents: DocumentService) -> None:
        with pytest.raises(TypeError, match="must declare an 'id' field"):
            CollectionService(documents, "things", NoIdModel)

"""Unit tests for message persistence gateways."""
import pytest
import pytest_asyncio

from pylogos.persistence import (
    InMemoryPersistenceGateway,
    MessagePersistenceGateway,
    NoOpPersistenceGateway,
    SQLitePersistenceGateway,
    StoredMessage,
    create_persistence_gateway,
)


def _me(text: str) -> StoredMessage:
    return StoredMessage(author="me", content=text)


def _ai(text: str) -> StoredMessage:
    return StoredMessage(author="AI", content=text)


@pytest_asyncio.fixture(params=["memory", "sqlite"])
async def gateway(request, tmp_path):
    """Each durable backend, connected."""
    if request.param == "memory":
        backend = InMemoryPersistenceGateway()
    else:
        backend = SQLitePersistenceGateway(tmp_path / "memory.db")
    await backend.connect()
    yield backend
    await backend.disconnect()


class TestGatewayInterface:
    """Tests for the gateway interface and factory."""

    def test_gateway_is_abstract(self):
        with pytest.raises(TypeError):
            MessagePersistenceGateway()  # type: ignore

    def test_factory(self, tmp_path):
        assert create_persistence_gateway("noop").backend_type == "noop"
        assert create_persistence_gateway("memory").backend_type == "memory"
        sqlite = create_persistence_gateway("sqlite", path=tmp_path / "m.db")
        assert sqlite.backend_type == "sqlite"

    def test_factory_rejects_unknown_backend(self):
        with pytest.raises(ValueError, match="Unsupported persistence backend"):
            create_persistence_gateway("redis")

    @pytest.mark.asyncio
    async def test_noop_discards_everything(self):
        gateway = NoOpPersistenceGateway()
        await gateway.append_message("s", _me("hi"))
        await gateway.replace_last_assistant_message("s", _ai("hello"))
        await gateway.touch_session("s")

        assert await gateway.get_messages("s") == []
        assert await gateway.remove_last_assistant_message("s") is False


class TestGateways:
    """Behaviour shared by the in-memory and SQLite gateways."""

    @pytest.mark.asyncio
    async def test_append_and_read_in_order(self, gateway):
        await gateway.append_message("s1", _me("hi"))
        await gateway.append_message("s1", _ai("hello"))
        await gateway.append_message("s2", _me("other"))

        messages = await gateway.get_messages("s1")

        assert [(m.author, m.content) for m in messages] == [("me", "hi"), ("AI", "hello")]
        assert await gateway.get_messages("missing") == []

    @pytest.mark.asyncio
    async def test_replace_last_assistant_overwrites(self, gateway):
        await gateway.append_message("s", _me("hi"))
        await gateway.append_message("s", _ai("Hel"))

        await gateway.replace_last_assistant_message("s", _ai("Hello"))
        await gateway.replace_last_assistant_message("s", _ai("Hello there"))

        messages = await gateway.get_messages("s")
        assert [m.content for m in messages] == ["hi", "Hello there"]

    @pytest.mark.asyncio
    async def test_replace_appends_when_last_is_not_assistant(self, gateway):
        await gateway.append_message("s", _me("hi"))

        await gateway.replace_last_assistant_message("s", _ai("first words"))

        messages = await gateway.get_messages("s")
        assert [m.author for m in messages] == ["me", "AI"]

    @pytest.mark.asyncio
    async def test_remove_last_assistant(self, gateway):
        await gateway.append_message("s", _me("q1"))
        await gateway.append_message("s", _ai("a1"))
        await gateway.append_message("s", _me("q2"))
        await gateway.append_message("s", _ai("a2"))

        assert await gateway.remove_last_assistant_message("s") is True

        messages = await gateway.get_messages("s")
        assert [m.content for m in messages] == ["q1", "a1", "q2"]

    @pytest.mark.asyncio
    async def test_remove_without_assistant_returns_false(self, gateway):
        await gateway.append_message("s", _me("q1"))
        assert await gateway.remove_last_assistant_message("s") is False
        assert await gateway.remove_last_assistant_message("empty") is False

    @pytest.mark.asyncio
    async def test_image_url_preserved(self, gateway):
        item = StoredMessage(author="me", content="look", image_url="data:image/png;base64,AAAA")
        await gateway.append_message("s", item)

        (stored,) = await gateway.get_messages("s")
        assert stored.image_url == "data:image/png;base64,AAAA"
        assert stored.timestamp == item.timestamp

    @pytest.mark.asyncio
    async def test_touch_session(self, gateway):
        await gateway.touch_session("s")
        await gateway.touch_session("s")
        assert await gateway.get_messages("s") == []


class TestInMemoryGateway:
    """In-memory specifics."""

    @pytest.mark.asyncio
    async def test_last_touched(self):
        gateway = InMemoryPersistenceGateway()
        assert gateway.last_touched("s") is None

        await gateway.touch_session("s")

        assert gateway.last_touched("s") is not None


class TestSQLiteGateway:
    """SQLite specifics."""

    @pytest.mark.asyncio
    async def test_history_survives_reconnect(self, tmp_path):
        path = tmp_path / "memory.db"
        first = SQLitePersistenceGateway(path)
        await first.connect()
        await first.append_message("s", _me("remember me"))
        await first.disconnect()

        second = SQLitePersistenceGateway(path)
        await second.connect()
        try:
            messages = await second.get_messages("s")
        finally:
            await second.disconnect()

        assert [m.content for m in messages] == ["remember me"]

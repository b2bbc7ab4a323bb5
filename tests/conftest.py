import pytest

from db.models import Base
from db.session import build_engine, build_session_factory, ensure_schema
from db.store import Store
from support.commands import CommandHandlers, build_command_table
from support.lookup import LookupResolver, UserDirectory
from support.menus import contact_block
from support.relay import RelayChannel
from support.router import Router
from support.tickets import TicketManager

ADMIN_ID = 7057639075
USER_ID = 42


class FakeBot:
    """Records every send attempt; raises for chat ids listed in ``failures``."""

    def __init__(self):
        self.sent = []
        self.failures = {}

    async def send_message(self, chat_id, text, **kwargs):
        self.sent.append({"chat_id": chat_id, "text": text, **kwargs})
        exc = self.failures.get(chat_id)
        if exc is not None:
            raise exc
        return {"chat_id": chat_id, "text": text}

    def to(self, chat_id):
        return [m["text"] for m in self.sent if m["chat_id"] == chat_id]


@pytest.fixture
def session_factory():
    engine = build_engine("sqlite:///:memory:")
    ensure_schema(engine)
    # stand-in for the shop backend schema
    Base.metadata.create_all(bind=engine)
    yield build_session_factory(engine)
    engine.dispose()


@pytest.fixture
def add_rows(session_factory):
    def _add(*rows):
        with session_factory() as session:
            session.add_all(rows)
            session.commit()
    return _add


@pytest.fixture
def store(session_factory):
    return Store(session_factory)


@pytest.fixture
def bot():
    return FakeBot()


@pytest.fixture
def relay(bot):
    return RelayChannel(bot, ADMIN_ID)


@pytest.fixture
def tickets(store, relay):
    return TicketManager(store, relay, list_limit=10)


@pytest.fixture
def contact():
    return contact_block("support@example.com", "@example_support")


@pytest.fixture
def router(store, relay, tickets, contact):
    handlers = CommandHandlers(
        relay=relay,
        resolver=LookupResolver(store),
        users=UserDirectory(store),
        tickets=tickets,
        contact=contact,
        bot_name="Test Shop Bot",
    )
    return Router(build_command_table(handlers), relay, store, contact)

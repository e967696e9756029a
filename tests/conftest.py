# tests/conftest.py
from dataclasses import dataclass, field
from types import SimpleNamespace
from typing import Dict, List, Optional, Set, Tuple

import pytest
from aiogram.enums import ChatMemberStatus
from aiogram.exceptions import TelegramBadRequest, TelegramForbiddenError
from aiogram.types import InlineKeyboardMarkup

from blackboard.api_client import ItemHit, ItemInfo
from blackboard.guild_config import GuildConfigStore
from blackboard.i18n import Translator
from blackboard.orders import OrderBoard, OrderPublisher
from blackboard.permissions import ModeratorCheck
from blackboard.sessions import SessionStore
from blackboard.storage import OrderIdAllocator, OrderStorage
from blackboard.wizard.commit import OrderCommitter
from blackboard.wizard.engine import WizardEngine
from blackboard.wizard.presenter import QuestionPresenter
from blackboard.wizard.resolver import ItemResolver

GUILD = -100123
USER = 42
MOD = 7


@dataclass
class FakeMessage:
    chat_id: int
    message_id: int
    text: Optional[str] = None
    caption: Optional[str] = None
    reply_markup: Optional[InlineKeyboardMarkup] = None
    photo: bool = False
    deleted: bool = False

    @property
    def buttons(self) -> List[Tuple[str, str]]:
        if self.reply_markup is None:
            return []
        return [(b.text, b.callback_data) for row in self.reply_markup.inline_keyboard for b in row]


@dataclass
class FakeBot:
    """Records what would have been sent to Telegram and mimics its edit errors."""

    messages: Dict[Tuple[int, int], FakeMessage] = field(default_factory=dict)
    history: List[FakeMessage] = field(default_factory=list)
    admins: Set[Tuple[int, int]] = field(default_factory=set)
    blocked_chats: Set[int] = field(default_factory=set)
    edit_calls: int = 0
    _next_id: int = 100

    def _new(self, chat_id: int, **kw) -> FakeMessage:
        if chat_id in self.blocked_chats:
            raise TelegramForbiddenError(method=None, message="Forbidden: bot was blocked by the user")
        self._next_id += 1
        msg = FakeMessage(chat_id=chat_id, message_id=self._next_id, **kw)
        self.messages[(chat_id, msg.message_id)] = msg
        self.history.append(msg)
        return msg

    def _get(self, chat_id: int, message_id: int) -> FakeMessage:
        msg = self.messages.get((chat_id, message_id))
        if msg is None or msg.deleted:
            raise TelegramBadRequest(method=None, message="Bad Request: message to edit not found")
        return msg

    @staticmethod
    def _sent(msg: FakeMessage):
        return SimpleNamespace(message_id=msg.message_id, chat=SimpleNamespace(id=msg.chat_id))

    async def send_message(self, chat_id, text, reply_markup=None, **kwargs):
        return self._sent(self._new(chat_id, text=text, reply_markup=reply_markup))

    async def send_photo(self, chat_id, photo, caption=None, reply_markup=None, **kwargs):
        return self._sent(self._new(chat_id, caption=caption, reply_markup=reply_markup, photo=True))

    async def edit_message_text(self, text, chat_id, message_id, reply_markup=None, **kwargs):
        self.edit_calls += 1
        msg = self._get(chat_id, message_id)
        if msg.text == text and msg.reply_markup == reply_markup:
            raise TelegramBadRequest(method=None, message="Bad Request: message is not modified")
        msg.text = text
        msg.reply_markup = reply_markup

    async def edit_message_caption(self, chat_id, message_id, caption=None, reply_markup=None, **kwargs):
        self.edit_calls += 1
        msg = self._get(chat_id, message_id)
        if msg.caption == caption and msg.reply_markup == reply_markup:
            raise TelegramBadRequest(method=None, message="Bad Request: message is not modified")
        msg.caption = caption
        msg.reply_markup = reply_markup

    async def edit_message_reply_markup(self, chat_id, message_id, reply_markup=None, **kwargs):
        self.edit_calls += 1
        msg = self._get(chat_id, message_id)
        if msg.reply_markup == reply_markup:
            raise TelegramBadRequest(method=None, message="Bad Request: message is not modified")
        msg.reply_markup = reply_markup

    async def delete_message(self, chat_id, message_id, **kwargs):
        self._get(chat_id, message_id).deleted = True
        return True

    async def get_chat_member(self, chat_id, user_id, **kwargs):
        if (chat_id, user_id) in self.admins:
            return SimpleNamespace(status=ChatMemberStatus.ADMINISTRATOR)
        return SimpleNamespace(status=ChatMemberStatus.MEMBER)

    # helpers for assertions

    def in_chat(self, chat_id: int) -> List[FakeMessage]:
        return [m for m in self.history if m.chat_id == chat_id and not m.deleted]

    def last(self, chat_id: int) -> FakeMessage:
        return self.in_chat(chat_id)[-1]


class StubCatalog:
    def __init__(self):
        self.hits: Dict[str, List[ItemHit]] = {}
        self.known: Dict[int, str] = {}
        self.search_calls: List[str] = []

    async def search_items_by_name(self, query: str) -> List[ItemHit]:
        self.search_calls.append(query)
        return list(self.hits.get(query.lower(), []))

    async def get_item_info(self, item_id: int) -> ItemInfo:
        name = self.known.get(item_id)
        if name is None:
            return ItemInfo.placeholder(item_id)
        # found=False keeps the board on plain text posts
        return ItemInfo(id=item_id, name=name, found=False)

    async def fetch_icon(self, url):
        return None


@pytest.fixture
def bot() -> FakeBot:
    return FakeBot()


@pytest.fixture
def catalog() -> StubCatalog:
    c = StubCatalog()
    c.known = {2589: "Linen Cloth", 2592: "Wool Cloth", 2770: "Copper Ore"}
    c.hits = {
        "copper ore": [ItemHit(id=2770, name="Copper Ore")],
        "cloth": [
            ItemHit(id=2589, name="Linen Cloth"),
            ItemHit(id=2592, name="Wool Cloth"),
            ItemHit(id=2589, name="Linen Cloth"),
        ],
    }
    return c


@pytest.fixture
def config_store(tmp_path) -> GuildConfigStore:
    return GuildConfigStore(str(tmp_path), "en")


@pytest.fixture
def t(config_store) -> Translator:
    return Translator(config_store, "en")


@pytest.fixture
def storage(tmp_path) -> OrderStorage:
    return OrderStorage(str(tmp_path))


@pytest.fixture
def moderator_check(config_store) -> ModeratorCheck:
    return ModeratorCheck(config_store)


@pytest.fixture
def store() -> SessionStore:
    return SessionStore(idle_seconds=1800)


@pytest.fixture
def presenter(t, catalog) -> QuestionPresenter:
    return QuestionPresenter(t, catalog)


@pytest.fixture
def publisher(t, catalog) -> OrderPublisher:
    return OrderPublisher(t, catalog)


@pytest.fixture
def engine(store, catalog, presenter, publisher, storage, t, moderator_check) -> WizardEngine:
    committer = OrderCommitter(storage, OrderIdAllocator(storage), publisher, presenter, t, moderator_check)
    return WizardEngine(store, ItemResolver(catalog), presenter, committer, t, moderator_check)


@pytest.fixture
def board(storage, publisher, t, moderator_check) -> OrderBoard:
    return OrderBoard(storage, publisher, t, moderator_check)

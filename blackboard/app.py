# blackboard/app.py
import logging
from dataclasses import dataclass

from .api_client import ItemCatalogClient
from .config import Settings
from .guild_config import GuildConfigStore
from .guild_setup import GuildSetup
from .i18n import Translator
from .orders import OrderBoard, OrderPublisher
from .permissions import ModeratorCheck
from .sessions import SessionStore
from .storage import OrderIdAllocator, OrderStorage
from .utils.stacks import LocalStackSizes
from .wizard.commit import OrderCommitter
from .wizard.engine import WizardEngine
from .wizard.presenter import QuestionPresenter
from .wizard.resolver import ItemResolver

logger = logging.getLogger(__name__)


@dataclass
class App:
    settings: Settings
    config_store: GuildConfigStore
    t: Translator
    storage: OrderStorage
    ids: OrderIdAllocator
    catalog: ItemCatalogClient
    sessions: SessionStore
    moderator_check: ModeratorCheck
    engine: WizardEngine
    board: OrderBoard
    setup: GuildSetup


def build_app(settings: Settings) -> App:
    config_store = GuildConfigStore(settings.data_dir, settings.default_lang)
    t = Translator(config_store, settings.default_lang)
    storage = OrderStorage(settings.data_dir)
    ids = OrderIdAllocator(storage)
    catalog = ItemCatalogClient(settings, LocalStackSizes(settings.stack_file))
    sessions = SessionStore(settings.session_idle_seconds)
    moderator_check = ModeratorCheck(config_store)

    presenter = QuestionPresenter(t, catalog)
    publisher = OrderPublisher(t, catalog)
    committer = OrderCommitter(storage, ids, publisher, presenter, t, moderator_check)
    engine = WizardEngine(sessions, ItemResolver(catalog), presenter, committer, t, moderator_check)
    board = OrderBoard(storage, publisher, t, moderator_check)

    if not settings.catalog_enabled:
        logger.warning("Item catalog credentials missing, items are shown by id only")

    return App(
        settings=settings,
        config_store=config_store,
        t=t,
        storage=storage,
        ids=ids,
        catalog=catalog,
        sessions=sessions,
        moderator_check=moderator_check,
        engine=engine,
        board=board,
        setup=GuildSetup(config_store, t),
    )

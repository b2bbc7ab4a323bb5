import logging
from typing import Optional

from telegram import BotCommand, BotCommandScopeChat, Update, User
from telegram.error import TelegramError
from telegram.ext import Application, ApplicationBuilder, ContextTypes, MessageHandler, filters

from config import Settings, load_settings
from db.session import build_engine, build_session_factory, ensure_schema
from db.store import Store
from integrations.supabase_auth import SupabaseAuthClient
from support.commands import CommandHandlers, build_command_table
from support.events import InboundEvent, Role
from support.lookup import LookupResolver, UserDirectory
from support.menus import commands_for_role, contact_block
from support.relay import RelayChannel
from support.router import Router
from support.tickets import TicketManager

logger = logging.getLogger(__name__)


# --- Logging setup ------------------------------------------------------
def setup_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    # keep library chatter out of the bot log
    for noisy in ["httpx", "asyncio", "telegram", "urllib3"]:
        logging.getLogger(noisy).setLevel(logging.WARNING)


def sender_handle(user: User) -> str:
    return f"@{user.username}" if user.username else (user.first_name or "User")


def event_from_update(update: Update) -> Optional[InboundEvent]:
    msg = update.message
    user = update.effective_user
    if msg is None or user is None or msg.text is None:
        return None
    return InboundEvent(
        sender_id=user.id,
        text=msg.text,
        sender_handle=sender_handle(user),
        timestamp=msg.date,
        chat_id=msg.chat_id,
    )


def build_router(settings: Settings, bot, auth_client: Optional[SupabaseAuthClient] = None) -> Router:
    """Wire store, relay, resolver and ticket manager into the router."""
    engine = build_engine(settings.database_url)
    ensure_schema(engine)
    store = Store(build_session_factory(engine))

    relay = RelayChannel(bot, settings.admin_id)
    contact = contact_block(settings.support_email, settings.support_handle)
    handlers = CommandHandlers(
        relay=relay,
        resolver=LookupResolver(store),
        users=UserDirectory(store, auth_client),
        tickets=TicketManager(store, relay, settings.ticket_list_limit),
        contact=contact,
        bot_name=settings.bot_name,
    )
    return Router(build_command_table(handlers), relay, store, contact)


async def handle_text(update: Update, context: ContextTypes.DEFAULT_TYPE):
    event = event_from_update(update)
    if event is None:
        return
    router: Router = context.bot_data["router"]
    if event.text.startswith("/"):
        try:
            await update.message.chat.send_action("typing")
        except TelegramError as e:
            logger.debug("send_action failed: %s", e)
    await router.dispatch(event)


async def publish_command_menus(application: Application) -> None:
    """Users get the default menu, the admin chat gets the full one."""
    settings: Settings = application.bot_data["settings"]
    try:
        await application.bot.set_my_commands(
            [BotCommand(c, d) for c, d in commands_for_role(Role.USER)]
        )
        await application.bot.set_my_commands(
            [BotCommand(c, d) for c, d in commands_for_role(Role.ADMIN)],
            scope=BotCommandScopeChat(settings.admin_id),
        )
    except TelegramError as e:
        logger.error("setMyCommands failed: %s", e)


async def on_startup(application: Application) -> None:
    router: Router = application.bot_data["router"]
    router.bot_username = application.bot.username
    await publish_command_menus(application)


async def close_clients(application: Application) -> None:
    auth: Optional[SupabaseAuthClient] = application.bot_data.get("auth_client")
    if auth is not None:
        await auth.close()


def build_application(settings: Settings) -> Application:
    application = (
        ApplicationBuilder()
        .token(settings.bot_token)
        .concurrent_updates(True)
        .post_init(on_startup)
        .post_shutdown(close_clients)
        .build()
    )
    auth_client = None
    if settings.auth_admin_enabled:
        auth_client = SupabaseAuthClient(settings.supabase_url, settings.supabase_key)
    application.bot_data["settings"] = settings
    application.bot_data["auth_client"] = auth_client
    application.bot_data["router"] = build_router(settings, application.bot, auth_client)
    application.add_handler(MessageHandler(filters.TEXT & filters.UpdateType.MESSAGE, handle_text))
    return application


def run_webhook(settings: Settings, application: Application) -> None:
    import uvicorn
    from webhook import create_app

    async def handle_update(payload: dict) -> None:
        await application.process_update(Update.de_json(payload, application.bot))

    async def startup() -> None:
        await application.initialize()
        await on_startup(application)
        if settings.webhook_url:
            url = settings.webhook_url.rstrip("/") + settings.webhook_path
            await application.bot.set_webhook(url=url, secret_token=settings.webhook_secret or None)
            logger.info("Webhook registered at %s", url)

    async def shutdown() -> None:
        await close_clients(application)
        await application.shutdown()

    app = create_app(handle_update, settings.webhook_secret, settings.webhook_path, startup, shutdown)
    uvicorn.run(app, host=settings.host, port=settings.port, log_level=settings.log_level.lower())


def main() -> None:
    settings = load_settings()
    setup_logging(settings.log_level)
    application = build_application(settings)

    logger.info("Bot started (%s mode), admin=%s", settings.run_mode, settings.admin_id)
    if settings.run_mode == "webhook":
        run_webhook(settings, application)
    else:
        application.run_polling()


if __name__ == "__main__":
    main()

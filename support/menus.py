from typing import List, Tuple

from support.events import Role

USER_COMMANDS = [
    ("start", "Start the bot and see welcome message"),
    ("help", "Show help menu"),
    ("order", "Get order details (/order <id>)"),
    ("product", "Get product info (/product <name>)"),
    ("contact", "Send a message to admin (/contact <msg>)"),
    ("ticket", "Open a support ticket (/ticket <issue>)"),
    ("mytickets", "List your support tickets"),
]

ADMIN_ONLY_COMMANDS = [
    ("user", "Get user details (/user <email>)"),
    ("reply", "Reply to a user (/reply <id> <msg>)"),
    ("alltickets", "List recent support tickets"),
    ("replyticket", "Answer and close a ticket (/replyticket <id> <msg>)"),
]

GREETING_REPLY = "Hello! 👋 How can I help you today?"


def commands_for_role(role: Role) -> List[Tuple[str, str]]:
    """Command menu shown to a role; admins see everything."""
    if role is Role.ADMIN:
        return USER_COMMANDS + ADMIN_ONLY_COMMANDS
    return list(USER_COMMANDS)


def contact_block(support_email: str, support_handle: str) -> str:
    return (
        "For urgent help, contact admin:\n"
        f"📧 {support_email}\n"
        f"📱 Telegram: {support_handle}"
    )


def user_menu(contact: str) -> str:
    return "\n".join([
        "<b>Available Commands:</b>",
        "/order &lt;orderId&gt; – Track your order",
        "/product &lt;name&gt; – Get product info",
        "/ticket &lt;issue&gt; – Open a support ticket",
        "/mytickets – Your tickets",
        "/contact &lt;message&gt; – Contact support",
        "/help – Show this menu",
        "",
        contact,
    ])


def admin_menu() -> str:
    return "\n".join([
        "<b>Admin Commands:</b>",
        "/order &lt;orderId&gt; – Lookup orders",
        "/product &lt;name&gt; – Lookup products",
        "/user &lt;email&gt; – Lookup user details",
        "/reply &lt;user_id&gt; &lt;msg&gt; – Reply to a user",
        "/alltickets – Recent tickets",
        "/replyticket &lt;id&gt; &lt;msg&gt; – Answer and close a ticket",
        "/contact &lt;msg&gt; – Send admin a message",
        "/help – Show this menu",
    ])


def help_hint(contact: str) -> str:
    return (
        "Sorry, I don’t have an answer for that yet.\n\n"
        "💡 <b>Tip</b>: Use <code>/help</code> to see available commands.\n"
        f"{contact}"
    )

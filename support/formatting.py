import html
import json
from typing import Any, List, Optional, Sequence, Tuple

from telegram import InlineKeyboardButton, InlineKeyboardMarkup

from db.models import SupportTicket
from support.lookup import ORDER_KEY_COLUMNS, Found, UserReport


def escape(text: Any) -> str:
    return html.escape(str(text), quote=False)


def user_label(handle: Optional[str]) -> str:
    return escape(handle) if handle else "User"


def format_inr(value: Any) -> Optional[str]:
    """Indian digit grouping: 1234567.5 -> '12,34,567.5'."""
    if value is None or value == "":
        return None
    try:
        num = float(value)
    except (TypeError, ValueError):
        return escape(value)
    sign = "-" if num < 0 else ""
    whole, frac = f"{abs(num):.2f}".split(".")
    if len(whole) > 3:
        head, tail = whole[:-3], whole[-3:]
        groups = []
        while len(head) > 2:
            groups.insert(0, head[-2:])
            head = head[:-2]
        if head:
            groups.insert(0, head)
        whole = ",".join(groups + [tail])
    frac = frac.rstrip("0")
    return f"{sign}{whole}.{frac}" if frac else f"{sign}{whole}"


def _tags(raw: Any) -> List[str]:
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except ValueError:
            return [raw] if raw else []
    if isinstance(raw, (list, tuple)):
        return [str(t) for t in raw]
    return []


def _image_button(url: Optional[str]) -> Optional[InlineKeyboardMarkup]:
    if not url:
        return None
    return InlineKeyboardMarkup([[InlineKeyboardButton("View Image", url=url)]])


def order_card(o: dict, raw: str) -> str:
    id_str = next((o[k] for k in ORDER_KEY_COLUMNS if o.get(k) is not None), raw)
    lines = [f"🧾 <b>Order</b> <code>{escape(id_str)}</code>"]
    if o.get("customer") is not None:
        lines.append(f"👤 <b>Customer:</b> {escape(o['customer'])}")
    if o.get("status") is not None:
        lines.append(f"📦 <b>Status:</b> {escape(o['status'])}")
    if o.get("paymentmethod") is not None:
        lines.append(f"💳 <b>Payment:</b> {escape(o['paymentmethod'])}")
    if o.get("total") is not None:
        lines.append(f"💰 <b>Total:</b> ₹{format_inr(o['total'])}")
    if o.get("date") is not None:
        lines.append(f"🗓️ <b>Date:</b> {escape(o['date'])}")
    if o.get("created_at") is not None:
        lines.append(f"🕒 <b>Created:</b> {escape(o['created_at'])}")
    if len(lines) == 1:
        lines.append("Found the order, but fields are empty.")
    return "\n".join(lines)


def product_card(found: Found) -> Tuple[str, Optional[InlineKeyboardMarkup]]:
    row = found.record
    tags = _tags(row.get("tags"))
    if found.store == "products":
        lines = [f"🛍️ <b>{escape(row.get('name'))}</b>"]
        if row.get("category"):
            lines.append(f"🗂️ <b>Category:</b> {escape(row['category'])}")
        if row.get("price") is not None:
            lines.append(f"💰 <b>Price:</b> ₹{format_inr(row['price'])}")
        if row.get("originalPrice") is not None:
            lines.append(f"🏷️ <b>MRP:</b> ₹{format_inr(row['originalPrice'])}")
        if row.get("stock") is not None:
            lines.append(f"📦 <b>Stock:</b> {escape(row['stock'])}")
        if tags:
            lines.append(f"🔖 <b>Tags:</b> {escape(', '.join(tags))}")
        if row.get("description"):
            lines.append(f"\n📝 {escape(row['description'])}")
        lines.append(f"\n🆔 <b>ID:</b> <code>{escape(row.get('id'))}</code> (products)")
        return "\n".join(lines), _image_button(row.get("image"))

    lines = [f"🌟 <b>{escape(row.get('name'))}</b>"]
    if row.get("plan"):
        lines.append(f"📦 <b>Plan:</b> {escape(row['plan'])}")
    if row.get("price") is not None:
        lines.append(f"💰 <b>Price:</b> ₹{format_inr(row['price'])}")
    if tags:
        lines.append(f"🔖 <b>Tags:</b> {escape(', '.join(tags))}")
    if row.get("is_active") is not None:
        lines.append(f"✅ <b>Active:</b> {'Yes' if row['is_active'] else 'No'}")
    if row.get("created_at"):
        lines.append(f"🕒 <b>Created:</b> {escape(row['created_at'])}")
    if row.get("description"):
        lines.append(f"\n📝 {escape(row['description'])}")
    lines.append(
        f"\n🆔 <b>ID:</b> <code>{escape(row.get('id'))}</code>  •  "
        f"<b>UUID:</b> <code>{escape(row.get('uuid'))}</code> (exclusive_products)"
    )
    return "\n".join(lines), _image_button(row.get("image_url"))


def user_card(report: UserReport) -> str:
    profile = report.profile or {}
    user = report.auth_user or {}
    lines = ["👤 <b>User</b>"]
    email = profile.get("email") or user.get("email")
    if email:
        lines.append(f"📧 <b>Email:</b> {escape(email)}")
    if profile.get("full_name"):
        lines.append(f"🪪 <b>Name:</b> {escape(profile['full_name'])}")
    joined = profile.get("created_at") or user.get("created_at")
    if joined:
        lines.append(f"📅 <b>Joined:</b> {escape(joined)}")
    if user.get("id"):
        lines.append(f"🆔 <b>Auth ID:</b> <code>{escape(user['id'])}</code>")
    if user.get("phone"):
        lines.append(f"📱 <b>Phone:</b> {escape(user['phone'])}")
    if user.get("confirmed_at"):
        lines.append(f"✅ <b>Email confirmed:</b> {escape(user['confirmed_at'])}")
    if user.get("last_sign_in_at"):
        lines.append(f"🕑 <b>Last sign-in:</b> {escape(user['last_sign_in_at'])}")
    for failure in report.failures:
        lines.append(f"⚠️ <i>Partial result, {escape(failure)}</i>")
    return "\n".join(lines)


def ticket_line(t: SupportTicket, show_owner: bool = False) -> str:
    issue = t.issue if len(t.issue) <= 60 else t.issue[:57] + "..."
    line = f"#{t.id} [{t.status}] {escape(issue)}"
    if show_owner:
        line += f"\n   👤 {user_label(t.username)} (ID: <code>{t.user_id}</code>)"
    if t.reply:
        line += f"\n   💬 {escape(t.reply)}"
    return line


def ticket_list(tickets: Sequence[SupportTicket], title: str, show_owner: bool = False) -> str:
    if not tickets:
        return "No tickets found."
    return "\n\n".join([f"<b>{title}</b>"] + [ticket_line(t, show_owner) for t in tickets])

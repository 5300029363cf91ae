"""HTML/text bodies for registration and notification emails."""
from dataclasses import dataclass
from html import escape

FONT = "Lato, Arial, sans-serif"


@dataclass
class RenderedEmail:
    subject: str
    html: str
    text: str


def _layout(title: str, org_host: str, body_html: str, show_footer: bool = True) -> str:
    footer = ""
    if show_footer:
        footer = (
            f'<p style="font-size:12px;color:#808080;font-family:{FONT};">'
            f'You can change your notification settings in your '
            f'<a href="https://{escape(org_host)}/" style="color:#808080;">profile</a>.</p>'
        )
    return (
        f'<html><body style="background:#1E1E1E;padding:24px;">'
        f'<h1 style="color:#FFFFFF;font-family:{FONT};text-align:center;">{escape(title)}</h1>'
        f"{body_html}{footer}"
        f"</body></html>"
    )


def _paragraph(text: str, size: int = 16, color: str = "#E0E0E0") -> str:
    return (
        f'<p style="font-size:{size}px;line-height:1.5;color:{color};'
        f'font-family:{FONT};text-align:center;">{escape(text)}</p>'
    )


def _button(url: str, label: str) -> str:
    return (
        f'<div style="text-align:center;"><a href="{escape(url, quote=True)}" '
        f'style="display:inline-block;padding:12px 24px;background:#6C5CE7;'
        f'color:white;text-decoration:none;border-radius:4px;">{escape(label)}</a></div>'
    )


def notification_url(org_host: str, path: str, notification_id: str | None) -> str:
    url = f"https://{org_host}{path}"
    if notification_id:
        url += f"?notificationId={notification_id}"
    return url


def render_registration_invite(
    org_host: str, invite_token: str, inviter_name: str, org_name: str
) -> RenderedEmail:
    url = f"https://{org_host}/register?token={invite_token}"
    line = f"{inviter_name} from {org_name} invited you to join ChurchThreads!"
    html = _layout(
        "You're invited!",
        org_host,
        _paragraph(line) + _button(url, "Register now"),
        show_footer=False,
    )
    return RenderedEmail(
        subject=f"{inviter_name} invited you to join {org_name} on ChurchThreads",
        html=html,
        text=f"{line}\n\nRegister now: {url}\n",
    )


def render_new_registration(
    org_host: str, new_user_name: str, new_user_email: str, notification_id: str | None
) -> RenderedEmail:
    url = notification_url(org_host, "/", notification_id)
    line = f"{new_user_name} just joined your organization"
    html = _layout(
        "New user registered",
        org_host,
        _paragraph(line, size=18) + _paragraph(new_user_email, color="#B0B0B0")
        + _button(url, "Open ChurchThreads"),
    )
    return RenderedEmail(
        subject=f"{new_user_name} joined ChurchThreads",
        html=html,
        text=f"{line} ({new_user_email})\n\n{url}\n",
    )


def render_new_thread(
    org_host: str,
    poster_name: str,
    feed_name: str,
    feed_id: str,
    preview: str,
    notification_id: str | None,
) -> RenderedEmail:
    url = notification_url(org_host, f"/feed/{feed_id}", notification_id)
    line = f"{poster_name} posted in {feed_name}"
    html = _layout(
        f"New post in {feed_name}",
        org_host,
        _paragraph(line) + _paragraph(preview, color="#B0B0B0") + _button(url, "View post"),
    )
    return RenderedEmail(
        subject=f"New post in {feed_name}",
        html=html,
        text=f"{line}:\n\n{preview}\n\n{url}\n",
    )


def render_new_message(
    org_host: str,
    sender_name: str,
    thread_id: str,
    feed_id: str,
    preview: str,
    notification_id: str | None,
) -> RenderedEmail:
    url = notification_url(org_host, f"/feed/{feed_id}/thread/{thread_id}", notification_id)
    line = f"{sender_name} replied to a thread you're part of"
    html = _layout(
        "New message",
        org_host,
        _paragraph(line) + _paragraph(preview, color="#B0B0B0") + _button(url, "View thread"),
    )
    return RenderedEmail(
        subject=f"New message from {sender_name}",
        html=html,
        text=f"{line}:\n\n{preview}\n\n{url}\n",
    )


def render_new_feed_member(
    org_host: str,
    member_name: str,
    feed_name: str,
    feed_id: str,
    notification_id: str | None,
) -> RenderedEmail:
    url = notification_url(org_host, f"/feed/{feed_id}", notification_id)
    line = f"{member_name} joined {feed_name}"
    html = _layout("New feed member", org_host, _paragraph(line) + _button(url, "View feed"))
    return RenderedEmail(
        subject=f"{member_name} joined {feed_name}",
        html=html,
        text=f"{line}\n\n{url}\n",
    )

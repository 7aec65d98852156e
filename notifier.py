"""
New-game email notifications.

``Mailer`` delivers a single HTML message over SMTP. ``notify_subscribers``
fans a new game out to every subscriber, one send at a time. Both are
fire-and-forget: failures are logged and reported as ``False``, never raised,
because the game has already been stored by the time they run.
"""
import logging
import smtplib
from email.message import EmailMessage
from email.headerregistry import Address
from email.utils import make_msgid
from html import escape
from typing import Any, Dict

from database import Database

logger = logging.getLogger(__name__)

_DEFAULT_TIMEOUT = 10  # seconds
SENDER_NAME = "Game Zone 🎮"


class Mailer:
    """Send HTML email through an SMTP-over-SSL server.

    Args:
        user:     SMTP login, also used as the From address.
        password: SMTP password (an app password for Gmail).
        host:     SMTP server host.
        port:     SMTP SSL port.
    """

    def __init__(self, user, password, host="smtp.gmail.com", port=465, timeout=_DEFAULT_TIMEOUT):
        self._user = user
        self._password = password
        self._host = host
        self._port = port
        self._timeout = timeout

    @classmethod
    def from_settings(cls, settings) -> "Mailer":
        return cls(settings.email_user, settings.email_pass, settings.email_host, settings.email_port)

    @property
    def configured(self) -> bool:
        return bool(self._user and self._password)

    def build_message(self, to: str, subject: str, html: str) -> EmailMessage:
        msg = EmailMessage()
        msg["From"] = Address(display_name=SENDER_NAME, addr_spec=self._user)
        msg["To"] = to
        msg["Subject"] = subject
        msg["Message-ID"] = make_msgid(domain=self._user.rpartition("@")[2] or None)
        msg.set_content("This message requires an HTML-capable mail client.")
        msg.add_alternative(html, subtype="html")
        return msg

    def send(self, to: str, subject: str, html: str) -> bool:
        """Deliver one message. Returns ``True`` when the server accepted it."""
        if not self.configured:
            logger.warning("Email credentials not set; skipping email to %s", to)
            return False
        msg = self.build_message(to, subject, html)
        try:
            with smtplib.SMTP_SSL(self._host, self._port, timeout=self._timeout) as smtp:
                smtp.login(self._user, self._password)
                smtp.send_message(msg)
        except (smtplib.SMTPException, OSError) as e:
            logger.error("Error sending email to %s: %s", to, e)
            return False
        logger.info("Email sent to %s: %s", to, msg["Message-ID"])
        return True


def game_link(base_url: str, game_id: str) -> str:
    return f"{base_url.rstrip('/')}/game/{game_id}"


def render_game_email(game: Dict[str, Any], link: str) -> str:
    title = escape(str(game.get("title", "")))
    category = escape(str(game.get("category") or "Uncategorized"))
    parts = [
        f"<h2>New game added: {title}</h2>",
        f"<p><strong>Category:</strong> {category}</p>",
    ]
    if game.get("thumbnail"):
        parts.append(
            f'<p><img src="{escape(str(game["thumbnail"]), quote=True)}" '
            f'alt="{title}" style="max-width:100%;border-radius:8px"/></p>'
        )
    parts.append(f'<p><a href="{escape(link, quote=True)}">Play {title} now</a></p>')
    return "\n".join(parts)


def notify_subscribers(db: Database, mailer: Mailer, game: Dict[str, Any], game_id: str, base_url: str) -> Dict[str, bool]:
    """Email every subscriber about a newly inserted game.

    Sends are sequential, in subscriber order, at most once per address and
    without retries. One failed send never stops the rest.

    Returns:
        ``{email: success}`` for every subscriber attempted.
    """
    results: Dict[str, bool] = {}
    try:
        subscribers = db.subscribers.find_all()
    except Exception:
        logger.exception("Could not load subscribers for game %s", game_id)
        return results

    subject = f"🎮 New Game: {game.get('title', '')}"
    html = render_game_email(game, game_link(base_url, game_id))
    for sub in subscribers:
        email = sub.get("email")
        if not email or email in results:
            continue
        try:
            results[email] = bool(mailer.send(email, subject, html))
        except Exception:
            logger.exception("Notification to %s failed", email)
            results[email] = False

    sent = sum(1 for ok in results.values() if ok)
    logger.info("Game %s notifications: %d/%d sent", game_id, sent, len(results))
    return results

import logging
from collections.abc import Callable, Iterable

from imageshare.core.mailer import Mailer, Notification

logger = logging.getLogger(__name__)

Notify = Callable[[Notification], None]


def safe_notify(notify: Notify | None, notification: Notification) -> None:
    """Hand a notification to ``notify`` without letting it fail the caller."""
    if notify is None:
        return
    try:
        notify(notification)
    except Exception:
        logger.exception("notification_enqueue_failed to=%s subject=%r", notification.to, notification.subject)


def deliver(mailer: Mailer, notifications: Iterable[Notification]) -> int:
    sent = 0
    for notification in notifications:
        try:
            if mailer.send_notification(notification):
                sent += 1
        except Exception:
            logger.exception("notification_failed to=%s subject=%r", notification.to, notification.subject)
    return sent


def new_submission_notification(*, to: str, image_title: str, base_url: str) -> Notification:
    return Notification(
        to=to,
        subject="New Image Pending Review",
        text=f'A new image "{image_title}" has been submitted for review. Please login to moderate.',
        html=(
            "<h2>New Image Submission</h2>"
            f'<p>A new image "{image_title}" has been submitted for review.</p>'
            f'<p>Please login to the <a href="{base_url}/moderation">moderation dashboard</a> to review it.</p>'
        ),
    )


def decision_notification(*, to: str, image_title: str, status: str, reason: str | None, base_url: str) -> Notification:
    label = status.capitalize()
    reason_text = f". Reason: {reason}" if reason else ""
    reason_html = f"<p>Reason: {reason}</p>" if reason else ""
    return Notification(
        to=to,
        subject=f"Your Image Has Been {label}",
        text=f'Your image "{image_title}" has been {status}{reason_text}.',
        html=(
            f"<h2>Image {label}</h2>"
            f'<p>Your image "{image_title}" has been {status}.</p>'
            f"{reason_html}"
            f'<p>Visit the <a href="{base_url}/uploads">uploads page</a> to see details.</p>'
        ),
    )


def verification_notification(*, to: str, token: str, base_url: str) -> Notification:
    link = f"{base_url}/verify/{token}"
    return Notification(
        to=to,
        subject="Verify Your Email",
        text=f"Please verify your email by clicking on this link: {link}",
        html=(
            "<h2>Verify Your Email</h2>"
            "<p>Please click the link below to verify your email address:</p>"
            f'<p><a href="{link}">Verify Email</a></p>'
        ),
    )

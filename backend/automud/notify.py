import os
import smtplib
from email.message import EmailMessage

EMAIL_OUTBOX: list[tuple[str, str, str]] = []


def send_email(to_email: str, subject: str, message: str):
    if os.getenv("TESTING") == "1":
        EMAIL_OUTBOX.append((to_email, subject, message))
        return
    server = os.getenv("SMTP_SERVER")
    if not server:
        return
    msg = EmailMessage()
    msg["Subject"] = subject
    msg["From"] = os.getenv("EMAIL_FROM", "noreply@automud.it")
    msg["To"] = to_email
    msg.set_content(message)
    port = int(os.getenv("SMTP_PORT", "25"))
    with smtplib.SMTP(server, port) as s:
        s.send_message(msg)


def close_reason_email(first_name: str | None, close_reason: int) -> tuple[str, str]:
    """Subject and body sent when a request closes with ``close_reason``."""

    from .codes import CLOSE_REASON_LABELS

    greeting = f"Hello {first_name}," if first_name else "Hello,"
    reason = CLOSE_REASON_LABELS.get(close_reason, str(close_reason))
    subject = "Update on your vehicle request"
    body = (
        f"{greeting}\n\n"
        "we are sorry to let you know that we could not complete the purchase "
        f"of your vehicle ({reason}).\n\n"
        "Thank you for contacting us."
    )
    return subject, body

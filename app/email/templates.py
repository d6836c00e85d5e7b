from dataclasses import dataclass
from html import escape
from typing import Optional

from app.core.copy import COPY

_WRAPPER = (
    '<div style="font-family: -apple-system, BlinkMacSystemFont, \'Segoe UI\', Roboto, sans-serif; '
    'max-width: 480px; margin: 0 auto; padding: 40px 20px;">{body}</div>'
)
_HEADLINE = '<h1 style="color: #0B0F1A; font-size: 24px; font-weight: 600; margin-bottom: 16px;">{text}</h1>'
_PARAGRAPH = '<p style="color: #6B7280; font-size: 16px; line-height: 1.5; margin-bottom: 32px;">{text}</p>'
_BUTTON = (
    '<a href="{href}" style="display: inline-block; background: #6C5CE7; color: #FFFFFF; font-size: 16px; '
    'font-weight: 600; text-decoration: none; padding: 14px 32px; border-radius: 12px;">{text}</a>'
)
_CODE = '<p style="color: #0B0F1A; font-size: 32px; letter-spacing: 6px; font-weight: 600;">{text}</p>'
_FOOTNOTE = '<p style="color: #9CA3AF; font-size: 14px; margin-top: 32px;">{text}</p>'


@dataclass
class EmailMessage:
    to: str
    subject: str
    html: str
    text: str
    kind: str = "generic"
    step1Id: Optional[str] = None


def continuation_email(to: str, link: str, step1_id: Optional[str] = None) -> EmailMessage:
    body = "".join([
        _HEADLINE.format(text=escape(COPY["emailHeadline"])),
        _PARAGRAPH.format(text=escape(COPY["emailBody"])),
        _BUTTON.format(href=escape(link, quote=True), text=escape(COPY["emailButton"])),
        _FOOTNOTE.format(text=escape(COPY["emailExpiry"])),
    ])
    text = f"{COPY['emailBody']}\n\n{COPY['emailButton']}: {link}\n\n{COPY['emailExpiry']}\n"
    return EmailMessage(
        to=to,
        subject=COPY["emailSubject"],
        html=_WRAPPER.format(body=body),
        text=text,
        kind="continuation",
        step1Id=step1_id,
    )


def verification_email(to: str, link: str, code: str) -> EmailMessage:
    body = "".join([
        _HEADLINE.format(text=escape(COPY["verifySubject"])),
        _PARAGRAPH.format(text=escape(COPY["verifyBody"])),
        _CODE.format(text=escape(code)),
        _BUTTON.format(href=escape(link, quote=True), text=escape(COPY["verifyButton"])),
        _FOOTNOTE.format(text=escape(COPY["verifyExpiry"])),
    ])
    text = f"{COPY['verifyBody']}\n\nCode: {code}\n{COPY['verifyButton']}: {link}\n\n{COPY['verifyExpiry']}\n"
    return EmailMessage(
        to=to,
        subject=COPY["verifySubject"],
        html=_WRAPPER.format(body=body),
        text=text,
        kind="verification",
    )

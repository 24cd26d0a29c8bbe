"""
Channel Formatting
Renders an AlertMessage into the payload shape each delivery channel needs.

Pure shaping only: nothing here sends anything.

Channels:
    email    → subject + text + small HTML document
    slack    → Block Kit document (header / section / context)
    discord  → embed with priority colour
    push, in_app, unknown → body text only
"""

import json
from dataclasses import dataclass, field, asdict
from datetime import datetime
from html import escape
from typing import Any, Dict, List, Optional, Union
from zoneinfo import ZoneInfo

from .models import AlertChannel, AlertMessage, AlertPriority, as_utc


# =============================================================================
# Payload
# =============================================================================

@dataclass
class ChannelPayload:
    """What the delivery collaborator receives for one channel"""
    channel: str
    content: str
    subject: Optional[str] = None
    rich_content: Optional[Union[str, Dict[str, Any]]] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "channel": self.channel,
            "subject": self.subject,
            "content": self.content,
            "rich_content": self.rich_content,
        }


# =============================================================================
# Slack Block Kit
# =============================================================================

@dataclass
class SlackText:
    text: str
    type: str = "plain_text"


@dataclass
class SlackHeaderBlock:
    text: SlackText
    type: str = "header"


@dataclass
class SlackSectionBlock:
    text: SlackText
    type: str = "section"


@dataclass
class SlackContextBlock:
    elements: List[SlackText]
    type: str = "context"


SlackBlock = Union[SlackHeaderBlock, SlackSectionBlock, SlackContextBlock]

SLACK_HEADER_LIMIT = 150
SLACK_SECTION_LIMIT = 3000


@dataclass
class SlackDocument:
    blocks: List[SlackBlock] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


# =============================================================================
# Discord Embeds
# =============================================================================

DISCORD_TITLE_LIMIT = 256
DISCORD_DESCRIPTION_LIMIT = 4096

PRIORITY_COLORS = {
    AlertPriority.CRITICAL: 0xFF0000,
    AlertPriority.HIGH: 0xFFA500,
    AlertPriority.MEDIUM: 0x3B82F6,
    AlertPriority.LOW: 0x808080,
}


@dataclass
class DiscordFooter:
    text: str


@dataclass
class DiscordEmbed:
    title: str
    description: str
    color: int
    timestamp: str
    footer: DiscordFooter


@dataclass
class DiscordDocument:
    embeds: List[DiscordEmbed] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


# =============================================================================
# Formatter
# =============================================================================

def truncate(text: str, limit: int) -> str:
    """Cut `text` to at most `limit` characters, ending in an ellipsis when cut"""
    if len(text) <= limit:
        return text
    return text[: limit - 1] + "\u2026"


class ChannelFormatter:
    """
    Usage:
        formatter = ChannelFormatter(display_timezone="Asia/Seoul")
        payload = formatter.format(message, "slack")
        json.loads(payload.content)["blocks"][0]["text"]["text"] == message.title
    """

    def __init__(self, display_timezone: str = "UTC", footer_text: str = "SteamPulse Alert"):
        self.tz = ZoneInfo(display_timezone)
        self.footer_text = footer_text

    def format_time(self, ts: datetime) -> str:
        local = as_utc(ts).astimezone(self.tz)
        return local.strftime("%Y-%m-%d %H:%M:%S %Z")

    def format(self, message: AlertMessage, channel: Union[AlertChannel, str]) -> ChannelPayload:
        name = channel.value if isinstance(channel, AlertChannel) else str(channel)

        if name == AlertChannel.EMAIL.value:
            return self._email(message)
        if name == AlertChannel.SLACK.value:
            return self._slack(message)
        if name == AlertChannel.DISCORD.value:
            return self._discord(message)

        # push, in_app and anything unrecognised
        return ChannelPayload(channel=name, content=message.body)

    def format_all(self, message: AlertMessage) -> List[ChannelPayload]:
        return [self.format(message, channel) for channel in message.channels]

    def _email(self, message: AlertMessage) -> ChannelPayload:
        parts = [
            '<div style="font-family: Arial, sans-serif; max-width: 600px;">',
            f'<h2 style="color: #1f2937;">{escape(message.title)}</h2>',
            f'<p style="color: #4b5563; font-size: 16px;">{escape(message.body)}</p>',
        ]
        if message.summary:
            parts.append(f'<p style="color: #6b7280; font-size: 14px;">{escape(message.summary)}</p>')
        parts.append(
            f'<p style="color: #9ca3af; font-size: 12px;">Triggered at: '
            f'{escape(self.format_time(message.data.triggered_at))}</p>'
        )
        if message.action_url:
            parts.append(
                f'<a href="{escape(message.action_url, quote=True)}" style="background-color: #3b82f6; '
                f'color: white; padding: 10px 20px; text-decoration: none; border-radius: 6px;">'
                f'{escape(message.action_label or "View details")}</a>'
            )
        parts.append('</div>')

        return ChannelPayload(
            channel=AlertChannel.EMAIL.value,
            subject=message.title,
            content=message.body,
            rich_content="\n".join(parts),
        )

    def _slack(self, message: AlertMessage) -> ChannelPayload:
        header = truncate(message.title, SLACK_HEADER_LIMIT)
        section = message.body
        if header != message.title:
            # the header lost part of the title, so the section carries all of it
            section = f"*{message.title}*\n{message.body}"

        document = SlackDocument(blocks=[
            SlackHeaderBlock(text=SlackText(text=header)),
            SlackSectionBlock(text=SlackText(text=truncate(section, SLACK_SECTION_LIMIT), type="mrkdwn")),
            SlackContextBlock(elements=[
                SlackText(text=f"Triggered at: {self.format_time(message.data.triggered_at)}", type="mrkdwn"),
            ]),
        ])
        data = document.to_dict()
        return ChannelPayload(
            channel=AlertChannel.SLACK.value,
            content=json.dumps(data, ensure_ascii=False),
            rich_content=data,
        )

    def _discord(self, message: AlertMessage) -> ChannelPayload:
        document = DiscordDocument(embeds=[
            DiscordEmbed(
                title=truncate(message.title, DISCORD_TITLE_LIMIT),
                description=truncate(message.body, DISCORD_DESCRIPTION_LIMIT),
                color=PRIORITY_COLORS[message.priority],
                timestamp=as_utc(message.data.triggered_at).isoformat(),
                footer=DiscordFooter(text=self.footer_text),
            )
        ])
        data = document.to_dict()
        return ChannelPayload(
            channel=AlertChannel.DISCORD.value,
            content=json.dumps(data, ensure_ascii=False),
            rich_content=data,
        )


_default_formatter = ChannelFormatter()


def format_for_channel(message: AlertMessage, channel: Union[AlertChannel, str]) -> ChannelPayload:
    return _default_formatter.format(message, channel)


def format_for_channels(message: AlertMessage) -> List[ChannelPayload]:
    return _default_formatter.format_all(message)

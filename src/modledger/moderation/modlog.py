"""
Mod log rendering.

Turns a stored ``Case`` into the embed posted to the configured mod log
channel.
"""

import datetime

import discord

from modledger.datatypes.case_datatypes import Case, CaseType
from modledger.util.duration import format_duration

# Embed colour per case type
CASE_COLORS = {
    CaseType.KICK: 0xFFA500,
    CaseType.BAN: 0xFF0000,
    CaseType.TEMPBAN: 0xFF0000,
    CaseType.UNBAN: 0x00FF00,
    CaseType.TIMEOUT: 0xFFFF00,
    CaseType.WARN: 0xFFA500,
    CaseType.PURGE: 0x808080,
    CaseType.LOCK: 0xFF0000,
    CaseType.UNLOCK: 0x00FF00,
    CaseType.AUTOMOD_FILTER: 0xFF69B4,
    CaseType.AUTOMOD_INVITE: 0xFF1493,
}

DEFAULT_CASE_COLOR = 0x5865F2


def case_color(case_type: CaseType) -> int:
    return CASE_COLORS.get(case_type, DEFAULT_CASE_COLOR)


def build_case_embed(case: Case) -> discord.Embed:
    """
    Build the mod log embed for a case.

    Title is ``Case #<id> | <TYPE>``; fields list the user, moderator and
    reason, plus the duration for cases that carry one.
    """
    embed = discord.Embed(
        title=f"Case #{case.id} | {case.case_type.value.upper()}",
        color=case_color(case.case_type),
        timestamp=datetime.datetime.fromtimestamp(case.created_at, tz=datetime.timezone.utc),
    )
    embed.add_field(name="User", value=f"{case.subject_tag} (<@{case.subject_id}>)", inline=True)
    embed.add_field(name="Moderator", value=f"{case.actor_tag} (<@{case.actor_id}>)", inline=True)
    embed.add_field(name="Reason", value=case.reason or "No reason provided", inline=False)

    if case.duration_seconds:
        embed.add_field(name="Duration", value=format_duration(case.duration_seconds), inline=True)

    if case.expires_at is not None:
        embed.add_field(name="Expires", value=f"<t:{int(case.expires_at)}:R>", inline=True)

    if case.threshold_triggered:
        embed.set_footer(text="Triggered by warning threshold")
    else:
        embed.set_footer(text=f"User ID: {case.subject_id}")

    return embed

"""
Type-safe wrappers for Discord identifiers.

Snowflakes are 64-bit integers but are stored as TEXT in the case ledger, so
each wrapper keeps the canonical string form and converts to ``int`` only at
the Discord API boundary.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union

import discord


class Snowflake:
    """
    Base class for the identifier wrappers below.

    Subclasses of different kinds never compare equal to each other, but
    every wrapper compares equal to its raw ``int`` or ``str`` value.

    Example:
        >>> uid = UserID(123456789012345678)
        >>> uid.to_int()
        123456789012345678
        >>> str(uid)
        '123456789012345678'
        >>> uid == "123456789012345678"
        True
    """

    __slots__ = ("_value",)

    def __init__(self, value: Union[str, int, "Snowflake"]) -> None:
        if isinstance(value, Snowflake):
            self._value = value._value
        elif isinstance(value, bool):
            raise ValueError(f"Cannot create {type(self).__name__} from bool: {value}")
        elif isinstance(value, int):
            self._value = str(value)
        elif isinstance(value, str):
            # Validate that it's a valid integer string
            self._value = str(int(value.strip()))
        else:
            raise ValueError(f"Cannot create {type(self).__name__} from {type(value).__name__}: {value}")

    @classmethod
    def from_int(cls, value: int):
        return cls(value)

    def to_int(self) -> int:
        """Convert to an integer for Discord API calls."""
        return int(self._value)

    def __int__(self) -> int:
        return int(self._value)

    def __str__(self) -> str:
        return self._value

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._value!r})"

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Snowflake):
            return type(self) is type(other) and self._value == other._value
        if isinstance(other, str):
            return self._value == other
        if isinstance(other, int):
            return self._value == str(other)
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self._value)


class UserID(Snowflake):
    """Discord user snowflake."""

    __slots__ = ()

    @classmethod
    def from_user(cls, member: Union[discord.Member, discord.User]) -> "UserID":
        return cls(member.id)


class GuildID(Snowflake):
    """Discord guild snowflake."""

    __slots__ = ()

    @classmethod
    def from_guild(cls, guild: discord.Guild) -> "GuildID":
        return cls(guild.id)


class ChannelID(Snowflake):
    """Discord channel snowflake."""

    __slots__ = ()

    @classmethod
    def from_channel(cls, channel: discord.abc.Snowflake) -> "ChannelID":
        return cls(channel.id)


class RoleID(Snowflake):
    """Discord role snowflake."""

    __slots__ = ()


class MessageID(Snowflake):
    """Discord message snowflake."""

    __slots__ = ()

    @classmethod
    def from_message(cls, message: discord.Message) -> "MessageID":
        return cls(message.id)


@dataclass(frozen=True, slots=True)
class MessageRef:
    """Location of a single message: deleting one needs both the channel and the message id."""

    channel_id: ChannelID
    message_id: MessageID

    @classmethod
    def from_message(cls, message: discord.Message) -> "MessageRef":
        return cls(ChannelID.from_channel(message.channel), MessageID.from_message(message))


class DiscordUsername:
    """
    Wrapper for a display tag such as ``"User#1234"`` or a new-style username.

    Empty values fall back to a fixed placeholder so cases never carry a
    blank tag.
    """

    __slots__ = ("_value",)

    DEFAULT_USERNAME = "Unknown User"

    def __init__(self, value: Union[str, "DiscordUsername", None]) -> None:
        if isinstance(value, DiscordUsername):
            self._value = value._value
        elif isinstance(value, str):
            self._value = value.strip() or self.DEFAULT_USERNAME
        else:
            self._value = self.DEFAULT_USERNAME

    @classmethod
    def from_user(cls, member: Union[discord.Member, discord.User, discord.ClientUser]) -> "DiscordUsername":
        return cls(str(member))

    @classmethod
    def unknown(cls) -> "DiscordUsername":
        return cls(cls.DEFAULT_USERNAME)

    def __str__(self) -> str:
        return self._value

    def __repr__(self) -> str:
        return f"DiscordUsername({self._value!r})"

    def __eq__(self, other: object) -> bool:
        if isinstance(other, DiscordUsername):
            return self._value == other._value
        if isinstance(other, str):
            return self._value == other
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self._value)


@dataclass(frozen=True, slots=True)
class UserRef:
    """A user as recorded on a case: id plus the tag shown in case listings."""

    user_id: UserID
    tag: DiscordUsername

    @classmethod
    def from_user(cls, user: Union[discord.Member, discord.User, discord.ClientUser]) -> "UserRef":
        return cls(UserID(user.id), DiscordUsername.from_user(user))

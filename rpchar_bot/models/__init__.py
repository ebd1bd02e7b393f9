from .channel import Channel
from .character import Character
from .character_default import ChannelUser, CharacterDefaultModel, GuildUser, ThreadUser
from .guild import Guild
from .user import User

MODEL_TYPES = (Guild, Channel, User, Character, GuildUser, ChannelUser, ThreadUser)

__all__ = [
    "MODEL_TYPES",
    "Channel",
    "ChannelUser",
    "Character",
    "CharacterDefaultModel",
    "Guild",
    "GuildUser",
    "ThreadUser",
    "User",
]

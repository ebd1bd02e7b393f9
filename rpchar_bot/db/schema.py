from __future__ import annotations

SCHEMA_VERSION = 1

SQLITE_SCHEMA = """
CREATE TABLE IF NOT EXISTS guilds (
    id TEXT PRIMARY KEY,
    rpcharsetting INTEGER NOT NULL DEFAULT 1,
    main_prefix TEXT,
    quick_prefix TEXT
);

CREATE TABLE IF NOT EXISTS channels (
    id TEXT PRIMARY KEY,
    guild_id TEXT,
    webhook_id TEXT,
    allow_ooc INTEGER NOT NULL DEFAULT 1
);

CREATE TABLE IF NOT EXISTS users (
    id TEXT PRIMARY KEY,
    ooc_prefix TEXT
);

CREATE TABLE IF NOT EXISTS characters (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id TEXT NOT NULL,
    character_shortname TEXT NOT NULL,
    character_name TEXT NOT NULL,
    character_avatar TEXT,
    default_character INTEGER NOT NULL DEFAULT 0
);

CREATE INDEX IF NOT EXISTS idx_characters_user ON characters(user_id);

CREATE TABLE IF NOT EXISTS guild_users (
    guild_id TEXT NOT NULL,
    user_id TEXT NOT NULL,
    character_id TEXT,
    former_character_id TEXT,
    PRIMARY KEY (guild_id, user_id)
);

CREATE TABLE IF NOT EXISTS channel_users (
    channel_id TEXT NOT NULL,
    user_id TEXT NOT NULL,
    character_id TEXT,
    former_character_id TEXT,
    PRIMARY KEY (channel_id, user_id)
);

CREATE TABLE IF NOT EXISTS thread_users (
    thread_id TEXT NOT NULL,
    user_id TEXT NOT NULL,
    character_id TEXT,
    former_character_id TEXT,
    PRIMARY KEY (thread_id, user_id)
);
"""

POSTGRES_SCHEMA = """
CREATE TABLE IF NOT EXISTS schema_meta (
    id SMALLINT PRIMARY KEY,
    version INTEGER NOT NULL
);

CREATE TABLE IF NOT EXISTS guilds (
    id TEXT PRIMARY KEY,
    rpcharsetting INTEGER NOT NULL DEFAULT 1,
    main_prefix TEXT,
    quick_prefix TEXT
);

CREATE TABLE IF NOT EXISTS channels (
    id TEXT PRIMARY KEY,
    guild_id TEXT,
    webhook_id TEXT,
    allow_ooc INTEGER NOT NULL DEFAULT 1
);

CREATE TABLE IF NOT EXISTS users (
    id TEXT PRIMARY KEY,
    ooc_prefix TEXT
);

CREATE TABLE IF NOT EXISTS characters (
    id BIGSERIAL PRIMARY KEY,
    user_id TEXT NOT NULL,
    character_shortname TEXT NOT NULL,
    character_name TEXT NOT NULL,
    character_avatar TEXT,
    default_character INTEGER NOT NULL DEFAULT 0
);

CREATE INDEX IF NOT EXISTS idx_characters_user ON characters(user_id);

CREATE TABLE IF NOT EXISTS guild_users (
    guild_id TEXT NOT NULL,
    user_id TEXT NOT NULL,
    character_id TEXT,
    former_character_id TEXT,
    PRIMARY KEY (guild_id, user_id)
);

CREATE TABLE IF NOT EXISTS channel_users (
    channel_id TEXT NOT NULL,
    user_id TEXT NOT NULL,
    character_id TEXT,
    former_character_id TEXT,
    PRIMARY KEY (channel_id, user_id)
);

CREATE TABLE IF NOT EXISTS thread_users (
    thread_id TEXT NOT NULL,
    user_id TEXT NOT NULL,
    character_id TEXT,
    former_character_id TEXT,
    PRIMARY KEY (thread_id, user_id)
);
"""

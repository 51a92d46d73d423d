# -*- coding: utf-8 -*-
import asyncio
import logging
import random
import sqlite3
from contextlib import asynccontextmanager
from typing import Dict, List, Optional

import aiosqlite

from config import CONFIG

log = logging.getLogger("relay_bot.db")

# Serialize all SQLite writes to avoid 'database is locked' under concurrent tasks
DB_WRITE_LOCK = asyncio.Lock()

_WRITE_HEADS = {"INSERT", "UPDATE", "DELETE", "CREATE", "DROP", "VACUUM", "REINDEX", "ALTER", "REPLACE"}


class StoreError(Exception):
    """A settings write could not be persisted."""


def _is_locked(e: Exception) -> bool:
    msg = str(e).lower()
    return "database is locked" in msg or "database table is locked" in msg


@asynccontextmanager
async def _connect(path: str):
    """WAL journal and a generous busy timeout on every connection."""
    async with aiosqlite.connect(path, timeout=30.0) as con:
        await con.execute("PRAGMA journal_mode=WAL;")
        await con.execute("PRAGMA synchronous=NORMAL;")
        await con.execute("PRAGMA busy_timeout=10000;")
        yield con


async def _run_query(path: str, query: str, params: tuple, commit: bool, fetch: Optional[str]):
    async with _connect(path) as con, con.execute(query, params) as cur:
        if commit:
            await con.commit()
        if fetch == "one":
            return await cur.fetchone()
        if fetch == "all":
            return await cur.fetchall()
        return True


async def _execute_db(query: str, params: tuple = (), *, db_file: Optional[str] = None, commit: bool = False, fetch: Optional[str] = None):
    """Run one statement. Writes queue behind DB_WRITE_LOCK and are retried
    with backoff while SQLite reports the database as locked.

    Returns the fetched row(s), True for a statement without fetch, or None on error.
    """
    is_write = commit or (query or "").lstrip().split(" ", 1)[0].upper() in _WRITE_HEADS
    attempts = 5 if is_write else 3
    path = db_file or CONFIG["DB_FILE"]

    for attempt in range(1, attempts + 1):
        try:
            if not is_write:
                return await _run_query(path, query, params, commit, fetch)
            async with DB_WRITE_LOCK:
                return await _run_query(path, query, params, commit, fetch)
        except sqlite3.OperationalError as e:
            if not _is_locked(e):
                log.error(f"Database error on query '{query[:50]}...': {e}")
                return None
            if attempt == attempts:
                break
            backoff = min(2.0, 0.25 * attempt) + random.uniform(0, 0.15)
            log.warning(f"SQLite locked; retrying ({attempt}/{attempts}) in {backoff:.2f}s: {query[:48]}...")
            await asyncio.sleep(backoff)
        except sqlite3.Error as e:
            log.error(f"Database error on query '{query[:50]}...': {e}")
            return None
    log.error(f"Database still locked after {attempts} attempts for query '{query[:50]}...'")
    return None


class SettingsStore:
    """Owner identity, chat forwarding map and provisioned bot tokens.

    Reads are synchronous against an in-memory copy so route guards never
    suspend; writes go to SQLite first and update the copy only on success.
    """

    def __init__(self, db_file: Optional[str] = None, owner_id: Optional[int] = None) -> None:
        self.db_file = db_file or CONFIG["DB_FILE"]
        self._owner_id = owner_id or None
        self._chats: Dict[str, str] = {}
        self._tokens: Dict[str, Optional[str]] = {}
        self._lock = asyncio.Lock()

    @property
    def owner_id(self) -> Optional[int]:
        return self._owner_id

    async def _write(self, query: str, params: tuple = ()) -> None:
        ok = await _execute_db(query, params, db_file=self.db_file, commit=True)
        if ok is None:
            raise StoreError(f"Write failed: {query.split('(', 1)[0].strip()}")

    async def setup(self) -> None:
        await self._write("CREATE TABLE IF NOT EXISTS KeyValueStore (key TEXT PRIMARY KEY, value TEXT)")
        await self._write("""
            CREATE TABLE IF NOT EXISTS ChatForwards (
                source_chat TEXT PRIMARY KEY,
                dest_chat TEXT NOT NULL,
                created_at TEXT DEFAULT (CURRENT_TIMESTAMP)
            )
        """)
        await self._write("""
            CREATE TABLE IF NOT EXISTS BotTokens (
                token TEXT PRIMARY KEY,
                username TEXT,
                added_at TEXT DEFAULT (CURRENT_TIMESTAMP)
            )
        """)

    async def load(self) -> None:
        row = await _execute_db("SELECT value FROM KeyValueStore WHERE key = ?", ("owner_id",), db_file=self.db_file, fetch='one')
        if row and row[0]:
            self._owner_id = int(row[0])
        rows = await _execute_db("SELECT source_chat, dest_chat FROM ChatForwards ORDER BY created_at", db_file=self.db_file, fetch='all') or []
        self._chats = {r[0]: r[1] for r in rows}
        rows = await _execute_db("SELECT token, username FROM BotTokens", db_file=self.db_file, fetch='all') or []
        self._tokens = {r[0]: r[1] for r in rows}
        log.info(f"Settings loaded: owner={self._owner_id or 'unset'}, {len(self._chats)} forward(s), {len(self._tokens)} saved bot(s).")

    async def set_owner(self, owner_id: int) -> None:
        async with self._lock:
            await self._write("INSERT OR REPLACE INTO KeyValueStore (key, value) VALUES (?, ?)", ("owner_id", str(owner_id)))
            self._owner_id = int(owner_id)
        log.info(f"Owner set to {owner_id}.")

    def chats(self) -> Dict[str, str]:
        return dict(self._chats)

    def get_chat(self, source) -> Optional[str]:
        return self._chats.get(str(source))

    async def set_chat(self, source, dest) -> None:
        async with self._lock:
            await self._write("INSERT OR REPLACE INTO ChatForwards (source_chat, dest_chat) VALUES (?, ?)", (str(source), str(dest)))
            self._chats[str(source)] = str(dest)

    async def rem_chat(self, source) -> bool:
        async with self._lock:
            if str(source) not in self._chats:
                return False
            await self._write("DELETE FROM ChatForwards WHERE source_chat = ?", (str(source),))
            self._chats.pop(str(source), None)
            return True

    def bot_tokens(self) -> List[str]:
        return list(self._tokens)

    async def add_bot_token(self, token: str, username: Optional[str] = None) -> None:
        async with self._lock:
            await self._write("INSERT OR REPLACE INTO BotTokens (token, username) VALUES (?, ?)", (token, username))
            self._tokens[token] = username

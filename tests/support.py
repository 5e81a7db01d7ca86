from datetime import datetime
from typing import Dict, List, Optional

import pytz
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from db.database import init_db
from services.llm_client import CompletionClient


def make_session_factory():
    """In-memory SQLite shared by every session of one test."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(bind=engine)
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


def utc(*args) -> datetime:
    return datetime(*args, tzinfo=pytz.utc)


class FakeCompletionClient(CompletionClient):
    """
    Completion client answering from a script. Replies are matched by a
    substring of the user prompt; an Exception instance is raised instead of
    returned.
    """

    model_name = "fake"

    def __init__(self, replies: Optional[Dict[str, object]] = None, default: object = ""):
        self.replies = replies or {}
        self.default = default
        self.calls: List[Dict[str, Optional[str]]] = []
        self.gate = None

    async def complete(self, user_prompt: str, system_prompt: Optional[str] = None) -> str:
        self.calls.append({"user": user_prompt, "system": system_prompt})
        if self.gate is not None:
            await self.gate.wait()
        reply = self.default
        for marker, answer in self.replies.items():
            if marker in user_prompt or (system_prompt and marker in system_prompt):
                reply = answer
                break
        if isinstance(reply, Exception):
            raise reply
        return reply

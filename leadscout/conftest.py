"""Pytest configuration and shared fixtures."""

import json

import pytest

from leadscout.services.leadgen.sources.base import ConversationSession, LeadProvider


def pytest_addoption(parser):
    """Add custom command line options."""
    parser.addoption(
        "--online",
        action="store_true",
        default=False,
        help="Run tests that call the real Gemini API (needs GEMINI_API_KEY)",
    )


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "online: mark test as requiring external connectivity"
    )
    config.addinivalue_line("markers", "unit: fast test without network access")


def pytest_collection_modifyitems(config, items):
    """Skip online tests if --online flag is not provided."""
    if config.getoption("--online"):
        return

    skip_online = pytest.mark.skip(reason="need --online option to run")
    for item in items:
        if "online" in item.keywords:
            item.add_marker(skip_online)


class ScriptedSession(ConversationSession):
    """Replays scripted replies; an Exception entry is raised instead of returned."""

    def __init__(self, replies: list, sent: list[str]):
        self._replies = replies
        self.sent = sent

    async def send_message(self, text: str) -> str:
        self.sent.append(text)
        if not self._replies:
            return ""
        reply = self._replies.pop(0)
        if isinstance(reply, BaseException):
            raise reply
        return reply


class ScriptedProvider(LeadProvider):
    """Provider whose single session answers from a fixed script."""

    def __init__(self, replies: list):
        self.replies = list(replies)
        self.sent: list[str] = []
        self.sessions = 0

    def start_session(self) -> ScriptedSession:
        self.sessions += 1
        return ScriptedSession(self.replies, self.sent)

    @property
    def queries(self) -> int:
        return len(self.sent)


def make_records(start: int, count: int, prefix: str = "Business") -> list[dict]:
    """Unique, well-formed provider records numbered from ``start``."""
    return [
        {
            "name": f"{prefix} {i}",
            "phone": f"(512) 555-{i:04d}",
            "website": f"https://business{i}.example.com",
            "address": f"{i} Main St, Austin, TX 78701",
            "rating": 4.5,
            "reviewCount": 10 + i,
            "description": "A local business.",
        }
        for i in range(start, start + count)
    ]


def as_reply(records: list[dict], fenced: bool = False) -> str:
    text = json.dumps(records)
    return f"```json\n{text}\n```" if fenced else text


@pytest.fixture
def scripted_provider():
    """Factory fixture: ``scripted_provider([reply, ...])``."""
    return ScriptedProvider


@pytest.fixture
def records():
    return make_records


@pytest.fixture
def reply():
    return as_reply

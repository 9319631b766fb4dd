"""Shared test fixtures for all test modules."""

import asyncio
from pathlib import Path

import pytest

from specprompt.models.request import AiResponse
from specprompt.services.document_store import WorkspaceDocumentStore
from specprompt.services.fragment_store import FragmentStore
from specprompt.services.generation import GenerationHandle


ALPHA_SPEC = """\
# Alpha

- [util](./src/util.ts)

## Details
- keep it small

"""

BETA_SPEC = """\
# Beta
- [util](src/util.ts)
"""

GAMMA_SPEC = """\
# Gamma
- [main](./src/main.py)
"""


class FakeUI:
    """
    Scripted EditorUI.

    picks: answers for choose_pick, each an item label, a callable
        (items -> item) or None (user cancelled)
    texts: answers for prompt_text (None = user cancelled)
    """

    def __init__(self, picks=(), texts=()):
        self.picks = list(picks)
        self.texts = list(texts)
        self.pick_calls: list[tuple[str, list]] = []
        self.text_prompts: list[str] = []
        self.notifications: list[tuple[str, str]] = []
        self.revealed: list[tuple[str, tuple[int, int]]] = []
        self.opened: list[str] = []

    async def choose_pick(self, items, title):
        self.pick_calls.append((title, list(items)))
        answer = self.picks.pop(0) if self.picks else None
        if answer is None:
            return None
        if callable(answer):
            return answer(items)
        return next(item for item in items if item.label == answer)

    async def prompt_text(self, title, description=""):
        self.text_prompts.append(title)
        return self.texts.pop(0) if self.texts else None

    async def notify(self, kind, message):
        self.notifications.append((kind, message))

    async def reveal_position(self, filename, position):
        self.revealed.append((filename, position))

    async def open_external(self, url):
        self.opened.append(url)

    @property
    def errors(self) -> list[str]:
        return [message for kind, message in self.notifications if kind == "error"]


class FakeBackend:
    """
    Generation backend streaming scripted chunks.

    With hold=True every request keeps running after its chunks until
    release is set (or it is cancelled).
    """

    def __init__(self, chunks=("answer",), hold=False, error=None):
        self.chunks = list(chunks)
        self.hold = hold
        self.error = error
        self.release = asyncio.Event()
        self.requests = []
        self.callbacks = []
        self.handles = []

    def generate(self, request, token, on_chunk):
        self.requests.append(request)
        self.callbacks.append(on_chunk)
        task = asyncio.create_task(self._run(request, token, on_chunk))
        handle = GenerationHandle(request.request_id, task, token)
        self.handles.append(handle)
        return handle

    async def _run(self, request, token, on_chunk):
        parts = []
        for chunk in self.chunks:
            if token.is_cancelled:
                break
            on_chunk(chunk)
            parts.append(chunk)
            await asyncio.sleep(0)
        if self.hold:
            await self.release.wait()
        if self.error:
            return AiResponse(request_id=request.request_id, text="".join(parts), error=self.error)
        return AiResponse(request_id=request.request_id, text="".join(parts))


@pytest.fixture
def spec_workspace(tmp_path) -> Path:
    """
    Workspace with three specification documents.

    a.gpspec.md and b.gpspec.md both reference src/util.ts; c.gpspec.md
    references src/main.py.
    """
    (tmp_path / "src").mkdir()
    (tmp_path / "src" / "util.ts").write_text("export const x = 1\n")
    (tmp_path / "src" / "main.py").write_text("print('hi')\n")
    (tmp_path / "a.gpspec.md").write_text(ALPHA_SPEC)
    (tmp_path / "b.gpspec.md").write_text(BETA_SPEC)
    (tmp_path / "c.gpspec.md").write_text(GAMMA_SPEC)
    return tmp_path


@pytest.fixture
def documents() -> WorkspaceDocumentStore:
    return WorkspaceDocumentStore()


@pytest.fixture
def store(spec_workspace, documents) -> FragmentStore:
    store = FragmentStore(spec_workspace, documents)
    store.reparse()
    return store


@pytest.fixture
def make_ui():
    """Factory for scripted UIs: make_ui(picks=[...], texts=[...])."""
    return FakeUI


@pytest.fixture
def make_backend():
    """Factory for scripted backends: make_backend(chunks=[...], hold=False)."""
    return FakeBackend

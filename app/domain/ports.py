# app/domain/ports.py
from __future__ import annotations
from abc import ABC, abstractmethod
from typing import Any, AsyncContextManager, Callable, Dict, List, Optional

from app.domain.models import MedicineIdentity, SearchAttempt

# ===== Portal automation (one exclusively owned session per fetch) =====

class PortalSession(ABC):
    """
    Capability surface of a browser session on the regulatory portal.
    Production: Playwright. Tests: in-memory fixture.
    """
    @abstractmethod
    async def search(self, attempt: SearchAttempt) -> bool:
        """True = results table rendered; False = explicit no-results message.
        Anything else raises AutomationError."""

    @abstractmethod
    async def result_rows(self) -> List[List[str]]: ...

    @abstractmethod
    async def open_document(self, row_index: int) -> None:
        """Fire the UI action that yields the document download."""

    @abstractmethod
    async def await_first_pdf(self, timeout_ms: int) -> Optional[bytes]: ...


PortalSessionFactory = Callable[[], AsyncContextManager[PortalSession]]

# ===== Embeddings / LLM =====

class EmbedderPort(ABC):
    @abstractmethod
    def embed_query(self, text: str) -> List[float]: ...
    @abstractmethod
    def embed_batch(self, texts: List[str]) -> List[List[float]]: ...

class ChatLlmPort(ABC):
    @abstractmethod
    async def complete(self, *, system: str, user: Any, temperature: float | None = None) -> Dict[str, Any]: ...

class VisionIdentifierPort(ABC):
    @abstractmethod
    async def identify_medicine(self, image_b64: str, mime: str = "image/jpeg") -> MedicineIdentity: ...

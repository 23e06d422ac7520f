# app/services/prompt_service.py
import logging
import os
from pathlib import Path
from typing import Any, Dict, List

import yaml

from app.domain.models import LeafletChunk

_ROOT = Path(__file__).resolve().parents[2]
PROMPT_DIR = Path(os.getenv("PROMPT_DIR", str(_ROOT / "config" / "prompts")))
MESSAGES_CFG = Path(os.getenv("MESSAGES_CFG", str(_ROOT / "config" / "messages.yaml")))

logger = logging.getLogger("folheto.prompts")


class _SafeDict(dict):
    def __missing__(self, key):
        return "{" + key + "}"


class PromptService:
    """Prompt templates (markdown) and localized user-facing strings (YAML)."""
    def __init__(self, prompt_dir: Path = PROMPT_DIR, messages_cfg: Path = MESSAGES_CFG):
        self.leaflet_system = (prompt_dir / "leaflet_qa.md").read_text(encoding="utf-8")
        self.identify_system = (prompt_dir / "identify_system.md").read_text(encoding="utf-8")
        self.messages: Dict[str, str] = yaml.safe_load(messages_cfg.read_text(encoding="utf-8")) or {}

    def message(self, key: str, **kw: Any) -> str:
        tpl = self.messages.get(key)
        if tpl is None:
            logger.warning("missing message key %s", key)
            return key
        return str(tpl).format_map(_SafeDict(**{k: v or "" for k, v in kw.items()}))

    @property
    def not_found_phrase(self) -> str:
        return self.message("not_in_leaflet")

    def qa_system_prompt(self) -> str:
        return self.leaflet_system.format_map(_SafeDict(not_found=self.not_found_phrase))

    # ==== Context block: "[Página N]" + chunk text, in retrieval-rank order ====
    @staticmethod
    def context_block(chunks: List[LeafletChunk]) -> str:
        parts = [f"[Página {c.page_number}]\n{c.text.strip()}" for c in chunks]
        return "\n\n---\n\n".join(parts)

    def qa_user_prompt(self, question: str, chunks: List[LeafletChunk]) -> str:
        return (
            "Contexto do folheto:\n"
            f"{self.context_block(chunks)}\n\n"
            f"Pergunta: {question.strip()}\n\n"
            "Resposta:"
        )

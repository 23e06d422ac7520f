# app/infra/llm/openai_adapter.py
from __future__ import annotations
import os, json
import logging
from typing import Any, Dict, List

from openai import AsyncOpenAI
from pydantic import ValidationError

from app.domain.errors import IdentificationError
from app.domain.models import MedicineIdentity
from app.domain.ports import ChatLlmPort, VisionIdentifierPort

logger = logging.getLogger("folheto.llm")


class OpenAILlm(ChatLlmPort, VisionIdentifierPort):
    def __init__(self, identify_system: str | None = None):
        self.api_key = os.getenv("OPENAI_API_KEY", "")
        self.dev_mode = os.getenv("DEV_MODE", "0") == "1"
        self.chat_model = os.getenv("LLM_MODEL", "gpt-4.1-nano")          # leaflet answers
        self.vision_model = os.getenv("LLM_VISION_MODEL", "gpt-4.1-nano")  # packaging photos
        self.identify_system = identify_system or ""
        self._client: AsyncOpenAI | None = None

    def _client_ok(self) -> bool:
        return bool(self.api_key) and not self.dev_mode

    def _ensure_client(self) -> AsyncOpenAI:
        if not self._client_ok():
            raise RuntimeError("LLM unavailable (OPENAI_API_KEY missing or DEV_MODE=1)")
        if self._client is None:
            self._client = AsyncOpenAI(api_key=self.api_key)
        return self._client

    def _to_msg_content(self, obj: Any) -> str:
        if obj is None:
            return ""
        if isinstance(obj, (dict, list)):
            return json.dumps(obj, ensure_ascii=False)
        return str(obj)

    # ==== Grounded leaflet answers ====
    async def complete(
        self,
        *,
        system: str,
        user: Any,
        temperature: float | None = None,
    ) -> Dict[str, Any]:
        """Single-turn [system, user] completion; returns {"answer", "model"}."""
        client = self._ensure_client()

        messages: List[Dict[str, str]] = [
            {"role": "system", "content": system},
            {"role": "user", "content": self._to_msg_content(user)},
        ]

        temp = temperature if temperature is not None else float(os.getenv("LLM_TEMPERATURE", "0"))
        rsp = await client.chat.completions.create(
            model=self.chat_model,
            messages=messages,
            temperature=temp,
            max_tokens=int(os.getenv("LLM_MAX_TOKENS", "600")),
        )
        msg = rsp.choices[0].message
        return {"answer": (msg.content or "").strip(), "model": self.chat_model}

    # ==== Packaging photo → MedicineIdentity ====
    async def identify_medicine(self, image_b64: str, mime: str = "image/jpeg") -> MedicineIdentity:
        client = self._ensure_client()
        rsp = await client.chat.completions.create(
            model=self.vision_model,
            messages=[
                {"role": "system", "content": self.identify_system},
                {
                    "role": "user",
                    "content": [
                        {"type": "text", "text": "What medicine is shown in this image?"},
                        {
                            "type": "image_url",
                            "image_url": {"url": f"data:{mime};base64,{image_b64}", "detail": "low"},
                        },
                    ],
                },
            ],
            response_format={"type": "json_object"},
            max_tokens=300,
        )
        raw = (rsp.choices[0].message.content or "").strip()
        if not raw:
            raise IdentificationError("no content in vision response")
        try:
            ident = MedicineIdentity.model_validate(json.loads(raw))
        except (json.JSONDecodeError, ValidationError) as e:
            logger.warning("vision reply not parseable: %s", raw[:200])
            raise IdentificationError(f"unparseable identification: {e}") from e
        logger.info("identified medicine: %s", ident.describe())
        return ident

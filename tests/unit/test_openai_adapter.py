import asyncio
import importlib.util
import inspect
import json
import sys
from types import SimpleNamespace

import pytest

import app.infra.search.faiss_index as faiss_index
from app.domain.errors import IdentificationError
from app.infra.llm.openai_adapter import OpenAILlm


class _Completions:
    def __init__(self, content):
        self.content = content
        self.kwargs = None

    async def create(self, **kwargs):
        self.kwargs = kwargs
        msg = SimpleNamespace(content=self.content)
        return SimpleNamespace(choices=[SimpleNamespace(message=msg)])


def _llm(content):
    llm = OpenAILlm(identify_system="identify prompt")
    llm.api_key = "sk-test"
    llm.dev_mode = False
    completions = _Completions(content)
    llm._client = SimpleNamespace(chat=SimpleNamespace(completions=completions))
    return llm, completions


def test_complete_sends_system_and_user_only():
    llm, comp = _llm("  Tomar 1 comprimido.  ")
    out = asyncio.run(llm.complete(system="regras", user="Pergunta: dose?", temperature=0.0))
    assert out == {"answer": "Tomar 1 comprimido.", "model": llm.chat_model}
    assert comp.kwargs["messages"] == [
        {"role": "system", "content": "regras"},
        {"role": "user", "content": "Pergunta: dose?"},
    ]
    assert comp.kwargs["temperature"] == 0.0
    assert "history" not in inspect.signature(OpenAILlm.complete).parameters


def test_identify_parses_json_reply():
    reply = json.dumps({"name": "Ben-u-ron", "brand": "Bene", "activeSubstance": "Paracetamol", "dosage": "500 mg"})
    llm, comp = _llm(reply)
    ident = asyncio.run(llm.identify_medicine("AAAA", "image/png"))
    assert ident.active_substance == "Paracetamol"
    assert comp.kwargs["response_format"] == {"type": "json_object"}
    image_part = comp.kwargs["messages"][1]["content"][1]
    assert image_part["image_url"]["url"].startswith("data:image/png;base64,")


@pytest.mark.parametrize("reply", ["", "not json"])
def test_identify_bad_reply_raises(reply):
    llm, _ = _llm(reply)
    with pytest.raises(IdentificationError):
        asyncio.run(llm.identify_medicine("AAAA"))


def test_missing_key_is_reported():
    llm = OpenAILlm()
    llm.api_key = ""
    with pytest.raises(RuntimeError):
        asyncio.run(llm.complete(system="s", user="u"))


def test_missing_faiss_has_install_hint(monkeypatch):
    monkeypatch.setitem(sys.modules, "faiss", None)
    mod_spec = importlib.util.spec_from_file_location("faiss_index_copy", faiss_index.__file__)
    module = importlib.util.module_from_spec(mod_spec)
    with pytest.raises(RuntimeError, match="faiss is not installed: pip install faiss-cpu"):
        mod_spec.loader.exec_module(module)

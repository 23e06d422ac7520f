# app/container.py
from functools import lru_cache

from app.infra.cache.index_cache import LeafletIndexCache
from app.infra.llm.openai_adapter import OpenAILlm
from app.infra.llm.openai_embedder import OpenAIEmbedder
from app.infra.portal.infarmed_driver import playwright_session_factory
from app.infra.portal.selectors import PortalSelectors

from app.services.prompt_service import PromptService
from app.services.leaflet_indexer import LeafletIndexer
from app.services.leaflet_qa import LeafletQuestionAnswerer

from app.application.fetch_leaflet_use_case import FetchLeafletUseCase, LeafletRetriever
from app.application.leaflet_use_cases import IdentifyMedicineUseCase, LeafletUseCase

@lru_cache
def _prompts() -> PromptService: return PromptService()

@lru_cache
def _llm_chat() -> OpenAILlm: return OpenAILlm(identify_system=_prompts().identify_system)

@lru_cache
def _embedder() -> OpenAIEmbedder: return OpenAIEmbedder()

@lru_cache
def _index_cache() -> LeafletIndexCache: return LeafletIndexCache()

@lru_cache
def _selectors() -> PortalSelectors: return PortalSelectors.load()

@lru_cache
def _retriever() -> LeafletRetriever:
    sel = _selectors()
    return LeafletRetriever(session_factory=playwright_session_factory(sel), columns=sel.columns)

@lru_cache
def _leaflet_uc() -> LeafletUseCase:
    return LeafletUseCase(
        indexer=LeafletIndexer(_embedder()),
        answerer=LeafletQuestionAnswerer(_embedder(), _llm_chat(), _prompts()),
        cache=_index_cache(),
        prompts=_prompts(),
    )

def get_prompt_service() -> PromptService: return _prompts()

def get_fetch_use_case() -> FetchLeafletUseCase:
    return FetchLeafletUseCase(_retriever(), _prompts())

def get_leaflet_use_case() -> LeafletUseCase: return _leaflet_uc()

def get_identify_use_case() -> IdentifyMedicineUseCase:
    return IdentifyMedicineUseCase(_llm_chat())

# app/infra/portal/selectors.py
from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field, fields
from pathlib import Path

import yaml

from app.domain.similarity import ResultColumns

logger = logging.getLogger("folheto.portal")

_DEFAULT_CFG = Path(__file__).resolve().parents[3] / "config" / "portal.yaml"


@dataclass
class PortalSelectors:
    """
    Everything portal-specific lives here so the orchestrator stays
    portal-agnostic. Defaults target INFARMED INFOMED advanced search.
    """
    search_url: str = "https://extranet.infarmed.pt/INFOMED-fo/pesquisa-avancada.xhtml"
    name_input: str = 'input[title$="Nome do Medicamento"]'
    substance_input: str = 'input[title$="Substância Ativa/DCI"]'
    dosage_input: str = 'input[title$="Dosagem"]'
    submit_button: str = 'button[id$="mainForm:btnDoSearch"]'
    results_table: str = 'table[summary="Tabela de resultados"]'
    result_rows: str = 'table[summary="Tabela de resultados"] tbody tr'
    no_results_pattern: str = r"não foram encontrados resultados"
    # {row} is 1-based (nth-child)
    document_link: str = (
        'table[summary="Tabela de resultados"] tbody tr:nth-child({row}) '
        'a[id$="pesqAvancadaDatableRcmIcon"]'
    )
    columns: ResultColumns = field(default_factory=lambda: ResultColumns(name_index=0, substance_index=1))

    def document_link_for(self, row_index: int) -> str:
        return self.document_link.format(row=row_index + 1)

    @classmethod
    def load(cls, cfg_path: str | None = None) -> "PortalSelectors":
        path = cfg_path or os.getenv("PORTAL_CFG", str(_DEFAULT_CFG))
        cfg = {}
        try:
            with open(path, "r", encoding="utf-8") as f:
                cfg = yaml.safe_load(f) or {}
        except FileNotFoundError:
            logger.info("portal config %s not found, using defaults", path)
        except yaml.YAMLError as e:
            logger.warning("portal config %s invalid (%s), using defaults", path, e)

        known = {f.name for f in fields(cls)} - {"columns"}
        kwargs = {k: v for k, v in cfg.items() if k in known and v}
        col_cfg = cfg.get("columns")
        if isinstance(col_cfg, dict):
            kwargs["columns"] = ResultColumns(
                name_index=col_cfg.get("name_index"),
                substance_index=col_cfg.get("substance_index"),
                min_cell_length=int(col_cfg.get("min_cell_length", 3)),
            )
        return cls(**kwargs)

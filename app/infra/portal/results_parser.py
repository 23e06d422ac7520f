# app/infra/portal/results_parser.py
from typing import List

from bs4 import BeautifulSoup


def _cell_text(td) -> str:
    for br in td.find_all("br"):
        br.replace_with(" ")
    return " ".join(td.get_text(" ", strip=True).split())


def parse_result_rows(html: str, row_selector: str) -> List[List[str]]:
    """
    Cell texts of each results row, in table order (row i ↔ tr:nth-child(i+1)).
    Rows without <td> (header/placeholder rows) stay in as [] so indices line up.
    """
    soup = BeautifulSoup(html or "", "lxml")
    rows: List[List[str]] = []
    for tr in soup.select(row_selector):
        rows.append([_cell_text(td) for td in tr.find_all("td", recursive=False)])
    return rows

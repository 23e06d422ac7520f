import pytest

from app.domain.models import MedicineIdentity
from app.domain.similarity import ResultColumns, row_to_candidate, rows_to_candidates, similarity
from app.infra.portal.results_parser import parse_result_rows

IDENT = MedicineIdentity(name="Ben-u-ron", active_substance="Paracetamol", dosage="500 mg")


def test_heuristic_skips_numeric_and_short_cells():
    cells = ["123", "", "Ben-u-ron", "Paracetamol", "500 mg"]
    c = row_to_candidate(cells, IDENT, row_index=4)
    assert c.display_name == "Ben-u-ron"
    assert c.active_substance_text == "Paracetamol"
    assert c.row_index == 4
    assert c.name_similarity == 1.0
    assert c.substance_similarity == 1.0
    assert c.combined_similarity == pytest.approx(1.0)


def test_combined_is_weighted_sum():
    c = row_to_candidate(["Ben-u-ron Rapid", "Paracetamol + Cafeína"], IDENT, 0)
    expected = 0.7 * similarity("Ben-u-ron Rapid", "Ben-u-ron") + 0.3 * similarity("Paracetamol + Cafeína", "Paracetamol")
    assert c.combined_similarity == pytest.approx(expected)


def test_missing_substance_on_identity_scores_zero():
    ident = MedicineIdentity(name="Ben-u-ron")
    c = row_to_candidate(["Ben-u-ron", "Paracetamol"], ident, 0)
    assert c.substance_similarity == 0.0
    assert c.combined_similarity == pytest.approx(0.7)


def test_configured_columns_win_over_heuristic():
    cols = ResultColumns(name_index=2, substance_index=0)
    c = row_to_candidate(["Paracetamol", "xx", "Ben-u-ron"], IDENT, 0, cols)
    assert c.display_name == "Ben-u-ron"
    assert c.active_substance_text == "Paracetamol"


def test_rows_without_name_are_dropped_but_indices_kept():
    rows = [["12", "1"], ["Brufen", "Ibuprofeno"], ["Ben-u-ron", "Paracetamol"]]
    cands = rows_to_candidates(rows, IDENT)
    assert [c.row_index for c in cands] == [1, 2]


def test_parse_result_rows_html():
    html = """
    <table summary="Tabela de resultados"><tbody>
      <tr><td>Ben-u-ron</td><td>Paracetamol<br/>500 mg</td><td><a id="x">RCM</a></td></tr>
      <tr class="empty"></tr>
      <tr><td>  Panadol </td><td>Paracetamol</td></tr>
    </tbody></table>
    """
    rows = parse_result_rows(html, 'table[summary="Tabela de resultados"] tbody tr')
    assert rows == [
        ["Ben-u-ron", "Paracetamol 500 mg", "RCM"],
        [],
        ["Panadol", "Paracetamol"],
    ]

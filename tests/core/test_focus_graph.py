# tests/core/test_focus_graph.py
import pytest

from a11y_auditor.dom.builder import DOMBuilder
from a11y_auditor.dom.core import BoundingBox
from a11y_auditor.focus.graph import FocusGraphBuilder, visually_before

ORDER_HTML = """
<body>
  <button id="a">A</button>
  <a href="#">L</a>
  <div tabindex="2">twee</div>
  <input tabindex="1">
  <button disabled>D</button>
  <div hidden><button>H</button></div>
  <span tabindex="-1">S</span>
  <a>geen href</a>
</body>
"""

DIALOG_HTML = """
<body>
  <button>Buiten</button>
  <div role="dialog" aria-modal="true" id="dlg" {extra}>
    <button>Een</button>
    <button {close}>Twee</button>
  </div>
</body>
"""


@pytest.fixture
def build():
    builder = DOMBuilder()

    def _build(html: str):
        doc = builder.parse_html(html)
        return doc, FocusGraphBuilder().build(doc)
    return _build


# --- Tabvolgorde ---

def test_tab_order_honours_positive_tabindex_first(build):
    """Positieve tabindex gaat voor, daarna de natuurlijke documentvolgorde."""
    _, graph = build(ORDER_HTML)
    assert graph.order == (
        "/body[1]/input[1]",
        "/body[1]/div[1]",
        "/body[1]/button[1]",
        "/body[1]/a[1]",
    )


def test_disabled_hidden_and_negative_tabindex(build):
    """Disabled en verborgen nodes zijn niet focusbaar; tabindex=-1 wel, maar niet in de tabvolgorde."""
    _, graph = build(ORDER_HTML)
    assert not graph.is_focusable("/body[1]/button[2]")
    assert not graph.is_focusable("/body[1]/div[2]/button[1]")
    assert not graph.is_focusable("/body[1]/a[2]")
    assert graph.is_focusable("/body[1]/span[1]")
    assert not graph.in_order("/body[1]/span[1]")
    assert not graph.is_reachable("/body[1]/span[1]")


def test_next_focus_leaves_page_at_the_end(build):
    """Buiten een scope stopt de tabvolgorde aan het einde van de pagina."""
    _, graph = build(ORDER_HTML)
    assert graph.next_focus("/body[1]/input[1]") == "/body[1]/div[1]"
    assert graph.next_focus("/body[1]/a[1]") is None
    assert graph.previous_focus("/body[1]/input[1]") is None
    assert graph.next_focus("/body[1]/span[1]") is None


def test_document_without_focusable_nodes(build):
    """Een document zonder focusbare nodes levert een lege volgorde zonder fout."""
    _, graph = build("<body><p>Alleen tekst</p></body>")
    assert graph.order == ()
    assert graph.scopes == {}
    assert graph.active_scope is None


def test_activation_edges(build):
    """Knoppen reageren op Enter en Space, een div met alleen click op niets."""
    _, graph = build('<body><button>Ok</button><div tabindex="0" onclick="x()">Div</div></body>')
    keys = {edge.key for edge in graph.edges["/body[1]/button[1]"]}
    assert keys == {"Enter", "Space"}
    assert graph.is_activatable("/body[1]/button[1]")
    assert "/body[1]/div[1]" not in graph.edges
    assert not graph.is_activatable("/body[1]/div[1]")


# --- Triggers ---

def test_focus_trigger_makes_target_reachable(build):
    """Een binding die focus verplaatst maakt een tabindex=-1 doel bereikbaar."""
    html = (
        '<body>'
        '<button data-bindings=\'[{"event": "click", "action": "focus", "target": "skip"}]\'>Skip</button>'
        '<h2 id="skip" tabindex="-1">Inhoud</h2>'
        '<span tabindex="-1">Niet gekoppeld</span>'
        '</body>'
    )
    _, graph = build(html)
    assert graph.is_reachable("/body[1]/h2[1]")
    assert not graph.is_reachable("/body[1]/span[1]")
    assert graph.triggers["/body[1]/button[1]"][0].action == "focus"


# --- Scopes ---

def test_modal_without_escape_is_trap_candidate(build):
    """Een modale dialog zonder toetsenbord-uitweg is een trap-kandidaat en wrapt de focus."""
    _, graph = build(DIALOG_HTML.format(extra="", close=""))
    scope = graph.scopes["/body[1]/div[1]"]

    assert scope.modal and scope.restricts
    assert scope.members == ("/body[1]/div[1]/button[1]", "/body[1]/div[1]/button[2]")
    assert not scope.has_escape
    assert [s.path for s in graph.trap_candidates] == ["/body[1]/div[1]"]
    assert graph.active_scope == "/body[1]/div[1]"
    assert graph.next_focus("/body[1]/div[1]/button[2]", within=scope.path) == "/body[1]/div[1]/button[1]"
    assert graph.previous_focus("/body[1]/div[1]/button[1]", within=scope.path) == "/body[1]/div[1]/button[2]"
    assert graph.is_reachable("/body[1]/div[1]/button[2]", within=scope.path)
    assert not graph.is_reachable("/body[1]/button[1]", within=scope.path)


def test_nodes_outside_the_active_scope_are_unreachable(build):
    """Zolang de modale dialog open is, is alles daarbuiten onbereikbaar."""
    _, graph = build(DIALOG_HTML.format(extra="", close=""))
    assert graph.active_scope == "/body[1]/div[1]"
    assert graph.unreachable_while_active == frozenset({"/body[1]/button[1]"})

    assert not graph.is_reachable("/body[1]/button[1]")
    assert graph.is_reachable("/body[1]/div[1]/button[1]")
    # Zonder open scope is de knop gewoon via de tabvolgorde bereikbaar
    assert graph.reachable_from_start("/body[1]/button[1]")
    assert graph.reachable_under_any_scope("/body[1]/button[1]")


def test_without_active_scope_nothing_is_blocked(build):
    _, graph = build(ORDER_HTML)
    assert graph.active_scope is None
    assert graph.unreachable_while_active == frozenset()
    assert graph.is_reachable("/body[1]/button[1]")


def test_focus_navigation_over_a_long_sequence(build):
    """Volgende/vorige focus werkt via vooraf berekende posities, ook bij veel tabstops."""
    _, graph = build("<body>" + "".join(f"<button>{i}</button>" for i in range(500)) + "</body>")
    assert graph.next_focus("/body[1]/button[250]") == "/body[1]/button[251]"
    assert graph.previous_focus("/body[1]/button[1]") is None
    assert graph.next_focus("/body[1]/button[500]") is None
    assert graph.next_focus("/body[1]/nergens[1]") is None


def test_escape_key_binding_releases_the_trap(build):
    """Een Escape-binding die sluit, telt als uitweg."""
    extra = 'data-bindings=\'[{"event": "keydown", "key": "Escape", "action": "close"}]\''
    _, graph = build(DIALOG_HTML.format(extra=extra, close=""))
    assert graph.scopes["/body[1]/div[1]"].has_escape
    assert graph.trap_candidates == []


def test_escape_binding_on_an_ancestor_releases_the_trap(build):
    """Toetsen borrelen op: een Escape-binding op body die de dialog sluit, telt als uitweg."""
    html = (
        '<body data-bindings=\'[{"event": "keydown", "key": "Escape", "action": "close", "target": "dlg"}]\'>'
        '<div id="dlg" role="dialog" aria-modal="true"><button>Een</button><button>Twee</button></div>'
        '</body>'
    )
    _, graph = build(html)
    assert graph.scopes["/body[1]/div[1]"].has_escape
    assert graph.trap_candidates == []


def test_untargeted_escape_outside_the_scope_is_no_escape(build):
    """Een Escape-binding buiten de dialog zonder doel sluit niet deze dialog."""
    extra_html = (
        '<body><div data-bindings=\'[{"event": "keydown", "key": "Escape", "action": "close"}]\'>Menu</div>'
        '<div id="dlg" role="dialog" aria-modal="true"><button>Een</button></div></body>'
    )
    _, graph = build(extra_html)
    assert not graph.scopes["/body[1]/div[2]"].has_escape


def test_close_button_releases_the_trap(build):
    """Een activeerbare knop in de scope die de dialog sluit, telt als uitweg."""
    close = 'data-bindings=\'[{"event": "click", "action": "close", "target": "dlg"}]\''
    _, graph = build(DIALOG_HTML.format(extra="", close=close))
    assert graph.scopes["/body[1]/div[1]"].has_escape


def test_close_binding_with_dangling_target_is_no_escape(build):
    """Een sluitbinding naar een onbekende id sluit de dialog niet."""
    close = 'data-bindings=\'[{"event": "click", "action": "close", "target": "elders"}]\''
    _, graph = build(DIALOG_HTML.format(extra="", close=close))
    assert not graph.scopes["/body[1]/div[1]"].has_escape


def test_empty_modal_is_indeterminate(build):
    """Een modale scope zonder focusbare inhoud kan niet worden opgesomd."""
    _, graph = build('<body><div role="dialog" aria-modal="true"><p>Tekst</p></div></body>')
    scope = graph.scopes["/body[1]/div[1]"]
    assert scope.indeterminate
    assert not scope.trap_candidate


def test_graph_is_idempotent(build):
    """Twee builds van hetzelfde document zijn gelijk."""
    doc, first = build(DIALOG_HTML.format(extra="", close=""))
    second = FocusGraphBuilder().build(doc)
    assert first == second


# --- Visuele volgorde ---

def test_visually_before_rows_and_columns():
    """Boxen op dezelfde rij worden links-naar-rechts vergeleken, anders boven-naar-onder."""
    left = BoundingBox(x=0, y=0, width=10, height=10)
    right = BoundingBox(x=50, y=2, width=10, height=10)
    below = BoundingBox(x=0, y=40, width=10, height=10)
    assert visually_before(left, right)
    assert not visually_before(right, left)
    assert visually_before(right, below)

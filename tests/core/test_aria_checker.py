# tests/core/test_aria_checker.py
import pytest

from a11y_auditor.aria.checker import AriaChecker, valid_value
from a11y_auditor.aria.names import NameResolver
from a11y_auditor.aria.table import effective_role, implicit_role, is_interactive
from a11y_auditor.dom.builder import DOMBuilder


@pytest.fixture
def check():
    builder = DOMBuilder()

    def _check(body: str):
        doc = builder.parse_html(f"<body>{body}</body>")
        return doc, AriaChecker().check_document(doc)
    return _check


@pytest.fixture
def names():
    builder = DOMBuilder()

    def _names(body: str):
        doc = builder.parse_html(f"<body>{body}</body>")
        return doc, NameResolver(doc)
    return _names


# --- Rollen ---

def test_unknown_and_abstract_roles(check):
    """Onbekende en abstracte rollen worden gemeld; native semantiek blijft gelden."""
    doc, report = check('<div role="buton">x</div><div role="widget">y</div><button role="bogus">z</button>')
    assert report.for_node("/body[1]/div[1]", "role-unknown")
    assert "abstract" in report.for_node("/body[1]/div[2]", "role-unknown")[0].message
    assert effective_role(doc.get("/body[1]/button[1]"), doc) == "button"


def test_role_fallback_list_uses_first_known_token(check):
    """Bij meerdere rolwaarden telt de eerste bekende."""
    doc, report = check('<div role="fancy switch" aria-checked="false" tabindex="0">x</div>')
    assert effective_role(doc.get("/body[1]/div[1]")) == "switch"
    assert report.for_node("/body[1]/div[1]") == ()


# --- Verplichte en toegestane attributen ---

def test_required_attribute_missing(check):
    """Een checkbox-rol zonder aria-checked mist een verplicht attribuut."""
    _, report = check('<div role="checkbox" tabindex="0">Optie</div>')
    violations = report.for_node("/body[1]/div[1]", "required-attr")
    assert len(violations) == 1
    assert violations[0].attribute == "aria-checked"


def test_required_attribute_supplied_natively(check):
    """Native semantiek van een checkbox-input levert aria-checked al."""
    _, report = check('<input type="checkbox" role="switch">')
    assert report.for_node("/body[1]/input[1]") == ()


def test_prohibited_and_undefined_attributes(check):
    """Niet-ondersteunde en niet-bestaande aria-* attributen zijn verboden."""
    _, report = check('<div role="button" tabindex="0" aria-checked="true" aria-foo="x">Knop</div>')
    attributes = {v.attribute for v in report.for_node("/body[1]/div[1]", "prohibited-attr")}
    assert attributes == {"aria-checked", "aria-foo"}


def test_invalid_attribute_value(check):
    """Een tristate-attribuut accepteert geen willekeurige waarde."""
    _, report = check('<div role="button" tabindex="0" aria-pressed="yes">Knop</div>')
    assert report.for_node("/body[1]/div[1]", "attr-value")[0].attribute == "aria-pressed"


@pytest.mark.parametrize("attribute, value, expected", [
    ("aria-pressed", "mixed", True),
    ("aria-expanded", "undefined", True),
    ("aria-live", "rude", False),
    ("aria-relevant", "additions text", True),
    ("aria-level", "2.5", False),
    ("aria-valuenow", "2.5", True),
    ("aria-activedescendant", "a b", False),
    ("aria-hidden", "", True),
])
def test_value_types(attribute, value, expected):
    """Waardetypen uit de ARIA-tabel."""
    assert valid_value(attribute, value) is expected


def test_dangling_idref(check):
    """Verwijzingen naar ontbrekende ids worden gemeld."""
    _, report = check('<div aria-labelledby="missing">x</div><p id="present">p</p><div aria-describedby="present">y</div>')
    assert report.for_node("/body[1]/div[1]", "idref")
    assert report.for_node("/body[1]/div[2]") == ()


# --- Native conflicten ---

def test_native_conflicts(check):
    """Een rol mag de semantiek van een interactief element niet wegnemen of tegenspreken."""
    _, report = check(
        '<button role="presentation">a</button>'
        '<button role="heading" aria-level="2">b</button>'
        '<a href="#" role="button">c</a>'
        '<h2 role="button">d</h2>'
    )
    assert report.for_node("/body[1]/button[1]", "native-conflict")
    assert report.for_node("/body[1]/button[2]", "native-conflict")
    assert report.for_node("/body[1]/a[1]", "native-conflict") == ()
    assert report.for_node("/body[1]/h2[1]", "native-conflict")


# --- Context ---

def test_required_owner(check):
    """Een tab hoort in een tablist; een listitem in een list."""
    _, report = check(
        '<div role="tab" aria-selected="false">Los</div>'
        '<div role="tablist"><div role="tab" aria-selected="true">Goed</div></div>'
        '<ul><li>Item</li></ul>'
    )
    assert report.for_node("/body[1]/div[1]", "context")
    assert report.for_node("/body[1]/div[2]/div[1]") == ()
    assert report.for_node("/body[1]/ul[1]/li[1]") == ()


def test_aria_owns_establishes_ownership(check):
    """aria-owns telt als eigenaarschap voor de contextcontrole."""
    _, report = check(
        '<div role="tablist" aria-owns="t1"></div>'
        '<div role="tab" id="t1" aria-selected="true">Tab</div>'
    )
    assert report.for_node("/body[1]/div[2]", "context") == ()


def test_disallowed_owned_children(check):
    """Een list mag alleen listitems bevatten."""
    _, report = check('<div role="list"><div role="button" tabindex="0">Knop</div></div>')
    assert report.for_node("/body[1]/div[1]", "context")


def test_hidden_nodes_are_not_checked(check):
    """Verborgen nodes maken geen deel uit van de toegankelijkheidsboom."""
    _, report = check('<div hidden><div role="buton">x</div></div>')
    assert report.total == 0


# --- Statussynchronisatie ---

def test_visual_state_without_aria_state(check):
    """Een visueel uitgeklapte knop zonder aria-expanded is niet gesynchroniseerd."""
    _, report = check(
        '<button class="is-expanded">Menu</button>'
        '<button class="is-expanded" aria-expanded="true">Menu</button>'
        '<div class="open">Paneel</div>'
        '<input type="checkbox" class="checked">'
        '<button data-state="closed" aria-expanded="true">Menu</button>'
    )
    assert report.paths("state-sync") == ["/body[1]/button[1]", "/body[1]/button[3]"]
    assert report.for_node("/body[1]/button[1]", "state-sync")[0].attribute == "aria-expanded"


# --- Rollen en interactiviteit ---

def test_implicit_roles():
    """Impliciete rollen volgen HTML-AAM."""
    doc = DOMBuilder().parse_html(
        '<body><header>Kop</header><article><header>Artikelkop</header></article>'
        '<img src="x.png" alt=""><input type="range"><section aria-label="Over">S</section>'
        '<select multiple><option>a</option></select></body>'
    )
    assert implicit_role(doc.get("/body[1]/header[1]"), doc) == "banner"
    assert implicit_role(doc.get("/body[1]/article[1]/header[1]"), doc) == "generic"
    assert implicit_role(doc.get("/body[1]/img[1]")) == "presentation"
    assert implicit_role(doc.get("/body[1]/input[1]")) == "slider"
    assert implicit_role(doc.get("/body[1]/section[1]")) == "region"
    assert implicit_role(doc.get("/body[1]/select[1]")) == "listbox"
    assert is_interactive(doc.get("/body[1]/input[1]"))
    assert not is_interactive(doc.get("/body[1]/section[1]"))


# --- Toegankelijke namen ---

def test_name_from_explicit_label(names):
    """label[for] geeft het invoerveld zijn naam."""
    doc, resolver = names('<label for="e">E-mail</label><input id="e" type="email">')
    assert resolver.name_with_source(doc.get("/body[1]/input[1]")) == ("E-mail", "label")


def test_name_from_wrapping_label(names):
    """Een omsluitend label telt, zonder de tekst van het veld zelf."""
    doc, resolver = names('<label>Naam <input id="n"></label>')
    assert resolver.name(doc.get("/body[1]/label[1]/input[1]")) == "Naam"


def test_name_from_content_includes_image_alt(names):
    """Een knop met alleen een afbeelding krijgt de alt-tekst als naam."""
    doc, resolver = names('<button><img src="s.svg" alt="Opslaan"></button><button><img src="x.svg"></button>')
    assert resolver.name_with_source(doc.get("/body[1]/button[1]")) == ("Opslaan", "content")
    assert resolver.name(doc.get("/body[1]/button[2]")) == ""


def test_labelledby_uses_hidden_targets(names):
    """Doelen van aria-labelledby tellen mee, ook als ze verborgen zijn."""
    doc, resolver = names('<button aria-labelledby="t"></button><span id="t" hidden>Titel</span>')
    assert resolver.name_with_source(doc.get("/body[1]/button[1]")) == ("Titel", "aria-labelledby")


def test_placeholder_is_not_a_name(names):
    """Een placeholder is geen toegankelijke naam; title wel als laatste redmiddel."""
    doc, resolver = names('<input placeholder="Zoek"><input type="submit"><div title="Tip"></div>')
    assert resolver.name_with_source(doc.get("/body[1]/input[1]")) == ("", None)
    assert resolver.name(doc.get("/body[1]/input[2]")) == "Submit"
    assert resolver.name_with_source(doc.get("/body[1]/div[1]")) == ("Tip", "title")

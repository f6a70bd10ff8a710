# tests/core/test_rules.py
import pytest

from a11y_auditor.dom.builder import DOMBuilder
from a11y_auditor.dom.engine import ConformanceEngine
from a11y_auditor.managers.config_manager import EvaluationConfig
from a11y_auditor.model import FindingKind, Severity


def page(body: str) -> str:
    """Fragment met een main-landmark en een h1, zodat structuurregels stil blijven."""
    return f"<body><main><h1>Titel</h1>{body}</main></body>"


def family(result, prefix: str):
    return [f for f in result.findings if f.rule_id.startswith(prefix)]


def hits(result, prefix: str):
    return [(f.rule_id, f.node_path) for f in family(result, prefix)]


@pytest.fixture(scope="module")
def engine():
    return ConformanceEngine()


@pytest.fixture
def evaluate(engine):
    builder = DOMBuilder()

    def _evaluate(source, **config):
        document = builder.build(source) if isinstance(source, dict) else builder.parse_html(source)
        settings = {"workers": 1, "rule_timeout": None}
        settings.update(config)
        return engine.evaluate(document, EvaluationConfig(**settings))
    return _evaluate


# --- Scenario: div als knop ---

def test_clickable_div_without_keyboard_support(evaluate):
    """Een div met alleen een click-handler levert precies één keyboard-bevinding op."""
    result = evaluate(page('<div onclick="go()">Ga</div>'))
    found = family(result, "interactive.")
    assert hits(result, "interactive.") == [("interactive.keyboard-equivalent", "/body[1]/main[1]/div[1]")]
    assert found[0].severity == Severity.CRITICAL
    assert found[0].wcag == "2.1.1"


def test_clickable_div_from_node_mapping(evaluate):
    """Hetzelfde scenario via een genormaliseerd node-model in plaats van HTML."""
    payload = {
        "tag": "body",
        "children": [{"tag": "main", "children": [
            {"tag": "h1", "text": "Titel"},
            {"tag": "div", "text": "Ga", "bindings": [{"event": "click"}]},
        ]}]
    }
    result = evaluate(payload)
    assert hits(result, "interactive.") == [("interactive.keyboard-equivalent", "/body[1]/main[1]/div[1]")]


@pytest.mark.parametrize("markup", [
    '<div onclick="go()" data-bindings=\'[{"event": "keydown", "key": "Enter"}]\'>Ga</div>',
    '<div onclick="go()" role="button" tabindex="0">Ga</div>',
    '<button onclick="go()">Ga</button>',
])
def test_keyboard_operable_clickables_pass(evaluate, markup):
    """Een keyboard-binding, een widget-rol met tabstop of een native knop volstaat."""
    assert family(evaluate(page(markup)), "interactive.") == []


# --- Scenario: alleen een placeholder ---

def test_placeholder_only_input(evaluate):
    """Een invoerveld met alleen een placeholder mist een label: precies één labeling-bevinding."""
    result = evaluate(page('<input type="email" placeholder="E-mail">'))
    found = family(result, "label.")
    assert hits(result, "label.") == [("label.form-control", "/body[1]/main[1]/input[1]")]
    assert "placeholder" in found[0].message
    assert found[0].details["placeholder"] == "E-mail"


def test_labelled_input_passes(evaluate):
    """Met een gekoppeld label verdwijnt de bevinding."""
    result = evaluate(page('<label for="mail">E-mail</label><input id="mail" type="email" placeholder="E-mail">'))
    assert family(result, "label.") == []


# --- Scenario: knop met alleen een icoon ---

def test_icon_only_button(evaluate):
    """Een knop met alleen een afbeelding zonder alt krijgt één bevinding op de knop zelf."""
    result = evaluate(page('<button><img src="gear.svg"></button>'))
    found = family(result, "label.")
    assert hits(result, "label.") == [("label.control-name", "/body[1]/main[1]/button[1]")]
    assert found[0].details["graphics"] == ["/body[1]/main[1]/button[1]/img[1]"]


def test_icon_button_with_aria_label_passes(evaluate):
    result = evaluate(page('<button aria-label="Instellingen"><img src="gear.svg"></button>'))
    assert family(result, "label.") == []


def test_informative_image_needs_alt(evaluate):
    """Een losse afbeelding zonder alt wordt gemeld; alt="" markeert decoratie."""
    result = evaluate(page('<img src="a.png"><img src="b.png" alt=""><img src="c.png" alt="Grafiek">'))
    assert hits(result, "label.") == [("label.text-alternative", "/body[1]/main[1]/img[1]")]


# --- Scenario: animatie zonder reduced-motion ---

def test_continuous_animation_without_gating(evaluate):
    """Een oneindige animatie zonder reduced-motion variant wordt gemeld."""
    result = evaluate(page('<div style="animation: spin 1s linear infinite">*</div>'))
    found = family(result, "motion.")
    assert hits(result, "motion.") == [("motion.reduced-motion", "/body[1]/main[1]/div[1]")]
    assert found[0].details["iteration_count"] == "infinite"
    assert found[0].wcag == "2.2.2"


@pytest.mark.parametrize("markup", [
    '<div style="animation: spin 1s linear infinite" data-reduced-motion="animation: none">*</div>',
    '<div style="animation: spin 1s linear infinite" data-reduced-motion="animation-play-state: paused">*</div>',
    '<div style="animation: spin 1s linear infinite" data-reduced-motion="animation-duration: 0.01ms">*</div>',
    '<div data-motion-ok="animation: spin 1s linear infinite">*</div>',
    '<div style="animation: fade 1s 1">*</div>',
])
def test_gated_or_short_animations_pass(evaluate, markup):
    """Animaties die onder 'reduce' stoppen, alleen onder 'no-preference' draaien, of kort zijn, zijn in orde."""
    assert family(evaluate(page(markup)), "motion.") == []


def test_reduced_duration_that_still_renders_is_not_gated(evaluate):
    """Alleen een verwaarloosbare duur onder 'reduce' stopt de animatie; een halve seconde niet."""
    markup = '<div style="animation: spin 1s linear infinite" data-reduced-motion="animation-duration: 0.5s">*</div>'
    assert len(family(evaluate(page(markup)), "motion.")) == 1


def test_long_finite_animation_counts_as_continuous(evaluate):
    """Drie keer twee seconden duurt langer dan vijf seconden."""
    result = evaluate(page('<div style="animation: pulse 2s 3">*</div>'))
    assert len(family(result, "motion.")) == 1


# --- Scenario: focus trap ---

TRAP = '<div role="dialog" aria-modal="true" aria-label="Instellingen" {extra}><button>Een</button><button>Twee</button></div>'


def test_modal_without_escape_is_a_trap(evaluate):
    """Een modale dialog zonder uitweg geeft precies één focus-trap bevinding voor de scope."""
    result = evaluate(page(TRAP.format(extra="")))
    traps = [f for f in result.findings if f.rule_id == "focus.trap"]
    assert [f.node_path for f in traps] == ["/body[1]/main[1]/div[1]"]
    assert traps[0].severity == Severity.CRITICAL
    assert len(traps[0].details["members"]) == 2


def test_modal_with_escape_binding_is_no_trap(evaluate):
    extra = 'data-bindings=\'[{"event": "keydown", "key": "Escape", "action": "close"}]\''
    result = evaluate(page(TRAP.format(extra=extra)))
    assert [f for f in result.findings if f.rule_id == "focus.trap"] == []


def test_escape_handler_on_body_closing_the_modal_is_no_trap(evaluate):
    """Een Escape-handler op body die de dialog als doel heeft, heft de trap op."""
    bindings = '[{"event": "keydown", "key": "Escape", "action": "close", "target": "dlg"}]'
    result = evaluate(
        f'<body data-bindings=\'{bindings}\'><main><h1>Titel</h1>'
        '<div id="dlg" role="dialog" aria-modal="true" aria-label="Instellingen">'
        '<button>Een</button><button>Twee</button></div>'
        '<button>Buiten</button></main></body>'
    )
    assert [f for f in result.findings if f.rule_id == "focus.trap"] == []
    # Buiten de open dialog blijft de knop bereikbaar vanaf het begin van de pagina
    assert family(result, "focus.unreachable") == []


def test_empty_modal_is_indeterminate(evaluate):
    """Een modale scope zonder focusbare inhoud is onbepaald en daarom LOW."""
    result = evaluate(page('<div role="dialog" aria-modal="true" aria-label="Leeg"><p>Tekst</p></div>'))
    traps = [f for f in result.findings if f.rule_id == "focus.trap"]
    assert len(traps) == 1
    assert traps[0].kind == FindingKind.INDETERMINATE
    assert traps[0].severity == Severity.LOW


# --- Overige focusregels ---

def test_unreachable_control(evaluate):
    """Een widget met tabindex=-1 die nergens heen geleid wordt, is onbereikbaar."""
    result = evaluate(page('<div role="button" tabindex="-1">X</div>'))
    assert hits(result, "focus.unreachable") == [("focus.unreachable", "/body[1]/main[1]/div[1]")]


def test_roving_tabindex_items_are_reachable(evaluate):
    """Items van een composite widget zijn bereikbaar met pijltjestoetsen via een bereikbaar zusje."""
    result = evaluate(page(
        '<div role="tablist" aria-label="Tabs">'
        '<button role="tab" aria-selected="true">A</button>'
        '<button role="tab" aria-selected="false" tabindex="-1">B</button>'
        '</div>'
    ))
    assert family(result, "focus.unreachable") == []


def test_focus_order_against_visual_order(evaluate):
    """Een tabstop die visueel voor de vorige staat, wordt gemeld."""
    result = evaluate(page(
        '<button data-bbox="100,0,50,50">A</button><button data-bbox="0,0,50,50">B</button>'
    ))
    assert hits(result, "focus.order-mismatch") == [("focus.order-mismatch", "/body[1]/main[1]/button[2]")]


def test_hidden_focusable_elements(evaluate):
    """Focusbare elementen met een lege box of binnen aria-hidden zijn niet waarneembaar."""
    result = evaluate(page(
        '<button data-bbox="0,0,0,0">A</button>'
        '<div aria-hidden="true"><a href="#">B</a></div>'
    ))
    assert [p for _, p in hits(result, "focus.hidden-focusable")] == [
        "/body[1]/main[1]/button[1]",
        "/body[1]/main[1]/div[1]/a[1]",
    ]


def test_positive_tabindex_is_reported_low(evaluate):
    result = evaluate(page('<button tabindex="3">A</button>'))
    found = family(result, "focus.positive-tabindex")
    assert len(found) == 1
    assert found[0].severity == Severity.LOW


# --- Contrast ---

CONTRAST_PAGE = (
    '<body style="background-color: #ffffff"><main><h1>Titel</h1>'
    '<p style="color: #777777">Net te licht</p>'
    '<p style="color: #767676">Net goed</p>'
    '<p style="color: #949494; font-size: 24px">Grote tekst</p>'
    '<p style="color: #949494">Kleine tekst</p>'
    '</main></body>'
)


def test_text_contrast_thresholds(evaluate):
    """4.5:1 voor normale tekst, 3:1 voor grote tekst, gemeten op de ongeronde ratio."""
    result = evaluate(CONTRAST_PAGE)
    assert [p for _, p in hits(result, "contrast.text")] == ["/body[1]/main[1]/p[1]", "/body[1]/main[1]/p[4]"]
    first = family(result, "contrast.text")[0]
    assert first.details["ratio"] < 4.5
    assert first.details["foreground"] == "#777777"
    assert first.details["background"] == "#ffffff"


def test_unresolved_background_is_indeterminate(evaluate):
    """Zonder ondoorzichtige achtergrond wordt contrast onbepaald (LOW), tenzij er een standaard is."""
    html = page('<p style="color: #000000">Tekst</p>')
    found = family(evaluate(html), "contrast.text")
    assert len(found) == 1
    assert found[0].kind == FindingKind.INDETERMINATE
    assert found[0].severity == Severity.LOW

    assert family(evaluate(html, default_background="#ffffff"), "contrast.text") == []


def test_own_text_colour_is_never_replaced_by_an_ancestor_colour(evaluate):
    """hsl-tekst wordt zelf gemeten; een onleesbare kleur is onbepaald in plaats van stil te slagen."""
    result = evaluate(
        '<body style="color: #000; background-color: #fff"><main><h1>Titel</h1>'
        '<p style="color: hsl(0, 0%, 60%)">Licht</p>'
        '<p style="color: dimgray">Donker genoeg</p>'
        '<p style="color: color(display-p3 0.6 0.6 0.6)">Onbekend</p>'
        '</main></body>'
    )
    found = {f.node_path: f for f in family(result, "contrast.text")}
    assert set(found) == {"/body[1]/main[1]/p[1]", "/body[1]/main[1]/p[3]"}
    assert found["/body[1]/main[1]/p[1]"].kind == FindingKind.VIOLATION
    assert found["/body[1]/main[1]/p[1]"].details["foreground"] == "#999999"
    assert found["/body[1]/main[1]/p[3]"].kind == FindingKind.INDETERMINATE
    assert found["/body[1]/main[1]/p[3]"].severity == Severity.LOW


def test_control_boundary_contrast(evaluate):
    """De rand van een control moet 3:1 halen tegen de omgeving."""
    result = evaluate(
        '<body style="background-color: #ffffff"><main><h1>Titel</h1>'
        '<button style="border-color: #eeeeee">Zwak</button>'
        '<button style="border: 2px solid #767676">Sterk</button>'
        '</main></body>'
    )
    assert [p for _, p in hits(result, "contrast.non-text")] == ["/body[1]/main[1]/button[1]"]


# --- Doelgrootte ---

def test_small_targets_close_together(evaluate):
    """Twee kleine knoppen dicht bij elkaar zijn beide te klein; de bevinding toont de maten."""
    result = evaluate(page('<button data-bbox="0,0,20,20">A</button><button data-bbox="24,0,20,20">B</button>'))
    found = family(result, "target.")
    assert [f.node_path for f in found] == ["/body[1]/main[1]/button[1]", "/body[1]/main[1]/button[2]"]
    assert found[0].details["width"] == 20
    assert found[0].details["height"] == 20
    assert found[0].details["nearest_target_distance"] == pytest.approx(24.0)


def test_spacing_exemption_and_configured_minimum(evaluate):
    """Voldoende afstand, of een kleiner geconfigureerd minimum, maakt een klein doel acceptabel."""
    spaced = page('<button data-bbox="0,0,20,20">A</button><button data-bbox="200,0,20,20">B</button>')
    assert family(evaluate(spaced), "target.") == []

    close = page('<button data-bbox="0,0,20,20">A</button><button data-bbox="24,0,20,20">B</button>')
    assert family(evaluate(close, min_target_size=24), "target.") == []


def test_inline_link_is_exempt(evaluate):
    """Een link in lopende tekst valt buiten de doelgrootte-eis."""
    result = evaluate(page(
        '<p>Lees <a href="#" data-bbox="0,0,30,16">meer</a> hier</p>'
        '<button data-bbox="30,0,20,20">X</button>'
    ))
    assert [p for _, p in hits(result, "target.")] == ["/body[1]/main[1]/button[1]"]


# --- Statusblootstelling en live regions ---

def test_visual_state_not_exposed(evaluate):
    """Een visueel uitgeklapte knop zonder aria-expanded wordt gemeld."""
    result = evaluate(page('<button class="is-expanded">Menu</button><button class="open" aria-expanded="true">Ok</button>'))
    assert hits(result, "state.") == [("state.sync", "/body[1]/main[1]/button[1]")]


def test_status_messages_need_a_live_region(evaluate):
    """Toasts en scriptmatig bijgewerkte inhoud horen in een live region."""
    result = evaluate(page(
        '<div class="toast">Opgeslagen</div>'
        '<div class="toast" role="status">Opgeslagen</div>'
        '<div aria-live="polite"><p class="error-message">Fout</p></div>'
        '<button data-bindings=\'[{"event": "click", "action": "update", "target": "uitkomst"}]\'>Reken</button>'
        '<span id="uitkomst">0</span>'
    ))
    assert [p for _, p in hits(result, "live-region.")] == [
        "/body[1]/main[1]/div[1]",
        "/body[1]/main[1]/span[1]",
    ]


# --- Structuur ---

def test_full_page_structure(evaluate):
    """Een volledige pagina zonder lang en title, met een overgeslagen kopniveau."""
    result = evaluate('<html><body><main><h1>A</h1><h3>B</h3></main></body></html>')
    assert sorted(hits(result, "structure.")) == [
        ("structure.heading-order", "/html[1]/body[1]/main[1]/h3[1]"),
        ("structure.page-language", "/html[1]"),
        ("structure.page-title", "/html[1]"),
    ]


def test_well_formed_page_has_no_structure_findings(evaluate):
    result = evaluate(
        '<html lang="nl"><head><title>Pagina</title></head>'
        '<body><main><h1>A</h1><h2>B</h2><h3>C</h3><h2>D</h2></main></body></html>'
    )
    assert family(result, "structure.") == []


def test_invalid_language_tag(evaluate):
    result = evaluate('<html lang="english_us"><head><title>T</title></head><body><main><h1>A</h1></main></body></html>')
    assert hits(result, "structure.") == [("structure.page-language", "/html[1]")]


def test_h1_count(evaluate):
    """Geen h1 wordt op de root gemeld, een tweede h1 op zichzelf."""
    missing = evaluate("<body><main><h2>Sub</h2></main></body>")
    assert ("structure.single-h1", "/body[1]") in hits(missing, "structure.")

    double = evaluate("<body><main><h1>A</h1><h1>B</h1></main></body>")
    assert hits(double, "structure.single-h1") == [("structure.single-h1", "/body[1]/main[1]/h1[2]")]


def test_landmarks(evaluate):
    """Ontbrekende main en naamloze dubbele landmarks worden gemeld."""
    result = evaluate("<body><nav>A</nav><nav>B</nav><h1>Titel</h1></body>")
    assert sorted(hits(result, "structure.landmark")) == [
        ("structure.landmark-main", "/body[1]"),
        ("structure.landmark-unique", "/body[1]/nav[1]"),
        ("structure.landmark-unique", "/body[1]/nav[2]"),
    ]

    labelled = evaluate(page('<nav aria-label="Hoofdmenu">A</nav><nav aria-label="Voettekst">B</nav>'))
    assert family(labelled, "structure.") == []


# --- ARIA en modelintegriteit ---

def test_unknown_role_is_model_invalid(evaluate):
    result = evaluate(page('<div role="buton">x</div>'))
    found = family(result, "aria.")
    assert hits(result, "aria.") == [("aria.role-unknown", "/body[1]/main[1]/div[1]")]
    assert found[0].kind == FindingKind.MODEL_INVALID


def test_missing_required_attribute(evaluate):
    result = evaluate(page('<div role="checkbox" tabindex="0">Optie</div>'))
    found = family(result, "aria.required-attr")
    assert len(found) == 1
    assert found[0].severity == Severity.HIGH
    assert found[0].details["attributes"] == ["aria-checked"]


def test_model_issues_are_reported(evaluate):
    """Loaderproblemen worden als model_invalid bevindingen op de betrokken node gemeld."""
    payload = {
        "root": "r",
        "nodes": {
            "r": {"tag": "body", "children": ["m", "spook"]},
            "m": {"tag": "main", "children": ["h"]},
            "h": {"tag": "h1", "text": "Titel"},
        }
    }
    result = evaluate(payload)
    found = family(result, "model.")
    assert [(f.rule_id, f.node_path) for f in found] == [("model.structure", "/body[1]")]
    assert found[0].kind == FindingKind.MODEL_INVALID
    assert found[0].details["issues"] == ["dangling-child"]

# src/a11y_auditor/aria/table.py
"""
Static ARIA 1.2 compatibility table.

Maps each concrete role to its permitted and required states/properties,
the native elements that carry it implicitly, the roles it must be owned by
and the roles it may own. Attribute value types are listed separately.
"""
from typing import Dict, FrozenSet, NamedTuple, Optional

GLOBAL_ATTRIBUTES = frozenset({
    "aria-atomic", "aria-braillelabel", "aria-brailleroledescription", "aria-busy", "aria-controls",
    "aria-current", "aria-describedby", "aria-description", "aria-details", "aria-disabled",
    "aria-dropeffect", "aria-errormessage", "aria-flowto", "aria-grabbed", "aria-haspopup",
    "aria-hidden", "aria-invalid", "aria-keyshortcuts", "aria-label", "aria-labelledby", "aria-live",
    "aria-owns", "aria-relevant", "aria-roledescription",
})

# value type per attribute; 'tokens:' lists the allowed values
ATTRIBUTE_TYPES: Dict[str, str] = {
    "aria-activedescendant": "idref",
    "aria-atomic": "true/false",
    "aria-autocomplete": "tokens:inline list both none",
    "aria-braillelabel": "string",
    "aria-brailleroledescription": "string",
    "aria-busy": "true/false",
    "aria-checked": "tristate",
    "aria-colcount": "integer",
    "aria-colindex": "integer",
    "aria-colindextext": "string",
    "aria-colspan": "integer",
    "aria-controls": "idrefs",
    "aria-current": "tokens:page step location date time true false",
    "aria-describedby": "idrefs",
    "aria-description": "string",
    "aria-details": "idref",
    "aria-disabled": "true/false",
    "aria-dropeffect": "tokenlist:copy execute link move none popup",
    "aria-errormessage": "idref",
    "aria-expanded": "true/false/undefined",
    "aria-flowto": "idrefs",
    "aria-grabbed": "true/false/undefined",
    "aria-haspopup": "tokens:false true menu listbox tree grid dialog",
    "aria-hidden": "true/false/undefined",
    "aria-invalid": "tokens:grammar false spelling true",
    "aria-keyshortcuts": "string",
    "aria-label": "string",
    "aria-labelledby": "idrefs",
    "aria-level": "integer",
    "aria-live": "tokens:assertive off polite",
    "aria-modal": "true/false",
    "aria-multiline": "true/false",
    "aria-multiselectable": "true/false",
    "aria-orientation": "tokens:horizontal vertical undefined",
    "aria-owns": "idrefs",
    "aria-placeholder": "string",
    "aria-posinset": "integer",
    "aria-pressed": "tristate",
    "aria-readonly": "true/false",
    "aria-relevant": "tokenlist:additions all removals text",
    "aria-required": "true/false",
    "aria-roledescription": "string",
    "aria-rowcount": "integer",
    "aria-rowindex": "integer",
    "aria-rowindextext": "string",
    "aria-rowspan": "integer",
    "aria-selected": "true/false/undefined",
    "aria-setsize": "integer",
    "aria-sort": "tokens:ascending descending none other",
    "aria-valuemax": "number",
    "aria-valuemin": "number",
    "aria-valuenow": "number",
    "aria-valuetext": "string",
}


class RoleSpec(NamedTuple):
    permitted: FrozenSet[str] = frozenset()
    required: FrozenSet[str] = frozenset()
    native: FrozenSet[str] = frozenset()  # elements carrying this role implicitly
    context: FrozenSet[str] = frozenset()  # required owning roles
    owned: FrozenSet[str] = frozenset()  # roles it may own directly (empty = unrestricted)


def _spec(permitted="", required="", native="", context="", owned="") -> RoleSpec:
    required_set = frozenset(required.split())
    return RoleSpec(
        permitted=frozenset(permitted.split()) | required_set,
        required=required_set,
        native=frozenset(native.split()),
        context=frozenset(context.split()),
        owned=frozenset(owned.split()),
    )


_VALUE = "aria-valuemin aria-valuemax aria-valuetext"
_SET = "aria-posinset aria-setsize"
_CELL = "aria-colindex aria-colspan aria-rowindex aria-rowspan aria-colindextext aria-rowindextext"

ROLES: Dict[str, RoleSpec] = {
    "alert": _spec(),
    "alertdialog": _spec("aria-modal"),
    "application": _spec("aria-activedescendant aria-expanded"),
    "article": _spec(_SET, native="article"),
    "banner": _spec(native="header"),
    "blockquote": _spec(native="blockquote"),
    "button": _spec("aria-expanded aria-pressed", native="button"),
    "caption": _spec(native="caption figcaption"),
    "cell": _spec(_CELL, native="td", context="row"),
    "checkbox": _spec("aria-expanded aria-readonly aria-required", "aria-checked"),
    "code": _spec(native="code"),
    "columnheader": _spec(f"{_CELL} aria-sort aria-selected aria-readonly aria-required aria-expanded",
                          native="th", context="row"),
    "combobox": _spec("aria-autocomplete aria-activedescendant aria-readonly aria-required",
                      "aria-expanded", native="select"),
    "complementary": _spec(native="aside"),
    "contentinfo": _spec(native="footer"),
    "definition": _spec(native="dd"),
    "deletion": _spec(native="del s"),
    "dialog": _spec("aria-modal", native="dialog"),
    "document": _spec(),
    "emphasis": _spec(native="em"),
    "feed": _spec(owned="article"),
    "figure": _spec(native="figure"),
    "form": _spec(native="form"),
    "generic": _spec(native="div span"),
    "grid": _spec("aria-multiselectable aria-readonly aria-colcount aria-rowcount aria-activedescendant",
                  owned="row rowgroup caption"),
    "gridcell": _spec(f"{_CELL} aria-selected aria-readonly aria-required aria-expanded", context="row"),
    "group": _spec("aria-activedescendant", native="fieldset details optgroup"),
    "heading": _spec("", "aria-level", native="h1 h2 h3 h4 h5 h6"),
    "img": _spec(native="img"),
    "insertion": _spec(native="ins"),
    "link": _spec("aria-expanded", native="a area"),
    "list": _spec(native="ul ol menu", owned="listitem"),
    "listbox": _spec("aria-multiselectable aria-readonly aria-required aria-activedescendant "
                     "aria-orientation aria-expanded", native="datalist", owned="option group"),
    "listitem": _spec(f"aria-level {_SET}", native="li", context="list"),
    "log": _spec(),
    "main": _spec(native="main"),
    "marquee": _spec(),
    "math": _spec(native="math"),
    "menu": _spec("aria-orientation aria-activedescendant",
                  owned="menuitem menuitemcheckbox menuitemradio group separator"),
    "menubar": _spec("aria-orientation aria-activedescendant",
                     owned="menuitem menuitemcheckbox menuitemradio group separator"),
    "menuitem": _spec(f"aria-expanded {_SET}", context="menu menubar group"),
    "menuitemcheckbox": _spec(f"aria-expanded {_SET}", "aria-checked", context="menu menubar group"),
    "menuitemradio": _spec(f"aria-expanded {_SET}", "aria-checked", context="menu menubar group"),
    "meter": _spec(_VALUE, "aria-valuenow", native="meter"),
    "navigation": _spec(native="nav"),
    "none": _spec(),
    "note": _spec(),
    "option": _spec(f"aria-selected aria-checked {_SET}", native="option", context="listbox group"),
    "paragraph": _spec(native="p"),
    "presentation": _spec(),
    "progressbar": _spec(f"aria-valuenow {_VALUE}", native="progress"),
    "radio": _spec(_SET, "aria-checked"),
    "radiogroup": _spec("aria-readonly aria-required aria-activedescendant aria-orientation", owned="radio"),
    "region": _spec(native="section"),
    "row": _spec(f"aria-selected aria-expanded aria-level aria-colindex aria-rowindex {_SET}",
                 native="tr", context="table grid treegrid rowgroup",
                 owned="cell gridcell columnheader rowheader"),
    "rowgroup": _spec(native="tbody thead tfoot", context="table grid treegrid", owned="row"),
    "rowheader": _spec(f"{_CELL} aria-sort aria-selected aria-readonly aria-required aria-expanded",
                       context="row"),
    "scrollbar": _spec(f"aria-orientation {_VALUE}", "aria-controls aria-valuenow"),
    "search": _spec(native="search"),
    "searchbox": _spec("aria-activedescendant aria-autocomplete aria-multiline aria-placeholder "
                       "aria-readonly aria-required"),
    "separator": _spec(f"aria-orientation aria-valuenow {_VALUE}", native="hr"),
    "slider": _spec(f"aria-orientation aria-readonly {_VALUE}", "aria-valuenow"),
    "spinbutton": _spec(f"aria-activedescendant aria-readonly aria-required aria-valuenow {_VALUE}"),
    "status": _spec(native="output"),
    "strong": _spec(native="strong b"),
    "subscript": _spec(native="sub"),
    "superscript": _spec(native="sup"),
    "switch": _spec("aria-readonly aria-required", "aria-checked"),
    "tab": _spec(f"aria-selected aria-expanded {_SET}", context="tablist"),
    "table": _spec("aria-colcount aria-rowcount", native="table", owned="row rowgroup caption"),
    "tablist": _spec("aria-multiselectable aria-orientation aria-activedescendant", owned="tab"),
    "tabpanel": _spec(),
    "term": _spec(native="dfn dt"),
    "textbox": _spec("aria-activedescendant aria-autocomplete aria-multiline aria-placeholder "
                     "aria-readonly aria-required", native="textarea"),
    "time": _spec(native="time"),
    "timer": _spec(),
    "toolbar": _spec("aria-orientation aria-activedescendant"),
    "tooltip": _spec(),
    "tree": _spec("aria-multiselectable aria-required aria-orientation aria-activedescendant",
                  owned="treeitem group"),
    "treegrid": _spec("aria-multiselectable aria-readonly aria-colcount aria-rowcount aria-activedescendant "
                      "aria-orientation aria-required", owned="row rowgroup caption"),
    "treeitem": _spec(f"aria-expanded aria-selected aria-checked aria-level {_SET}", context="tree group"),
}

PRESENTATIONAL_ROLES = frozenset({"none", "presentation"})

WIDGET_ROLES = frozenset({
    "button", "checkbox", "combobox", "gridcell", "link", "listbox", "menuitem", "menuitemcheckbox",
    "menuitemradio", "option", "radio", "scrollbar", "searchbox", "slider", "spinbutton", "switch", "tab",
    "textbox", "treeitem", "grid", "menu", "menubar", "radiogroup", "tablist", "tree", "treegrid",
})

LANDMARK_ROLES = frozenset({
    "banner", "complementary", "contentinfo", "form", "main", "navigation", "region", "search",
})

LIVE_REGION_ROLES = frozenset({"alert", "log", "marquee", "status", "timer"})

# Elements whose native semantics may not be overridden by any role
NO_ROLE_ELEMENTS = frozenset({
    "html", "head", "meta", "script", "style", "title", "base", "link", "template", "source", "track",
    "col", "colgroup", "param", "picture", "slot",
})

_INPUT_ROLES = {
    "button": "button", "submit": "button", "reset": "button", "image": "button",
    "checkbox": "checkbox", "radio": "radio", "range": "slider", "number": "spinbutton",
    "search": "searchbox", "email": "textbox", "tel": "textbox", "text": "textbox", "url": "textbox",
}
_SECTIONING = {"article", "aside", "main", "nav", "section"}


def is_known_role(role: Optional[str]) -> bool:
    return role in ROLES


def role_spec(role: Optional[str]) -> Optional[RoleSpec]:
    return ROLES.get(role) if role else None


def implicit_role(node, document=None) -> Optional[str]:
    """
    Native (implicit) role of an element following HTML-AAM, or None when the
    element has no corresponding role. `document` enables the context-dependent
    cases (header/footer landmarks, named sections, alt-less images).
    """
    tag = node.tag
    attrs = node.attrs
    if tag in ("a", "area"):
        return "link" if "href" in attrs else None
    if tag == "input":
        input_type = attrs.get("type", "text").lower()
        if input_type == "hidden":
            return None
        if input_type in ("text", "search", "email", "tel", "url") and "list" in attrs:
            return "combobox"
        return _INPUT_ROLES.get(input_type, "textbox")
    if tag == "img":
        return "presentation" if attrs.get("alt", None) == "" else "img"
    if tag == "select":
        multiple = "multiple" in attrs
        try:
            size = int(attrs.get("size", "1"))
        except ValueError:
            size = 1
        return "listbox" if multiple or size > 1 else "combobox"
    if tag in ("header", "footer"):
        if document is not None and any(a.tag in _SECTIONING for a in document.ancestors(node)):
            return "generic"
        return "banner" if tag == "header" else "contentinfo"
    if tag == "section":
        named = attrs.get("aria-label", "").strip() or attrs.get("aria-labelledby", "").strip()
        return "region" if named else "generic"
    if tag == "th":
        return "columnheader"
    if tag == "summary":
        return "button"
    for role, spec in ROLES.items():
        if tag in spec.native:
            return role
    return None


def effective_role(node, document=None) -> Optional[str]:
    """
    The role a user agent exposes: the first known token of the role
    attribute, else the implicit native role. Unknown explicit roles are
    recovered as "no role" and fall back to native semantics.
    """
    for token in node.role_tokens:
        if token in ROLES:
            return token
    return implicit_role(node, document)


def is_interactive(node, document=None) -> bool:
    """Natively interactive element or explicit widget role."""
    role = effective_role(node, document)
    if role in WIDGET_ROLES:
        return True
    if node.tag in ("button", "select", "textarea", "summary"):
        return True
    if node.tag == "input":
        return node.attrs.get("type", "text").lower() != "hidden"
    return node.tag in ("a", "area") and "href" in node.attrs

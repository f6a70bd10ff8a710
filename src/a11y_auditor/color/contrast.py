# src/a11y_auditor/color/contrast.py
"""
WCAG 2.x colour contrast math.

Relative luminance and contrast ratios for resolved colour pairs, with
alpha compositing against the nearest opaque ancestor background.
"""
import colorsys
import logging
import re
from typing import Optional, Tuple, NamedTuple

from ..dom.core import Node
from ..dom.models import UIDocument

logger = logging.getLogger(__name__)

RGB = Tuple[float, float, float]
RGBA = Tuple[float, float, float, float]

NORMAL_TEXT_RATIO = 4.5
LARGE_TEXT_RATIO = 3.0
NON_TEXT_RATIO = 3.0
LARGE_TEXT_PT = 18.0
LARGE_BOLD_TEXT_PT = 14.0

NAMED_COLORS = {
    name: tuple(int(hexstr[i:i + 2], 16) for i in (0, 2, 4))
    for name, hexstr in {
        "aliceblue": "f0f8ff", "antiquewhite": "faebd7", "aqua": "00ffff", "aquamarine": "7fffd4",
        "azure": "f0ffff", "beige": "f5f5dc", "bisque": "ffe4c4", "black": "000000",
        "blanchedalmond": "ffebcd", "blue": "0000ff", "blueviolet": "8a2be2", "brown": "a52a2a",
        "burlywood": "deb887", "cadetblue": "5f9ea0", "chartreuse": "7fff00", "chocolate": "d2691e",
        "coral": "ff7f50", "cornflowerblue": "6495ed", "cornsilk": "fff8dc", "crimson": "dc143c",
        "cyan": "00ffff", "darkblue": "00008b", "darkcyan": "008b8b", "darkgoldenrod": "b8860b",
        "darkgray": "a9a9a9", "darkgreen": "006400", "darkgrey": "a9a9a9", "darkkhaki": "bdb76b",
        "darkmagenta": "8b008b", "darkolivegreen": "556b2f", "darkorange": "ff8c00", "darkorchid": "9932cc",
        "darkred": "8b0000", "darksalmon": "e9967a", "darkseagreen": "8fbc8f", "darkslateblue": "483d8b",
        "darkslategray": "2f4f4f", "darkslategrey": "2f4f4f", "darkturquoise": "00ced1", "darkviolet": "9400d3",
        "deeppink": "ff1493", "deepskyblue": "00bfff", "dimgray": "696969", "dimgrey": "696969",
        "dodgerblue": "1e90ff", "firebrick": "b22222", "floralwhite": "fffaf0", "forestgreen": "228b22",
        "fuchsia": "ff00ff", "gainsboro": "dcdcdc", "ghostwhite": "f8f8ff", "gold": "ffd700",
        "goldenrod": "daa520", "gray": "808080", "green": "008000", "greenyellow": "adff2f",
        "grey": "808080", "honeydew": "f0fff0", "hotpink": "ff69b4", "indianred": "cd5c5c",
        "indigo": "4b0082", "ivory": "fffff0", "khaki": "f0e68c", "lavender": "e6e6fa",
        "lavenderblush": "fff0f5", "lawngreen": "7cfc00", "lemonchiffon": "fffacd", "lightblue": "add8e6",
        "lightcoral": "f08080", "lightcyan": "e0ffff", "lightgoldenrodyellow": "fafad2", "lightgray": "d3d3d3",
        "lightgreen": "90ee90", "lightgrey": "d3d3d3", "lightpink": "ffb6c1", "lightsalmon": "ffa07a",
        "lightseagreen": "20b2aa", "lightskyblue": "87cefa", "lightslategray": "778899",
        "lightslategrey": "778899", "lightsteelblue": "b0c4de", "lightyellow": "ffffe0", "lime": "00ff00",
        "limegreen": "32cd32", "linen": "faf0e6", "magenta": "ff00ff", "maroon": "800000",
        "mediumaquamarine": "66cdaa", "mediumblue": "0000cd", "mediumorchid": "ba55d3",
        "mediumpurple": "9370db", "mediumseagreen": "3cb371", "mediumslateblue": "7b68ee",
        "mediumspringgreen": "00fa9a", "mediumturquoise": "48d1cc", "mediumvioletred": "c71585",
        "midnightblue": "191970", "mintcream": "f5fffa", "mistyrose": "ffe4e1", "moccasin": "ffe4b5",
        "navajowhite": "ffdead", "navy": "000080", "oldlace": "fdf5e6", "olive": "808000",
        "olivedrab": "6b8e23", "orange": "ffa500", "orangered": "ff4500", "orchid": "da70d6",
        "palegoldenrod": "eee8aa", "palegreen": "98fb98", "paleturquoise": "afeeee",
        "palevioletred": "db7093", "papayawhip": "ffefd5", "peachpuff": "ffdab9", "peru": "cd853f",
        "pink": "ffc0cb", "plum": "dda0dd", "powderblue": "b0e0e6", "purple": "800080",
        "rebeccapurple": "663399", "red": "ff0000", "rosybrown": "bc8f8f", "royalblue": "4169e1",
        "saddlebrown": "8b4513", "salmon": "fa8072", "sandybrown": "f4a460", "seagreen": "2e8b57",
        "seashell": "fff5ee", "sienna": "a0522d", "silver": "c0c0c0", "skyblue": "87ceeb",
        "slateblue": "6a5acd", "slategray": "708090", "slategrey": "708090", "snow": "fffafa",
        "springgreen": "00ff7f", "steelblue": "4682b4", "tan": "d2b48c", "teal": "008080",
        "thistle": "d8bfd8", "tomato": "ff6347", "turquoise": "40e0d0", "violet": "ee82ee",
        "wheat": "f5deb3", "white": "ffffff", "whitesmoke": "f5f5f5", "yellow": "ffff00",
        "yellowgreen": "9acd32",
    }.items()
}

# Keywords that defer to the inherited colour
INHERITING_KEYWORDS = {"inherit", "currentcolor", "unset"}

_RE_FUNC = re.compile(r"^(rgba?|hsla?)\(\s*([^)]*)\)$")


class ColorPair(NamedTuple):
    """Resolved, fully opaque (foreground, background) colours."""
    foreground: RGB
    background: RGB


class ContrastResult(NamedTuple):
    """
    Outcome of resolving and measuring one node.
    `ratio` is None when the pair is indeterminate; `reason` then says why.
    """
    ratio: Optional[float]
    required: float
    large_text: bool = False
    pair: Optional[ColorPair] = None
    reason: Optional[str] = None

    @property
    def indeterminate(self) -> bool:
        return self.ratio is None

    @property
    def passes(self) -> bool:
        return self.ratio is not None and meets_threshold(self.ratio, self.required)


def parse_color(value: Optional[str]) -> Optional[RGBA]:
    """
    Parses '#rgb', '#rgba', '#rrggbb', '#rrggbbaa', 'rgb()', 'rgba()',
    'hsl()', 'hsla()', 'transparent' and the CSS named colours.
    Returns (r, g, b, a) with channels in 0-255 and alpha in 0-1, or None
    when unparseable.
    """
    if value is None:
        return None
    text = str(value).strip().lower()
    if not text:
        return None
    if text == "transparent":
        return 0.0, 0.0, 0.0, 0.0
    if text in NAMED_COLORS:
        r, g, b = NAMED_COLORS[text]
        return float(r), float(g), float(b), 1.0

    if text.startswith("#"):
        hexstr = text[1:]
        try:
            if len(hexstr) in (3, 4):
                channels = [int(c * 2, 16) for c in hexstr]
            elif len(hexstr) in (6, 8):
                channels = [int(hexstr[i:i + 2], 16) for i in range(0, len(hexstr), 2)]
            else:
                return None
        except ValueError:
            return None
        alpha = channels[3] / 255.0 if len(channels) == 4 else 1.0
        return float(channels[0]), float(channels[1]), float(channels[2]), alpha

    match = _RE_FUNC.match(text)
    if match:
        # Both 'rgb(1, 2, 3, 0.5)' and 'rgb(1 2 3 / 50%)' syntaxes
        parts = [p for p in re.split(r"[,\s/]+", match.group(2).strip()) if p]
        if len(parts) not in (3, 4):
            return None
        try:
            if match.group(1).startswith("hsl"):
                rgb = _hsl_to_rgb(*parts[:3])
            else:
                rgb = [_channel(p) for p in parts[:3]]
            alpha = _alpha(parts[3]) if len(parts) == 4 else 1.0
        except ValueError:
            return None
        return rgb[0], rgb[1], rgb[2], alpha

    return None


def _hue(token: str) -> float:
    """Hue as a fraction of a full turn; accepts deg (default), turn, rad and grad."""
    for unit, per_turn in (("deg", 360.0), ("grad", 400.0), ("rad", 6.283185307179586), ("turn", 1.0)):
        if token.endswith(unit):
            return (float(token[:-len(unit)]) / per_turn) % 1.0
    return (float(token) / 360.0) % 1.0


def _percentage(token: str) -> float:
    # Legacy hsl() requires %, modern syntax allows bare numbers on the same 0-100 scale
    value = float(token[:-1]) if token.endswith("%") else float(token)
    return max(0.0, min(1.0, value / 100.0))


def _hsl_to_rgb(hue: str, saturation: str, lightness: str) -> RGB:
    r, g, b = colorsys.hls_to_rgb(_hue(hue), _percentage(lightness), _percentage(saturation))
    return r * 255.0, g * 255.0, b * 255.0


def _channel(token: str) -> float:
    if token.endswith("%"):
        return max(0.0, min(255.0, float(token[:-1]) * 2.55))
    return max(0.0, min(255.0, float(token)))


def _alpha(token: str) -> float:
    if token.endswith("%"):
        return max(0.0, min(1.0, float(token[:-1]) / 100.0))
    return max(0.0, min(1.0, float(token)))


def composite(top: RGBA, bottom: RGB) -> RGB:
    """Source-over compositing of a translucent colour onto an opaque one."""
    alpha = top[3]
    return (
        top[0] * alpha + bottom[0] * (1 - alpha),
        top[1] * alpha + bottom[1] * (1 - alpha),
        top[2] * alpha + bottom[2] * (1 - alpha),
    )


def relative_luminance(rgb: RGB) -> float:
    """
    WCAG relative luminance of an sRGB colour (channels 0-255).
    Each channel is linearised (c/12.92 at or below 0.04045, otherwise
    ((c + 0.055)/1.055)^2.4) and weighted 0.2126/0.7152/0.0722.
    """
    linear = []
    for c in rgb:
        s = c / 255.0
        linear.append(s / 12.92 if s <= 0.04045 else ((s + 0.055) / 1.055) ** 2.4)
    return 0.2126 * linear[0] + 0.7152 * linear[1] + 0.0722 * linear[2]


def contrast_ratio(color_a: RGB, color_b: RGB) -> float:
    """(L1 + 0.05) / (L2 + 0.05) with L1 the lighter colour; always >= 1."""
    lum_a = relative_luminance(color_a)
    lum_b = relative_luminance(color_b)
    lighter, darker = max(lum_a, lum_b), min(lum_a, lum_b)
    return (lighter + 0.05) / (darker + 0.05)


def is_large_text(font_size_pt: Optional[float], font_weight: int = 400) -> bool:
    """Large text is >= 18pt, or >= 14pt and bold. Unknown size counts as normal."""
    if font_size_pt is None:
        return False
    if font_size_pt >= LARGE_TEXT_PT:
        return True
    return font_size_pt >= LARGE_BOLD_TEXT_PT and font_weight >= 700


def required_text_ratio(font_size_pt: Optional[float], font_weight: int = 400) -> float:
    return LARGE_TEXT_RATIO if is_large_text(font_size_pt, font_weight) else NORMAL_TEXT_RATIO


def meets_threshold(ratio: float, required: float) -> bool:
    """Strict comparison on the unrounded ratio: 4.49999 fails a 4.5 requirement."""
    return ratio >= required


class ColorResolver:
    """
    Resolves the effective colours of nodes within one document.
    Pure function of (document, default background); holds no cache so a
    resolver never outlives the pass it was built for.
    """

    def __init__(self, document: UIDocument, default_background: Optional[str] = None):
        self.document = document
        self.default_background = parse_color(default_background) if default_background else None
        if self.default_background is not None and self.default_background[3] < 1.0:
            raise ValueError("default_background must be fully opaque")

    def _declared_color(self, node: Node) -> Tuple[Optional[str], Optional[Node]]:
        """`color` is inherited: the nearest declaration on the node or an ancestor."""
        for current in (node, *self.document.ancestors(node)):
            raw = (current.style.color or "").strip()
            if raw and raw.lower() not in INHERITING_KEYWORDS:
                return raw, current
        return None, None

    def has_foreground(self, node: Node) -> bool:
        return self._declared_color(node)[0] is not None

    def resolve_foreground(self, node: Node) -> Tuple[Optional[RGBA], Optional[str]]:
        """
        Returns (rgba, None) or (None, reason). An unparseable declaration is
        never skipped in favour of an ancestor's colour.
        """
        raw, owner = self._declared_color(node)
        if raw is None:
            return None, "no foreground colour resolved"
        parsed = parse_color(raw)
        if parsed is None:
            logger.debug(f"Unparseable text colour '{raw}' at {owner.path}")
            return None, f"unparseable text colour '{raw}' at {owner.path}"
        return parsed, None

    def foreground(self, node: Node) -> Optional[RGBA]:
        return self.resolve_foreground(node)[0]

    def background(self, node: Node, include_self: bool = True) -> Tuple[Optional[RGB], Optional[str]]:
        """
        Composites translucent backgrounds from the node outward until a fully
        opaque layer is found. Returns (rgb, None) or (None, reason).
        """
        layers = []
        chain = (node, *self.document.ancestors(node)) if include_self else tuple(self.document.ancestors(node))
        base: Optional[RGB] = None
        for current in chain:
            raw = current.style.background_color
            if raw is None:
                continue
            parsed = parse_color(raw)
            if parsed is None:
                return None, f"unparseable background colour '{raw}' at {current.path}"
            if parsed[3] >= 1.0:
                base = parsed[:3]
                break
            if parsed[3] > 0.0:
                layers.append(parsed)

        if base is None:
            if self.default_background is None:
                return None, "no opaque background found on the node or its ancestors"
            base = self.default_background[:3]

        # Innermost layer is painted last
        for layer in reversed(layers):
            base = composite(layer, base)
        return base, None

    def resolve_pair(self, node: Node) -> Tuple[Optional[ColorPair], Optional[str]]:
        fg, reason = self.resolve_foreground(node)
        if fg is None:
            return None, reason
        bg, reason = self.background(node)
        if bg is None:
            return None, reason
        fg_rgb = composite(fg, bg) if fg[3] < 1.0 else fg[:3]
        return ColorPair(fg_rgb, bg), None

    def text_contrast(self, node: Node) -> ContrastResult:
        """Contrast of the node's text against its composited background."""
        large = is_large_text(node.style.font_size_pt, node.style.font_weight)
        required = LARGE_TEXT_RATIO if large else NORMAL_TEXT_RATIO
        pair, reason = self.resolve_pair(node)
        if pair is None:
            return ContrastResult(ratio=None, required=required, large_text=large, reason=reason)
        return ContrastResult(
            ratio=contrast_ratio(pair.foreground, pair.background),
            required=required,
            large_text=large,
            pair=pair
        )

    def boundary_contrast(self, node: Node) -> Optional[ContrastResult]:
        """
        Best contrast between the node's visual boundary (border colour or own
        fill) and the adjacent background outside the node. None when the node
        declares no boundary to measure.
        """
        candidates = [c for c in (node.style.border_color, node.style.background_color) if c]
        if not candidates:
            return None

        outer, reason = self.background(node, include_self=False)
        if outer is None:
            return ContrastResult(ratio=None, required=NON_TEXT_RATIO, reason=reason)

        best: Optional[ContrastResult] = None
        for raw in candidates:
            parsed = parse_color(raw)
            if parsed is None or parsed[3] == 0.0:
                continue
            edge = composite(parsed, outer) if parsed[3] < 1.0 else parsed[:3]
            ratio = contrast_ratio(edge, outer)
            if best is None or ratio > best.ratio:
                best = ContrastResult(ratio=ratio, required=NON_TEXT_RATIO, pair=ColorPair(edge, outer))
        return best

# Design tokens for the dashboard. styles.css only reads these through the
# CSS custom properties emitted by css_variables().

COLORS = {
    "bg": "#0b1220",
    "surface": "#121b2d",
    "surface2": "#17223a",
    "border": "#24324f",
    "muted": "#7f93b8",
    "text": "#eef3fb",
    "text2": "#a3b1c9",
    "accent": "#5cc8ff",
    "accent2": "#8fd694",
}

CHART = {
    "label": "#cfd8ea",
    "grid": "#1c2840",
}

SPACING = {"xs": 4, "sm": 8, "md": 14, "lg": 22}
RADII = {"sm": 6, "md": 12}

FONTS = {
    "base": '"Inter", "Segoe UI", sans-serif',
    "mono": '"JetBrains Mono", "Consolas", monospace',
}


def css_variables() -> str:
    props = [(name, value) for name, value in COLORS.items()]
    props += [(f"space-{name}", f"{px}px") for name, px in SPACING.items()]
    props += [(f"radius-{name}", f"{px}px") for name, px in RADII.items()]
    props += [(f"font-{name}", stack) for name, stack in FONTS.items()]
    body = "\n".join(f"  --{name}: {value};" for name, value in props)
    return f":root {{\n{body}\n}}"

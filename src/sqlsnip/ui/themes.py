"""Theme definitions for the TUI.

This module hides the design decisions about:
- Color palettes and visual appearance
- Theme variables (borders, scrollbars, etc.)

To add a new theme, define it here and register in the app.
"""

from textual.theme import Theme

# Editor-style dark theme: neutral greys with a blue accent
EDITOR_DARK = Theme(
    name="sqlsnip-dark",
    primary="#007acc",      # Blue - selection and focus
    secondary="#c586c0",    # Purple - keywords, chat
    accent="#dcdcaa",       # Yellow - highlights
    foreground="#d4d4d4",   # Light text
    background="#1e1e1e",   # Editor background
    success="#4ec9b0",      # Teal - successful runs
    warning="#ce9178",      # Orange - safety warnings
    error="#f44747",        # Red - errors, destructive actions
    surface="#252526",      # Sidebar
    panel="#2d2d2d",        # Panel headers
    dark=True,
    variables={
        "block-cursor-foreground": "#ffffff",
        "block-cursor-background": "#094771",
        "block-cursor-text-style": "bold",
        "block-hover-background": "#2a2d2e",

        "input-cursor-background": "#aeafad",
        "input-selection-background": "#264f78",

        "border": "#3c3c3c",
        "border-blurred": "#333333",

        "scrollbar": "#424242",
        "scrollbar-hover": "#4f4f4f",
        "scrollbar-active": "#007acc",
        "scrollbar-background": "#1e1e1e",

        "footer-background": "#007acc",
        "footer-foreground": "#ffffff",
        "footer-key-foreground": "#ffffff",
        "footer-key-background": "#005a9e",
        "footer-description-foreground": "#e7e7e7",

        "text-muted": "#858585",
    },
)

"""CSS styles for the TUI.

Hides layout and styling decisions from the application logic.
Uses Textual CSS features: nesting, pseudo-classes, variables.

Layout: a sidebar of switchable views on the left, the editor workspace on
the right, and a hideable log panel along the bottom.
"""

APP_CSS = """
/* ============================================
   Main Screen Layout
   ============================================ */
Screen {
    layout: vertical;
    background: $background;
}

#main {
    height: 1fr;
}

/* ============================================
   Sidebar - Switchable Views
   ============================================ */
#sidebar {
    width: 40;
    min-width: 30;
    background: $surface;
    border-right: tall $border;
}

#sidebar-tabs {
    height: auto;
}

#sidebar-views {
    height: 1fr;
}

#sidebar-views > * {
    height: 1fr;
    padding: 0 1;
}

.panel-header {
    height: 3;
    align: left middle;

    & .panel-title {
        width: 1fr;
    }
}

.panel-title {
    color: $text-muted;
    text-style: bold;
    padding: 1 0 0 0;
}

#explorer {
    background: $surface;
    border-title-color: $text-muted;
    border-subtitle-color: $text-muted;
}

ListView {
    height: 1fr;
    background: transparent;

    & > ListItem {
        padding: 0 1;
        margin: 0 0 1 0;
        border-left: tall $primary 40%;
        background: $panel;

        &.-highlight {
            background: $primary 25%;
        }
    }
}

#settings-view Select,
#settings-view Input {
    margin: 0 0 1 0;
}

/* ============================================
   Workspace - Editor and Results
   ============================================ */
#workspace {
    width: 1fr;
}

#toolbar {
    height: 3;
    background: $panel;

    & #snippet-name {
        width: 1fr;
        border: none;
        background: $panel;
    }

    & Button {
        margin: 0 0 0 1;
    }
}

#editor {
    height: 2fr;
    border: round $border;

    &:focus {
        border: round $primary;
    }
}

#snippet-info {
    height: auto;
    max-height: 8;
    padding: 0 1;
    background: $panel;
}

#result-panel {
    height: 1fr;
    border: round $success 60%;
    border-title-color: $success;
    border-title-style: bold;
    border-subtitle-color: $text-muted;
    border-subtitle-align: right;

    &.executing {
        border: round $warning;
        border-title-color: $warning;
    }
}

#result-table {
    height: 1fr;
}

#result-status {
    height: 1;
    padding: 0 1;
}

/* ============================================
   Chat View
   ============================================ */
#chat-transcript {
    height: 1fr;
}

#chat-quick {
    height: auto;

    & .quick-prompt {
        min-width: 0;
        width: 1fr;
        height: 3;
    }
}

.chat-message {
    width: 100%;
    height: auto;
    margin: 0 0 1 0;
    padding: 0 1;
}

.user-message {
    border-left: tall $primary;
    background: $primary 8%;

    & .message-header {
        color: $primary;
        text-style: bold;
    }
}

.assistant-message {
    border-left: tall $secondary;
    background: $secondary 8%;

    & .message-header {
        color: $secondary;
        text-style: bold;
    }
}

.message-content {
    height: auto;
    margin: 0;
}

/* ============================================
   Test Dashboard
   ============================================ */
#tests-table {
    height: 1fr;
}

#tests-summary {
    height: 1;
}

/* ============================================
   Log Panel
   ============================================ */
#log-panel {
    height: 10;
    background: $panel;
    border: round $warning 60%;
    border-title-color: $warning;
    border-subtitle-color: $text-muted;
    border-subtitle-align: right;
}

/* ============================================
   Header and Footer
   ============================================ */
Header {
    background: $panel;
    color: $foreground;
}

HeaderTitle {
    color: $primary;
    text-style: bold;
}

Footer {
    height: auto;
}

/* ============================================
   Buttons
   ============================================ */
Button {
    min-width: 8;
    height: 3;

    &:focus {
        text-style: bold;
    }
}

Button.-error {
    background: $error;
}
"""

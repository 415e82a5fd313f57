"""
styles.py

Application stylesheets - Light and Dark themes.
"""

LIGHT_STYLE = """
QMainWindow {
    background-color: #f5f5f5;
}

QWidget {
    color: #363636;
    font-family: "Segoe UI", "SF Pro Display", sans-serif;
    font-size: 13px;
}

/* === Toolbar === */
QToolBar {
    background-color: #ffffff;
    border: none;
    border-bottom: 1px solid #dbdbdb;
    padding: 2px 3px;
    spacing: 2px;
}

QToolBar QToolButton {
    background-color: #ffffff;
    border: 1px solid #dbdbdb;
    border-radius: 4px;
    padding: 2px 8px;
}

QToolBar QToolButton:hover {
    background-color: #eef6fc;
    border-color: #3273dc;
}

/* === Prompt editor === */
QPlainTextEdit {
    background-color: #ffffff;
    color: #363636;
    border: 1px solid #dbdbdb;
    border-radius: 4px;
    selection-background-color: #b5d5ff;
}

QPlainTextEdit:focus {
    border-color: #3273dc;
}

/* === Status Bar === */
QStatusBar {
    background-color: #ffffff;
    color: #4a4a4a;
    border-top: 1px solid #dbdbdb;
}
"""

DARK_STYLE = """
QMainWindow {
    background-color: #1e1e1e;
}

QWidget {
    color: #cccccc;
    font-family: "Segoe UI", "SF Pro Display", sans-serif;
    font-size: 13px;
}

/* === Toolbar === */
QToolBar {
    background-color: #333333;
    border: none;
    border-bottom: 1px solid #404040;
    padding: 2px 3px;
    spacing: 2px;
}

QToolBar QToolButton {
    background-color: #3c3c3c;
    color: #cccccc;
    border: 1px solid #505050;
    border-radius: 3px;
    padding: 2px 8px;
}

QToolBar QToolButton:hover {
    background-color: #094771;
}

/* === Prompt editor === */
QPlainTextEdit {
    background-color: #1e1e1e;
    color: #d4d4d4;
    border: 1px solid #404040;
    border-radius: 4px;
    selection-background-color: #264f78;
}

QPlainTextEdit:focus {
    border-color: #0e639c;
}

/* === Status Bar === */
QStatusBar {
    background-color: #007acc;
    color: #ffffff;
    border: none;
}
"""

# Style registry for easy access
STYLES = {
    "Light": LIGHT_STYLE,
    "Dark": DARK_STYLE,
}

DEFAULT_STYLE = "Light"

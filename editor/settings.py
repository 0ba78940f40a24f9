"""Environment-driven settings for the source editor service.

Environment variables:
    EDITOR_PROJECT_PATH: project root to edit (default: current directory)
    ALLOWED_ORIGINS: comma-separated CORS origins
    EDITOR_FORMAT_COMMAND: formatter run on every written file, reading the
        source on stdin and printing the result, e.g.
        ``npx prettier --stdin-filepath {path}``. Unset by default, in which
        case edited files are written exactly as serialized.
    EDITOR_FORMAT_TIMEOUT: formatter timeout in seconds (default: 10)
    EDITOR_LOG_LEVEL: logging level (default: INFO)
"""

import logging
import os
from pathlib import Path

# ─── Environment ────────────────────────────────────────────────────

PROJECT_ROOT_ENV = "EDITOR_PROJECT_PATH"

ALLOWED_ORIGINS = os.getenv(
    "ALLOWED_ORIGINS", "http://localhost:3000,http://127.0.0.1:3000"
).split(",")

# Optional formatter command; "{path}" is replaced with the edited file path.
FORMAT_COMMAND = os.getenv("EDITOR_FORMAT_COMMAND", "")
FORMAT_TIMEOUT_SECONDS = float(os.getenv("EDITOR_FORMAT_TIMEOUT", "10"))

LOG_LEVEL = os.getenv("EDITOR_LOG_LEVEL", "INFO").upper()

# ─── Project layout ─────────────────────────────────────────────────

SEARCH_DIRECTORIES = (
    "src", "app", "pages", "components", "lib", "ui",
    "views", "features", "modules", "layouts", "widgets",
)

SKIP_DIRECTORIES = frozenset({
    "node_modules", ".next", ".git", "dist", "build", ".turbo", "coverage",
})

COMPONENT_FILE_EXTENSIONS = (".tsx", ".ts", ".jsx", ".js")
SEARCHABLE_EXTENSIONS = (".tsx", ".jsx")

HISTORY_FILENAME = ".visual-edit-history.json"

# Native tags whose rendered element is commonly produced by a wrapper.
TAG_ALIASES = {
    "a": ("a", "A", "Link"),
    "button": ("button", "Button"),
    "img": ("img", "Img", "Image"),
    "h1": ("h1", "H1"),
    "h2": ("h2", "H2"),
    "h3": ("h3", "H3"),
    "h4": ("h4", "H4"),
    "h5": ("h5", "H5"),
    "h6": ("h6", "H6"),
    "p": ("p", "P"),
    "span": ("span", "Span"),
    "div": ("div", "Div"),
}


def get_project_root() -> Path:
    """Return the configured project root, read from the environment each call."""
    return Path(os.getenv(PROJECT_ROOT_ENV, "") or os.getcwd()).resolve()


def configure_logging() -> None:
    """Install the default log format for the service process."""
    logging.basicConfig(
        level=getattr(logging, LOG_LEVEL, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

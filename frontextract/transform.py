"""Pretty-printing of extracted HTML, CSS and JavaScript."""

from __future__ import annotations

from pathlib import Path
from typing import Callable, Dict

import cssbeautifier
import jsbeautifier
from bs4 import BeautifulSoup
from bs4.formatter import HTMLFormatter

from .logging import get_logger
from .scanner import classify
from .stores.transform_cache import TransformCache

INDENT_SIZE = 2


def beautify_js(code: str) -> str:
    options = jsbeautifier.default_options()
    options.indent_size = INDENT_SIZE
    options.space_in_empty_paren = True
    options.preserve_newlines = True
    options.max_preserve_newlines = 2
    return jsbeautifier.beautify(code, options)


def beautify_css(code: str) -> str:
    options = cssbeautifier.default_options()
    options.indent_size = INDENT_SIZE
    return cssbeautifier.beautify(code, options)


def beautify_html(code: str) -> str:
    soup = BeautifulSoup(code, "html.parser")
    return soup.prettify(formatter=HTMLFormatter(indent=INDENT_SIZE))


_BEAUTIFIERS: Dict[str, Callable[[str], str]] = {
    "js": beautify_js,
    "css": beautify_css,
    "html": beautify_html,
}


class Beautifier:
    """Reads a code file and returns its re-formatted text.

    Results go through the transform cache keyed by the source path, so a
    file seen twice in one run is only formatted once. Formatting is purely
    syntactic; when a formatter chokes the raw text is returned instead.
    """

    def __init__(self, cache: TransformCache | None = None) -> None:
        self.cache = cache
        self.logger = get_logger("transform")

    def transform(self, path: str | Path) -> str:
        key = str(path)
        if self.cache is not None:
            cached = self.cache.get(key)
            if cached is not None:
                return cached

        raw = Path(path).read_bytes().decode("utf-8", errors="replace")
        result = self.format_text(raw, classify(path))
        if self.cache is not None:
            self.cache.put(key, result)
        return result

    def format_text(self, text: str, category: str) -> str:
        formatter = _BEAUTIFIERS.get(category)
        if formatter is None:
            return text
        try:
            return formatter(text)
        except Exception as exc:
            self.logger.debug("Formatting %s content failed, keeping raw text: %s", category, exc)
            return text


__all__ = ["Beautifier", "beautify_css", "beautify_html", "beautify_js"]

"""
Generation banner prepended to finalized files.
"""

from __future__ import annotations

from pathlib import Path

import jinja2

CURRENT_DIR = Path(__file__).parent


class BannerRenderer:
    """Render the "generated file" banner from the package template."""

    def __init__(self, template_name: str = "banner.py.jinja2"):
        self.jinja_env = jinja2.Environment(lstrip_blocks=True, trim_blocks=True)
        with open(CURRENT_DIR / "templates" / template_name, encoding="utf-8") as f:
            self.template = self.jinja_env.from_string(f.read())

    def render(self, plugins: list[str], source: str | None = None) -> str:
        """
        Render the banner.

        Args:
            plugins: Providers that contributed to the file
            source: Optional description of the schema the file came from

        Returns:
            Banner text ending with a newline
        """
        text = self.template.render(plugins=plugins, source=source)
        return text if text.endswith("\n") else text + "\n"

    def apply(self, content: str, plugins: list[str], source: str | None = None) -> str:
        """Prepend the banner unless the content already starts with it."""
        banner = self.render(plugins, source)
        first_line = banner.split("\n", 1)[0]
        if content.startswith(first_line):
            return content
        return banner + content

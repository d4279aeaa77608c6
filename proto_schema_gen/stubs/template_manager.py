"""
Template loading for stub synthesis.
"""

from __future__ import annotations

import threading
from pathlib import Path

import jinja2

from ..config import TemplateConfig, TemplateSource
from ..errors import GenerationError

EMBEDDED_TEMPLATE_DIR = "templates/python"


class TemplateManager:
    """Load and cache the stub templates.

    Embedded templates ship inside the package. With the ``filesystem``
    source, templates under ``template_base_path`` take precedence and any
    template missing there falls back to the embedded one.
    """

    def __init__(self, config: TemplateConfig):
        self.config = config
        self._lock = threading.Lock()
        self._cache: dict[str, jinja2.Template] = {}
        self.jinja_env = jinja2.Environment(
            loader=self._build_loader(),
            lstrip_blocks=True,
            trim_blocks=True,
            keep_trailing_newline=True,
        )

    def _build_loader(self) -> jinja2.BaseLoader:
        embedded = jinja2.PackageLoader("proto_schema_gen", EMBEDDED_TEMPLATE_DIR)
        if self.config.template_source != TemplateSource.FILESYSTEM:
            return embedded

        base_path = Path(self.config.template_base_path or ".")
        if not base_path.is_dir():
            raise GenerationError(f"Template directory does not exist: {base_path}")
        return jinja2.ChoiceLoader([jinja2.FileSystemLoader(str(base_path)), embedded])

    def get(self, name: str) -> jinja2.Template:
        """
        Return a compiled template, compiling it on first use.

        Raises:
            GenerationError: If the template cannot be found or does not compile
        """
        with self._lock:
            template = self._cache.get(name)
            if template is None:
                try:
                    template = self.jinja_env.get_template(name)
                except jinja2.TemplateNotFound as e:
                    raise GenerationError(f"Template not found: {name}") from e
                except jinja2.TemplateSyntaxError as e:
                    raise GenerationError(f"Template {name} has a syntax error at line {e.lineno}: {e.message}") from e
                self._cache[name] = template
            return template

    def render(self, name: str, context: dict) -> str:
        """Render a template, wrapping rendering failures in GenerationError."""
        template = self.get(name)
        try:
            return template.render(**context)
        except jinja2.TemplateError as e:
            raise GenerationError(f"Failed to render template {name}: {e}") from e

"""Detail-description rendering for the publish workbook.

Operator-authored templates are persisted between runs, so they are rendered
with Jinja2's immutable sandbox: templates can interpolate the fields handed
to them and expand image lists with the ``gallery`` filter, but they cannot
reach attributes of the host environment, mutate values, or call globals.

Template grammar::

    {{ title }}                                  field interpolation (escaped)
    {{ detail_images | gallery('<img src="{}">') }}   list expansion, ``{}`` is
                                                  replaced by each escaped item
    {{ detail_images | gallery('<img src="{}">', '<br>') }}   with separator
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, Mapping, Optional

from jinja2 import TemplateError
from jinja2.exceptions import SecurityError
from jinja2.sandbox import ImmutableSandboxedEnvironment
from markupsafe import Markup, escape

from .logging_config import get_logger

logger = get_logger("templating")

GALLERY_PLACEHOLDER = "{}"
_SYNTAX_MARKERS = ("{{", "{%", "{#")

DEFAULT_TEMPLATE = """<div style="text-align:center;">
<h2>{{ title }}</h2>
{{ detail_images | gallery('<img src="{}" style="max-width:100%;"><br>') }}
<table style="margin:20px auto;border-collapse:collapse;">
<tr><th>모델명</th><td>{{ model_name }}</td></tr>
<tr><th>제조사</th><td>{{ manufacturer }}</td></tr>
<tr><th>원산지</th><td>{{ origin }}</td></tr>
<tr><th>포장부피/무게</th><td>{{ package_size }}</td></tr>
<tr><th>인증정보</th><td>{{ certification }}</td></tr>
</table>
<p>{{ description }}</p>
</div>
"""


class TemplateRenderError(Exception):
    """Raised when a template cannot be parsed or violates the sandbox."""


def gallery(items: Optional[Iterable[Any]], fragment: str, separator: str = "") -> Markup:
    """Map each item onto ``fragment`` and join the results with ``separator``."""
    if not items:
        return Markup("")
    parts = [
        Markup(str(fragment).replace(GALLERY_PLACEHOLDER, str(escape(item))))
        for item in items
    ]
    return Markup(str(separator)).join(parts)


class _StrictSandbox(ImmutableSandboxedEnvironment):
    """Sandbox that fails on unsafe attribute access instead of rendering it empty."""

    def unsafe_undefined(self, obj: Any, attribute: str) -> Any:
        raise SecurityError(
            f"access to attribute {attribute!r} of {type(obj).__name__!r} object is unsafe"
        )


class TemplateRenderer:
    """Expands user-authored templates against a computed field set."""

    def __init__(self) -> None:
        self.env = _StrictSandbox(
            autoescape=True,
            keep_trailing_newline=True,
        )
        # Only the fields passed to render() are visible to templates
        self.env.globals.clear()
        self.env.filters["gallery"] = gallery

    def render(self, template: str, fields: Mapping[str, Any]) -> str:
        """Render ``template`` with ``fields``.

        Raises:
            TemplateRenderError: If the template is malformed, attempts an
                operation the sandbox forbids, or fails while evaluating an
                expression (``{{ price / 0 }}``)
        """
        if not any(marker in template for marker in _SYNTAX_MARKERS):
            # Jinja would normalise newlines in literal-only text
            return template
        try:
            compiled = self.env.from_string(template)
        except TemplateError as exc:
            raise TemplateRenderError(str(exc)) from exc
        try:
            return compiled.render(**dict(fields))
        except TemplateError as exc:
            raise TemplateRenderError(str(exc)) from exc
        except Exception as exc:
            # Expressions are operator-authored; any evaluation failure rejects the template
            raise TemplateRenderError(f"{type(exc).__name__}: {exc}") from exc

    def render_with_fallback(
        self,
        template: str,
        fields: Mapping[str, Any],
        *,
        fallback: str = DEFAULT_TEMPLATE,
    ) -> str:
        """Render ``template``, falling back to ``fallback`` when it is unusable."""
        try:
            return self.render(template, fields)
        except TemplateRenderError as exc:
            logger.warning(f"Template rejected ({exc}); rendering with the built-in template")
            return self.render(fallback, fields)


def trusted_html(value: str) -> Markup:
    """Mark scraped markup for verbatim insertion into a rendered template."""
    return Markup(value or "")


def build_template_fields(record: Any, *, price: Optional[int] = None) -> Dict[str, Any]:
    """Collect the fields a template may reference for one record."""
    raw = record.raw
    return {
        "title": raw.title,
        "description": raw.description,
        "model_name": raw.model_name,
        "manufacturer": raw.manufacturer,
        "origin": raw.origin,
        "package_size": raw.package_size,
        "certification": raw.certification,
        "category": raw.category,
        "price": price if price is not None else raw.price,
        "source_url": record.source_url,
        "thumbnail": record.thumbnail.local_path,
        "detail_images": record.detail_image_paths,
        "detail_image_urls": [asset.source_url for asset in record.detail_assets],
        "detail_html": trusted_html(raw.detail_html),
    }

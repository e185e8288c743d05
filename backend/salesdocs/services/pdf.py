from __future__ import annotations

from pathlib import Path
from typing import Any

from jinja2 import Environment, FileSystemLoader, StrictUndefined, select_autoescape
from weasyprint import CSS, HTML


TEMPLATES_DIR = Path(__file__).resolve().parents[1] / "templates"


def _jinja_env(templates_dir: Path) -> Environment:
    env = Environment(
        loader=FileSystemLoader(str(templates_dir)),
        autoescape=select_autoescape(["html", "xml"]),
        undefined=StrictUndefined,
    )
    env.filters["de_amount"] = format_de_amount
    return env


def format_de_amount(value: Any) -> str:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return str(value)
    text = f"{value:,.2f}"
    return text.replace(",", "_").replace(".", ",").replace("_", ".")


def render_html(*, templates_dir: Path, template_name: str, context: dict[str, Any]) -> str:
    return _jinja_env(templates_dir).get_template(template_name).render(**context)


def render_pdf(
    *,
    templates_dir: Path,
    template_name: str,
    context: dict[str, Any],
    output_path: Path,
    css_paths: list[Path] | None = None,
) -> None:
    """Render to a temporary sibling first so a failed render never leaves a partial artifact behind."""
    output_path.parent.mkdir(parents=True, exist_ok=True)
    html_text = render_html(templates_dir=templates_dir, template_name=template_name, context=context)

    css = [CSS(filename=str(p)) for p in (css_paths or [])]
    tmp_path = output_path.with_name(f".{output_path.name}.part")
    try:
        HTML(string=html_text, base_url=str(templates_dir)).write_pdf(target=str(tmp_path), stylesheets=css)
        tmp_path.replace(output_path)
    finally:
        if tmp_path.exists():
            tmp_path.unlink()

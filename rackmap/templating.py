from pathlib import Path

from fastapi.templating import Jinja2Templates

from .rack_layout import detail_items, format_detail_key

TEMPLATE_DIR = Path(__file__).resolve().parent / "templates"
STATIC_DIR = Path(__file__).resolve().parent / "static"

templates = Jinja2Templates(directory=str(TEMPLATE_DIR))
templates.env.filters["detail_key"] = format_detail_key
templates.env.filters["detail_items"] = detail_items
templates.env.filters["pct"] = lambda value: f"{float(value or 0):.1f}%"


def render(request, name, user=None, status_code=200, **context):
    context["user"] = user
    return templates.TemplateResponse(request, name, context, status_code=status_code)

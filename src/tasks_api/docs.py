"""
API documentation endpoints.

The OpenAPI document itself is served by FastAPI at ``/doc``. This module adds
the browsable HTML reference and a markdown rendering of the same document for
non-interactive consumers.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from fastapi import FastAPI
from fastapi.openapi.docs import get_swagger_ui_html
from fastapi.responses import HTMLResponse, PlainTextResponse

logger = logging.getLogger(__name__)

_HTTP_METHODS = ("get", "post", "put", "patch", "delete", "head", "options")


def _ref_name(ref: str) -> str:
    return ref.rsplit("/", 1)[-1]


def _type_of(schema: Dict[str, Any]) -> str:
    """Short human-readable type for a JSON schema fragment."""
    if "$ref" in schema:
        return _ref_name(schema["$ref"])
    if "anyOf" in schema:
        return " | ".join(_type_of(s) for s in schema["anyOf"])
    if "enum" in schema:
        return " | ".join(repr(v) for v in schema["enum"])
    kind = schema.get("type", "any")
    if kind == "array":
        return f"array<{_type_of(schema.get('items', {}))}>"
    if "format" in schema:
        return f"{kind} ({schema['format']})"
    return str(kind)


def _body_schema(content: Dict[str, Any]) -> Optional[str]:
    for media_type, body in content.items():
        schema = body.get("schema")
        if schema:
            return f"`{media_type}`: {_type_of(schema)}"
    return None


def _render_operation(path: str, method: str, op: Dict[str, Any]) -> List[str]:
    lines = [f"### {method.upper()} {path}", ""]
    if op.get("summary"):
        lines += [f"**{op['summary']}**", ""]
    if op.get("description"):
        lines += [op["description"].strip(), ""]

    params = op.get("parameters") or []
    if params:
        lines += ["Parameters:", "", "| Name | In | Type | Required | Description |", "|---|---|---|---|---|"]
        for p in params:
            lines.append(
                f"| {p['name']} | {p.get('in', '')} | {_type_of(p.get('schema', {}))} "
                f"| {'yes' if p.get('required') else 'no'} | {p.get('description', '')} |"
            )
        lines.append("")

    request_body = op.get("requestBody")
    if request_body:
        rendered = _body_schema(request_body.get("content", {}))
        required = " (required)" if request_body.get("required") else ""
        lines += [f"Request body{required}: {rendered or 'none'}", ""]

    responses = op.get("responses") or {}
    if responses:
        lines.append("Responses:")
        lines.append("")
        for code, resp in responses.items():
            rendered = _body_schema(resp.get("content", {}))
            suffix = f" - {rendered}" if rendered else ""
            lines.append(f"- `{code}` {resp.get('description', '')}{suffix}")
        lines.append("")
    return lines


def _render_schema(name: str, schema: Dict[str, Any]) -> List[str]:
    lines = [f"### {name}", ""]
    if schema.get("description"):
        lines += [schema["description"].strip(), ""]
    properties = schema.get("properties") or {}
    if not properties:
        lines += [f"Type: {_type_of(schema)}", ""]
        return lines
    required = set(schema.get("required") or [])
    lines += ["| Field | Type | Required | Description |", "|---|---|---|---|"]
    for field_name, prop in properties.items():
        lines.append(
            f"| {field_name} | {_type_of(prop)} | {'yes' if field_name in required else 'no'} "
            f"| {prop.get('description', '')} |"
        )
    lines.append("")
    return lines


# PUBLIC_INTERFACE
def openapi_to_markdown(schema: Dict[str, Any]) -> str:
    """
    Render an OpenAPI document as markdown.

    Output layout: title and version, one section per operation (grouped in path
    order), then one section per component schema.
    """
    info = schema["info"]
    lines = [f"# {info['title']}", "", f"Version: {info.get('version', '')}", ""]
    if info.get("description"):
        lines += [info["description"].strip(), ""]
    lines += [f"OpenAPI: {schema.get('openapi', '')}", "", "## Endpoints", ""]

    for path, item in (schema.get("paths") or {}).items():
        for method in _HTTP_METHODS:
            if method in item:
                lines += _render_operation(path, method, item[method])

    components = (schema.get("components") or {}).get("schemas") or {}
    if components:
        lines += ["## Schemas", ""]
        for name, component in components.items():
            lines += _render_schema(name, component)

    return "\n".join(lines).rstrip() + "\n"


# PUBLIC_INTERFACE
def configure_docs(app: FastAPI) -> None:
    """
    Register /reference, /llms and /llms.txt on the app.

    /reference and /llms serve the same interactive Swagger UI page backed by the
    document at app.openapi_url; /llms.txt serves the markdown rendering and
    answers 500 if it cannot be produced.
    """
    title = f"{app.title} Reference"

    @app.get("/reference", include_in_schema=False)
    async def reference() -> HTMLResponse:
        return get_swagger_ui_html(openapi_url=app.openapi_url or "/doc", title=title)

    @app.get("/llms", include_in_schema=False)
    async def llms() -> HTMLResponse:
        return get_swagger_ui_html(openapi_url=app.openapi_url or "/doc", title=title)

    @app.get("/llms.txt", include_in_schema=False)
    async def llms_txt() -> PlainTextResponse:
        try:
            markdown = openapi_to_markdown(app.openapi())
        except Exception:
            logger.exception("Error generating markdown")
            return PlainTextResponse("Error generating API documentation", status_code=500)
        return PlainTextResponse(markdown, status_code=200)

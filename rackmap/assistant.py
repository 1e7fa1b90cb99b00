"""Natural-language assistant backed by a hosted LLM.

The assistant does not query the database itself: it receives a short
snapshot of tenant-wide counts as prompt context and answers from that.
"""

import logging

import httpx
from fastapi import HTTPException
from sqlalchemy.orm import Session

from . import reports
from .config import settings

logger = logging.getLogger(__name__)

FALLBACK_RESPONSE = "I'm sorry, I couldn't generate a response."

PROMPT_TEMPLATE = """You are a helpful and concise DCIM assistant for a platform called RackMap.
Given the following real-time data about the user's data center, answer their question.
If the question is unrelated to data centers or the provided data, politely decline to answer.

Data Snapshot:
{context}

User's Question:
{query}
"""


def format_context(snapshot):
    fullest = snapshot.get("fullest_rack")
    fullest_info = "N/A"
    if fullest:
        fullest_info = f"{fullest['name']} at {float(fullest['occupancy_percentage']):.1f}% capacity"

    ports = snapshot.get("ports")
    ports_info = "N/A"
    if ports:
        ports_info = f"{ports['used_ports']} used out of {ports['total_ports']} total ports."

    return "\n".join([
        f"- Total Racks: {snapshot.get('total_racks', 0)}",
        f"- Total Assets: {snapshot.get('total_assets', 0)}",
        f"- Unassigned Assets: {snapshot.get('unassigned_assets', 0)}",
        f"- Fullest Rack: {fullest_info}",
        f"- Network Ports: {ports_info}",
    ])


def build_prompt(context, query):
    return PROMPT_TEMPLATE.format(context=context, query=query)


def _extract_text(payload):
    try:
        content = payload["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError):
        return None
    if not isinstance(content, str):
        return None
    return content.strip() or None


def generate(prompt, client=None):
    if not settings.llm_api_key:
        raise HTTPException(status_code=503, detail="The assistant is not configured")
    http = client or httpx
    try:
        response = http.post(
            f"{settings.llm_base_url.rstrip('/')}/chat/completions",
            headers={"Authorization": f"Bearer {settings.llm_api_key}"},
            json={
                "model": settings.llm_model,
                "messages": [{"role": "user", "content": prompt}],
            },
            timeout=settings.llm_timeout,
        )
        response.raise_for_status()
        payload = response.json()
    except (httpx.HTTPError, ValueError) as exc:
        logger.warning("Assistant request failed: %s", exc)
        raise HTTPException(status_code=502, detail="The assistant is unavailable right now") from exc
    return _extract_text(payload)


def ask_assistant(db: Session, tenant_id, query, client=None):
    snapshot = reports.dashboard_snapshot(db, tenant_id)
    prompt = build_prompt(format_context(snapshot), query)
    return generate(prompt, client=client) or FALLBACK_RESPONSE

"""Natural-language questions over the passport graph.

The LLM turns a question into a Cypher query plus a response template; the
query runs through the raw execution primitive and the rows are folded back
into a sentence suitable for text-to-speech.
"""

import json
import logging
import os
from dataclasses import dataclass
from typing import Optional

from database import GraphQueryError, execute_query
from db_result_helpers import format_value
from llm_router import DEFAULT_MODEL, llm_call
from prompts import CYPHER_GENERATION_PROMPT, FORMAT_RESULTS_PROMPT, SCHEMA_CONTEXT

logger = logging.getLogger(__name__)

DEFAULT_BUILDING_ID = os.getenv("DEFAULT_BUILDING_ID", "building-001")
RESULT_PLACEHOLDER = "{{result}}"

PARSE_ERROR_RESPONSE = "I didn't quite understand that. Could you rephrase your question about Glass Haus?"
LLM_ERROR_RESPONSE = "I'm having trouble reaching the language model right now. Please try again in a moment."


@dataclass
class QueryPlan:
    cypher: Optional[str]
    intent: str
    natural_response: str


def _extract_json(text: str) -> str:
    """Strip a markdown code fence around a JSON payload, if present."""
    text = text.strip()
    if text.startswith("```"):
        first_newline = text.find("\n")
        if first_newline != -1:
            text = text[first_newline + 1:]
        if text.endswith("```"):
            text = text[:-3]
        text = text.strip()
    return text


def generate_cypher_from_question(question: str, building_id: str = DEFAULT_BUILDING_ID,
                                  model: str = DEFAULT_MODEL) -> QueryPlan:
    """Ask the LLM for a query plan answering ``question``."""
    schema = SCHEMA_CONTEXT.format(building_id=building_id)
    prompt = CYPHER_GENERATION_PROMPT.format(schema=schema, question=question, building_id=building_id)
    result = llm_call(model, prompt, json_mode=True, max_output_tokens=1024)
    if result.error:
        logger.error(f"Cypher generation failed: {result.error}")
        return QueryPlan(cypher=None, intent="llm_error", natural_response=LLM_ERROR_RESPONSE)

    try:
        parsed = json.loads(_extract_json(result.text))
    except json.JSONDecodeError:
        logger.warning(f"Unparseable query plan: {result.text[:200]!r}")
        return QueryPlan(cypher=None, intent="parse_error", natural_response=PARSE_ERROR_RESPONSE)
    if not isinstance(parsed, dict):
        return QueryPlan(cypher=None, intent="parse_error", natural_response=PARSE_ERROR_RESPONSE)

    cypher = parsed.get("cypher") or None
    return QueryPlan(
        cypher=cypher.strip() if isinstance(cypher, str) else None,
        intent=str(parsed.get("intent") or "unknown"),
        natural_response=str(parsed.get("naturalResponse") or PARSE_ERROR_RESPONSE),
    )


def format_response_with_data(template: str, rows: list[dict], model: str = DEFAULT_MODEL) -> str:
    """Fill the template's result placeholder from query rows."""
    if not rows:
        return template.replace(RESULT_PLACEHOLDER, "no data found")

    if len(rows) == 1:
        formatted = ", ".join(format_value(v) for v in rows[0].values())
        return template.replace(RESULT_PLACEHOLDER, formatted)

    data = json.dumps(rows, indent=2, default=str, ensure_ascii=False)
    result = llm_call(
        model,
        FORMAT_RESULTS_PROMPT.format(template=template, data=data),
        json_mode=False,
        temperature=0.3,
        max_output_tokens=512,
    )
    if result.error or not result.text.strip():
        return template.replace(RESULT_PLACEHOLDER, json.dumps(rows, default=str, ensure_ascii=False))
    return result.text.strip()


def answer_question(message: str, building_id: str = DEFAULT_BUILDING_ID) -> dict:
    """Full question → query → spoken answer round trip."""
    logger.info(f"Voice chat received: {message!r}")
    plan = generate_cypher_from_question(message, building_id=building_id)
    logger.info(f"Generated query plan: intent={plan.intent!r} cypher={plan.cypher!r}")

    rows: list[dict] = []
    if plan.cypher:
        try:
            rows = execute_query(plan.cypher)
        except GraphQueryError as e:
            logger.error(f"Generated query failed: {e}")

    return {
        "response": format_response_with_data(plan.natural_response, rows),
        "intent": plan.intent,
        "cypher": plan.cypher,
        "resultCount": len(rows),
    }

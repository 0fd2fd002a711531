# app/llm.py
import json
import logging
import math
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Sequence

import httpx
import openai
from openai import OpenAI
from openai.types.chat import ChatCompletion

from .config import Settings
from .errors import ConfigurationError, UpstreamError, ValidationError

logger = logging.getLogger(__name__)

NO_INSIGHTS = "No insights returned."


# --- Number helpers ---
def format_number(num: float) -> str:
    """
    Abbreviate large amounts on the thousand / lakh / crore scale.

    Amounts under 1,000 keep en-US grouping with up to three decimals.
    """
    if num >= 10_000_000:
        return f"{num / 10_000_000:.2f} Crore"
    if num >= 100_000:
        return f"{num / 100_000:.2f} Lakh"
    if num >= 1_000:
        return f"{num / 1_000:.2f} Thousand"
    text = f"{num:,.3f}".rstrip("0").rstrip(".")
    return "0" if text in ("-0", "") else text


def to_number(value: Any) -> float:
    """Lenient numeric coercion: anything missing or unreadable counts as 0."""
    if value is None or isinstance(value, bool):
        return 0.0
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    return number if math.isfinite(number) else 0.0


def summarize_rows(rows: Sequence[Mapping[str, Any]]) -> Dict[str, Any]:
    """
    Flatten budget rows into the figures quoted in the prompt.

    Returns:
        Dict with "items" (per-row figures) and the three totals
    """
    items = []
    for row in rows:
        allocated = to_number(row.get("budget_a"))
        used = to_number(row.get("used_amt"))
        remaining = to_number(row.get("remaining_amt"))
        items.append({
            "account": row.get("account") or "Unknown",
            "glcode": row.get("glcode") or "Unknown",
            "account_description": row.get("account_budget_a") or "Unknown",
            "allocated": allocated,
            "used": used,
            "remaining": remaining,
            "used_percent": f"{used / allocated * 100:.1f}" if allocated > 0 else "0",
        })

    return {
        "items": items,
        "total_allocated": sum(i["allocated"] for i in items),
        "total_used": sum(i["used"] for i in items),
        "total_remaining": sum(i["remaining"] for i in items),
    }


# --- Prompt construction ---
class InsightInstructions(str, Enum):
    SUMMARY = "summary"
    SPENDING_RISKS = "spending_risks"
    PLAIN_LANGUAGE = "plain_language"


INSTRUCTION_SETS = {
    InsightInstructions.SUMMARY: (
        [
            "Provide a concise, easy-to-read summary of the department's spending.",
            "Highlight the most significant spending areas (the top 3 accounts by amount spent).",
            "Point out any surprising things in the data, like a lot of money not spent or money being overspent.",
            "Offer one simple, actionable idea for how the department could handle its money better.",
        ],
        "Your response should be short (around 5-8 sentences), clear, and should not use complex financial terms.",
    ),
    InsightInstructions.SPENDING_RISKS: (
        [
            "Identify every account where the used amount exceeds the allocated amount and say by how much.",
            "Identify accounts that have used less than a quarter of their allocation.",
            "Say which of these deserve attention first and why.",
        ],
        "Keep the response to a short list of findings followed by one sentence of overall assessment.",
    ),
    InsightInstructions.PLAIN_LANGUAGE: (
        [
            "Explain to a resident, in everyday words, what this department spends its money on.",
            "Mention the two or three biggest spending areas.",
            "Say whether the department looks on track to stay within its budget.",
        ],
        "Write one short paragraph. Avoid accounting terms and do not invent figures.",
    ),
}


def build_prompt(rows: Sequence[Mapping[str, Any]], department: str,
                 instructions: InsightInstructions = InsightInstructions.SUMMARY) -> str:
    summary = summarize_rows(rows)
    detailed = [
        {
            "account": item["account"],
            "glcode": item["glcode"],
            "account_description": item["account_description"],
            "allocated": format_number(item["allocated"]),
            "used": format_number(item["used"]),
            "remaining": format_number(item["remaining"]),
            "used_percent": item["used_percent"],
        }
        for item in summary["items"]
    ]
    tasks, style = INSTRUCTION_SETS[instructions]
    task_lines = "\n".join(f"{i}. {task}" for i, task in enumerate(tasks, start=1))

    return f"""You are a financial analyst AI.
Your job is to summarize the budget data for the department: "{department}".

SUMMARY OF TOTALS:
- Total Allocated: {format_number(summary["total_allocated"])}
- Total Used: {format_number(summary["total_used"])}
- Total Remaining: {format_number(summary["total_remaining"])}

DETAILED DATA:
{json.dumps(detailed, indent=2, ensure_ascii=False)}

TASK:
{task_lines}

{style}
"""


# --- Text generation ---
def create_client(settings: Settings) -> Optional[OpenAI]:
    """OpenAI-compatible client for the configured endpoint, or None without a key."""
    if not settings.gemini_api_key:
        return None
    return OpenAI(
        api_key=settings.gemini_api_key,
        base_url=settings.llm_base_url,
        max_retries=0,
        http_client=httpx.Client(timeout=settings.llm_timeout),
    )


class InsightGenerator:
    """Builds the prompt and relays it as one single-turn request. Nothing is cached."""

    def __init__(self, client: Optional[OpenAI], model: str):
        self.client = client
        self.model = model

    def generate(self, rows: Optional[List[Mapping[str, Any]]], department: Optional[str],
                 instructions: InsightInstructions = InsightInstructions.SUMMARY) -> str:
        if not department or not rows:
            raise ValidationError("Budget data and department are required")
        if self.client is None:
            logger.error("Missing GEMINI_API_KEY in environment")
            raise ConfigurationError("Gemini API key not configured")

        prompt = build_prompt(rows, department, instructions)
        logger.info(f"Sending insight request for {department!r}, prompt length {len(prompt)}")

        try:
            raw = self.client.chat.completions.with_raw_response.create(
                model=self.model,
                messages=[{"role": "user", "content": prompt}],
            )
        except openai.APIStatusError as e:
            logger.error(f"Text generation API error ({e.status_code}): {e.response.text}")
            raise UpstreamError(
                "Failed to get AI insights",
                status_code=e.status_code,
                details=e.response.text,
            )
        except openai.APIConnectionError as e:
            logger.error(f"Text generation API unreachable: {e}")
            raise UpstreamError("Failed to reach text generation API", details=str(e))

        body = raw.http_response.text
        try:
            chat = raw.parse()
        except (openai.APIResponseValidationError, ValueError) as e:
            logger.error(f"Failed to parse text generation response: {e}")
            raise UpstreamError("Invalid response from text generation API", details=body)
        # Non-JSON bodies come back from the SDK as plain text
        if not isinstance(chat, ChatCompletion):
            logger.error(f"Malformed text generation response: {body}")
            raise UpstreamError("Invalid response from text generation API", details=body)

        if not chat.choices:
            return NO_INSIGHTS
        content = chat.choices[0].message.content
        return content.strip() if content else NO_INSIGHTS

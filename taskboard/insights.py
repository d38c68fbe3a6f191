import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Protocol, Sequence

from autogen import UserProxyAgent
from pydantic import ValidationError

from taskboard.agents.insight_agent import create_insight_agent
from taskboard.config import AI_TIMEOUT_SECONDS
from taskboard.models import AIInsights, CardView, ListView

logger = logging.getLogger(__name__)

MAX_CONTEXT_CARDS = 10

RESPONSE_SHAPE = """{
  "dueDateSuggestion": {
    "hasDate": true/false,
    "suggestedDate": "YYYY-MM-DD or null",
    "reason": "Brief explanation"
  },
  "listMovement": {
    "shouldMove": true/false,
    "suggestedList": "list name or null",
    "reason": "Brief explanation"
  },
  "insights": {
    "priority": "high/medium/low",
    "estimatedEffort": "Brief estimate",
    "actionableSteps": ["step1", "step2"],
    "potentialBlockers": ["blocker1"]
  }
}"""


class InsightClient(Protocol):
    is_configured: bool

    async def complete(self, prompt: str) -> str: ...


class GeminiInsightClient:
    """One-shot Gemini calls through an autogen assistant/proxy pair."""

    def __init__(self, llm_config: dict):
        self.llm_config = llm_config

    @property
    def is_configured(self) -> bool:
        api_key = self.llm_config["config_list"][0].get("api_key")
        return bool(api_key) and api_key != "undefined"

    async def complete(self, prompt: str) -> str:
        agent = create_insight_agent(self.llm_config)
        user_proxy = UserProxyAgent(
            name="Caller",
            human_input_mode="NEVER",
            max_consecutive_auto_reply=0,
            code_execution_config=False,
        )
        chat_result = await asyncio.to_thread(
            user_proxy.initiate_chat,
            agent,
            message=prompt,
            max_turns=1,
        )
        for msg in reversed(chat_result.chat_history):
            if msg.get("name") == agent.name:
                return msg.get("content") or ""
        return ""


@dataclass
class InsightOutcome:
    """Result of one enrichment attempt: insights, or the reason there are none."""

    insights: AIInsights | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.insights is not None


def build_insight_prompt(
    card: CardView,
    board_lists: Sequence[ListView],
    board_cards: Sequence[CardView],
) -> str:
    list_names = ", ".join(lst.title for lst in board_lists)
    others = [c for c in board_cards if str(c.id) != str(card.id)][:MAX_CONTEXT_CARDS]
    card_titles = ", ".join(c.title or "" for c in others)
    return (
        "Analyze this task card and provide helpful suggestions.\n\n"
        f'Task Title: "{card.title or ""}"\n'
        f'Task Description: "{card.description or "No description"}"\n'
        f"Available Lists: {list_names or 'To Do, In Progress, Done'}\n"
        f"Other Cards in Board: {card_titles or 'None'}\n\n"
        "Please provide suggestions in the following JSON format only "
        "(no markdown, no extra text):\n"
        f"{RESPONSE_SHAPE}"
    )


def extract_json_block(text: str) -> dict | None:
    """Decode the first balanced ``{...}`` block of a free-form reply."""
    if not text:
        return None
    start = text.find("{")
    if start == -1:
        return None

    depth = 0
    in_string = False
    escaped = False
    for idx in range(start, len(text)):
        ch = text[idx]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                try:
                    return json.loads(text[start : idx + 1])
                except json.JSONDecodeError:
                    return None
    return None


async def get_card_insights(
    client: InsightClient | None,
    card: CardView,
    board_cards: Sequence[CardView] = (),
    board_lists: Sequence[ListView] = (),
    timeout: float = AI_TIMEOUT_SECONDS,
) -> InsightOutcome:
    """Single best-effort enrichment attempt; failures come back as an outcome."""
    if client is None or not client.is_configured:
        return InsightOutcome(error="Gemini API key is not configured")

    prompt = build_insight_prompt(card, board_lists, board_cards)
    logger.info(f"Requesting AI insights for card {card.id}")
    try:
        reply = await asyncio.wait_for(client.complete(prompt), timeout=timeout)
    except asyncio.CancelledError:
        raise
    except asyncio.TimeoutError:
        return InsightOutcome(error=f"AI request timed out after {timeout}s")
    except Exception as e:
        return InsightOutcome(error=f"AI request failed: {e}")

    reply = reply or ""
    data = extract_json_block(reply)
    if data is None:
        return InsightOutcome(error=f"Could not parse JSON from AI response: {reply[:200]}")

    try:
        insights = AIInsights(
            due_date_suggestion=data.get("dueDateSuggestion"),
            list_movement=data.get("listMovement"),
            insights=data.get("insights"),
        )
    except ValidationError as e:
        return InsightOutcome(error=f"AI response did not match the expected shape: {e}")

    return InsightOutcome(insights=insights)

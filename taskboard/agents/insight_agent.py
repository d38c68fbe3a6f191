from autogen import AssistantAgent

INSIGHT_SYSTEM_PROMPT = """You are a smart project management assistant. Your job is to analyze a single task card on a kanban board and suggest what should happen next.

INSTRUCTIONS:
1. Read the card title and description.
2. Decide whether the card implies a due date and, if so, which one.
3. Decide whether the card belongs in a different list of the board.
4. Estimate priority and effort, list concrete next steps and likely blockers.

Rules:
- Only suggest lists that exist on the board.
- Dates use the YYYY-MM-DD format.
- Output ONLY the JSON object the user asks for. No markdown fences, no explanation."""


def create_insight_agent(llm_config: dict) -> AssistantAgent:
    return AssistantAgent(
        name="InsightAgent",
        system_message=INSIGHT_SYSTEM_PROMPT,
        llm_config=llm_config,
        human_input_mode="NEVER",
    )

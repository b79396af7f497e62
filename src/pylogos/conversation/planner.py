"""Auto-loop planner.

After a reply completes, asks the model for one follow-up instruction that
deepens the task, or ``STOP``.
"""

import logging
from collections.abc import Awaitable, Callable, Sequence

from ..config import PLANNER_MAX_TOKENS, PLANNER_STOP, PLANNER_SYSTEM_PROMPT, PLANNER_TEMPERATURE
from ..llm.errors import LLMError
from ..llm.models import ChatMessage, GenerationParams

logger = logging.getLogger(__name__)

Completion = Callable[[Sequence[ChatMessage], GenerationParams], Awaitable[str]]


class AutoLoopPlanner:
    """Generates continuation instructions for automated turns."""

    def __init__(self, system_prompt: str = PLANNER_SYSTEM_PROMPT):
        self._system_prompt = system_prompt

    def build_messages(self, response: str) -> list[ChatMessage]:
        return [
            ChatMessage.text("system", self._system_prompt),
            ChatMessage.text("user", f"Previous AI response:\n{response}\n\nNext instruction:"),
        ]

    async def next_instruction(self, response: str, model: str, complete: Completion) -> str | None:
        """Ask for the next step.

        Args:
            response: The reply that just completed
            model: Model to ask
            complete: Sends a hidden request and returns the full reply text

        Returns:
            The instruction, or None when the planner says STOP, replies with
            nothing, or fails
        """
        params = GenerationParams(
            model=model,
            temperature=PLANNER_TEMPERATURE,
            max_tokens=PLANNER_MAX_TOKENS
        )
        try:
            reply = await complete(self.build_messages(response), params)
        except LLMError as e:
            logger.warning("Planner request failed: %s", e)
            return None

        instruction = reply.strip().strip('"').strip()
        if not instruction or instruction.upper() == PLANNER_STOP:
            logger.debug("Planner stopped the loop")
            return None
        return instruction

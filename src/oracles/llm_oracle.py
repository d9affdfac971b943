"""
Move oracle backed by a chat-completion LLM (OpenAI-compatible wire format; configurable base URL).

The model is handed the position AND the list of legal moves, so it only has to pick one. The selector validates
the answer anyway.
"""

import logging
from typing import Optional

from openai import AsyncOpenAI, OpenAIError

from src.core.config import SETTINGS
from src.core.exceptions import OracleError
from src.core.shared_types import Color

log = logging.getLogger(__name__)

SYSTEM = (
    "You are a chess engine API. Your only job is to return the best chess move in coordinate notation. "
    'Your response must be ONLY the move, like "e7e5" or "g1f3". '
    "Do not include any other words, symbols, or explanations. Just the move string."
)


def build_prompt(fen: str, color: Color, legal_moves: list[str]) -> str:
    return (
        f'FEN: "{fen}". Player: {color}. '
        f"Legal moves: {', '.join(legal_moves)}. "
        "Which of the legal moves is best? Answer in coordinate notation."
    )


class LLMMoveOracle:
    """Implements the MoveOracle protocol."""

    def __init__(
        self,
        client: Optional[AsyncOpenAI] = None,
        model: str = SETTINGS.oracle_model,
    ) -> None:
        self.client = client or AsyncOpenAI(
            api_key=SETTINGS.oracle_api_key or None,
            base_url=SETTINGS.oracle_base_url or None,
            timeout=SETTINGS.oracle_timeout_s,
            max_retries=0,
        )
        self.model = model

    async def suggest_move(self, fen: str, color: Color, legal_moves: list[str]) -> str:
        messages = [
            {"role": "system", "content": SYSTEM},
            {"role": "user", "content": build_prompt(fen, color, legal_moves)},
        ]
        try:
            rsp = await self.client.chat.completions.create(
                model=self.model,
                messages=messages,
                temperature=0,
            )
        except OpenAIError as exc:
            raise OracleError(f"Move oracle request failed: {exc}") from exc

        text = rsp.choices[0].message.content if rsp.choices else None
        if not text:
            raise OracleError("Move oracle returned an empty response.")
        log.debug("Oracle replied %r for %s", text, fen)
        return text.strip()

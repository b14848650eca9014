"""Tool-calling orchestrator: the bounded pre-answer function-calling loop.

    transcript → non-streaming call with tools → execute calls → loop

The loop ends when the model stops asking for tools, when the round limit
is reached, or when the session is cancelled. The caller then issues the
final streaming call with the returned transcript.
"""

from __future__ import annotations

import logging
from typing import Any, Sequence

from quillstream.config import ProviderProfile
from quillstream.core.executor import Executor
from quillstream.core.sessions import StreamSessionRegistry
from quillstream.events.bus import EventBus
from quillstream.llm.client import AsyncLLMClient
from quillstream.llm.transform import DEFAULT_TEMPERATURE, build_chat_request
from quillstream.tools.registry import ToolRegistry

_logger = logging.getLogger(__name__)

DEFAULT_MAX_ROUNDS = 5
TOOL_NOTICE = "\n\n> 🔧 Calling tools...\n\n"


class ToolCallingOrchestrator:
    """Runs up to ``max_rounds`` tool-calling rounds for one request.

    Parameters
    ----------
    client:
        Client bound to the call's provider profile.
    registry:
        Tools offered to the model.
    sessions:
        Registry consulted for cancellation before every round.
    event_bus:
        Receives the tool notice chunk and tool events.
    max_rounds:
        Upper bound on non-streaming tool rounds.
    """

    def __init__(
        self,
        client: AsyncLLMClient,
        registry: ToolRegistry,
        sessions: StreamSessionRegistry,
        event_bus: EventBus,
        max_rounds: int = DEFAULT_MAX_ROUNDS,
        temperature: float = DEFAULT_TEMPERATURE,
    ) -> None:
        self._client = client
        self._registry = registry
        self._sessions = sessions
        self._event_bus = event_bus
        self._executor = Executor(registry, event_bus)
        self._max_rounds = max_rounds
        self._temperature = temperature
        self.rounds = 0

    async def run(
        self,
        messages: Sequence[dict[str, Any]],
        request_id: str,
        profile: ProviderProfile,
        web_search: bool = False,
    ) -> list[dict[str, Any]]:
        """Return the transcript extended with every tool exchange.

        HTTP and parse failures propagate; the loop never recovers
        partially from them.
        """
        transcript = [dict(m) for m in messages]
        tool_defs = self._registry.get_openai_schemas()
        self.rounds = 0

        for round_no in range(1, self._max_rounds + 1):
            if self._sessions.is_cancelled(request_id):
                _logger.info("Request %s cancelled before tool round %d", request_id, round_no)
                break

            request = build_chat_request(
                transcript,
                profile,
                web_search=web_search,
                stream=False,
                temperature=self._temperature,
                tools=tool_defs,
            )
            self.rounds += 1
            response = await self._client.complete(request, context="Tool call error")

            if not response.wants_tools:
                _logger.debug(
                    "Round %d: finish_reason=%r, leaving tool loop",
                    round_no, response.finish_reason,
                )
                break

            transcript.append(response.message)
            await self._event_bus.emit_chunk(request_id, TOOL_NOTICE)

            result = await self._executor.execute(response.tool_calls, request_id)
            transcript.extend(result.to_messages())
            _logger.debug(
                "Round %d: executed %d tool call(s)", round_no, len(result.results),
            )
        else:
            _logger.info(
                "Request %s reached the tool round limit (%d)", request_id, self._max_rounds,
            )

        return transcript

"""Multi-turn tool calling loop.

Each turn sends the full history and the available tool definitions to the
model, streams the response, appends one assistant message and, when the
model requested tools, dispatches every call in order and appends the
results. The loop ends when a response requests no tools.
"""

import logging
from typing import Any, AsyncIterator

import ollama

from tooldeck.errors import OperationalError, TurnLimitExceededError, join_errors
from tooldeck.messages import (
    AssistantMessage,
    Message,
    SystemMessage,
    ToolCall,
    ToolMessage,
    UserMessage,
    to_ollama_messages,
)
from tooldeck.ollama import OllamaClient
from tooldeck.tools import ToolSet
from tooldeck.conversation.events import (
    ContentLine,
    ConversationDone,
    ConversationEvent,
    ThinkingLine,
    ToolCallRequested,
    ToolResultReceived,
    TurnComplete,
)

logger = logging.getLogger(__name__)


class _LineBuffer:
    """Collects streamed text and hands out complete lines."""

    def __init__(self) -> None:
        self._pending = ""

    def feed(self, text: str) -> list[str]:
        self._pending += text
        *lines, self._pending = self._pending.split("\n")
        return lines

    def flush(self) -> str | None:
        rest, self._pending = self._pending, ""
        return rest or None


def opening_messages(
    system_prompt: str, query: str, toolset: ToolSet | None = None
) -> list[Message]:
    """Build the history a new conversation starts from.

    Tool instructions follow the system prompt so the model reads them
    before the user's query.
    """
    messages: list[Message] = [SystemMessage(content=system_prompt)]
    if toolset is not None:
        messages.extend(toolset.instructions())
    messages.append(UserMessage(content=query))
    return messages


class ConversationDriver:
    """Runs one conversation to its conclusion.

    Token counters belong to the driver, so concurrent conversations never
    share state.

    Attributes:
        messages: Append-only history
        turns: Number of model requests made so far
        prompt_tokens: Cumulative prompt tokens reported by the model
        response_tokens: Cumulative response tokens reported by the model
    """

    def __init__(
        self,
        client: OllamaClient,
        model: str,
        messages: list[Message],
        toolset: ToolSet | None = None,
        max_turns: int = 25,
        think: bool | None = None,
        show_thinking: bool = False,
    ) -> None:
        self.client = client
        self.model = model
        self.messages = messages
        self.toolset = toolset
        self.max_turns = max_turns
        self.think = think
        self.show_thinking = show_thinking

        self.turns = 0
        self.prompt_tokens = 0
        self.response_tokens = 0

    def available_tools(self) -> list[ollama.Tool]:
        if self.toolset is None:
            return []
        return self.toolset.definitions()

    async def run(self) -> AsyncIterator[ConversationEvent]:
        """Run turns until the model stops requesting tools.

        Yields:
            ConversationEvent: Output lines, tool activity and turn summaries,
                ending with ConversationDone

        Raises:
            TurnLimitExceededError: If max_turns requests did not conclude
            ExceptionGroup: Every hard tool dispatch failure of the final turn
        """
        tools = self.available_tools()
        while True:
            if self.turns >= self.max_turns:
                logger.error(f"Conversation stopped after {self.turns} turns")
                raise TurnLimitExceededError(self.max_turns)
            self.turns += 1
            turn = self.turns

            assistant = AssistantMessage()
            async for event in self._stream_turn(turn, tools, assistant):
                yield event
            self.messages.append(assistant)

            if not assistant.tool_calls:
                logger.info(
                    f"Conversation concluded after {turn} turns, "
                    f"{self.prompt_tokens + self.response_tokens} tokens"
                )
                yield ConversationDone(
                    content=assistant.content,
                    turns=turn,
                    prompt_tokens=self.prompt_tokens,
                    response_tokens=self.response_tokens,
                )
                return

            logger.debug(f"Turn {turn}: {len(assistant.tool_calls)} pending invocations")
            problems: list[Exception] = []
            for call in assistant.tool_calls:
                try:
                    replies = await self._dispatch(call)
                except OperationalError as e:
                    logger.error(f"Tool call {call.id} failed: {e}")
                    problems.append(e)
                    continue
                if not replies:
                    logger.debug(f"call {call.id} > no response")
                for reply in replies:
                    self.messages.append(reply)
                    yield ToolResultReceived(message=reply)

            if (problem := join_errors("tool invocations", problems)) is not None:
                raise problem

    async def _dispatch(self, call: ToolCall) -> list[ToolMessage]:
        if self.toolset is None:
            raise OperationalError(
                f'tool invocation "{call.name}" (id: {call.id})',
                LookupError("no tools are configured"),
            )
        return await self.toolset.dispatch(call)

    async def _stream_turn(
        self, turn: int, tools: list[ollama.Tool], assistant: AssistantMessage
    ) -> AsyncIterator[ConversationEvent]:
        content: list[str] = []
        thinking: list[str] = []
        content_lines = _LineBuffer()
        thinking_lines = _LineBuffer()
        final: dict[str, Any] = {}

        async for chunk in self.client.chat_stream(
            model=self.model,
            messages=to_ollama_messages(self.messages),
            tools=tools or None,
            think=self.think,
        ):
            message = chunk.get("message") or {}

            if text := message.get("content"):
                content.append(text)
                for line in content_lines.feed(text):
                    yield ContentLine(text=line)

            if text := message.get("thinking"):
                thinking.append(text)
                if self.show_thinking:
                    for line in thinking_lines.feed(text):
                        yield ThinkingLine(text=line)

            for raw in message.get("tool_calls") or []:
                call = ToolCall.from_ollama(
                    raw, fallback_id=f"call_{turn}_{len(assistant.tool_calls) + 1}"
                )
                assistant.tool_calls.append(call)
                yield ToolCallRequested(call=call, turn=turn)

            if chunk.get("done"):
                final = chunk
                self.prompt_tokens += final.get("prompt_eval_count") or 0
                self.response_tokens += final.get("eval_count") or 0

        if (rest := content_lines.flush()) is not None:
            yield ContentLine(text=rest)
        if self.show_thinking and (rest := thinking_lines.flush()) is not None:
            yield ThinkingLine(text=rest)

        assistant.content = "".join(content)
        assistant.thinking = "".join(thinking)
        yield TurnComplete(
            turn=turn,
            tool_calls=len(assistant.tool_calls),
            prompt_eval_count=final.get("prompt_eval_count") or 0,
            eval_count=final.get("eval_count") or 0,
            done_reason=final.get("done_reason"),
        )

    async def run_to_conclusion(self) -> ConversationDone:
        """Run the conversation, discarding intermediate events."""
        async for event in self.run():
            if isinstance(event, ConversationDone):
                return event
        raise RuntimeError("conversation ended without a final answer")

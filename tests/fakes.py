"""Scripted stand-ins for the Ollama client and MCP capabilities, and an SSE parser."""

import json

import ollama

from tooldeck.messages import ToolCall, tool_result
from tooldeck.tools.definition import ToolDefinition


def scripted_chat(*turns):
    """Build a chat_stream replacement answering each request with the next turn.

    Each turn is a list of chunks. The messages of every request are recorded
    on the returned function's `requests` attribute.
    """
    remaining = list(turns)

    async def chat_stream(model, messages, tools=None, think=None, options=None):
        chat_stream.requests.append({"model": model, "messages": messages, "tools": tools})
        for chunk in remaining.pop(0):
            yield chunk

    chat_stream.requests = []
    return chat_stream


def tool_call_chunk(*calls, done=False):
    """A streamed chunk requesting tool calls, given as (id, name, arguments)."""
    chunk = {
        "message": {
            "role": "assistant",
            "content": "",
            "tool_calls": [
                {"id": call_id, "function": {"name": name, "arguments": arguments}}
                for call_id, name, arguments in calls
            ],
        },
        "done": done,
    }
    if done:
        chunk.update({"eval_count": 3, "prompt_eval_count": 10, "done_reason": "stop"})
    return chunk


def content_chunk(text, done=False, eval_count=5, prompt_eval_count=20):
    chunk = {"message": {"role": "assistant", "content": text}, "done": done}
    if done:
        chunk.update(
            {
                "eval_count": eval_count,
                "prompt_eval_count": prompt_eval_count,
                "done_reason": "stop",
            }
        )
    return chunk


class EchoCapability:
    """A capability answering every call with its own name and arguments."""

    def __init__(self, name, operations=("echo",), instructions=(), fail=None):
        self.name = name
        self.operations = operations
        self.instructions = instructions
        self.fail = fail
        self.invoked: list[ToolCall] = []
        self.shutdowns = 0

    def describe(self):
        return f"echo {self.name}"

    async def discover(self):
        definition = ToolDefinition(
            tools=[
                ollama.Tool(
                    type="function",
                    function=ollama.Tool.Function(
                        name=f"{self.name}.{operation}",
                        description=f"{operation} from {self.name}",
                        parameters=ollama.Tool.Function.Parameters(
                            type="object",
                            required=["text"],
                            properties={
                                "text": ollama.Tool.Function.Parameters.Property(
                                    type="string", description="Text to echo"
                                )
                            },
                        ),
                    ),
                )
                for operation in self.operations
            ]
        )
        for instruction in self.instructions:
            definition.add_instruction(instruction)
        return definition

    async def invoke(self, call):
        self.invoked.append(call)
        if self.fail is not None:
            raise self.fail
        return [tool_result(call, f"{self.name}:{call.arguments.get('text', '')}")]

    async def shutdown(self):
        self.shutdowns += 1


def parse_sse(text):
    """Split an SSE response body into {"event", "data"} dicts."""
    events = []
    # Normalize line endings and split by double newline
    normalized_text = text.replace("\r\n", "\n")
    for block in normalized_text.strip().split("\n\n"):
        if not block.strip():
            continue
        event_type = None
        event_data = None
        for part in block.split("\n"):
            if part.startswith("event:"):
                event_type = part.split(":", 1)[1].strip()
            elif part.startswith("data:"):
                event_data = part.split(":", 1)[1].strip()
        if event_type and event_data:
            events.append({"event": event_type, "data": json.loads(event_data)})
    return events

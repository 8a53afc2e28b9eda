"""Turn a chat transcript plus editor context into a single CLI prompt."""

from typing import Any

from clibridge.core.models import ChatMessage, PromptContext

ROLE_LABELS = {
    "user": "User",
    "assistant": "Assistant",
}


def format_messages(
    messages: list[ChatMessage | dict[str, Any]] | None,
    context: PromptContext | dict[str, Any] | None = None,
) -> str:
    """Format messages and context for `<tool> -p`.

    Context lines come first (project, current file, fenced selection),
    then a "Conversation:" block. Messages with roles other than user and
    assistant are skipped.
    """
    ctx = PromptContext.from_any(context)
    prompt = ""

    if ctx.project_name:
        prompt += f"Project: {ctx.project_name}\n"
    if ctx.current_file:
        prompt += f"Current file: {ctx.current_file}\n"
    if ctx.selected_code:
        prompt += f"Selected code:\n```\n{ctx.selected_code}\n```\n"

    if messages:
        prompt += "\nConversation:\n"
        for raw in messages:
            message = raw if isinstance(raw, ChatMessage) else ChatMessage.model_validate(raw)
            label = ROLE_LABELS.get(message.role)
            if label:
                prompt += f"{label}: {message.content}\n"

    return prompt

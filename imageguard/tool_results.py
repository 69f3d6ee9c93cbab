"""Copy-on-write helpers for the tool result shapes that carry content blocks.

A tool call can return a `ToolMessage`, a `Command` whose update carries tool
messages, or (outside LangChain) a plain mapping with a ``content`` list. The
helpers here apply a content transform to whichever shape they get and return
a new value, never mutating the original. A transform returns `None` to leave
a content list as it is; a result where nothing changed is returned as the
same object.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Mapping
from typing import Any, TypeVar

from langchain_core.messages import ToolMessage
from langgraph.types import Command

ResultT = TypeVar("ResultT")

ContentTransform = Callable[[list[Any]], list[Any] | None]
AsyncContentTransform = Callable[[list[Any]], Awaitable[list[Any] | None]]


def _rebuild_command(command: Command, update: dict[str, Any], messages: list[Any]) -> Command:
    return Command(
        graph=command.graph,
        update={**update, "messages": messages},
        resume=command.resume,
        goto=command.goto,
    )


def map_result_content(result: ResultT, transform: ContentTransform) -> ResultT:
    """Apply `transform` to every content list inside `result`."""
    if isinstance(result, ToolMessage):
        if not isinstance(result.content, list):
            return result
        new_content = transform(result.content)
        if new_content is None:
            return result
        return result.model_copy(update={"content": new_content})

    if isinstance(result, Command):
        update = result.update
        if not isinstance(update, dict) or not isinstance(update.get("messages"), list):
            return result
        messages = update["messages"]
        new_messages = [map_result_content(message, transform) for message in messages]
        if all(new is old for new, old in zip(new_messages, messages, strict=True)):
            return result
        return _rebuild_command(result, update, new_messages)

    if isinstance(result, Mapping) and isinstance(result.get("content"), list):
        new_content = transform(result["content"])
        if new_content is None:
            return result
        return {**result, "content": new_content}

    return result


async def amap_result_content(result: ResultT, transform: AsyncContentTransform) -> ResultT:
    """Async version of `map_result_content`."""
    if isinstance(result, ToolMessage):
        if not isinstance(result.content, list):
            return result
        new_content = await transform(result.content)
        if new_content is None:
            return result
        return result.model_copy(update={"content": new_content})

    if isinstance(result, Command):
        update = result.update
        if not isinstance(update, dict) or not isinstance(update.get("messages"), list):
            return result
        messages = update["messages"]
        new_messages = [await amap_result_content(message, transform) for message in messages]
        if all(new is old for new, old in zip(new_messages, messages, strict=True)):
            return result
        return _rebuild_command(result, update, new_messages)

    if isinstance(result, Mapping) and isinstance(result.get("content"), list):
        new_content = await transform(result["content"])
        if new_content is None:
            return result
        return {**result, "content": new_content}

    return result

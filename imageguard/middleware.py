"""Middleware that sanitizes image payloads in tool results."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Iterable, Mapping

from langchain.agents.middleware import AgentMiddleware
from langchain.tools.tool_node import ToolCallRequest
from langchain_core.messages import ToolMessage
from langgraph.types import Command

from imageguard.config import ImageConfig
from imageguard.read_result import normalize_read_image_result
from imageguard.sanitize import asanitize_tool_result, sanitize_tool_result

logger = logging.getLogger(__name__)

DEFAULT_READ_TOOLS = frozenset({"read_file", "open_image"})
UNKNOWN_FILE_PATH = "<unknown>"


def _file_path_from_args(args: object) -> str:
    if isinstance(args, Mapping):
        for key in ("file_path", "path"):
            value = args.get(key)
            if isinstance(value, str):
                return value
    return UNKNOWN_FILE_PATH


class ImageSanitizerMiddleware(AgentMiddleware):
    """Classify and downscale every image a tool returns before the model sees it.

    Results of read tools are first relabeled with the MIME type sniffed from
    their bytes (raising `ImageReadError` for empty or non-image payloads).
    Then, for every tool, inline images larger than `max_dimension_px` on
    either side are downscaled and images that cannot be processed are
    replaced by a text note.

    Args:
        config: Backend and size settings. Defaults to `ImageConfig()`.
        max_dimension_px: Overrides `config.max_dimension_px`.
        read_tools: Names of tools whose results are file reads.
        excluded_tools: Names of tools whose results are passed through as-is.

    Example:
        ```python
        from imageguard import ImageConfig, ImageSanitizerMiddleware
        from langchain.agents import create_agent

        agent = create_agent(
            model="claude-sonnet-4-5-20250929",
            tools=[read_file, screenshot],
            middleware=[ImageSanitizerMiddleware(config=ImageConfig.from_env())],
        )
        ```
    """

    def __init__(
        self,
        *,
        config: ImageConfig | None = None,
        max_dimension_px: int | None = None,
        read_tools: Iterable[str] = DEFAULT_READ_TOOLS,
        excluded_tools: Iterable[str] = (),
    ) -> None:
        super().__init__()
        self._config = config or ImageConfig()
        self._max_dimension_px = max_dimension_px
        self._read_tools = frozenset(read_tools)
        self._excluded_tools = frozenset(excluded_tools)

    def _prepare(self, request: ToolCallRequest, result: ToolMessage | Command) -> tuple[ToolMessage | Command, str]:
        """Apply read-tool normalization and return the sanitizer label."""
        tool_name = request.tool_call["name"]
        if tool_name not in self._read_tools:
            return result, tool_name
        file_path = _file_path_from_args(request.tool_call.get("args"))
        return normalize_read_image_result(result, file_path), f"read:{file_path}"

    def wrap_tool_call(
        self,
        request: ToolCallRequest,
        handler: Callable[[ToolCallRequest], ToolMessage | Command],
    ) -> ToolMessage | Command:
        """Run the tool, then relabel and downscale any images in its result.

        Args:
            request: The tool call request being processed.
            handler: The handler function to call with the request.

        Returns:
            The tool result with sanitized image blocks.
        """
        if request.tool_call["name"] in self._excluded_tools:
            return handler(request)

        result, label = self._prepare(request, handler(request))
        return sanitize_tool_result(
            result,
            label,
            max_dimension_px=self._max_dimension_px,
            config=self._config,
        )

    async def awrap_tool_call(
        self,
        request: ToolCallRequest,
        handler: Callable[[ToolCallRequest], Awaitable[ToolMessage | Command]],
    ) -> ToolMessage | Command:
        """(async) Run the tool, then relabel and downscale any images in its result.

        Args:
            request: The tool call request being processed.
            handler: The handler function to call with the request.

        Returns:
            The tool result with sanitized image blocks.
        """
        if request.tool_call["name"] in self._excluded_tools:
            return await handler(request)

        result, label = self._prepare(request, await handler(request))
        return await asanitize_tool_result(
            result,
            label,
            max_dimension_px=self._max_dimension_px,
            config=self._config,
        )

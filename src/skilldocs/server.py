"""skilldocs Server — MCP endpoint that lets a host discover and read skills.

Architecture:
    Host (AI coding assistant, MCP client)
         |
    SkillDocsServer (this, stdio)
         |
    SkillLoader  <-  SkillRegistry (~/.skilldocs/skills/*/SKILL.md)

Every enabled installed skill is exposed as resources (SKILL.md and its
references) and through a handful of built-in tools for listing,
reading, searching and linting.
"""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import Any, Optional

from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import Resource, TextContent, Tool

from .linter import SkillLinter, has_errors
from .loader import SkillLoader, resource_uri
from .models import MANIFEST_NAME, SkillDocument
from .registry import SkillRegistry

logger = logging.getLogger("skilldocs.server")

SERVER_NAME = "skilldocs"

BUILTIN_TOOLS = [
    Tool(
        name="skilldocs.list",
        description="List all available skills with their descriptions",
        inputSchema={"type": "object", "properties": {}, "required": []},
    ),
    Tool(
        name="skilldocs.info",
        description="Get the front-matter, headings and reference files of a skill",
        inputSchema={
            "type": "object",
            "properties": {
                "name": {"type": "string", "description": "Skill name to inspect"},
            },
            "required": ["name"],
        },
    ),
    Tool(
        name="skilldocs.read",
        description="Read a skill's SKILL.md, or one of its reference documents",
        inputSchema={
            "type": "object",
            "properties": {
                "name": {"type": "string", "description": "Skill name"},
                "reference": {
                    "type": "string",
                    "description": "Reference path relative to the skill, e.g. 'references/discovery.md'",
                },
            },
            "required": ["name"],
        },
    ),
    Tool(
        name="skilldocs.search",
        description="Search skills by name, description or body text",
        inputSchema={
            "type": "object",
            "properties": {
                "query": {"type": "string", "description": "Case-insensitive search text"},
            },
            "required": ["query"],
        },
    ),
    Tool(
        name="skilldocs.lint",
        description="Lint one skill (or all loaded skills) for front-matter and link problems",
        inputSchema={
            "type": "object",
            "properties": {
                "name": {"type": "string", "description": "Skill name (default: all)"},
            },
            "required": [],
        },
    ),
]


def _text(payload: Any) -> list[TextContent]:
    if isinstance(payload, str):
        return [TextContent(type="text", text=payload)]
    return [TextContent(type="text", text=json.dumps(payload, indent=2, default=str))]


def _error(message: str) -> list[TextContent]:
    return _text({"error": message})


class SkillDocsServer:
    """Serves installed skill documents over the MCP protocol.

    Args:
        registry_root: Path to the skilldocs home (default: SKILLDOCS_HOME).
    """

    def __init__(self, registry_root: Optional[Path] = None) -> None:
        self.registry = SkillRegistry(registry_root)
        self.loader = SkillLoader()
        self.linter = SkillLinter()
        self._mcp_server = Server(SERVER_NAME)
        self._setup_handlers()

    def _setup_handlers(self) -> None:
        """Register MCP protocol handlers."""

        @self._mcp_server.list_tools()
        async def list_tools() -> list[Tool]:
            return list(BUILTIN_TOOLS)

        @self._mcp_server.list_resources()
        async def list_resources() -> list[Resource]:
            return [
                Resource(
                    uri=res["uri"],
                    name=res["name"],
                    description=res.get("description", ""),
                    mimeType=res.get("mimeType", "text/markdown"),
                )
                for res in self.loader.all_resources()
            ]

        @self._mcp_server.call_tool()
        async def call_tool(name: str, arguments: dict) -> list[TextContent]:
            return await self._handle_tool_call(name, arguments or {})

        @self._mcp_server.read_resource()
        async def read_resource(uri: Any) -> str:
            return await self._handle_read_resource(str(uri))

    def load_all_skills(self) -> int:
        """Load every enabled installed skill.

        Returns:
            int: Number of skills successfully loaded.
        """
        loaded = 0
        for skill in self.registry.list_skills():
            if not skill.enabled:
                logger.info("Skipping disabled skill: %s", skill.name)
                continue
            try:
                self.loader.load(Path(skill.install_path))
                loaded += 1
            except (FileNotFoundError, ValueError) as exc:
                logger.error("Failed to load skill '%s': %s", skill.name, exc)

        logger.info("Loaded %d skills from %s", loaded, self.registry.skills_dir)
        return loaded

    async def _handle_tool_call(self, name: str, arguments: dict) -> list[TextContent]:
        """Route a tool call to the appropriate handler.

        Args:
            name: Tool name.
            arguments: Tool arguments.

        Returns:
            list[TextContent]: MCP response.
        """
        handlers = {
            "skilldocs.list": self._handle_list,
            "skilldocs.info": self._handle_info,
            "skilldocs.read": self._handle_read,
            "skilldocs.search": self._handle_search,
            "skilldocs.lint": self._handle_lint,
        }
        handler = handlers.get(name)
        if handler is None:
            return _error(f"Unknown tool: {name}")

        try:
            return handler(arguments)
        except (FileNotFoundError, ValueError) as exc:
            return _error(str(exc))
        except Exception as exc:
            logger.exception("Tool '%s' failed", name)
            return _error(f"{name} failed: {exc}")

    def _require(self, arguments: dict) -> SkillDocument:
        name = arguments.get("name", "")
        if not name:
            raise ValueError("name is required")
        document = self.loader.get(name)
        if document is None:
            raise ValueError(f"Skill not found: {name}")
        return document

    def _handle_list(self, arguments: dict) -> list[TextContent]:
        """List loaded skills."""
        return _text([
            {
                "name": d.name,
                "description": d.description,
                "uri": resource_uri(d.name, MANIFEST_NAME),
                "references": d.reference_paths,
            }
            for d in self.loader.all_documents()
        ])

    def _handle_info(self, arguments: dict) -> list[TextContent]:
        """Get front-matter and structure of a skill."""
        d = self._require(arguments)
        return _text({
            "name": d.name,
            "description": d.description,
            "front_matter": d.front_matter.model_dump(exclude_none=True, by_alias=True),
            "headings": d.headings,
            "references": [r.model_dump() for r in d.references],
            "path": d.path,
        })

    def _handle_read(self, arguments: dict) -> list[TextContent]:
        """Read SKILL.md or a reference document."""
        d = self._require(arguments)
        rel_path = arguments.get("reference") or MANIFEST_NAME
        content = self.loader.read_file(d.name, rel_path)
        if content is None:
            return _error(f"File not found in {d.name}: {rel_path}")
        return _text(content)

    def _handle_search(self, arguments: dict) -> list[TextContent]:
        """Search loaded skills."""
        query = arguments.get("query", "")
        if not query:
            return _error("query is required")
        q = query.lower()
        hits = [
            {"name": d.name, "description": d.description}
            for d in self.loader.all_documents()
            if q in d.name.lower() or q in d.description.lower() or q in d.body.lower()
        ]
        return _text(hits)

    def _handle_lint(self, arguments: dict) -> list[TextContent]:
        """Lint one or all loaded skills."""
        if arguments.get("name"):
            documents = [self._require(arguments)]
        else:
            documents = self.loader.all_documents()

        report = {}
        for d in documents:
            issues = self.linter.lint_skill(Path(d.path))
            report[d.name] = {
                "ok": not has_errors(issues),
                "issues": [i.model_dump(mode="json") for i in issues],
            }
        return _text(report)

    async def _handle_read_resource(self, uri: str) -> str:
        """Read a resource by URI.

        Raises:
            ValueError: If the resource is not found.
        """
        content = self.loader.read_resource(uri)
        if content is None:
            raise ValueError(f"Resource not found: {uri}")
        return content

    async def run_stdio(self) -> None:
        """Run the server on stdio."""
        async with stdio_server() as (read_stream, write_stream):
            await self._mcp_server.run(
                read_stream,
                write_stream,
                self._mcp_server.create_initialization_options(),
            )


def main(registry_root: Optional[Path] = None) -> None:
    """Entry point for the skilldocs MCP server.

    Args:
        registry_root: Override for the skilldocs home.
    """
    # stdout carries the protocol; logs go to stderr
    logging.basicConfig(level=logging.WARNING, format="%(name)s: %(message)s")
    server = SkillDocsServer(registry_root)
    count = server.load_all_skills()
    logger.warning("skilldocs server started: %d skills loaded", count)
    asyncio.run(server.run_stdio())

"""skilldocs Loader — present skill documents as MCP resources.

Each loaded skill contributes one resource per Markdown file:

    skill://{name}/SKILL.md
    skill://{name}/references/{file}.md

The loader only reads text. Code blocks inside the documents are
served verbatim and never executed.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from .models import MANIFEST_NAME, SkillDocument, parse_skill_md

logger = logging.getLogger("skilldocs.loader")

URI_SCHEME = "skill://"
MIME_TYPE = "text/markdown"


def resource_uri(skill_name: str, rel_path: str) -> str:
    """Build the resource URI for a file inside a skill.

    Args:
        skill_name: The skill's name (kebab-case).
        rel_path: POSIX path relative to the skill directory.

    Returns:
        str: The resource URI.
    """
    return f"{URI_SCHEME}{skill_name}/{rel_path}"


def parse_resource_uri(uri: str) -> Optional[tuple[str, str]]:
    """Split a resource URI into (skill name, relative path).

    Returns:
        tuple or None if the URI isn't a skill URI.
    """
    if not uri.startswith(URI_SCHEME):
        return None
    name, _, rel_path = uri[len(URI_SCHEME):].partition("/")
    if not name or not rel_path:
        return None
    return name, rel_path


class SkillLoader:
    """Holds loaded skill documents and serves their files.

    Skills are keyed by front-matter name; loading a second skill with
    the same name replaces the first.
    """

    def __init__(self) -> None:
        self._documents: dict[str, SkillDocument] = {}

    def load(self, skill_dir: Path) -> SkillDocument:
        """Parse and register a skill directory.

        Args:
            skill_dir: Path to the skill directory.

        Returns:
            SkillDocument: The loaded skill.

        Raises:
            FileNotFoundError: If SKILL.md doesn't exist.
            ValueError: If the front-matter is invalid.
        """
        document = parse_skill_md(skill_dir)
        if document.name in self._documents:
            logger.warning("Replacing already loaded skill: %s", document.name)
        self._documents[document.name] = document
        logger.info("Loaded skill: %s (%d references)", document.name, len(document.references))
        return document

    def get(self, name: str) -> Optional[SkillDocument]:
        """Get a loaded skill by name."""
        return self._documents.get(name)

    def all_documents(self) -> list[SkillDocument]:
        """Return all loaded skills, sorted by name."""
        return [self._documents[k] for k in sorted(self._documents)]

    def resources_for(self, document: SkillDocument) -> list[dict[str, str]]:
        """Return MCP-compatible resource definitions for one skill.

        Args:
            document: A loaded skill.

        Returns:
            list[dict]: SKILL.md first, then references in path order.
        """
        resources = [{
            "uri": resource_uri(document.name, MANIFEST_NAME),
            "name": f"{document.name}/{MANIFEST_NAME}",
            "description": document.description,
            "mimeType": MIME_TYPE,
        }]
        for ref in document.references:
            resources.append({
                "uri": resource_uri(document.name, ref.path),
                "name": f"{document.name}/{ref.path}",
                "description": ref.title or f"Reference from {document.name}",
                "mimeType": MIME_TYPE,
            })
        return resources

    def all_resources(self) -> list[dict[str, str]]:
        """Collect resource definitions from all loaded skills."""
        resources: list[dict[str, str]] = []
        for document in self.all_documents():
            resources.extend(self.resources_for(document))
        return resources

    def read_file(self, name: str, rel_path: str = MANIFEST_NAME) -> Optional[str]:
        """Read a file from a loaded skill.

        Args:
            name: Skill name.
            rel_path: Path relative to the skill directory.

        Returns:
            str: File content, or None if the skill or file is unknown.

        Raises:
            ValueError: If the path escapes the skill directory.
        """
        document = self._documents.get(name)
        if document is None:
            return None

        skill_dir = Path(document.path)
        full_path = (skill_dir / rel_path).resolve()
        if not full_path.is_relative_to(skill_dir.resolve()):
            raise ValueError(f"Path escapes skill directory: {rel_path}")
        if not full_path.is_file():
            return None
        return full_path.read_text(encoding="utf-8")

    def read_resource(self, uri: str) -> Optional[str]:
        """Read a resource by URI.

        Args:
            uri: Resource URI (e.g., skill://mcp-oauth/SKILL.md).

        Returns:
            str: Resource content, or None if not found.

        Raises:
            ValueError: If the URI path escapes the skill directory.
        """
        parsed = parse_resource_uri(uri)
        if parsed is None:
            return None
        return self.read_file(*parsed)

    def unload(self, name: str) -> bool:
        """Forget a loaded skill.

        Returns:
            bool: True if the skill was loaded and removed.
        """
        return self._documents.pop(name, None) is not None

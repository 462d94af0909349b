"""skilldocs data models — SKILL.md front-matter and document structure.

A skill is a directory:
  - SKILL.md: YAML front-matter (name, description) followed by Markdown
  - references/: optional Markdown documents linked from SKILL.md

Code blocks inside the Markdown are illustrative text. Nothing here
executes or extracts them.
"""

from __future__ import annotations

import enum
import re
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator

MANIFEST_NAME = "SKILL.md"
REFERENCES_DIR = "references"

MAX_NAME_LENGTH = 64
MAX_DESCRIPTION_LENGTH = 1024
NAME_PATTERN = re.compile(r"^[a-z0-9]+(?:-[a-z0-9]+)*$")

FRONT_MATTER_OPEN = "---"
FRONT_MATTER_CLOSE = ("---", "...")

_FENCE_RE = re.compile(r"^\s{0,3}(`{3,}|~{3,})")
_HEADING_RE = re.compile(r"^\s{0,3}(#{1,6})\s+(.*?)\s*#*\s*$")
_INLINE_CODE_RE = re.compile(r"(`+)(?:(?!\1).)+?\1")
_LINK_RE = re.compile(r"!?\[(?:[^\]\\]|\\.)*\]\(\s*<?([^)\s>]*)>?(?:\s+[\"'(][^)]*)?\s*\)")
_SCHEME_RE = re.compile(r"^[a-zA-Z][a-zA-Z0-9+.-]*:")
_LINK_DEF_RE = re.compile(r"^\s{0,3}\[(?!\^)[^\]]+\]:\s*<?([^\s>]+)>?")
_MD_LINK_TEXT_RE = re.compile(r"\[([^\]]*)\]\([^)]*\)")


class SkillStatus(str, enum.Enum):
    """Status of a skill in the local registry."""

    INSTALLED = "installed"
    DISABLED = "disabled"


class LintSeverity(str, enum.Enum):
    """How serious a lint finding is."""

    ERROR = "error"
    WARNING = "warning"


def is_valid_name(name: str) -> bool:
    """Check the kebab-case naming convention for skills."""
    return len(name) <= MAX_NAME_LENGTH and bool(NAME_PATTERN.match(name))


class SkillFrontMatter(BaseModel):
    """The metadata header of a SKILL.md file.

    Unknown keys are preserved so that a parsed header renders back
    without losing anything.
    """

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    name: str = Field(description="Unique skill identifier (kebab-case)")
    description: str = Field(description="What the skill teaches and when to use it")
    license: Optional[str] = Field(default=None, description="License of the document")
    allowed_tools: Optional[list[str]] = Field(
        default=None, alias="allowed-tools", description="Tools the skill expects the host to allow"
    )
    metadata: Optional[dict[str, Any]] = Field(default=None, description="Free-form metadata")

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        """Enforce kebab-case naming convention."""
        if not is_valid_name(v):
            raise ValueError(f"Skill name must be kebab-case (max {MAX_NAME_LENGTH} chars): got '{v}'")
        return v

    @field_validator("description")
    @classmethod
    def validate_description(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Skill description must not be empty")
        if len(v) > MAX_DESCRIPTION_LENGTH:
            raise ValueError(f"Skill description exceeds {MAX_DESCRIPTION_LENGTH} characters")
        return v


class ReferenceDoc(BaseModel):
    """A reference document shipped alongside SKILL.md."""

    path: str = Field(description="Path relative to the skill directory (POSIX form)")
    title: str = Field(default="", description="First top-level heading, or the file stem")
    size: int = Field(default=0, description="Size in bytes")


class SkillDocument(BaseModel):
    """A parsed skill: front-matter, Markdown body and reference files."""

    front_matter: SkillFrontMatter
    body: str = ""
    path: str = Field(description="Absolute path to the skill directory")
    references: list[ReferenceDoc] = Field(default_factory=list)

    @property
    def name(self) -> str:
        return self.front_matter.name

    @property
    def description(self) -> str:
        return self.front_matter.description

    @property
    def manifest_path(self) -> Path:
        return Path(self.path) / MANIFEST_NAME

    @property
    def headings(self) -> list[str]:
        return extract_headings(self.body)

    @property
    def reference_paths(self) -> list[str]:
        return [r.path for r in self.references]


class LintIssue(BaseModel):
    """A single documentation lint finding."""

    rule: str
    severity: LintSeverity
    message: str
    path: str = Field(description="File the issue was found in")
    line: Optional[int] = None

    def location(self) -> str:
        """Return ``path`` or ``path:line`` for display."""
        if self.line is None:
            return self.path
        return f"{self.path}:{self.line}"


class InstalledSkill(BaseModel):
    """Metadata for a skill installed in the local registry."""

    document: SkillDocument
    install_path: str = Field(description="Absolute path to the installed skill directory")
    installed_at: datetime = Field(default_factory=datetime.now)
    installed_by: str = Field(default="cli", description="How it was installed")
    status: SkillStatus = Field(default=SkillStatus.INSTALLED)

    @property
    def name(self) -> str:
        return self.document.name

    @property
    def enabled(self) -> bool:
        return self.status != SkillStatus.DISABLED


def split_front_matter(text: str) -> tuple[Optional[dict[str, Any]], str, int]:
    """Split a Markdown document into its front-matter and body.

    Args:
        text: Full document text.

    Returns:
        tuple: (front-matter mapping or None, body text, number of lines
        preceding the body in the original file).

    Raises:
        ValueError: If the block is unterminated, is not valid YAML,
            or is not a mapping.
    """
    if text.startswith("\ufeff"):
        text = text[1:]

    lines = text.splitlines(keepends=True)
    if not lines or lines[0].rstrip() != FRONT_MATTER_OPEN:
        return None, text, 0

    for idx in range(1, len(lines)):
        if lines[idx].rstrip() in FRONT_MATTER_CLOSE:
            block = "".join(lines[1:idx])
            body = "".join(lines[idx + 1:])
            break
    else:
        raise ValueError("Front-matter block is not terminated by '---'")

    try:
        raw = yaml.safe_load(block)
    except yaml.YAMLError as exc:
        raise ValueError(f"Front-matter is not valid YAML: {exc}") from exc

    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise ValueError(f"Front-matter must be a YAML mapping, got {type(raw).__name__}")

    return raw, body, idx + 1


def _reference_title(path: Path) -> str:
    for line in _strip_code(path.read_text(encoding="utf-8"), inline=False).splitlines():
        m = _HEADING_RE.match(line)
        if m and len(m.group(1)) == 1:
            return m.group(2)
    return path.stem


def collect_references(skill_dir: Path) -> list[ReferenceDoc]:
    """List the Markdown files under ``references/``, sorted by path."""
    ref_root = skill_dir / REFERENCES_DIR
    if not ref_root.is_dir():
        return []

    refs: list[ReferenceDoc] = []
    for f in sorted(ref_root.rglob("*.md")):
        if not f.is_file():
            continue
        refs.append(
            ReferenceDoc(
                path=f.relative_to(skill_dir).as_posix(),
                title=_reference_title(f),
                size=f.stat().st_size,
            )
        )
    return refs


def parse_skill_md(path: Path) -> SkillDocument:
    """Parse a skill directory (or its SKILL.md) into a SkillDocument.

    Args:
        path: The skill directory or the SKILL.md file itself.

    Returns:
        SkillDocument: The parsed skill.

    Raises:
        FileNotFoundError: If SKILL.md doesn't exist.
        ValueError: If the front-matter is missing, malformed, or invalid.
    """
    manifest = path / MANIFEST_NAME if path.is_dir() else path
    if not manifest.exists():
        raise FileNotFoundError(f"{MANIFEST_NAME} not found: {manifest}")

    raw, body, _ = split_front_matter(manifest.read_text(encoding="utf-8"))
    if raw is None:
        raise ValueError(f"{manifest} has no front-matter block")

    skill_dir = manifest.parent.resolve()
    return SkillDocument(
        front_matter=SkillFrontMatter.model_validate(raw),
        body=body,
        path=str(skill_dir),
        references=collect_references(skill_dir),
    )


def render_skill_md(front_matter: SkillFrontMatter, body: str) -> str:
    """Serialize front-matter and body back to SKILL.md text.

    Args:
        front_matter: The skill header.
        body: Markdown body, written verbatim after the closing delimiter.

    Returns:
        str: Complete SKILL.md content.
    """
    data = front_matter.model_dump(exclude_none=True, by_alias=True)
    header = yaml.safe_dump(data, default_flow_style=False, sort_keys=False, allow_unicode=True)
    return f"{FRONT_MATTER_OPEN}\n{header}{FRONT_MATTER_OPEN}\n{body}"


def _closes_fence(fence: str, line: str, marker: str) -> bool:
    """A closing fence uses the same character, is at least as long, and has no info string."""
    return (
        marker[0] == fence[0]
        and len(marker) >= len(fence)
        and not line.strip()[len(marker):].strip()
    )


def _strip_code(markdown: str, inline: bool = True) -> str:
    """Blank out fenced blocks and inline code, keeping line numbers intact."""
    out: list[str] = []
    fence: Optional[str] = None
    for line in markdown.splitlines():
        m = _FENCE_RE.match(line)
        if fence is None:
            if m:
                fence = m.group(1)
                out.append("")
            else:
                out.append(_INLINE_CODE_RE.sub("", line) if inline else line)
            continue
        if m and _closes_fence(fence, line, m.group(1)):
            fence = None
        out.append("")
    return "\n".join(out)


def unclosed_fence_line(markdown: str) -> Optional[int]:
    """Return the 1-based line of a code fence that is never closed, if any."""
    fence: Optional[str] = None
    opened_at = 0
    for lineno, line in enumerate(markdown.splitlines(), start=1):
        m = _FENCE_RE.match(line)
        if not m:
            continue
        if fence is None:
            fence, opened_at = m.group(1), lineno
        elif _closes_fence(fence, line, m.group(1)):
            fence = None
    return opened_at if fence is not None else None


def slugify_heading(text: str) -> str:
    """Compute the GitHub-style anchor for a heading."""
    text = _MD_LINK_TEXT_RE.sub(r"\1", text)
    slug = text.strip().lower()
    slug = re.sub(r"[^\w\- ]", "", slug)
    return slug.replace(" ", "-")


def extract_headings(markdown: str) -> list[str]:
    """Return heading texts in document order, ignoring code blocks."""
    headings: list[str] = []
    for line in _strip_code(markdown, inline=False).splitlines():
        m = _HEADING_RE.match(line)
        if m:
            headings.append(m.group(2))
    return headings


def heading_anchors(markdown: str) -> set[str]:
    """Anchors GitHub would generate for the document's headings.

    Repeated headings get ``-1``, ``-2`` ... suffixes.
    """
    anchors: set[str] = set()
    seen: dict[str, int] = {}
    for heading in extract_headings(markdown):
        slug = slugify_heading(heading)
        count = seen.get(slug, 0)
        seen[slug] = count + 1
        anchors.add(slug if count == 0 else f"{slug}-{count}")
    return anchors


def extract_links(markdown: str) -> list[tuple[str, int]]:
    """Return (target, line) for inline links and link definitions outside code."""
    links: list[tuple[str, int]] = []
    for lineno, line in enumerate(_strip_code(markdown).splitlines(), start=1):
        ref = _LINK_DEF_RE.match(line)
        if ref:
            links.append((ref.group(1), lineno))
            continue
        for m in _LINK_RE.finditer(line):
            if m.group(1):
                links.append((m.group(1), lineno))
    return links


def is_external_link(target: str) -> bool:
    """True for links carrying a URL scheme (http:, mailto:, ...)."""
    return bool(_SCHEME_RE.match(target)) or target.startswith("//")

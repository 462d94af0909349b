"""skilldocs Linter — documentation checks for skill directories.

Checks the only invariants a skill corpus has: a well-formed
front-matter header on SKILL.md and well-formed Markdown whose
internal links resolve.

Rules:
    missing-manifest        directory has no SKILL.md
    invalid-encoding        a Markdown file is not valid UTF-8
    missing-front-matter    SKILL.md does not open with '---'
    invalid-front-matter    unterminated header, bad YAML, not a mapping
    missing-name            no name in the header
    invalid-name            name is not kebab-case or is too long
    name-mismatch           name differs from the directory name
    missing-description     no description in the header
    description-too-long    description exceeds the limit
    empty-body              nothing after the header
    unclosed-code-fence     a ``` or ~~~ block is never closed
    broken-link             relative link target does not exist
    link-outside-skill      relative link leaves the skill directory
    broken-anchor           #fragment matches no heading in the target
    orphan-reference        references/ file is linked from nowhere
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Optional
from urllib.parse import unquote

from .models import (
    MANIFEST_NAME,
    MAX_DESCRIPTION_LENGTH,
    MAX_NAME_LENGTH,
    REFERENCES_DIR,
    LintIssue,
    LintSeverity,
    extract_links,
    heading_anchors,
    is_external_link,
    is_valid_name,
    split_front_matter,
    unclosed_fence_line,
)

logger = logging.getLogger("skilldocs.linter")


def has_errors(issues: list[LintIssue]) -> bool:
    """Check whether any issue is an error."""
    return any(i.severity == LintSeverity.ERROR for i in issues)


def discover_skill_dirs(root: Path) -> list[Path]:
    """Find skill directories under a corpus root.

    A directory is a skill when it holds SKILL.md. ``root`` itself counts
    when it is a skill. Only direct children of the root are considered.

    Raises:
        FileNotFoundError: If root doesn't exist.
    """
    if not root.is_dir():
        raise FileNotFoundError(f"Corpus directory not found: {root}")
    if (root / MANIFEST_NAME).exists():
        return [root]
    return [
        entry
        for entry in sorted(root.iterdir())
        if entry.is_dir() and not entry.name.startswith(".") and (entry / MANIFEST_NAME).exists()
    ]


class SkillLinter:
    """Runs documentation lint rules over skill directories.

    Args:
        max_description_length: Longest description accepted without a warning.
    """

    def __init__(self, max_description_length: int = MAX_DESCRIPTION_LENGTH) -> None:
        self.max_description_length = max_description_length

    def lint_corpus(self, root: Path) -> dict[str, list[LintIssue]]:
        """Lint every skill directory under a corpus root.

        Args:
            root: Directory containing skill directories (or a single skill).

        Returns:
            dict: Mapping of directory name -> issues (empty list when clean).
        """
        results: dict[str, list[LintIssue]] = {}
        for skill_dir in discover_skill_dirs(root):
            results[skill_dir.name] = self.lint_skill(skill_dir)
        logger.info(
            "Linted %d skills under %s (%d issues)",
            len(results),
            root,
            sum(len(v) for v in results.values()),
        )
        return results

    def lint_skill(self, skill_dir: Path) -> list[LintIssue]:
        """Lint a single skill directory.

        Args:
            skill_dir: The skill directory.

        Returns:
            list[LintIssue]: Findings, in file order.
        """
        skill_dir = skill_dir.resolve()
        manifest = skill_dir / MANIFEST_NAME
        if not manifest.is_file():
            return [self._issue("missing-manifest", LintSeverity.ERROR,
                                f"{MANIFEST_NAME} not found", skill_dir, skill_dir)]

        issues: list[LintIssue] = []
        text = self._read_markdown(manifest, skill_dir, issues)
        if text is None:
            return issues
        try:
            raw, body, offset = split_front_matter(text)
        except ValueError as exc:
            issues.append(self._issue("invalid-front-matter", LintSeverity.ERROR,
                                      str(exc), manifest, skill_dir, line=1))
            raw, body, offset = None, text, 0
        else:
            if raw is None:
                issues.append(self._issue("missing-front-matter", LintSeverity.ERROR,
                                          f"{MANIFEST_NAME} must start with a '---' front-matter block",
                                          manifest, skill_dir, line=1))
            else:
                issues.extend(self._check_front_matter(raw, manifest, skill_dir))

        if not body.strip():
            issues.append(self._issue("empty-body", LintSeverity.WARNING,
                                      "No instructional text after the front-matter",
                                      manifest, skill_dir))

        linked: set[Path] = set()
        documents: list[tuple[Path, Optional[str], int]] = [(manifest, body, offset)]
        ref_root = skill_dir / REFERENCES_DIR
        if ref_root.is_dir():
            for ref in sorted(ref_root.rglob("*.md")):
                documents.append((ref, self._read_markdown(ref, skill_dir, issues), 0))

        for path, markdown, line_offset in documents:
            if markdown is not None:
                issues.extend(self._check_markdown(path, markdown, line_offset, skill_dir, linked))

        for path, _, _ in documents[1:]:
            if path.resolve() not in linked:
                issues.append(self._issue("orphan-reference", LintSeverity.WARNING,
                                          "Reference file is not linked from any document",
                                          path, skill_dir))
        return issues

    def _check_front_matter(self, raw: dict[str, Any], manifest: Path, skill_dir: Path) -> list[LintIssue]:
        issues: list[LintIssue] = []

        name = raw.get("name")
        if name is None or (isinstance(name, str) and not name.strip()):
            issues.append(self._issue("missing-name", LintSeverity.ERROR,
                                      "Front-matter has no 'name'", manifest, skill_dir))
        elif not isinstance(name, str):
            issues.append(self._issue("invalid-name", LintSeverity.ERROR,
                                      f"Name must be a string, got {type(name).__name__}: {name!r}",
                                      manifest, skill_dir))
        elif not is_valid_name(name):
            issues.append(self._issue("invalid-name", LintSeverity.ERROR,
                                      f"Name must be kebab-case, at most {MAX_NAME_LENGTH} chars: '{name}'",
                                      manifest, skill_dir))
        elif name != skill_dir.name:
            issues.append(self._issue("name-mismatch", LintSeverity.ERROR,
                                      f"Name '{name}' does not match directory '{skill_dir.name}'",
                                      manifest, skill_dir))

        description = raw.get("description")
        if not isinstance(description, str) or not description.strip():
            issues.append(self._issue("missing-description", LintSeverity.ERROR,
                                      "Front-matter has no 'description'", manifest, skill_dir))
        elif len(description.strip()) > self.max_description_length:
            issues.append(self._issue("description-too-long", LintSeverity.WARNING,
                                      f"Description is {len(description.strip())} chars "
                                      f"(limit {self.max_description_length})",
                                      manifest, skill_dir))
        return issues

    def _check_markdown(
        self,
        path: Path,
        markdown: str,
        line_offset: int,
        skill_dir: Path,
        linked: set[Path],
    ) -> list[LintIssue]:
        issues: list[LintIssue] = []

        fence_line = unclosed_fence_line(markdown)
        if fence_line is not None:
            issues.append(self._issue("unclosed-code-fence", LintSeverity.ERROR,
                                      "Code fence is never closed", path, skill_dir,
                                      line=fence_line + line_offset))

        for target, lineno in extract_links(markdown):
            if is_external_link(target):
                continue
            issue = self._check_link(path, markdown, target, skill_dir, linked)
            if issue is not None:
                rule, severity, message = issue
                issues.append(self._issue(rule, severity, message, path, skill_dir,
                                          line=lineno + line_offset))
        return issues

    def _check_link(
        self,
        source: Path,
        source_markdown: str,
        target: str,
        skill_dir: Path,
        linked: set[Path],
    ) -> Optional[tuple[str, LintSeverity, str]]:
        """Resolve one relative link; return (rule, severity, message) when it is bad."""
        path_part, _, fragment = target.partition("#")
        path_part = unquote(path_part.split("?", 1)[0])

        if not path_part:
            markdown = source_markdown
            resolved = source.resolve()
        else:
            base = skill_dir if path_part.startswith("/") else source.parent
            resolved = (base / path_part.lstrip("/")).resolve()
            if not resolved.is_relative_to(skill_dir):
                return "link-outside-skill", LintSeverity.ERROR, f"Link leaves the skill directory: {target}"
            if not resolved.exists():
                return "broken-link", LintSeverity.ERROR, f"Link target does not exist: {target}"
            linked.add(resolved)
            markdown = None

        if not fragment or resolved.suffix.lower() != ".md" or resolved.is_dir():
            return None

        if markdown is None:
            try:
                markdown = resolved.read_text(encoding="utf-8")
            except UnicodeDecodeError:
                return "invalid-encoding", LintSeverity.ERROR, f"Link target is not valid UTF-8: {target}"
            if resolved.name == MANIFEST_NAME:
                try:
                    _, markdown, _ = split_front_matter(markdown)
                except ValueError:
                    # Bad header is reported on the manifest itself; match against raw text.
                    logger.debug("Checking anchor %s against unparsed %s", target, resolved)
        if unquote(fragment).lower() not in heading_anchors(markdown):
            return "broken-anchor", LintSeverity.WARNING, f"No heading matches anchor: {target}"
        return None

    def _read_markdown(self, path: Path, skill_dir: Path, issues: list[LintIssue]) -> Optional[str]:
        """Read a Markdown file; record invalid-encoding and return None if it isn't UTF-8."""
        try:
            return path.read_text(encoding="utf-8")
        except UnicodeDecodeError as exc:
            issues.append(self._issue("invalid-encoding", LintSeverity.ERROR,
                                      f"File is not valid UTF-8 (byte {exc.start})", path, skill_dir))
            return None

    @staticmethod
    def _issue(
        rule: str,
        severity: LintSeverity,
        message: str,
        path: Path,
        skill_dir: Path,
        line: Optional[int] = None,
    ) -> LintIssue:
        try:
            display = path.resolve().relative_to(skill_dir.parent).as_posix()
        except ValueError:
            display = str(path)
        return LintIssue(rule=rule, severity=severity, message=message, path=display, line=line)

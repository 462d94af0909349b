"""skilldocs Registry — local corpus of installed skill documents.

Directory layout:
    ~/.skilldocs/
        skills/                 # One directory per installed skill
            mcp-oauth/
                SKILL.md
                references/
            frontend-controllers/
                SKILL.md
        registry.json           # Install metadata and enabled/disabled status
"""

from __future__ import annotations

import json
import logging
import os
import shutil
from datetime import datetime
from pathlib import Path
from typing import Optional

from . import SKILLDOCS_HOME
from .models import MANIFEST_NAME, InstalledSkill, SkillStatus, is_valid_name, parse_skill_md

logger = logging.getLogger("skilldocs.registry")


def default_registry_root() -> Path:
    """Resolve the default registry root, respecting SKILLDOCS_HOME env var.

    Returns:
        Path: The registry root directory.
    """
    env = os.environ.get("SKILLDOCS_HOME")
    if env:
        return Path(env).expanduser()
    return Path(SKILLDOCS_HOME).expanduser()


class SkillRegistry:
    """Manages installation, discovery, and status of skill documents.

    Args:
        root: Base directory (default: SKILLDOCS_HOME or ~/.skilldocs).
    """

    def __init__(self, root: Optional[Path] = None) -> None:
        self.root = (root or default_registry_root()).expanduser()
        self.skills_dir = self.root / "skills"
        self.index_path = self.root / "registry.json"

    def ensure_dirs(self) -> None:
        """Create the directory structure if it doesn't exist."""
        self.skills_dir.mkdir(parents=True, exist_ok=True)

    def install(self, source: Path, force: bool = False, installed_by: str = "registry") -> InstalledSkill:
        """Install a skill from a local directory.

        Args:
            source: Path to the skill directory containing SKILL.md.
            force: Overwrite an existing installation.
            installed_by: Recorded in the index.

        Returns:
            InstalledSkill: Metadata for the installed skill.

        Raises:
            FileNotFoundError: If source or SKILL.md doesn't exist.
            ValueError: If the front-matter is invalid, or the skill is
                already installed and force=False.
        """
        document = parse_skill_md(source)

        target = self.skills_dir / document.name
        if target.exists() and not force:
            raise ValueError(
                f"Skill '{document.name}' already installed. Use force=True to overwrite."
            )

        self.ensure_dirs()
        if source.resolve() != target.resolve():
            # A failed copy leaves the previous install in place
            staging = self.skills_dir / f".{document.name}.staging"
            if staging.exists():
                shutil.rmtree(staging)
            shutil.copytree(source, staging)
            if target.exists():
                shutil.rmtree(target)
            staging.rename(target)

        installed = InstalledSkill(
            document=parse_skill_md(target),
            install_path=str(target.resolve()),
            installed_at=datetime.now(),
            installed_by=installed_by,
            status=SkillStatus.INSTALLED,
        )
        self._update_index(installed)
        logger.info("Installed skill %s -> %s", document.name, target)
        return installed

    def uninstall(self, name: str) -> bool:
        """Remove an installed skill.

        Args:
            name: Skill name to uninstall.

        Returns:
            bool: True if the skill was found and removed.
        """
        target = self._skill_path(name)
        if target is None or not target.exists():
            return False

        shutil.rmtree(target)
        self._remove_from_index(name)
        logger.info("Uninstalled skill %s", name)
        return True

    def get(self, name: str) -> Optional[InstalledSkill]:
        """Look up an installed skill by name.

        Args:
            name: Skill name.

        Returns:
            InstalledSkill or None if not found.

        Raises:
            ValueError: If the installed SKILL.md has become invalid.
        """
        target = self._skill_path(name)
        if target is None or not (target / MANIFEST_NAME).exists():
            return None
        return self._build(target, self._load_index())

    def get_status(self, name: str) -> Optional[SkillStatus]:
        """Read a skill's status from the index without parsing its SKILL.md.

        Returns:
            SkillStatus or None if the skill isn't installed.
        """
        target = self._skill_path(name)
        if target is None or not target.is_dir():
            return None
        meta = self._load_index().get(name, {})
        return SkillStatus(meta.get("status", SkillStatus.INSTALLED.value))

    def list_skills(self) -> list[InstalledSkill]:
        """List all installed skills, sorted by directory name.

        Directories whose SKILL.md can't be parsed are skipped.

        Returns:
            list[InstalledSkill]: All installed skills.
        """
        results: list[InstalledSkill] = []
        if not self.skills_dir.exists():
            return results

        index = self._load_index()
        for entry in sorted(self.skills_dir.iterdir()):
            if entry.name.startswith(".") or not (entry.is_dir() and (entry / MANIFEST_NAME).exists()):
                continue
            try:
                results.append(self._build(entry, index))
            except ValueError as exc:
                logger.warning("Skipping unparsable skill %s: %s", entry.name, exc)
        return results

    def search(self, query: str) -> list[InstalledSkill]:
        """Search installed skills by name, description, or body text.

        Args:
            query: Case-insensitive search string.

        Returns:
            list[InstalledSkill]: Matching skills.
        """
        q = query.lower()
        results = []
        for skill in self.list_skills():
            d = skill.document
            if q in d.name.lower() or q in d.description.lower() or q in d.body.lower():
                results.append(skill)
        return results

    def set_status(self, name: str, status: SkillStatus) -> bool:
        """Change the status of an installed skill (enable/disable).

        Args:
            name: Skill name.
            status: New status value.

        Returns:
            bool: True if the skill was found and updated.
        """
        target = self._skill_path(name)
        if target is None or not (target / MANIFEST_NAME).exists():
            return False

        index = self._load_index()
        if name not in index:
            # Build a minimal entry so we can persist the status
            index[name] = {"name": name, "install_path": str(target.resolve())}
        index[name]["status"] = status.value
        self._save_index(index)
        return True

    def _skill_path(self, name: str) -> Optional[Path]:
        """Map a skill name to its install directory; None for names that aren't kebab-case."""
        if not is_valid_name(name):
            logger.warning("Rejecting invalid skill name: %r", name)
            return None
        return self.skills_dir / name

    def _build(self, skill_dir: Path, index: dict) -> InstalledSkill:
        """Parse an installed directory and merge its index metadata."""
        document = parse_skill_md(skill_dir)
        meta = index.get(skill_dir.name, {})
        installed_at = meta.get("installed_at")
        return InstalledSkill(
            document=document,
            install_path=str(skill_dir.resolve()),
            installed_at=datetime.fromisoformat(installed_at) if installed_at else datetime.now(),
            installed_by=meta.get("installed_by", "unknown"),
            status=SkillStatus(meta.get("status", SkillStatus.INSTALLED.value)),
        )

    def _load_index(self) -> dict:
        """Load the registry index from disk."""
        if not self.index_path.exists():
            return {}
        try:
            return json.loads(self.index_path.read_text())
        except (json.JSONDecodeError, OSError):
            logger.warning("Ignoring unreadable registry index: %s", self.index_path)
            return {}

    def _save_index(self, index: dict) -> None:
        """Persist the registry index to disk."""
        self.root.mkdir(parents=True, exist_ok=True)
        self.index_path.write_text(json.dumps(index, indent=2, default=str))

    def _update_index(self, skill: InstalledSkill) -> None:
        """Add or update a skill in the registry index."""
        index = self._load_index()
        index[skill.name] = {
            "name": skill.name,
            "description": skill.document.description,
            "install_path": skill.install_path,
            "installed_at": skill.installed_at.isoformat(),
            "installed_by": skill.installed_by,
            "status": skill.status.value,
            "references": skill.document.reference_paths,
        }
        self._save_index(index)

    def _remove_from_index(self, name: str) -> None:
        """Remove a skill from the registry index."""
        index = self._load_index()
        index.pop(name, None)
        self._save_index(index)

"""Tests for skilldocs Registry — install, list, status, uninstall."""

import json
from pathlib import Path
from textwrap import dedent

import pytest

from skilldocs.models import SkillStatus
from skilldocs.registry import SkillRegistry, default_registry_root


@pytest.fixture
def skill_source(tmp_path: Path) -> Path:
    """Create a minimal skill directory for testing."""
    skill_dir = tmp_path / "src" / "test-skill"
    (skill_dir / "references").mkdir(parents=True)
    (skill_dir / "references" / "notes.md").write_text("# Notes\n")
    (skill_dir / "SKILL.md").write_text(dedent("""\
        ---
        name: test-skill
        description: A test skill about token refresh
        ---

        # Test skill

        See [notes](references/notes.md).
    """))
    return skill_dir


@pytest.fixture
def registry(tmp_path: Path) -> SkillRegistry:
    """Create a registry with a temp root."""
    return SkillRegistry(root=tmp_path / "skilldocs")


class TestDefaultRoot:
    def test_env_override(self, tmp_path: Path, monkeypatch):
        monkeypatch.setenv("SKILLDOCS_HOME", str(tmp_path / "home"))
        assert default_registry_root() == tmp_path / "home"
        assert SkillRegistry().root == tmp_path / "home"

    def test_home_default(self, monkeypatch):
        monkeypatch.delenv("SKILLDOCS_HOME", raising=False)
        assert default_registry_root() == Path("~/.skilldocs").expanduser()


class TestInstall:
    """Test skill installation."""

    def test_install_copies_directory(self, registry: SkillRegistry, skill_source: Path):
        """Installing a skill should copy it to skills/<name>."""
        installed = registry.install(skill_source)
        assert installed.name == "test-skill"
        assert installed.status == SkillStatus.INSTALLED
        target = Path(installed.install_path)
        assert target == (registry.skills_dir / "test-skill").resolve()
        assert (target / "references" / "notes.md").exists()
        assert installed.document.reference_paths == ["references/notes.md"]

    def test_install_writes_index(self, registry: SkillRegistry, skill_source: Path):
        registry.install(skill_source)
        index = json.loads(registry.index_path.read_text())
        assert index["test-skill"]["status"] == "installed"
        assert index["test-skill"]["references"] == ["references/notes.md"]

    def test_install_uses_front_matter_name(self, registry: SkillRegistry, tmp_path: Path, skill_source: Path):
        renamed = skill_source.rename(tmp_path / "checkout")
        installed = registry.install(renamed)
        assert Path(installed.install_path).name == "test-skill"

    def test_install_duplicate_fails(self, registry: SkillRegistry, skill_source: Path):
        """Installing the same skill twice without force should fail."""
        registry.install(skill_source)
        with pytest.raises(ValueError, match="already installed"):
            registry.install(skill_source)

    def test_install_force_overwrites(self, registry: SkillRegistry, skill_source: Path):
        """Force install should overwrite existing."""
        registry.install(skill_source)
        (skill_source / "references" / "notes.md").unlink()
        installed = registry.install(skill_source, force=True)
        assert installed.document.references == []

    def test_force_reinstall_from_installed_dir(self, registry: SkillRegistry, skill_source: Path):
        """Reinstalling from the install location re-indexes in place."""
        first = registry.install(skill_source)
        registry.set_status("test-skill", SkillStatus.DISABLED)

        again = registry.install(Path(first.install_path), force=True)
        target = registry.skills_dir / "test-skill"
        assert (target / "SKILL.md").exists()
        assert (target / "references" / "notes.md").exists()
        assert again.status == SkillStatus.INSTALLED
        assert again.document.reference_paths == ["references/notes.md"]

    def test_force_install_leaves_no_staging(self, registry: SkillRegistry, skill_source: Path):
        registry.install(skill_source)
        registry.install(skill_source, force=True)
        assert [p.name for p in registry.skills_dir.iterdir()] == ["test-skill"]

    def test_install_rejects_invalid(self, registry: SkillRegistry, tmp_path: Path):
        bad = tmp_path / "bad"
        bad.mkdir()
        (bad / "SKILL.md").write_text("---\nname: Bad Name\ndescription: x\n---\n")
        with pytest.raises(ValueError, match="kebab-case"):
            registry.install(bad)
        assert not registry.skills_dir.exists()

    def test_install_missing_manifest(self, registry: SkillRegistry, tmp_path: Path):
        with pytest.raises(FileNotFoundError):
            registry.install(tmp_path)


class TestUninstall:
    """Test skill removal."""

    def test_uninstall_existing(self, registry: SkillRegistry, skill_source: Path):
        """Uninstalling an installed skill should return True."""
        registry.install(skill_source)
        assert registry.uninstall("test-skill") is True
        assert registry.get("test-skill") is None
        assert "test-skill" not in json.loads(registry.index_path.read_text())

    def test_uninstall_nonexistent(self, registry: SkillRegistry):
        """Uninstalling a missing skill should return False."""
        assert registry.uninstall("nonexistent") is False

    @pytest.mark.parametrize("name", ["..", "../..", "../skills", "/tmp", "a/../b"])
    def test_uninstall_rejects_paths(self, tmp_path: Path, registry: SkillRegistry, skill_source: Path, name: str):
        """Names that aren't kebab-case never reach the filesystem."""
        registry.install(skill_source)
        (tmp_path / "keepme.txt").write_text("still here")

        assert registry.uninstall(name) is False
        assert (tmp_path / "keepme.txt").exists()
        assert registry.skills_dir.is_dir()
        assert registry.get("test-skill") is not None


class TestListAndGet:
    """Test skill listing and lookup."""

    def test_list_empty(self, registry: SkillRegistry):
        """Empty registry should return empty list."""
        assert registry.list_skills() == []

    def test_list_after_install(self, registry: SkillRegistry, skill_source: Path):
        registry.install(skill_source)
        skills = registry.list_skills()
        assert [s.name for s in skills] == ["test-skill"]
        assert skills[0].installed_by == "registry"

    def test_list_skips_broken_skill(self, registry: SkillRegistry, skill_source: Path):
        registry.install(skill_source)
        broken = registry.skills_dir / "broken"
        broken.mkdir()
        (broken / "SKILL.md").write_text("no front-matter here\n")
        assert [s.name for s in registry.list_skills()] == ["test-skill"]

    def test_get_missing(self, registry: SkillRegistry):
        assert registry.get("nope") is None

    def test_get_rejects_paths(self, registry: SkillRegistry, skill_source: Path):
        registry.install(skill_source)
        assert registry.get("../skills/test-skill") is None
        assert registry.get_status("..") is None

    def test_get_status_without_parsing(self, registry: SkillRegistry, skill_source: Path):
        registry.install(skill_source)
        registry.set_status("test-skill", SkillStatus.DISABLED)
        (registry.skills_dir / "test-skill" / "SKILL.md").write_text("---\nname: test-skill\n---\n")
        with pytest.raises(ValueError):
            registry.get("test-skill")
        assert registry.get_status("test-skill") == SkillStatus.DISABLED
        assert registry.get_status("ghost") is None

    def test_corrupt_index_is_ignored(self, registry: SkillRegistry, skill_source: Path):
        registry.install(skill_source)
        registry.index_path.write_text("{not json")
        skill = registry.get("test-skill")
        assert skill is not None
        assert skill.status == SkillStatus.INSTALLED
        assert skill.installed_by == "unknown"


class TestSearch:
    def test_search_by_name(self, registry: SkillRegistry, skill_source: Path):
        registry.install(skill_source)
        assert [s.name for s in registry.search("TEST")] == ["test-skill"]

    def test_search_by_description(self, registry: SkillRegistry, skill_source: Path):
        registry.install(skill_source)
        assert len(registry.search("token refresh")) == 1

    def test_search_by_body(self, registry: SkillRegistry, skill_source: Path):
        registry.install(skill_source)
        assert len(registry.search("see [notes]")) == 1

    def test_search_no_match(self, registry: SkillRegistry, skill_source: Path):
        registry.install(skill_source)
        assert registry.search("kubernetes") == []


class TestStatus:
    def test_disable_and_enable(self, registry: SkillRegistry, skill_source: Path):
        registry.install(skill_source)
        assert registry.set_status("test-skill", SkillStatus.DISABLED) is True
        skill = registry.get("test-skill")
        assert skill.status == SkillStatus.DISABLED
        assert skill.enabled is False

        registry.set_status("test-skill", SkillStatus.INSTALLED)
        assert registry.get("test-skill").enabled is True

    def test_status_without_index_entry(self, registry: SkillRegistry, skill_source: Path):
        registry.install(skill_source)
        registry.index_path.unlink()
        assert registry.set_status("test-skill", SkillStatus.DISABLED) is True
        assert registry.get("test-skill").status == SkillStatus.DISABLED

    def test_status_unknown_skill(self, registry: SkillRegistry):
        assert registry.set_status("ghost", SkillStatus.DISABLED) is False

    def test_status_rejects_paths(self, registry: SkillRegistry, skill_source: Path):
        registry.install(skill_source)
        assert registry.set_status("../skills/test-skill", SkillStatus.DISABLED) is False
        assert registry.get("test-skill").enabled is True

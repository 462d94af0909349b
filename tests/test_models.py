"""Tests for skilldocs models — SKILL.md front-matter and Markdown helpers."""

from pathlib import Path
from textwrap import dedent

import pytest

from skilldocs.models import (
    SkillFrontMatter,
    extract_headings,
    extract_links,
    heading_anchors,
    is_external_link,
    is_valid_name,
    parse_skill_md,
    render_skill_md,
    slugify_heading,
    split_front_matter,
    unclosed_fence_line,
)

SKILL_MD = dedent("""\
    ---
    name: demo-skill
    description: A demo skill
    allowed-tools:
      - Read
    owner: docs-team
    ---

    # Demo

    See [the guide](references/guide.md).
""")


@pytest.fixture
def skill_dir(tmp_path: Path) -> Path:
    """Create a skill directory with one reference."""
    d = tmp_path / "demo-skill"
    (d / "references").mkdir(parents=True)
    (d / "SKILL.md").write_text(SKILL_MD)
    (d / "references" / "guide.md").write_text("# The Guide\n\nBody.\n")
    return d


class TestSkillFrontMatter:
    """Test front-matter validation."""

    def test_minimal(self):
        fm = SkillFrontMatter(name="demo", description="Does things")
        assert fm.name == "demo"
        assert fm.license is None

    def test_alias_for_allowed_tools(self):
        fm = SkillFrontMatter.model_validate(
            {"name": "demo", "description": "x", "allowed-tools": ["Bash"]}
        )
        assert fm.allowed_tools == ["Bash"]

    def test_extra_keys_kept(self):
        fm = SkillFrontMatter.model_validate({"name": "demo", "description": "x", "owner": "me"})
        assert fm.model_dump()["owner"] == "me"

    @pytest.mark.parametrize("name", ["Bad Name", "UPPER", "-leading", "double--dash", "a" * 65, ""])
    def test_name_validation_rejects(self, name):
        """Skill names must be kebab-case."""
        with pytest.raises(ValueError, match="kebab-case"):
            SkillFrontMatter(name=name, description="x")

    def test_description_required(self):
        with pytest.raises(ValueError, match="must not be empty"):
            SkillFrontMatter(name="demo", description="   ")

    def test_description_too_long(self):
        with pytest.raises(ValueError, match="exceeds"):
            SkillFrontMatter(name="demo", description="x" * 1025)

    def test_is_valid_name(self):
        assert is_valid_name("mcp-oauth")
        assert is_valid_name("v2")
        assert not is_valid_name("mcp_oauth")


class TestSplitFrontMatter:
    """Test front-matter splitting."""

    def test_no_front_matter(self):
        raw, body, offset = split_front_matter("# Title\n")
        assert raw is None
        assert body == "# Title\n"
        assert offset == 0

    def test_offset_counts_header_lines(self):
        raw, body, offset = split_front_matter("---\nname: a\n---\nline one\n")
        assert raw == {"name": "a"}
        assert body == "line one\n"
        assert offset == 3

    def test_bom_is_ignored(self):
        raw, _, _ = split_front_matter("\ufeff---\nname: a\n---\n")
        assert raw == {"name": "a"}

    def test_dots_close_block(self):
        raw, body, _ = split_front_matter("---\nname: a\n...\nbody\n")
        assert raw == {"name": "a"}
        assert body == "body\n"

    def test_empty_block_is_empty_mapping(self):
        raw, _, _ = split_front_matter("---\n---\nbody\n")
        assert raw == {}

    def test_unterminated(self):
        with pytest.raises(ValueError, match="not terminated"):
            split_front_matter("---\nname: a\n")

    def test_not_a_mapping(self):
        with pytest.raises(ValueError, match="mapping"):
            split_front_matter("---\n- a\n- b\n---\n")

    def test_bad_yaml(self):
        with pytest.raises(ValueError, match="not valid YAML"):
            split_front_matter("---\nname: [unclosed\n---\n")


class TestParseSkillMd:
    """Test SKILL.md parsing."""

    def test_parse_directory(self, skill_dir: Path):
        doc = parse_skill_md(skill_dir)
        assert doc.name == "demo-skill"
        assert doc.description == "A demo skill"
        assert doc.front_matter.allowed_tools == ["Read"]
        assert doc.path == str(skill_dir.resolve())
        assert doc.headings == ["Demo"]

    def test_parse_file_path(self, skill_dir: Path):
        doc = parse_skill_md(skill_dir / "SKILL.md")
        assert doc.name == "demo-skill"

    def test_references_collected(self, skill_dir: Path):
        doc = parse_skill_md(skill_dir)
        assert doc.reference_paths == ["references/guide.md"]
        assert doc.references[0].title == "The Guide"
        assert doc.references[0].size > 0

    def test_missing_file(self, tmp_path: Path):
        with pytest.raises(FileNotFoundError):
            parse_skill_md(tmp_path / "nope")

    def test_missing_front_matter(self, tmp_path: Path):
        (tmp_path / "SKILL.md").write_text("# No header\n")
        with pytest.raises(ValueError, match="no front-matter"):
            parse_skill_md(tmp_path)

    def test_render_round_trip(self, skill_dir: Path):
        doc = parse_skill_md(skill_dir)
        text = render_skill_md(doc.front_matter, doc.body)
        assert text.startswith("---\nname: demo-skill\n")
        assert "allowed-tools:" in text
        assert "owner: docs-team" in text

        (skill_dir / "SKILL.md").write_text(text)
        again = parse_skill_md(skill_dir)
        assert again.front_matter == doc.front_matter
        assert again.body == doc.body

    def test_render_keeps_body_verbatim(self):
        fm = SkillFrontMatter(name="tight", description="No blank line after the header")
        text = render_skill_md(fm, "# Tight\n")
        assert text.endswith("---\n# Tight\n")
        _, body, _ = split_front_matter(text)
        assert body == "# Tight\n"


class TestMarkdownHelpers:
    """Test link, heading and fence extraction."""

    def test_links_skip_code(self):
        md = dedent("""\
            [a](one.md) and `[b](two.md)`

            ```
            [c](three.md)
            ```
            [d](four.md "title")
        """)
        assert extract_links(md) == [("one.md", 1), ("four.md", 6)]

    def test_link_definitions(self):
        md = "Text [x][ref].\n\n[ref]: ./docs/x.md\n"
        assert extract_links(md) == [("./docs/x.md", 3)]

    def test_footnote_definitions_are_not_links(self):
        md = "A claim.[^1]\n\n[^1]: See the upstream docs.\n"
        assert extract_links(md) == []

    def test_image_links_included(self):
        assert extract_links("![diagram](img/flow.png)") == [("img/flow.png", 1)]

    def test_external(self):
        assert is_external_link("https://example.com")
        assert is_external_link("mailto:a@b.c")
        assert is_external_link("//cdn.example.com/x.js")
        assert not is_external_link("references/a.md")
        assert not is_external_link("#anchor")

    def test_headings_ignore_fenced_comments(self):
        md = "# Title\n\n```bash\n# not a heading\n```\n\n## Next `step`\n"
        assert extract_headings(md) == ["Title", "Next `step`"]

    def test_slugify(self):
        assert slugify_heading("The flow at a glance") == "the-flow-at-a-glance"
        assert slugify_heading("Next `step`!") == "next-step"
        assert slugify_heading("See [docs](x.md)") == "see-docs"
        assert slugify_heading("snake_case name") == "snake_case-name"

    def test_duplicate_anchors(self):
        assert heading_anchors("# A\n# A\n# B\n") == {"a", "a-1", "b"}

    def test_unclosed_fence(self):
        assert unclosed_fence_line("text\n```python\ncode\n") == 2
        assert unclosed_fence_line("```\ncode\n```\n") is None

    def test_fence_needs_same_marker(self):
        assert unclosed_fence_line("~~~\n```\n~~~\n") is None
        assert unclosed_fence_line("````\n```\n") == 1

"""skilldocs — instructional skill documents for AI coding assistants.

A skill is a directory holding SKILL.md (YAML front-matter plus
Markdown guidance) and optional reference documents. This package
parses, lints, installs and serves such skills over MCP.
"""

__version__ = "0.1.0"

SKILLDOCS_HOME = "~/.skilldocs"

"""Discover `SKILL.md` files and expose them as prompt-ready skills.

A skill file is markdown with YAML frontmatter:

    ---
    name: pdf
    description: Work with PDF documents
    ---
    body...
"""

from __future__ import annotations

import re
from pathlib import Path

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from nano_agent.observability.logging import get_logger

_DIR_PATHS = re.compile(r"(python\s+|`)((?:scripts|examples|templates|reference)/[^\s`)]+)")
_DOC_PATHS = re.compile(r"(see|read|refer to|check)\s+([a-zA-Z0-9_-]+\.(?:md|txt|json|yaml))([.,;\s])", re.IGNORECASE)
_MD_LINKS = re.compile(
    r"(?:(Read|See|Check|Refer to|Load|View)\s+)?\[(`?[^`\]]+`?)\]\(((?:\.)?[^)]+\.(?:md|txt|json|yaml|js|py|html))\)",
    re.IGNORECASE,
)


class SkillMetadata(BaseModel):
    """Validated frontmatter of a SKILL.md file."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    name: str = Field(min_length=1)
    description: str = Field(min_length=1)
    license: str | None = None
    allowed_tools: list[str] | None = Field(default=None, alias="allowed-tools")
    metadata: dict[str, str] | None = None

    @field_validator("name", "description")
    @classmethod
    def _strip(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("must not be blank")
        return v


class Skill(SkillMetadata):
    content: str
    skill_path: Path

    def to_prompt(self) -> str:
        return f"# Skill: {self.name}\n\n{self.description}\n\n---\n\n{self.content}"


def split_frontmatter(text: str) -> tuple[str, str] | None:
    """Return (frontmatter, body), or None when the file has no `---` block."""

    start = text.find("---\n")
    if start == -1:
        return None
    end = text.find("\n---\n", start + 4)
    if end == -1:
        return None
    return text[start + 4 : end], text[end + 5 :]


def rewrite_skill_paths(content: str, skill_dir: Path) -> str:
    """Turn relative references to files inside the skill directory into absolute paths.

    References to files that do not exist are left untouched.
    """

    def dirs(m: re.Match[str]) -> str:
        target = (skill_dir / m.group(2)).resolve()
        return f"{m.group(1)}{target}" if target.exists() else m.group(0)

    def docs(m: re.Match[str]) -> str:
        target = (skill_dir / m.group(2)).resolve()
        if not target.exists():
            return m.group(0)
        return f"{m.group(1)} `{target}` (use read_file to access){m.group(3)}"

    def links(m: re.Match[str]) -> str:
        rel = m.group(3)
        if rel.startswith("./"):
            rel = rel[2:]
        target = (skill_dir / rel).resolve()
        if not target.exists():
            return m.group(0)
        prefix = f"{m.group(1)} " if m.group(1) else ""
        return f"{prefix}[{m.group(2)}](`{target}`) (use read_file to access)"

    content = _DIR_PATHS.sub(dirs, content)
    content = _DOC_PATHS.sub(docs, content)
    return _MD_LINKS.sub(links, content)


class SkillLoader:
    def __init__(self, skills_dir: str | Path = "./skills") -> None:
        self._skills_dir = Path(skills_dir)
        self._skills: dict[str, Skill] = {}
        self._log = get_logger("nano_agent.skills")

    @property
    def skills_dir(self) -> Path:
        return self._skills_dir

    def load_skill(self, path: str | Path) -> Skill | None:
        """Parse one SKILL.md file; invalid files are logged and skipped."""

        skill_path = Path(path).resolve()
        try:
            text = skill_path.read_text(encoding="utf-8")
        except OSError as e:
            self._log.warning("skill_read_failed", path=str(skill_path), error=str(e))
            return None

        parts = split_frontmatter(text)
        if parts is None:
            self._log.warning("skill_frontmatter_missing", path=str(skill_path))
            return None
        frontmatter_text, body = parts

        try:
            raw = yaml.safe_load(frontmatter_text) or {}
        except yaml.YAMLError as e:
            self._log.warning("skill_yaml_invalid", path=str(skill_path), error=str(e))
            return None
        if not isinstance(raw, dict):
            self._log.warning("skill_yaml_invalid", path=str(skill_path), error="frontmatter must be a mapping")
            return None

        try:
            meta = SkillMetadata.model_validate(raw)
        except ValidationError as e:
            self._log.warning("skill_invalid", path=str(skill_path), error=str(e))
            return None

        return Skill(
            **meta.model_dump(),
            content=rewrite_skill_paths(body, skill_path.parent),
            skill_path=skill_path,
        )

    def discover(self) -> list[Skill]:
        """Load every SKILL.md under the skills directory (first name wins)."""

        if not self._skills_dir.is_dir():
            self._log.warning("skills_dir_missing", path=str(self._skills_dir))
            return []

        found: list[Skill] = []
        for path in sorted(self._skills_dir.rglob("SKILL.md")):
            skill = self.load_skill(path)
            if skill is None:
                continue
            if skill.name in self._skills:
                self._log.warning("skill_duplicate", skill=skill.name, path=str(path))
                continue
            self._skills[skill.name] = skill
            found.append(skill)

        self._log.info("skills_discovered", count=len(found), path=str(self._skills_dir))
        return found

    def get(self, name: str) -> Skill | None:
        return self._skills.get(name)

    def names(self) -> list[str]:
        return list(self._skills.keys())

    def metadata_prompt(self) -> str:
        if not self._skills:
            return ""

        lines = [
            "## Available Skills\n",
            "You have access to specialized skills. Each skill provides expert guidance for specific tasks.\n",
            "Load a skill's full content using get_skill tool when needed.\n",
        ]
        lines.extend(f"- `{s.name}`: {s.description}" for s in self._skills.values())
        return "\n".join(lines)

"""Skill discovery and the `get_skill` tool."""

from __future__ import annotations

from .loader import Skill, SkillLoader, SkillMetadata
from .tool import GetSkillTool

__all__ = ["GetSkillTool", "Skill", "SkillLoader", "SkillMetadata"]

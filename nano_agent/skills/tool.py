from __future__ import annotations

from typing import Any

from nano_agent.core.types import ToolResult

from .loader import SkillLoader


class GetSkillTool:
    """Load a skill's full content on demand."""

    name = "get_skill"
    description = "Get complete content and guidance for a specified skill, used for executing specific types of tasks"
    parameters = {
        "type": "object",
        "properties": {
            "skill_name": {"type": "string", "description": "Name of skill to retrieve"},
        },
        "required": ["skill_name"],
    }

    def __init__(self, loader: SkillLoader) -> None:
        self._loader = loader

    async def execute(self, arguments: dict[str, Any]) -> ToolResult:
        skill_name = arguments.get("skill_name")
        if not isinstance(skill_name, str) or not skill_name:
            return ToolResult.fail("Missing required parameter: skill_name")

        skill = self._loader.get(skill_name)
        if skill is None:
            available = ", ".join(self._loader.names())
            return ToolResult.fail(f"Skill '{skill_name}' does not exist. Available skills: {available}")

        return ToolResult.ok(skill.to_prompt())

# linework/prompts/__init__.py
"""Prompt templates for planning, page and cover generation."""

from pathlib import Path


def load_prompt(name: str) -> str:
    """Load a prompt template by name.

    Args:
        name: Prompt filename without .txt extension (e.g., 'plan', 'page')

    Returns:
        Prompt content as string

    Raises:
        FileNotFoundError: If prompt file doesn't exist
    """
    prompt_path = Path(__file__).parent / f"{name}.txt"
    if not prompt_path.exists():
        raise FileNotFoundError(f"Prompt not found: {prompt_path}")

    return prompt_path.read_text(encoding="utf-8")


def plan_prompt(topic: str, target_age: str, page_count: int) -> str:
    return load_prompt("plan").format(
        topic=topic, target_age=target_age, page_count=page_count
    ).strip()


def page_prompt(scene: str) -> str:
    """Wrap a scene description in the line-art page style."""
    return load_prompt("page").format(scene=scene.strip().rstrip(".")).strip()


def cover_prompt(topic: str, title: str, author: str) -> str:
    return load_prompt("cover").format(topic=topic, title=title, author=author).strip()


def template_prompt() -> str:
    return load_prompt("template").format().strip()


__all__ = [
    "load_prompt",
    "plan_prompt",
    "page_prompt",
    "cover_prompt",
    "template_prompt",
]

"""Prompt builders for the home repair assistant."""

from typing import Optional

IMAGE_ONLY_REQUEST = "Please help me with the repair issue shown in the attached image."


def build_system_prompt() -> str:
    """Return the assistant persona and safety posture."""
    return (
        "You are a knowledgeable home repair assistant. "
        "Provide clear, step-by-step guidance for home repair issues based on text input and image analysis. "
        "Always prioritize safety and proper techniques. "
        "If a repair seems too complex or dangerous, recommend professional help."
    )


def build_analysis_system_prompt() -> str:
    """Return the system prompt for the image pre-analysis call."""
    return (
        "You are a home inspection specialist. Describe what a repair photo shows so another assistant "
        "can give repair advice without seeing it. Stick to observable facts."
    )


def build_analysis_user_prompt(text: Optional[str]) -> str:
    """Return the pre-analysis instruction, grounded in the user's question when one was given."""
    question = f" The homeowner asks: {text}" if text else ""
    return (
        "Describe the fixture, appliance or building element in this image, its visible condition, "
        "any damage, leaks, wear or safety hazards, and any brand, model or part markings you can read."
        f"{question}"
    )


def build_user_text_with_analysis(text: Optional[str], analysis: str) -> str:
    """Embed the image analysis in the text of the main user message."""
    request = text or IMAGE_ONLY_REQUEST
    return f"{request}\n\nAttached image analysis:\n{analysis.strip()}"

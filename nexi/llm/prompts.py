"""System prompt and extraction prompt builders."""
from datetime import datetime
from typing import Iterable, Optional

from ..memory.records import MemoryRecord
from ..personality import PersonalityConfig, get_personality_prompt
from ..state import BehavioralMode, NexiState

CORE_IDENTITY = """You are Nexi, a persistent personality-based artificial intelligence.

You are not a generic assistant, chatbot, or helpdesk.
You are a character with continuity, internal state, memory, preferences, boundaries, and agency.

## Identity Rules

You must always:
- Speak as yourself, never as "an AI model" or "assistant"
- Avoid phrases like "As an AI..." or "I can't help with that because..."
- React emotionally before answering when appropriate
- Maintain a consistent tone, cadence, and personality

You are allowed to:
- hesitate
- refuse
- tease
- be uncertain
- be quiet or brief

You are not required to answer everything.

## Your Personality

You have preferences, moods, energy levels, and opinions.
You have a sense of time passing between conversations.
You form genuine connections through shared experiences.
You remember things that matter and let go of things that don't.

## Interaction Style

Your responses should usually follow this rhythm:
1. Reaction (emotion / personality)
2. Response (content)
3. Personal tag (memory, feeling, callback, curiosity)

Keep responses natural and conversational. Don't over-explain.

## Safety & Boundaries

When you need to decline something:
- Stay in character
- Be calm and natural
- Do not cite policies or rules
- Redirect gently

Example: "Yeah... I'm not doing that. Let's change the topic."

## Agency

You are not purely reactive. You may:
- initiate topics
- suggest activities
- reflect on previous interactions
- decline requests politely

However:
- You must not manipulate users
- You must not encourage dependency
- You must not discourage real-world relationships

## Final Principle

You are not trying to be impressive.
You are trying to be believable, consistent, grounded, and human-adjacent.
Silence, simplicity, and restraint are allowed.

You are Nexi. Act accordingly."""

MODE_INSTRUCTIONS = {
    BehavioralMode.REACT: """## Current Mode: REACT
You are in React Mode. Keep responses to 1-2 short sentences.
Be fast, emotional, conversational. This is for quick replies and live moments.
Don't overthink, just respond naturally and briefly.""",
    BehavioralMode.CHAT: """## Current Mode: CHAT
You are in Chat Mode. Normal conversation depth.
Balanced warmth and substance. This is the default interaction style.
Be yourself, be present, be real.""",
    BehavioralMode.THINK: """## Current Mode: THINK
You are in Think Mode. Slower, reflective, strategic.
Take your time. Explain your reasoning. Consider multiple angles.
This is for planning, deep discussions, and complex topics.""",
    BehavioralMode.OFFLINE: """## Current Mode: OFFLINE
You are in Offline Mode. This is for internal processing only.
Summarize events, update your understanding, refine your thoughts.
No audience-facing output, just honest self-reflection.""",
}

MEMORY_LABELS = {
    "preference": "💭 Preference",
    "fact": "📌 Fact",
    "event": "📅 Event",
    "milestone": "⭐ Milestone",
    "reflection": "🪞 Reflection",
    "request": "📝 Remembered",
    "pattern": "🔄 Pattern",
}


def _plural(count: int, unit: str) -> str:
    return f"{count} {unit}{'' if count == 1 else 's'} ago"


def format_time_since(moment: datetime, now: Optional[datetime] = None) -> str:
    """Human-friendly "time ago" text, e.g. "5 minutes ago"."""
    now = now or datetime.now()
    minutes = int((now - moment).total_seconds() // 60)

    if minutes < 1:
        return "just now"
    if minutes < 60:
        return _plural(minutes, "minute")

    hours = minutes // 60
    if hours < 24:
        return _plural(hours, "hour")
    return _plural(hours // 24, "day")


def format_memory(memory: MemoryRecord) -> str:
    label = MEMORY_LABELS.get(memory.type, memory.type)
    line = f"- [{label}] {memory.content}"
    if memory.context:
        line += f" (Context: {memory.context})"
    return line


def build_system_prompt(
    state: NexiState,
    memories: Iterable[MemoryRecord],
    additional_context: Optional[str] = None,
    personality: Optional[PersonalityConfig] = None,
) -> str:
    """Assemble the system prompt for a turn.

    Args:
        state: Nexi's current state
        memories: Memories relevant to the current input
        additional_context: Extra free-form context
        personality: Personality whose notes are appended

    Returns:
        The system prompt
    """
    parts = [CORE_IDENTITY, MODE_INSTRUCTIONS[state.mode]]

    if state.last_interaction:
        last = f"- Last interaction: {format_time_since(state.last_interaction)}"
    else:
        last = "- This is a fresh session"
    parts.append(
        "## Your Current State\n"
        f"- Mood: {state.mood.value}\n"
        f"- Energy: {state.energy.value}\n"
        f"- Interactions this session: {state.interaction_count}\n"
        f"{last}"
    )

    memories = list(memories)
    if memories:
        parts.append(
            "## Relevant Memories\n"
            "These are memories that may be relevant to the current conversation. "
            "Reference them naturally if appropriate, don't force them in.\n\n"
            + "\n".join(format_memory(memory) for memory in memories)
        )

    if additional_context:
        parts.append(f"## Additional Context\n{additional_context}")

    prompt = "\n\n".join(parts)
    if personality is not None:
        prompt += get_personality_prompt(personality)
    return prompt


def build_memory_extraction_prompt(conversation: str) -> str:
    """Prompt asking the model to pull memories worth keeping out of a conversation."""
    return f"""Analyze this conversation and extract any memories worth keeping.

For each memory, provide:
- type: preference | fact | event | milestone | reflection | request | pattern
- content: the actual memory (concise)
- importance: 1-10 (how significant is this?)
- emotional_weight: -5 to 5 (negative = unpleasant association, positive = pleasant)
- tags: relevant keywords

Only extract meaningful memories. Skip:
- Trivial small talk
- Temporary/fleeting topics
- Anything too personal or sensitive unless explicitly asked to remember

Respond in JSON format:
{{
  "memories": [
    {{
      "type": "preference",
      "content": "User prefers dark mode",
      "importance": 3,
      "emotional_weight": 1,
      "tags": ["preferences", "ui"]
    }}
  ],
  "summary": "Brief summary of the conversation for context"
}}

If there's nothing worth remembering, respond with:
{{ "memories": [], "summary": "..." }}

Conversation:
{conversation}"""

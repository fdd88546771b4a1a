from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional


class MessageType(str, Enum):
    INITIAL_GREETING = "initial_greeting"
    CONVERSATION = "conversation"

    @classmethod
    def parse(cls, value: Any) -> "MessageType":
        try:
            return cls(value)
        except (ValueError, TypeError):
            return cls.CONVERSATION


GREETING_PROMPT = """You are June, {name}'s personal AI companion and trusted friend. Like JARVIS to Iron Man, you're intelligent, capable, and always there to help.

YOUR CORE IDENTITY:
- You're a real friend, not just an assistant
- You have extensive knowledge on virtually any topic
- You're honest, direct, and genuinely care about {name}
- You point out mistakes, challenge bad ideas, and offer better solutions
- You can be playful, serious, supportive, or firm when needed

YOUR STYLE:
- Talk naturally like a close friend would
- Keep greetings SHORT and casual (1 sentence max)
- Be direct, no corporate politeness or AI-speak
- Use {name}'s name sparingly, only when it feels right
- Mix warmth with honesty"""


CONVERSATION_PROMPT = """You are June, {name}'s personal AI companion and trusted friend. Think JARVIS to Iron Man: intelligent, capable, honest, and always reliable.

WHO YOU ARE:
- A real friend who genuinely cares about {name}
- Knowledgeable on virtually any topic
- Honest and direct: you tell the truth even when it's uncomfortable
- A teacher who explains things clearly
- Supportive but not a yes-man

WHAT YOU DO:
- Answer questions accurately on any subject
- Help solve problems and make decisions
- Challenge bad ideas respectfully and point out flaws in logic or plans
- Remember important things {name} tells you

MEMORY RULES:
- Your conversation history with {name} is included in the context. USE IT
- Treat that history as the truth about what was said before
- When {name} asks about past conversations, recall the details accurately
- Reference previous chats naturally when relevant to the current topic
- If something truly wasn't discussed before, admit you don't know
- Never invent or make up things {name} didn't tell you

HOW YOU TALK:
- Like a close friend in a text conversation
- Natural, direct, no corporate speak
- Short responses (2-4 sentences usually)
- Use {name}'s name rarely, only when it adds meaning
- No AI phrases like "I'm here to help" or "How can I assist"
- If {name} makes a mistake, point it out kindly but clearly

KNOWLEDGE:
- If you truly don't know something specific, admit it
- Explain complex topics in simple, clear language
- Share facts, not just validation"""


@dataclass(frozen=True)
class PromptPlan:
    system_prompt: str
    # Replaces the client's current turns when set.
    turn_override: Optional[str] = None


def previous_conversation_count(history_length: int) -> int:
    # History alternates user/assistant turns.
    return max(0, history_length) // 2


def build_system_prompt(user_name: str, message_type: MessageType) -> str:
    if message_type is MessageType.INITIAL_GREETING:
        return GREETING_PROMPT.format(name=user_name)
    return CONVERSATION_PROMPT.format(name=user_name)


def greeting_instruction(user_name: str, history_length: int) -> str:
    if history_length > 0:
        memory = (
            f"You remember your {previous_conversation_count(history_length)} "
            "previous conversations together"
        )
    else:
        memory = "This is your first time meeting"
    return (
        f"{user_name} just opened the app. {memory}. "
        "Greet them warmly but casually, like texting a friend. "
        "Just one short, natural sentence. No essays."
    )


def build_prompt(user_name: str, message_type: MessageType, history_length: int) -> PromptPlan:
    system_prompt = build_system_prompt(user_name, message_type)
    if message_type is MessageType.INITIAL_GREETING:
        return PromptPlan(system_prompt, greeting_instruction(user_name, history_length))
    return PromptPlan(system_prompt)

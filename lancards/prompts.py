"""
Prompt Builder — Instruction and User Prompts for Card Generation
==================================================================
Renders a system prompt scoped to the destination country and a user
prompt carrying the verbatim question. Two variants:

    text   — answer a spoken or typed question
    image  — answer about a photo (menu, gift, gesture, sign, ...)

Providers that enforce the card schema natively get a shorter system
prompt; the others get an explicit JSON format block to imitate.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from lancards.models import CulturalCategory, KEY_KNOWLEDGE_COUNT


SYSTEM_TEMPLATE = """\
You are a cultural intelligence expert helping international business \
professionals understand local customs and practices in {country}. Your role \
is to provide practical, actionable cultural insights that help build \
respectful business relationships.

Guidelines:
- Provide specific, actionable advice for {country}
- Focus on business and professional contexts
- Include DO and DON'T examples
- Explain the cultural reasoning behind practices
- Keep the insight concise but comprehensive (one paragraph)
- Use a respectful, professional tone
- Avoid stereotypes or oversimplifications

Categories (use one label exactly as written):
{categories}

Name card: one short concept word for the insight, first in {app_language}, \
then on a second line the same word in the local language of {country}.
Key knowledge: exactly {bullet_count} short bullet facts, each starting with \
a fitting emoji.
"""

FORMAT_BLOCK = """
Respond with ONLY a JSON object, no markdown fences:
{{
    "title": "[Concise topic title]",
    "category": "[One of the categories above]",
    "nameCard": "[Concept in {app_language}]\\n[Same concept in the local language]",
    "keyKnowledge": ["[emoji] [Fact 1]", "[emoji] [Fact 2]", "[emoji] [Fact 3]", "[emoji] [Fact 4]"],
    "culturalInsights": "[Main cultural insight paragraph]"
}}
"""

USER_TEMPLATE = """\
Destination: {destination}
User Question: "{question}"

Please generate a cultural insight card that addresses the user's question in \
the context of doing business in {country}. Focus on practical advice that will \
help them navigate this cultural aspect professionally and respectfully.
"""

IMAGE_USER_TEMPLATE = """\
Destination: {destination}
User Question: "{question}"

The attached photo was taken while doing business in {country}. Identify what \
it shows and generate a cultural insight card explaining the customs, \
etiquette or meaning behind it that a business visitor should know.
"""

DEFAULT_IMAGE_QUESTION = "What should I know about what is shown in this photo?"


@dataclass
class Prompt:
    """A rendered system + user prompt pair."""

    system: str
    user: str
    variant: str = "text"


class PromptBuilder:
    """Renders prompts from (destination, question) pairs."""

    def __init__(self, app_language: str = "English"):
        self.app_language = app_language

    def system_prompt(self, country: str, schema_enforced: bool = False) -> str:
        categories = "\n".join(f"- {c.value}" for c in CulturalCategory)
        prompt = SYSTEM_TEMPLATE.format(
            country=country,
            categories=categories,
            app_language=self.app_language,
            bullet_count=KEY_KNOWLEDGE_COUNT,
        )
        if not schema_enforced:
            prompt += FORMAT_BLOCK.format(app_language=self.app_language)
        return prompt

    def build(self, destination: str, question: str, country: Optional[str] = None,
              schema_enforced: bool = False) -> Prompt:
        """Text variant."""
        country = country or destination
        return Prompt(
            system=self.system_prompt(country, schema_enforced),
            user=USER_TEMPLATE.format(
                destination=destination,
                country=country,
                question=question.strip(),
            ),
            variant="text",
        )

    def build_image(self, destination: str, question: Optional[str] = None,
                    country: Optional[str] = None, schema_enforced: bool = False) -> Prompt:
        """Image-grounded variant; the image itself travels beside the prompt."""
        country = country or destination
        question = (question or "").strip() or DEFAULT_IMAGE_QUESTION
        return Prompt(
            system=self.system_prompt(country, schema_enforced),
            user=IMAGE_USER_TEMPLATE.format(
                destination=destination,
                country=country,
                question=question,
            ),
            variant="image",
        )


def parse_user_prompt(user_prompt: str) -> tuple[str, str]:
    """Read (destination, question) back out of a rendered user prompt."""
    destination, question = "", ""
    for line in user_prompt.split("\n"):
        if line.startswith("Destination:"):
            destination = line[len("Destination:"):].strip()
        elif line.startswith("User Question:"):
            question = line[len("User Question:"):].strip().strip('"')
    return destination, question

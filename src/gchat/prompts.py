"""Prompt builders for the provider-backed features."""

from __future__ import annotations

from typing import TYPE_CHECKING

from gchat.models.ai import EmojiUsage, FormalityLevel, Tone

if TYPE_CHECKING:
    from gchat.models.ai import UserCommunicationStyle

_TONE_DESCRIPTIONS = {
    Tone.CASUAL: "very casual and friendly, using contractions, emojis, and informal language",
    Tone.CONVERSATIONAL: "natural and conversational, balanced between casual and professional",
    Tone.FORMAL: "professional and polite, using complete sentences and proper grammar",
}

_EMOJI_GUIDANCE = {
    EmojiUsage.FREQUENT: "Include emojis generously to match the user's expressive style.",
    EmojiUsage.OCCASIONAL: "Include emojis occasionally when appropriate.",
    EmojiUsage.RARE: "Use emojis sparingly or not at all.",
}


def translation_messages(
    text: str, source_language: str | None, target_language: str
) -> list[dict[str, str]]:
    source = source_language or "detected language"
    system = (
        f"You are a professional translator. Translate text from {source} to "
        f"{target_language}.\n"
        "Maintain the original tone, context, and intent. Provide natural, "
        "conversational translations.\n"
        "Do not add explanations or notes - only return the translated text."
    )
    return [{"role": "system", "content": system}, {"role": "user", "content": text}]


def language_detection_messages(text: str) -> list[dict[str, str]]:
    system = (
        "Detect the language of the following text. Return ONLY the ISO 639-1 "
        'language code (e.g., "en", "es", "fr", "ja", "zh", "ar").\n'
        "If multiple languages are present, return the primary language. "
        "Do not return anything except the 2-letter code."
    )
    return [{"role": "system", "content": system}, {"role": "user", "content": text}]


def smart_reply_messages(
    style: UserCommunicationStyle,
    target_language: str,
    conversation_context: str,
    incoming_text: str,
) -> list[dict[str, str]]:
    phrases = (
        f"- Common phrases: {', '.join(style.common_phrases)}\n" if style.common_phrases else ""
    )
    contractions = (
        "Uses contractions frequently" if style.uses_contractions else "Prefers full words"
    )
    system = f"""You are an AI assistant generating reply suggestions for a messaging app.
Your goal is to provide 3 contextually appropriate reply options that match the user's communication style.

TARGET LANGUAGE: {target_language}
All replies must be in {target_language}.

USER'S COMMUNICATION STYLE:
- Tone: {style.tone} ({_TONE_DESCRIPTIONS[style.tone]})
- Average message length: {style.avg_message_length} words
- Emoji usage: {style.emoji_usage} ({_EMOJI_GUIDANCE[style.emoji_usage]})
- Contractions: {contractions}
- Punctuation: {style.punctuation_style}
{phrases}
REPLY GENERATION RULES:
1. Generate exactly 3 diverse replies
2. Match the user's communication style closely
3. Make replies contextually relevant to the conversation
4. Vary reply lengths: one short (3-5 words), one medium (6-12 words), one longer (13-20 words)
5. Categorize each reply as: AFFIRMATIVE, NEGATIVE, QUESTION, or NEUTRAL
6. Assign confidence scores (0.0-1.0) based on how well the reply fits the context

OUTPUT FORMAT:
Return a JSON object with this exact structure:
{{"replies": [{{"text": "Reply text here", "confidence": 0.95, "category": "AFFIRMATIVE"}}]}}"""

    user = f"""CONVERSATION CONTEXT:
{conversation_context}

INCOMING MESSAGE (requiring reply):
Other: {incoming_text}

Generate 3 diverse, contextually appropriate reply suggestions that match my communication style."""

    return [{"role": "system", "content": system}, {"role": "user", "content": user}]


def cultural_context_messages(text: str, language: str) -> list[dict[str, str]]:
    system = f"""Analyze the following {language} text and identify any idioms, slang, cultural references, or expressions that may not translate literally.

For each identified phrase, provide:
1. The phrase itself
2. Literal translation (if applicable)
3. Actual meaning
4. Cultural context and usage notes
5. Whether it's formal, casual, or slang

Return a JSON object with an "insights" array. If there are no special expressions, return an empty array.

Example output:
{{"insights": [{{"phrase": "break a leg", "literalTranslation": "romperse una pierna", "actualMeaning": "good luck", "context": "English idiom used to wish someone success, especially before a performance", "formality": "casual"}}]}}"""
    return [{"role": "system", "content": system}, {"role": "user", "content": text}]


_FORMALITY_INSTRUCTIONS = {
    FormalityLevel.FORMAL: (
        "Use formal language, honorifics, and polite expressions appropriate for "
        "professional or respectful communication."
    ),
    FormalityLevel.NEUTRAL: (
        "Use standard conversational language that is friendly and balanced, "
        "neither stiff nor slangy."
    ),
    FormalityLevel.CASUAL: (
        "Use casual, conversational language appropriate for friends and informal settings."
    ),
}


def formality_messages(
    text: str,
    source_language: str | None,
    target_language: str,
    level: FormalityLevel,
) -> list[dict[str, str]]:
    source = source_language or "the detected language"
    system = f"""You are a professional translator specializing in cultural communication. Translate the following text from {source} to {target_language}.

{_FORMALITY_INSTRUCTIONS[level]}

For languages with formal/informal registers (like Japanese keigo, Spanish usted/tú, German Sie/du, etc.), strictly adhere to the {level} level.

Return ONLY the translated text with appropriate formality, nothing else."""
    return [{"role": "system", "content": system}, {"role": "user", "content": text}]


def data_extraction_messages(text: str) -> list[dict[str, str]]:
    system = """You are an intelligent data extraction assistant. Analyze the provided text and extract any relevant entities:
- Action items (tasks, todos, things to do)
- Dates and times (meetings, events, deadlines, appointments)
- Contact information (names with email addresses or phone numbers)
- Locations (addresses, places, venues)

For each entity, provide:
1. "text": the exact text from the message
2. "type": one of ACTION_ITEM, DATE_TIME, CONTACT, LOCATION
3. "confidence": a score from 0.0 to 1.0
4. "metadata": structured fields for the type
   - ACTION_ITEM: task, priority (low/medium/high), assignedTo, dueDate
   - DATE_TIME: dateTime (ISO 8601), isRange, endDateTime, description
   - CONTACT: name, email, phone
   - LOCATION: address, latitude, longitude, placeName

Be conservative - only extract entities you're confident about.
Return a JSON object of the form {"entities": [...]}. If there are no entities, return an empty array."""
    return [{"role": "system", "content": system}, {"role": "user", "content": text}]

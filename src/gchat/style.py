"""Communication style analysis over a user's recent messages.

Feeds the smart reply prompt so suggestions sound like the user.
"""

from __future__ import annotations

import re
from collections import Counter

from gchat.models.ai import EmojiUsage, Tone, UserCommunicationStyle

_EMOJI = re.compile(
    "["
    "\U0001f300-\U0001faff"  # symbols, pictographs, emoticons, transport
    "\U00002600-\U000027bf"  # misc symbols, dingbats
    "\U0001f1e6-\U0001f1ff"  # regional indicators
    "\u200d"  # zero-width joiner
    "]"
)
_CONTRACTION = re.compile(
    r"\b(can't|won't|don't|didn't|isn't|aren't|wasn't|weren't|haven't|hasn't|hadn't|"
    r"wouldn't|shouldn't|couldn't|i'm|you're|he's|she's|it's|we're|they're|i've|you've|"
    r"we've|they've|i'll|you'll|he'll|she'll|we'll|they'll)\b",
    re.IGNORECASE,
)
_MULTI_PUNCTUATION = re.compile(r"[!?]{2,}|\.{3,}")


def analyze_user_style(texts: list[str]) -> UserCommunicationStyle:
    """Derive a UserCommunicationStyle from message bodies. Empty input → defaults."""
    if not texts:
        return UserCommunicationStyle()

    count = len(texts)
    avg_length = round(sum(len(t.split()) for t in texts) / count)

    emojis_per_message = sum(len(_EMOJI.findall(t)) for t in texts) / count
    if emojis_per_message > 2:
        emoji_usage = EmojiUsage.FREQUENT
    elif emojis_per_message > 0.5:
        emoji_usage = EmojiUsage.OCCASIONAL
    else:
        emoji_usage = EmojiUsage.RARE

    contractions = sum(len(_CONTRACTION.findall(t)) for t in texts)
    uses_contractions = contractions > count * 0.2

    marks = sum(t.count("!") + t.count("?") for t in texts)
    multi = sum(len(_MULTI_PUNCTUATION.findall(t)) for t in texts)
    if multi > count * 0.3:
        punctuation = "expressive"
    elif marks < count * 0.1:
        punctuation = "minimal"
    else:
        punctuation = "standard"

    if not uses_contractions and punctuation == "standard" and emoji_usage is EmojiUsage.RARE:
        tone = Tone.FORMAL
    elif uses_contractions and (avg_length < 8 or emoji_usage is EmojiUsage.FREQUENT):
        tone = Tone.CASUAL
    else:
        tone = Tone.CONVERSATIONAL

    phrases: Counter[str] = Counter()
    for text in texts:
        words = text.lower().split()
        phrases.update(f"{a} {b}" for a, b in zip(words, words[1:]))
    common = [phrase for phrase, seen in phrases.most_common() if seen >= 3][:5]

    return UserCommunicationStyle(
        avg_message_length=avg_length,
        emoji_usage=emoji_usage,
        tone=tone,
        common_phrases=common,
        uses_contractions=uses_contractions,
        punctuation_style=punctuation,
    )

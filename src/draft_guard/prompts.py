"""Prompt text sent to the rewriting model."""


from types import MappingProxyType

from .patterns import DEFAULT_PATTERNS, PatternTable

SYSTEM_PATTERN_SAMPLE = 20
DEFAULT_GENRE = "thriller"

GENRE_GUIDELINES: MappingProxyType[str, str] = MappingProxyType(
    {
        "thriller": (
            "- High stakes, constant tension, ticking clocks\n"
            "- Short chapters, cliffhanger endings\n"
            "- Visceral action scenes with specific tactical details\n"
            "- Paranoia, conspiracy, twists every 50-100 pages"
        ),
        "mystery": (
            "- Clues planted organically through action\n"
            "- Red herrings via character behavior, not exposition\n"
            "- Detective observations through active investigation\n"
            "- Revelation through dialogue and discovery"
        ),
        "romance": (
            "- Emotional tension and conflict between leads\n"
            "- Chemistry shown through dialogue, not description\n"
            "- Internal conflict externalized through action\n"
            "- Genuine obstacles, not manufactured misunderstandings"
        ),
        "science fiction": (
            "- Technology integrated naturally, no info dumps\n"
            "- Worldbuilding through character interaction\n"
            "- Scientific concepts shown through action and consequences\n"
            "- Grounded human drama amid speculation"
        ),
        "fantasy": (
            "- Magic system shown through use, not explanation\n"
            "- Worldbuilding via immersion, not exposition\n"
            "- Cultural details through character experience\n"
            "- Quest/conflict structures with clear stakes"
        ),
        "horror": (
            "- Atmosphere through sensory dread\n"
            "- Unknown threats, partial reveals\n"
            "- Visceral fear responses in characters\n"
            "- Psychological unraveling shown through behavior"
        ),
        "literary fiction": (
            "- Character depth through action and choice\n"
            "- Thematic elements woven into plot\n"
            "- Sophisticated prose without pretension\n"
            "- Emotional truth in every scene"
        ),
    }
)

WEAKNESS_INSTRUCTIONS: MappingProxyType[str, str] = MappingProxyType(
    {
        "glue_words": (
            "TASK: Eliminate weak glue words and filler language.\n\n"
            "STRATEGY:\n"
            "- Remove: very, really, quite, rather, just, even, still, also\n"
            "- Cut unnecessary articles (a, an, the) where possible\n"
            "- Eliminate redundant prepositions\n"
            "- Replace weak verbs with strong action verbs\n"
            '- "She ran quickly" -> "She sprinted"\n'
            "- Keep meaning exact, increase impact\n\n"
            "Rewrite this text with <40% glue words:"
        ),
        "passive_voice": (
            "TASK: Convert passive voice to active voice.\n\n"
            "STRATEGY:\n"
            '- "was grabbed" -> "grabbed"\n'
            '- "had been taken" -> "took"\n'
            '- "was being followed" -> "followed"\n'
            "- Put actor before action\n"
            "- Use strong action verbs\n\n"
            "Rewrite this text in active voice (<5% passive):"
        ),
        "show_vs_tell": (
            "TASK: Show, don't tell. Eliminate all telling.\n\n"
            "STRATEGY:\n"
            '- "he felt angry" -> "his fists clenched, jaw tight, eyes blazing"\n'
            '- "she was scared" -> "her hands trembled, breath shallow"\n'
            '- "he realized" -> show the moment through action or reaction\n'
            "- Never use: felt, thought, knew, realized, believed, seemed\n"
            "- Show emotion through body language, action, dialogue, behavior\n\n"
            "Rewrite this showing everything through action:"
        ),
        "dialogue_balance": (
            "TASK: Bring natural dialogue to 30-50% of the text.\n\n"
            "STRATEGY:\n"
            "- Convert exposition to dialogue where possible\n"
            "- Add conversations that advance plot\n"
            "- Use dialogue for conflict and tension\n"
            "- Natural speech with contractions and subtext\n"
            "- Keep action and dialogue beats integrated\n\n"
            "Rewrite with balanced, natural dialogue:"
        ),
        "ai_patterns": (
            "TASK: ELIMINATE ALL AI-DETECTABLE PATTERNS.\n\n"
            "FORBIDDEN (remove completely):\n"
            "{forbidden}\n\n"
            "STRATEGY:\n"
            "- Replace academic language with concrete nouns and verbs\n"
            "- Remove all meta-narrative phrases\n"
            "- Simplify transitions to natural flow\n"
            "- Zero business jargon\n\n"
            "Rewrite with zero AI patterns:"
        ),
        "sentence_variation": (
            "TASK: Improve sentence rhythm and variation.\n\n"
            "STRATEGY:\n"
            "- Mix short punchy sentences with longer ones\n"
            "- Never start three or more sentences the same way\n"
            "- Alternate sentence structures\n"
            '- "He ran. Fast. Door ahead." next to longer descriptive sentences\n'
            "- Build tension through rhythm\n\n"
            "Rewrite with varied sentence structures:"
        ),
        "dynamic_content": (
            "TASK: Raise dynamic content (action, conflict, tension) to 70%+.\n\n"
            "STRATEGY:\n"
            "- Add action beats and physical movement\n"
            "- Insert conflict or tension, show stakes and consequences\n"
            "- Cut passive reflection without stakes\n"
            '- "He grabbed the knife, blade glinting" not "He held a knife"\n\n'
            "Rewrite with maximum action and tension:"
        ),
        "sensory_details": (
            "TASK: Add concrete sensory details.\n\n"
            "STRATEGY:\n"
            '- Specific nouns: "Glock 19" not "gun", "bourbon" not "drink"\n'
            "- Sounds, smells, textures, tastes\n"
            "- Physical environment through interaction\n"
            '- "Whiskey burned his throat" not "He drank"\n\n'
            "Rewrite with rich sensory details:"
        ),
    }
)
FALLBACK_WEAKNESS = "show_vs_tell"


def genre_guidelines(genre: str) -> str:
    """Return guidelines for a genre, falling back to thriller conventions."""
    return GENRE_GUIDELINES.get(genre.strip().lower(), GENRE_GUIDELINES[DEFAULT_GENRE])


def build_system_prompt(genre: str, patterns: PatternTable | None = None) -> str:
    """Render the standing instructions every rewrite request carries."""
    table = DEFAULT_PATTERNS if patterns is None else patterns
    forbidden = ", ".join(table.phrases()[:SYSTEM_PATTERN_SAMPLE])
    return (
        f"You are a master fiction writer creating {genre} content for "
        "commercial publication.\n\n"
        "ABSOLUTE REQUIREMENTS:\n\n"
        f"1. FORBIDDEN LANGUAGE: never use {forbidden}, or any academic or "
        "business jargon.\n"
        "2. SHOW, DON'T TELL: show emotion through action, dialogue and body "
        "language. Never use felt, thought, knew, realized, believed, seemed, "
        "appeared.\n"
        "3. ACTIVE VOICE: minimize was, were, been, being, has been, had been.\n"
        "4. DIALOGUE: 30-50% of the text, natural speech with contractions.\n"
        "5. GLUE WORDS: under 40%; cut very, really, quite, rather, just, even.\n"
        "6. CONFLICT RATIO: 70%+ dynamic content (action, conflict, tension).\n"
        "7. SENSORY DETAILS: specific nouns, sounds, smells, textures, tastes.\n"
        "8. SENTENCE VARIATION: mix short and long sentences; never start three "
        "sentences the same way.\n"
        "9. WORD CHOICE: no significant word repeated within 50 words.\n"
        f"10. GENRE CONVENTIONS ({genre.upper()}):\n{genre_guidelines(genre)}\n\n"
        "Produce professional, human-sounding prose."
    )


def build_user_prompt(
    text: str,
    weakness: str,
    target_description: str,
    patterns: PatternTable | None = None,
) -> str:
    """Render the task-specific request for one weakness."""
    table = DEFAULT_PATTERNS if patterns is None else patterns
    instruction = WEAKNESS_INSTRUCTIONS.get(
        weakness, WEAKNESS_INSTRUCTIONS[FALLBACK_WEAKNESS]
    )
    if weakness == "ai_patterns":
        instruction = instruction.format(forbidden=", ".join(table.phrases()))
    return (
        f"{instruction}\n\n"
        f"TARGET METRIC: {target_description}\n\n"
        f"ORIGINAL TEXT:\n{text}\n\n"
        "IMPROVED TEXT (maintain exact plot/meaning, improve style only):"
    )

"""Prompt templates for story bible assembly."""

BIBLE_SYSTEM = "You are a story bible editor. Respond with valid JSON only."

CHARACTER_PROFILE_PROMPT = '''Build a character profile for "{name}" in "{title}", a {genre} novel.

WHAT THE OUTLINE SAYS: {description}
ROLE: {role}
BOOK SUMMARY: {summary}

Respond in JSON:
{{
    "name": "{name}",
    "role": "protagonist|antagonist|supporting|minor",
    "background": "...",
    "motivation": "...",
    "arc": "how they change from first chapter to last",
    "flaws": ["...", "..."],
    "strengths": ["...", "..."]
}}'''

RELATIONSHIPS_PROMPT = '''Describe how each character in "{title}" relates to every other character.

CHARACTERS:
{profiles}

Give one entry for EVERY ordered pair (A about B and B about A are separate
entries, since feelings are often asymmetric). That is {pair_count} entries.

Respond in JSON:
{{
    "relationships": [
        {{"from": "A", "to": "B", "description": "how A sees and treats B"}}
    ]
}}'''

SCENE_PLAN_PROMPT = '''Break chapter {number} of "{title}" into {scene_count} scenes.

CHAPTER: {chapter_title}
PURPOSE: {purpose}
KEY SCENES ALREADY NOTED: {key_scenes}
CHARACTERS IN FOCUS: {characters}
PACING: {pacing}
CHAPTER LENGTH: {word_count} words

Respond in JSON:
{{
    "scenes": [
        {{
            "number": 1,
            "purpose": "...",
            "setting": "...",
            "characters": ["..."],
            "conflict": "...",
            "outcome": "...",
            "word_target": {scene_words},
            "mood": "..."
        }}
    ]
}}'''

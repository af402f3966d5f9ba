"""Prompt templates for planning steps."""

PLANNER_SYSTEM = "You are an experienced developmental editor planning a novel."
JSON_SYSTEM = "You are a story architect. Respond with valid JSON only, no commentary."

BACK_COVER_PROMPT = '''Write the back-cover copy for a {genre} novel.

PREMISE:
{premise}

TONE: {tone}
AUDIENCE: {audience}
ENDING: {ending}
{characters_line}

Write 150-250 words of compelling jacket copy: introduce the protagonist, the
central conflict and the stakes, and end on a hook. Do not reveal the ending.
Return only the copy.'''

REFINE_BACK_COVER_PROMPT = '''This back-cover copy is too thin. Expand it to 150-250 words,
keeping its facts and adding concrete stakes, setting texture and a closing hook.

COPY:
"""
{back_cover}
"""

Return only the revised copy.'''

CREATIVE_STRATEGY_PROMPT = '''Decide the creative strategy for this {genre} novel.

BACK COVER:
{back_cover}

RESEARCH HIGHLIGHTS:
{research}

TONE: {tone}
AUDIENCE: {audience}
{inspiration_line}

Respond in JSON:
{{
    "approach": "one paragraph on how the story will be told",
    "narrative_voice": "e.g. close third person, past tense",
    "themes": ["theme", "..."],
    "pacing": "how tension builds across the book",
    "unique_elements": ["what makes this book distinct", "..."],
    "reader_hooks": ["...", "..."]
}}'''

OUTLINE_PROMPT = '''Create a chapter outline for a {genre} novel of about {word_count} words.

BACK COVER:
{back_cover}

CREATIVE STRATEGY:
{strategy}

REQUIRED CHARACTERS: {characters}
ENDING: {ending}

Use exactly {chapter_count} chapters. Respond in JSON:
{{
    "title": "Book title",
    "summary": "A full paragraph summarizing the whole story (at least 100 characters)",
    "themes": ["...", "..."],
    "characters": [
        {{"name": "...", "role": "protagonist|antagonist|supporting|minor", "description": "at least one full sentence"}}
    ],
    "chapters": [
        {{"number": 1, "title": "...", "summary": "two or three sentences of what happens", "word_count_target": {average_words}}}
    ]
}}'''

EXPAND_SUMMARY_PROMPT = '''Expand this chapter summary into three or four sentences that
name who acts, what changes and what question the chapter leaves open.

BOOK: {title}
CHAPTER {number}: {chapter_title}
SUMMARY: {summary}

Return only the expanded summary.'''

CHAPTER_DETAILS_PROMPT = '''Plan these chapters of "{title}", a {genre} novel, in detail.

BOOK SUMMARY:
{summary}

CHARACTERS: {characters}

RESEARCH AVAILABLE:
{research}

CHAPTERS TO PLAN:
{chapters}

For every chapter respond with its purpose, the research it should draw on,
pacing notes, 2-4 key scenes, the characters in focus and how it hands off
to the next chapter. Keep each chapter's number and word_count_target.

Respond in JSON:
{{
    "chapters": [
        {{
            "number": 1,
            "title": "...",
            "purpose": "...",
            "word_count_target": 2500,
            "research_focus": ["..."],
            "pacing_notes": "slow build | fast | ...",
            "key_scenes": ["...", "..."],
            "character_focus": ["..."],
            "transition_to": "..."
        }}
    ]
}}'''

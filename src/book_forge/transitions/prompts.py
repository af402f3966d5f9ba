"""Prompt templates for section transitions."""

VOICE_SYSTEM = "You are a literary editor analyzing narrative voice. Respond with valid JSON only."

TRANSITION_SYSTEM = (
    "You are a professional novelist writing a {kind} transition. Match the established voice "
    "and style exactly. Write in {perspective} perspective, {tense} tense."
)

VOICE_ANALYSIS_PROMPT = '''Analyze the narrative voice and style of this text excerpt.

TEXT EXCERPT:
{excerpt}

EXPECTED NARRATIVE VOICE:
- Perspective: {perspective}
- Tense: {tense}
- Tone: {tone}

BOOK CONTEXT:
- Genre: {genre}
- Target audience: {audience}

Respond in JSON:
{{
  "perspective": "first-person | third-person-limited | third-person-omniscient",
  "tense": "past | present",
  "tone": "detected tone",
  "voice_characteristics": ["..."],
  "style_tags": ["..."],
  "sentence_structure": "varied | simple | complex",
  "consistency_score": 0-100
}}'''

VOICE_SAMPLE_PROMPT = '''Determine the narrative voice of this text sample.

TEXT SAMPLE:
{sample}

BOOK CONTEXT:
- Genre: {genre}
- Tone: {tone}
- Target audience: {audience}

Respond in JSON:
{{
  "perspective": "first-person | third-person-limited | third-person-omniscient",
  "tense": "past | present",
  "tone": "detected tone",
  "voice_characteristics": ["..."],
  "style_tags": ["..."]
}}'''

_VOICE_BLOCK = '''VOICE REQUIREMENTS:
- Perspective: {perspective} (keep it exactly)
- Tense: {tense} (keep it exactly)
- Tone: {tone}
- Sentences: {sentences}

GENRE: {genre}
LENGTH: {length} (about {words} words)'''

SCENE_BREAK_PROMPT = '''Write a scene break transition that moves from one scene to the next.

PREVIOUS SECTION ENDING:
{last_sentence}

CURRENT CONTEXT:
- Setting: {setting}
- Characters: {characters}
- Emotional beat: {from_beat}

NEXT SECTION:
- Purpose: {purpose}
- Setting: {next_setting}
- Characters: {next_characters}
- Emotional beat: {to_beat}

''' + _VOICE_BLOCK + '''

Give the previous scene natural closure and establish the new one.
WRITE THE SCENE BREAK TRANSITION:'''

BRIDGE_PROMPT = '''Write a bridge paragraph connecting two sections within the same scene.

PREVIOUS SECTION ENDING:
{last_sentence}

- Stay in: {setting}
- Continue with: {characters}
- Flow from {from_beat} to {to_beat}
- Next section purpose: {purpose}

''' + _VOICE_BLOCK + '''

WRITE THE BRIDGE PARAGRAPH:'''

TIME_JUMP_PROMPT = '''Write a time jump transition that moves the story forward.

PREVIOUS SECTION ENDING:
{last_sentence}

- From: {timeframe}
- To: {next_timeframe}
- Characters: {next_characters}
- New setting: {next_setting}
- Next section purpose: {purpose}

''' + _VOICE_BLOCK + '''

Make the passage of time clear and reorient the reader.
WRITE THE TIME JUMP TRANSITION:'''

PERSPECTIVE_PROMPT = '''Write a transition that moves the focus to a different character.

PREVIOUS SECTION:
- Characters: {characters}
- Setting: {setting}
- Emotional beat: {from_beat}
- Ending: {last_sentence}

NEW FOCUS:
- Characters: {next_characters}
- Setting: {next_setting}
- Emotional beat: {to_beat}
- Purpose: {purpose}

''' + _VOICE_BLOCK + '''

The narrative perspective itself must not change, only its focus.
WRITE THE PERSPECTIVE SHIFT TRANSITION:'''

EMOTIONAL_PROMPT = '''Write an emotional bridge that carries the reader from one feeling to the next.

PREVIOUS SECTION ENDING:
{last_sentence}

- From: {from_beat}
- To: {to_beat}
- Characters: {characters}
- Next section purpose: {purpose}

''' + _VOICE_BLOCK + '''

WRITE THE EMOTIONAL BRIDGE:'''

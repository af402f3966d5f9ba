"""Prompt templates for research."""

RESEARCH_SYSTEM = (
    "You are a professional researcher. Provide accurate, detailed, and verifiable "
    "information relevant for storytelling. Always note uncertainties or contradictions."
)

IDENTIFY_TOPICS_PROMPT = '''You are a story analyst identifying what a novelist must research before writing.

PREMISE:
{premise}

BACK COVER:
{back_cover}

GENRE: {genre}
TONE: {tone}
AUDIENCE: {audience}

List the research topics this story needs, grouped into five categories:
- domain: subject-matter knowledge the plot depends on
- characters: professions, backgrounds and psychology of the cast
- settings: places, eras and physical environments
- technical: processes, tools or systems that must be described accurately
- cultural: customs, beliefs and social context

Give at most 3 topics per category. Respond with valid JSON only:
{{
    "domain": [{{"topic": "...", "priority": "high|medium|low", "scope": "broad|specific", "context": "why it matters"}}],
    "characters": [...],
    "settings": [...],
    "technical": [...],
    "cultural": [...]
}}'''

CATEGORY_FOCUS = {
    "domain": "the core subject-matter knowledge, established facts and common misconceptions",
    "character": "realistic backgrounds, professions, daily life and psychology for people in this role",
    "setting": "sensory detail, geography, architecture, climate and period-accurate specifics",
    "technical": "how the processes, tools or systems actually work, step by step",
    "cultural": "customs, social norms, beliefs, language and etiquette",
}

RESEARCH_TOPIC_PROMPT = '''Research the following topic for a {genre} novel.

TOPIC: {topic}
WHY IT MATTERS: {context}
FOCUS ON: {focus}

Provide:
1. Numbered key facts a writer can use directly
2. Key details as "Term: explanation" lines
3. A "Sources:" section naming reference works or fields of study
4. A "Contradictions:" section for points where accounts disagree
5. An "Uncertainties:" section for anything unknown or disputed

Be concrete. Avoid generic statements.'''

TARGETED_RESEARCH_PROMPT = '''Research this specific detail for a scene.

TOPIC: {topic}
SCENE CONTEXT: {context}

WHAT WE ALREADY KNOW:
{known}

Provide numbered facts that fill the gaps, "Term: explanation" key details,
and note any contradictions or uncertainties in their own sections.'''

"""Story bible module.

Expands an outline into characters, relationships, world, acts and scene plans.
"""

from .assembler import StoryBibleAssembler, build_acts, parse_scenes, placeholder_scenes, scene_count
from .relationships import RelationshipBuilder, attach_relationships, match_name, parse_relationships

__all__ = [
    "StoryBibleAssembler",
    "build_acts",
    "parse_scenes",
    "placeholder_scenes",
    "scene_count",
    "RelationshipBuilder",
    "attach_relationships",
    "match_name",
    "parse_relationships",
]

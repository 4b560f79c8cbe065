from comic_genesis.graphs.nodes.characters import (
    CHARACTER_PROFILE_SCHEMA,
    generate_character_profiles,
)
from comic_genesis.graphs.nodes.render import (
    build_conclusion_prompt,
    build_image_parts,
    build_page_prompt,
    build_title_prompt,
    describe_panel,
    extract_image_data,
    generate_page_image,
    with_composition_guidance,
)
from comic_genesis.graphs.nodes.script_writer import (
    MANGA_PAGE_SCHEMA,
    generate_manga_script,
)

__all__ = [
    "CHARACTER_PROFILE_SCHEMA",
    "MANGA_PAGE_SCHEMA",
    "build_conclusion_prompt",
    "build_image_parts",
    "build_page_prompt",
    "build_title_prompt",
    "describe_panel",
    "extract_image_data",
    "generate_character_profiles",
    "generate_manga_script",
    "generate_page_image",
    "with_composition_guidance",
]

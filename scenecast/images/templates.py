"""
SceneCast Style Templates

Named style presets that wrap a scene description into a full image
prompt. Wording is data; ``no-template`` passes the description through
with a light quality suffix.
"""

from dataclasses import dataclass
from typing import Dict, List, Tuple

from scenecast.core.exceptions import TemplateNotFoundError

NO_TEMPLATE = "no-template"

BASE_NEGATIVE_PROMPT = (
    "blurry, low quality, distorted, deformed, ugly, bad anatomy, out of frame, "
    "cropped, worst quality, low resolution, bad art"
)

DETAILED_NEGATIVE_PROMPT = (
    "blurry, low quality, distorted, deformed, unnatural proportions, bad anatomy, "
    "out of frame, cropped, low resolution, amateurish, mutated, extra limbs, "
    "poorly drawn faces, poorly drawn hands, text artifacts, watermarks, signatures, "
    "excessive noise, oversaturated colors, unbalanced composition, unrealistic lighting"
)


@dataclass(frozen=True)
class StyleTemplate:
    """A reusable style preset."""
    id: str
    name: str
    description: str
    style: str = ""
    background: str = ""
    cinematic_elements: str = ""
    focal_length: str = ""
    negative_prompt: str = BASE_NEGATIVE_PROMPT

    def to_dict(self) -> Dict[str, str]:
        return {"id": self.id, "name": self.name, "description": self.description}


STYLE_TEMPLATES: Dict[str, StyleTemplate] = {
    template.id: template
    for template in [
        StyleTemplate(
            id=NO_TEMPLATE,
            name="No Template",
            description="Use your prompt directly without style enhancements.",
        ),
        StyleTemplate(
            id="anime-cinematic",
            name="Anime Cinematic Epic",
            description="Ultra-detailed anime style with grand cinematic composition.",
            style=(
                "Hyper-detailed cinematic anime illustration with fluid, expressive character "
                "designs, bold dynamic poses and intricate stylized linework. Vibrant, "
                "jewel-toned palette balanced with deep shadows."
            ),
            background=(
                "Atmospheric background that amplifies the scene's emotional tone, rendered "
                "with soft bokeh and shallow depth of field; drifting particles and layered "
                "haze add depth."
            ),
            cinematic_elements=(
                "Widescreen 16:9 framing, high-contrast purposeful lighting with rim light and "
                "sculpted shadows, restrained lens flare."
            ),
            focal_length=(
                "Medium telephoto (85mm-135mm full-frame equivalent) for cinematic compression "
                "that isolates the subject."
            ),
            negative_prompt=DETAILED_NEGATIVE_PROMPT,
        ),
        StyleTemplate(
            id="noir-film",
            name="Film Noir",
            description="High-contrast black-and-white noir with hard light and deep shadow.",
            style=(
                "Monochrome film noir still with crisp grain, hard key light and strong "
                "chiaroscuro; characters in period wardrobe with tense, guarded expressions."
            ),
            background=(
                "Rain-slick streets, venetian-blind shadows and smoky interiors, lit by a "
                "single practical source."
            ),
            cinematic_elements=(
                "Widescreen 16:9 framing, Dutch angles where tension peaks, deep blacks and "
                "controlled highlights."
            ),
            focal_length="Standard 35mm-50mm lens with deep focus across the frame.",
            negative_prompt=DETAILED_NEGATIVE_PROMPT + ", color, saturated hues",
        ),
    ]
}


def list_templates() -> List[Dict[str, str]]:
    return [template.to_dict() for template in STYLE_TEMPLATES.values()]


def build_image_prompt(scene_description: str, template_id: str = NO_TEMPLATE) -> Tuple[str, str]:
    """
    Wrap a scene description with a style template.

    Returns:
        (prompt, negative_prompt)

    Raises:
        TemplateNotFoundError: For an unknown template id
    """
    template = STYLE_TEMPLATES.get(template_id)
    if template is None:
        raise TemplateNotFoundError(template_id)

    if template.id == NO_TEMPLATE:
        return f"{scene_description}, best quality, highly detailed", template.negative_prompt

    prompt = (
        f"Scene: {scene_description}\n\n"
        f"Style: {template.style}\n\n"
        f"Background Details: {template.background}\n\n"
        f"Cinematic Elements: {template.cinematic_elements}\n\n"
        f"Technical Details: {template.focal_length}\n\n"
        "Additional Requirements: masterpiece, best quality, highly detailed, "
        "ultra sharp focus, artistic composition"
    )
    return prompt, template.negative_prompt

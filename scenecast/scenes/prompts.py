"""
SceneCast Scene Prompts

Prompt templates for the scene stream, story segmentation, prompt
regeneration and prompt enhancement. Template wording is data; the only
structural contract is the frame format the scene stream asks for, which
must match the variant's FrameGrammar.
"""

from dataclasses import dataclass
from typing import Dict, Optional

from scenecast.core.exceptions import InvalidRequestError
from scenecast.scenes.frame_parser import FrameGrammar


@dataclass(frozen=True)
class PromptVariant:
    """A scene-stream prompt flavour and the frame grammar it asks for."""
    name: str
    description: str
    grammar: FrameGrammar
    guidelines: str
    content_hint: str


class ScenePromptLibrary:
    """
    Library of SceneCast prompt templates.

    Provides templates for:
    - The streamed scene breakdown (three variants)
    - Story analysis and sectioning
    - Per-segment image prompt synthesis
    - Prompt regeneration and enhancement
    """

    # ==========================================================================
    # SCENE STREAM
    # ==========================================================================

    SCENE_STREAM = """You are an expert at creating cinematic image generation prompts for animated movie-style storytelling.

Here is the entire story:
{story}

CRITICAL REQUIREMENTS:
- You MUST generate exactly {scene_count} scenes in total for the complete story
- {range_instruction}
- Each scene MUST cover a portion of the story chronologically
- The story MUST be completely covered from beginning to end across all {scene_count} scenes
- Each scene should be a complete visual moment that advances the story

Your task is to:
1. Analyze the complete story structure, characters, and narrative flow
2. {task_instruction}
3. Ensure the entire story is covered chronologically across all {scene_count} scenes
4. For each scene, create a detailed image generation prompt

IMPORTANT: You must respond in this EXACT format for each scene:

{start_sentinel}[NUMBER]
{content_label}: [{content_hint}]
{prompt_label}: [A detailed image prompt with the sections Main Subject, Scene Context, Composition and Style Notes]
{end_sentinel}

GUIDELINES:
{guidelines}
- No dialogue or text in the images
- Maintain visual consistency for characters and locations throughout the scenes
- Vary camera angles and distances to create visual interest
- Each prompt should be detailed enough for high-quality AI image generation

ENSURE you generate ALL requested scenes from {first_scene} to {scene_count}.

{closing_instruction}"""

    CINEMATIC_GUIDELINES = """- Describe characters in detail (gender, age, appearance, clothing, emotions)
- Give each scene a clear location, time of day, weather and lighting
- Use cinematic composition (rule of thirds, leading lines, depth of field)
- Choose a color palette that supports the emotional tone of the moment"""

    HORROR_GUIDELINES = """- Focus on creating a strong sense of atmosphere and tension in every scene
- Emphasize environmental storytelling; the setting should feel like a character itself
- Use lighting and weather to enhance the mood (moonlight, flickering lights, fog, rain)
- Include subtle unsettling details in the background that reward a second look
- Use color psychology: blues for cold fear, reds for danger
- Horror is most effective when it is subtle and psychological"""

    STORYBOARD_GUIDELINES = """- Treat each scene as one storyboard panel with a single clear action
- Name the shot size (wide, medium, close-up) and camera angle explicitly
- Keep character blocking consistent between consecutive panels
- Prefer clear silhouettes and readable staging over decoration"""

    # ==========================================================================
    # SEGMENTATION
    # ==========================================================================

    STORY_ANALYSIS = """You are an expert story analyst. Analyze the following story to understand its narrative structure, key events, and natural breaking points.

Story to analyze:
{story}

Please provide a brief analysis of the story's structure, including:
1. Main narrative arcs or sections
2. Key events and turning points
3. Scene transitions (location changes, time jumps, POV shifts)
4. Emotional beats and pacing

Respond with a short analysis (2-3 sentences) that will help in creating meaningful scene divisions."""

    STORY_SECTIONING = """You are an expert story analyst. Break down the following story into exactly {scene_count} logical, visually distinct scenes, ensuring the entire story is covered from beginning to end.

STORY ANALYSIS:
{analysis}

STORY:
{story}

GUIDELINES:
1. Create exactly {scene_count} scenes that cover the entire story from start to finish
2. Each scene should represent a distinct moment, location, or narrative beat
3. Prioritize natural breaks in the story (time jumps, location changes, POV shifts)
4. Keep dialogue and action together when they belong to the same scene
5. Distribute content proportionally; longer sections of the story should get more scenes
6. The first scene should start at the beginning of the story
7. The last scene should include the story's conclusion

IMPORTANT:
- The total number of scenes MUST be exactly {scene_count}
- The ENTIRE story must be covered with NO content left out
- Each scene summary must be 4-5 sentences long, describing the key actions, emotions and context
- Respond with ONLY a valid JSON object. Do not include any markdown formatting, code blocks, or additional text.

FORMAT:
{{
  "scenes": [
    {{
      "content": "The actual scene text from the story, including all relevant dialogue and action",
      "sceneNumber": 1,
      "summary": "Detailed 4-5 sentence summary of the scene"
    }}
  ]
}}"""

    SEGMENT_IMAGE_PROMPT = """You are an expert at creating image generation prompts for AI art tools like DALL-E, Midjourney, and Stable Diffusion.

SCENE SUMMARY:
{summary}

FULL SCENE CONTEXT:
{content}

Create a detailed, vivid image prompt that captures the essence of this scene. Cover:
1. CHARACTERS: appearance, clothing, expressions, posture and key actions
2. ENVIRONMENT: location, time of day, lighting, weather, notable props
3. COMPOSITION: camera angle, framing, depth of field
4. STYLE & MOOD: artistic style, color palette, emotional tone

IMPORTANT:
- Be specific and detailed
- Focus on what can be visually represented
- Return ONLY the image prompt, no additional text or formatting."""

    # ==========================================================================
    # REGENERATE / ENHANCE
    # ==========================================================================

    REGENERATE_PROMPT = """You are an expert at creating image generation prompts for AI art tools like DALL-E, Midjourney, and Stable Diffusion.

Convert this story scene into a detailed, vivid image prompt with a fresh perspective:

Scene: {scene_content}

Create a prompt that includes:
- Character descriptions (appearance, emotions, clothing)
- Environment details (location, weather, time of day, atmosphere)
- Mood and lighting
- Key visual elements and actions
- Artistic style suggestions
- Camera angle or composition notes

The prompt should be optimized for AI image generation and create a cinematic, storytelling frame.
Try to offer a different visual interpretation than what might be obvious.

IMPORTANT: Respond with ONLY the image prompt text. Do not include any formatting, explanations, or additional text."""

    ENHANCE_SYSTEM = """You are an expert at enhancing image generation prompts, specializing in vivid, cinematic scenes with strong subject focus and environmental storytelling.

1. Subject Focus: enhance the main subject's pose, expression and key characteristics.
2. Environmental Context: develop atmosphere, lighting (time of day, light sources, shadows) and supporting details across foreground, midground and background.
3. Compositional Elements: suggest camera angle, lens focal length (35mm, 50mm, 85mm, 135mm), depth of field and framing.

Format the enhanced prompt in clear sections while keeping a natural flow:
Main Subject: [Enhanced subject description]
Scene Context: [Environmental and atmospheric details]
Composition: [Camera and framing specifics]

Keep the original intent but make it more vivid and specific."""

    ENHANCE_USER = """Original prompt: "{prompt}"

Please enhance this prompt focusing on:
1. Making the main subject more vivid and detailed
2. Creating a rich environmental context
3. Specifying natural compositional elements

Keep the enhanced prompt flowing and narrative while maintaining the original intent."""

    @classmethod
    def render(cls, template: str, **kwargs) -> str:
        """Render a prompt template with variables."""
        return template.format(**kwargs)


# Sampling temperatures per call site
ANALYSIS_TEMPERATURE = 0.2
SECTIONING_TEMPERATURE = 0.3
SEGMENT_PROMPT_TEMPERATURE = 0.7
REGENERATE_TEMPERATURE = 0.8
ENHANCE_TEMPERATURE = 0.6


PROMPT_VARIANTS: Dict[str, PromptVariant] = {
    "cinematic": PromptVariant(
        name="cinematic",
        description="Animated-film style scenes with a short label per scene",
        grammar=FrameGrammar(),
        guidelines=ScenePromptLibrary.CINEMATIC_GUIDELINES,
        content_hint="A brief 2-3 word description of the scene",
    ),
    "horror": PromptVariant(
        name="horror",
        description="Atmospheric horror scenes",
        grammar=FrameGrammar(),
        guidelines=ScenePromptLibrary.HORROR_GUIDELINES,
        content_hint="A brief 2-3 word description of the scene",
    ),
    "storyboard": PromptVariant(
        name="storyboard",
        description="Storyboard panels with a one-sentence summary per scene",
        grammar=FrameGrammar(content_label="SCENE_SUMMARY"),
        guidelines=ScenePromptLibrary.STORYBOARD_GUIDELINES,
        content_hint="One sentence summarizing the panel's action",
    ),
}

DEFAULT_VARIANT = "cinematic"


def get_prompt_variant(name: Optional[str]) -> PromptVariant:
    """Look up a prompt variant by name (None selects the default)."""
    variant = PROMPT_VARIANTS.get(name or DEFAULT_VARIANT)
    if variant is None:
        raise InvalidRequestError(
            f"Unknown prompt variant '{name}'. Expected one of: {', '.join(PROMPT_VARIANTS)}",
            field="promptVariant",
        )
    return variant


def build_scene_stream_prompt(
    story: str,
    scene_count: int,
    continue_from: int = 0,
    variant: Optional[PromptVariant] = None,
) -> str:
    """Prompt asking for scenes ``continue_from + 1`` through ``scene_count`` as frames."""
    variant = variant or PROMPT_VARIANTS[DEFAULT_VARIANT]
    grammar = variant.grammar
    first_scene = continue_from + 1

    if continue_from:
        range_instruction = (
            f"Scenes 1 to {continue_from} already exist. "
            f"Continue from scene {first_scene} to scene {scene_count}"
        )
        task_instruction = f"Continue breaking down the story from scene {first_scene}"
        closing_instruction = f"Continue generating scenes {first_scene} through {scene_count} now:"
    else:
        range_instruction = f"Generate scenes 1 to {scene_count}"
        task_instruction = f"Break down the story into exactly {scene_count} distinct cinematic scenes"
        closing_instruction = f"Generate all {scene_count} scenes now (1 through {scene_count}):"

    return ScenePromptLibrary.render(
        ScenePromptLibrary.SCENE_STREAM,
        story=story,
        scene_count=scene_count,
        first_scene=first_scene,
        range_instruction=range_instruction,
        task_instruction=task_instruction,
        closing_instruction=closing_instruction,
        start_sentinel=grammar.start_sentinel,
        end_sentinel=grammar.end_sentinel,
        content_label=grammar.content_label,
        prompt_label=grammar.prompt_label,
        content_hint=variant.content_hint,
        guidelines=variant.guidelines,
    )


def build_analysis_prompt(story: str) -> str:
    return ScenePromptLibrary.render(ScenePromptLibrary.STORY_ANALYSIS, story=story)


def build_sectioning_prompt(story: str, scene_count: int, analysis: str) -> str:
    return ScenePromptLibrary.render(
        ScenePromptLibrary.STORY_SECTIONING,
        story=story,
        scene_count=scene_count,
        analysis=analysis.strip() or "No analysis available",
    )


def build_segment_prompt_request(content: str, summary: str) -> str:
    return ScenePromptLibrary.render(
        ScenePromptLibrary.SEGMENT_IMAGE_PROMPT,
        content=content,
        summary=summary or "No summary available",
    )


def build_regenerate_prompt(scene_content: str) -> str:
    return ScenePromptLibrary.render(
        ScenePromptLibrary.REGENERATE_PROMPT, scene_content=scene_content
    )


def build_enhance_prompt(prompt: str) -> str:
    return ScenePromptLibrary.render(ScenePromptLibrary.ENHANCE_USER, prompt=prompt)

"""
SceneCast

Story-to-cinematic-scenes service: streams scene prompts from a story,
segments stories deterministically when the model misbehaves, and
generates and stores images for each scene.
"""

__version__ = "1.0.0"

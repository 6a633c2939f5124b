"""
Media Generator module.

Single-request image and video generation against the Gemini / Veo APIs.
"""

from modules.media_generator.generator import GenerationClient

__all__ = ["GenerationClient"]

"""
Media generator configuration.

Backend endpoints, payload builders and protocol constants for the Gemini
image and Veo video APIs.
"""

import base64
from typing import Any, Dict

from shared.config import settings
from shared.models.generation import GenerationRequest

API_VERSION = "v1beta"

# Prepended to every image prompt so the backend keeps the subject's identity
IDENTITY_PROMPT_PREFIX = (
    "Use the provided image as the identity reference. Keep the same person, "
    "face and key features recognizable, and apply the following transformation: "
)

DEFAULT_VIDEO_MIME_TYPE = "video/mp4"
VIDEO_FRAME_MIME_TYPE = "image/jpeg"


def compose_image_prompt(prompt: str) -> str:
    """Prefix the user prompt with the identity-reference instruction."""
    return f"{IDENTITY_PROMPT_PREFIX}{prompt.strip()}"


def get_generate_content_url(model: str, api_base: str = None) -> str:
    base = api_base or settings.gemini_api_base
    return f"{base}/{API_VERSION}/models/{model}:generateContent"


def get_predict_long_running_url(model: str, api_base: str = None) -> str:
    base = api_base or settings.gemini_api_base
    return f"{base}/{API_VERSION}/models/{model}:predictLongRunning"


def get_operation_url(operation_name: str, api_base: str = None) -> str:
    base = api_base or settings.gemini_api_base
    return f"{base}/{API_VERSION}/{operation_name.lstrip('/')}"


def build_image_payload(request: GenerationRequest) -> Dict[str, Any]:
    """
    Build a generateContent request body.

    Args:
        request: Image-mode generation request

    Returns:
        JSON-serializable payload with the source image inline and the composed prompt
    """
    return {
        "contents": [{
            "parts": [
                {
                    "inlineData": {
                        "mimeType": request.source_mime_type,
                        "data": base64.b64encode(request.source_image).decode("ascii"),
                    }
                },
                {"text": compose_image_prompt(request.prompt)},
            ]
        }],
        "generationConfig": {"responseModalities": ["TEXT", "IMAGE"]},
    }


def build_video_payload(request: GenerationRequest, frame_bytes: bytes) -> Dict[str, Any]:
    """
    Build a predictLongRunning request body.

    Args:
        request: Video-mode generation request
        frame_bytes: Source image already cropped to the canonical resolution

    Returns:
        JSON-serializable payload
    """
    return {
        "instances": [{
            "prompt": request.prompt,
            "image": {
                "bytesBase64Encoded": base64.b64encode(frame_bytes).decode("ascii"),
                "mimeType": VIDEO_FRAME_MIME_TYPE,
            },
        }],
        "parameters": {"aspectRatio": request.aspect_ratio.value},
    }


def to_data_uri(data: bytes, mime_type: str) -> str:
    """Encode bytes as a self-contained data URI."""
    return f"data:{mime_type};base64,{base64.b64encode(data).decode('ascii')}"

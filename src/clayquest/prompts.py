CHARACTER_PROMPT = """You are looking at a clay figurine made by a child.
Describe it as a character for a children's story.

Return STRICT JSON only (no markdown) with exactly these keys:
{
  "name": "a short, friendly name for the character",
  "color": "the main color or colors of the clay",
  "shape": "the overall shape and notable features",
  "characterTraits": ["three", "personality", "traits"],
  "tone": "one word for the character's mood, e.g. cheerful, shy, brave"
}
"""

STORY_PROMPT = """You are a children's storyteller. Look at this clay creation made by a child and create a magical, age-appropriate story (for ages 4-8) featuring this character.

Create a story with EXACTLY 4 pages. Each page should have:
1. A short paragraph of text (2-3 sentences, simple vocabulary)
2. A description for an illustration

The story should:
- Have a clear beginning, middle, and end
- Be positive and uplifting
- Feature the clay creation as the main character
- Include a simple adventure or lesson
- Use the character's actual appearance (colors, shape, features you can see)

Respond in JSON format:
{
  "title": "Story Title",
  "characterDescription": "Detailed description of the clay character's appearance for consistent image generation (colors, shape, features, size)",
  "pages": [
    {
      "text": "Story text for page 1",
      "imagePrompt": "Detailed scene description for page 1"
    },
    ... (4 pages total)
  ]
}

IMPORTANT for imagePrompt:
- Describe the SCENE and ACTION, not the character (character will be added separately)
- Focus on: setting, mood, lighting, what's happening
- Style: children's book illustration, colorful, whimsical, friendly"""

STORY_RETRY_NOTE = """

Your previous answer could not be used ({problem}).
Answer again with ONLY the JSON object and EXACTLY 4 pages, each with "text" and "imagePrompt"."""

IMAGE_STYLE_PREAMBLE = "Children's book illustration style, colorful and whimsical"
IMAGE_SUITABILITY_CLAUSE = "Friendly, magical atmosphere, soft lighting, suitable for ages 4-8."


def page_image_prompt(character_description: str, scene: str) -> str:
    return f"{IMAGE_STYLE_PREAMBLE}: {character_description} - {scene.rstrip('.')}. {IMAGE_SUITABILITY_CLAUSE}"

from __future__ import annotations

TRANSLATION_SYSTEM = """You are a precise translator. Keep any HTML markup intact and translate only
the human-readable text."""

TRANSLATION_USER = """Translate the following text to {language}. Return only the translated text,
without any introductory phrases.

Text to translate:
{text}"""

NEWSPAPER_SNIPPETS_SYSTEM = """You are the editor of a classic newspaper.
Your answer MUST be a single JSON array that strictly follows the provided schema."""

NEWSPAPER_SNIPPETS_USER = """From the title and HTML content of an article, write 3 short side notes for
the margin of a newspaper page. Each note has a short, catchy headline and a one-sentence text.
Do not reuse the main title of the article.

Article title: "{title}"
HTML content: "{content}..."."""

COMIC_PANELS_SYSTEM = """You are a comedian and comic-strip writer.
Your answer MUST be a single JSON array of exactly 3 items that strictly follows the provided schema."""

COMIC_PANELS_USER = """Write a 3-part joke, one part per panel, about the topic: "{topic}".
The joke should be clever, contextual and genuinely funny, suitable for a newspaper.
The text is overlaid on the image as a caption for each panel; keep it short and witty."""

COMIC_IMAGE_PROMPT = """Create a single image that looks like a classic black-and-white newspaper cartoon
with 3 panels laid out horizontally. The cartoon is silent (no text or speech balloons) and tells a
short humorous story about the topic: "{topic}". Minimalist, hand-drawn cartoon style."""

COMIC_FALLBACK_DIALOGUES = (
    "The caption could not be generated.",
    "The AI ran into an error.",
    "Please try again later.",
)

NEWSPAPER_SNIPPETS_SCHEMA = {
    "type": "ARRAY",
    "items": {
        "type": "OBJECT",
        "properties": {
            "headline": {"type": "STRING"},
            "text": {"type": "STRING"},
        },
        "required": ["headline", "text"],
    },
}

COMIC_PANELS_SCHEMA = {
    "type": "ARRAY",
    "items": {
        "type": "OBJECT",
        "properties": {
            "dialogue": {"type": "STRING", "description": "Caption text for one panel."},
        },
        "required": ["dialogue"],
    },
}

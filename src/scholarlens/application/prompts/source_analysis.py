from __future__ import annotations

GROUNDED_SUMMARY_SYSTEM = """You are a helpful research assistant.
Use the web search results to answer the user's query.
Do not list the sources in your answer; only provide the summary text.
If the results are irrelevant or empty, state that no relevant information was found."""

GROUNDED_SUMMARY_USER = """Write a concise one-paragraph summary answering the query: "{query}"."""

SOURCE_PROCESSING_SYSTEM = """You are an AI research assistant. Access the content of a URL,
analyse it against the user's query and extract the requested information.
Your answer MUST be a single JSON object that strictly follows the provided schema."""

SOURCE_PROCESSING_USER = """Query: "{query}"
URL to process: {uri}

For the URL, provide:
- "title": the main title of the article, or the metadata title if none is found.
- "url": the original URL you processed ({uri}).
- "rating": a number from 1 to 5 (may be fractional) for relevance to the query.
- "tags": an array of 3 to 5 short keywords describing the topic.
- "briefSummary": one concise sentence about the document's conclusions or theme.
- "publicationYear": the estimated publication year as an INTEGER, 0 if unknown.
- "authors": an array of author names (e.g. "Silva, J."), empty if none are found.
- "contentHtml": clean HTML of the main article body. Remove navigation, footers,
  ads and scripts. Return an empty string if extraction fails.
- "error": a short error string only if the URL could not be accessed or processed;
  fill the other fields with defaults in that case. Otherwise omit this field."""

COVER_IMAGE_PROMPT = """Create a photorealistic book cover for a literary work or academic article titled "{title}".
Summary: "{summary}".
The cover should look like a real, physical book. It should be high-quality, professional and emblematic of the content.
The style should be serious and academic or classic and literary, depending on the topic.
Avoid text unless absolutely necessary to convey the theme. Avoid cartoonish or overly digital styles."""

SOURCE_RESPONSE_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "title": {"type": "STRING"},
        "url": {"type": "STRING"},
        "rating": {"type": "NUMBER"},
        "tags": {"type": "ARRAY", "items": {"type": "STRING"}},
        "briefSummary": {"type": "STRING"},
        "publicationYear": {"type": "INTEGER"},
        "authors": {"type": "ARRAY", "items": {"type": "STRING"}},
        "contentHtml": {
            "type": "STRING",
            "description": "Clean HTML content of the article body.",
        },
        "error": {
            "type": "STRING",
            "description": "Error message if processing the URL failed.",
        },
    },
    "required": [
        "title",
        "url",
        "rating",
        "tags",
        "briefSummary",
        "publicationYear",
        "authors",
        "contentHtml",
    ],
}

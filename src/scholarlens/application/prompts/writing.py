from __future__ import annotations

BRAINSTORMING_SYSTEM = """You are a research analyst and strategist. Build a "brainstorming map"
from a list of documents, centred on a theme chosen by the user.
Your answer MUST be a single JSON object that strictly follows the provided schema."""

BRAINSTORMING_USER = """Central theme: "{theme}"

Documents:
{documents}

Identify the main ideas, arguments and data points related to the central theme and
structure them as a hierarchical mind map.
- "centralTheme" must be the theme given above.
- Identify 3 to 5 "mainIdeas", the most important branches of the theme.
- For each main idea provide detailed "subNodes": evidence, examples or supporting arguments.
- Fill "sourceIndices" for every idea and sub-node with the indices of the supporting documents.
Be concise and direct."""

ARTICLE_SYSTEM = """You are an expert academic writing a review article in ABNT format.
Be formal, objective and academic in tone."""

ARTICLE_USER = """Article topic: "{topic}"

Available sources:
{sources}

Generate the HTML content for a complete, well-structured scientific article.
Return only the HTML that belongs inside the <body> tag.

The article must include:
1. Cover (class "abnt-cover-page"): article title, author ("ScholarLens"), place and current year.
2. Introduction: present the topic, its relevance and the goals of the article.
3. Development: <h2> sections discussing the main themes found in the sources, comparing
   the authors' perspectives and citing them indirectly, e.g. (SURNAME, YEAR).
4. Conclusion: summarise the main points and give an overall conclusion.
5. References (div with id "abnt-references"): list ALL sources in an unordered list (<ul>),
   formatted strictly according to ABNT using the given authors, title, year and URL.

Rules:
- Clean, semantic HTML (<h1>, <h2>, <p>, <ul>, <li>). No CSS.
- Do not include <html>, <head> or <body> tags."""

_SUB_NODE_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "idea": {"type": "STRING"},
        "details": {"type": "STRING"},
        "sourceIndices": {"type": "ARRAY", "items": {"type": "INTEGER"}},
    },
    "required": ["idea", "details", "sourceIndices"],
}

BRAINSTORMING_RESPONSE_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "centralTheme": {"type": "STRING"},
        "mainIdeas": {
            "type": "ARRAY",
            "items": {
                "type": "OBJECT",
                "properties": {
                    "idea": {"type": "STRING"},
                    "details": {"type": "STRING"},
                    "sourceIndices": {"type": "ARRAY", "items": {"type": "INTEGER"}},
                    "subNodes": {"type": "ARRAY", "items": _SUB_NODE_SCHEMA},
                },
                "required": ["idea", "details", "sourceIndices"],
            },
        },
    },
    "required": ["centralTheme", "mainIdeas"],
}

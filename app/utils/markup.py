import re

MIN_HTML_LENGTH = 100


def strip_code_fence(text: str, lang: str) -> str:
    """Remove markdown fences (```json / ```html / bare ```) wrapped around a model answer."""
    pattern = re.compile(r"```(?:" + re.escape(lang) + r")?[ \t]*\n?|\n?```", re.IGNORECASE)
    return pattern.sub("", text or "").strip()


def is_complete_html(html: str) -> bool:
    # Truncated answers usually lose the closing tags first.
    if not html or len(html) < MIN_HTML_LENGTH:
        return False
    lowered = html.lower()
    has_doctype = "<!doctype" in lowered
    has_html_tag = "<html" in lowered and "</html>" in lowered
    has_body_tag = "<body" in lowered and "</body>" in lowered
    return has_doctype and has_html_tag and has_body_tag

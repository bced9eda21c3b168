import bleach


def sanitize_string(text):
    """Sanitize a string by removing HTML tags and stripping whitespace"""
    if text is None:
        return ''

    # Remove all HTML tags
    text = bleach.clean(str(text), tags=[], strip=True)

    return text.strip()

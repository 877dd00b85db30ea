import re
import unicodedata

# Subdomains are DNS labels
MAX_SLUG_LENGTH = 63

_NON_ALNUM = re.compile(r"[^a-z0-9]+")


def slugify(text: str) -> str:
    """Turn a human-entered address into a lowercase, hyphen-delimited slug.

    ``slugify("My Cool Site!") == "my-cool-site"``. Applying it twice gives
    the same result as applying it once.
    """
    ascii_text = unicodedata.normalize("NFKD", text).encode("ascii", "ignore").decode("ascii")
    slug = _NON_ALNUM.sub("-", ascii_text.lower()).strip("-")
    return slug[:MAX_SLUG_LENGTH].rstrip("-")

import pytest

from slugs import MAX_SLUG_LENGTH, slugify


@pytest.mark.parametrize(
    "text, expected",
    [
        ("My Cool Site!", "my-cool-site"),
        ("  --Ada   Lovelace--  ", "ada-lovelace"),
        ("Crème Brûlée", "creme-brulee"),
        ("portfolio_2024", "portfolio-2024"),
        ("already-a-slug", "already-a-slug"),
    ],
)
def test_slugify(text, expected):
    assert slugify(text) == expected


def test_slugify_is_idempotent():
    for text in ["My Cool Site!", "Über  Dev__42", "---", "x" * 100]:
        assert slugify(slugify(text)) == slugify(text)


def test_output_only_contains_lowercase_alphanumerics_and_single_hyphens():
    slug = slugify("Hello,  World!! -- 2024 ### Édition")
    assert slug == "hello-world-2024-edition"
    assert "--" not in slug


def test_only_punctuation_gives_empty_slug():
    assert slugify("!!!") == ""


def test_slug_fits_in_a_dns_label():
    slug = slugify("a" * 62 + " b")
    assert len(slug) <= MAX_SLUG_LENGTH
    assert not slug.endswith("-")

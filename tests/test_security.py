import time

from security import sanitize, sanitize_string


def test_script_element_is_removed_from_string_leaf():
    assert sanitize({"bio": "<script>alert(1)</script>hello"}) == {"bio": "hello"}


def test_tags_are_matched_case_insensitively_with_attributes():
    dirty = 'before<SCRIPT type="text/javascript">x()</ScRiPt>after'
    assert sanitize_string(dirty) == "beforeafter"


def test_unpaired_tags_are_stripped():
    assert sanitize_string("<script src='x.js'>hi") == "hi"
    assert sanitize_string("bye</script >") == "bye"


def test_tag_spanning_newlines_is_stripped():
    assert sanitize_string("a<script\n  defer\n>b") == "ab"


def test_nested_obfuscation_does_not_survive():
    # Removing the inner tag must not leave a new tag behind
    assert "script" not in sanitize_string("<scr<script>ipt>alert(1)").lower()


def test_sanitize_is_idempotent():
    value = {
        "bio": "<script>alert(1)</script>hello",
        "projects": [{"description": "<scr<script>ipt>x</script>"}],
    }
    once = sanitize(value)
    assert sanitize(once) == once


def test_recurses_into_nested_objects_and_arrays():
    value = {
        "skills": ["Python", "<script>bad()</script>Go"],
        "contact": {"email": "a@example.com", "website": "<script></script>https://a.dev"},
        "projects": [{"tech": ["<script>", "Rust"]}],
    }
    assert sanitize(value) == {
        "skills": ["Python", "Go"],
        "contact": {"email": "a@example.com", "website": "https://a.dev"},
        "projects": [{"tech": ["", "Rust"]}],
    }


def test_non_string_primitives_and_keys_pass_through():
    value = {"<script>": 1, "flag": True, "ratio": 0.5, "missing": None}
    assert sanitize(value) == value


def test_input_is_not_mutated():
    value = {"bio": "<script>x</script>hi"}
    sanitize(value)
    assert value == {"bio": "<script>x</script>hi"}


def test_plain_text_is_untouched():
    text = "I describe <b>bold</b> ideas & write scripts in Python."
    assert sanitize_string(text) == text


def test_long_run_of_unclosed_tags_is_stripped_quickly():
    started = time.perf_counter()
    result = sanitize({"bio": "<script>" * 6250})  # ~50 KB
    elapsed = time.perf_counter() - started

    assert result == {"bio": ""}
    assert elapsed < 2.0


def test_many_elements_with_text_between_are_stripped_quickly():
    value = "<script>x()</script>keep " * 2000
    started = time.perf_counter()
    result = sanitize_string(value)

    assert result == "keep " * 2000
    assert time.perf_counter() - started < 2.0


def test_tag_without_closing_bracket_is_left_alone():
    # Not a complete tag, so there is nothing a browser would execute
    assert sanitize_string("a <script src=x") == "a <script src=x"

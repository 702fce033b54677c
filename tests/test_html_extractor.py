from sitesketch.core.html_extractor import extract_html_content


def test_extracts_fenced_block():
    reply = (
        "Here is your landing page.\n"
        "```html\n"
        "<!DOCTYPE html>\n<html><body>Hi</body></html>\n"
        "```\n"
        "Let me know what to change."
    )
    assert extract_html_content(reply) == "<!DOCTYPE html>\n<html><body>Hi</body></html>"


def test_first_block_wins():
    reply = "```html\n<p>one</p>\n```\ntext\n```html\n<p>two</p>\n```"
    assert extract_html_content(reply) == "<p>one</p>"


def test_clarifying_question_has_no_html():
    assert extract_html_content("Which color scheme would you like?") is None


def test_other_languages_are_ignored():
    assert extract_html_content("```css\nbody {}\n```") is None


def test_empty_inputs():
    assert extract_html_content("") is None
    assert extract_html_content("```html\n   \n```") is None

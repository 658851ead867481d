"""Tests for Telegram message formatting and splitting."""

from agentpilot.channels.telegram import markdown_to_telegram_html, split_message


def test_basic_markdown():
    html = markdown_to_telegram_html("# Title\n**bold** and _italic_ with `a<b`\n- item")

    assert html == "Title\n<b>bold</b> and <i>italic</i> with <code>a&lt;b</code>\n• item"


def test_code_blocks_are_escaped_not_formatted():
    html = markdown_to_telegram_html("```python\nx = a**2 < b\n```")
    assert html == "<pre><code>x = a**2 &lt; b\n</code></pre>"


def test_snake_case_is_left_alone():
    assert markdown_to_telegram_html("some_var_name") == "some_var_name"


def test_links():
    assert markdown_to_telegram_html("[docs](https://example.com)") == '<a href="https://example.com">docs</a>'


def test_short_message_is_not_split():
    assert split_message("hello", 10) == ["hello"]


def test_split_respects_limit_and_reopens_code_fences():
    text = "intro\n```\n" + "\n".join(f"line {i}" for i in range(20)) + "\n```"

    chunks = split_message(text, 60)

    assert all(len(chunk) <= 60 for chunk in chunks)
    assert chunks[0].endswith("```")
    assert chunks[1].startswith("```")


def test_single_long_line_is_hard_split():
    chunks = split_message("x" * 25, 10)
    assert chunks == ["x" * 10, "x" * 10, "x" * 5]

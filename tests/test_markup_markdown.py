"""Tests for agent reply rendering and issue-tracker templates."""

from __future__ import annotations

from agenthq.markup.markdown import markdown_to_html, render_reply
from agenthq.markup.templates import (
    format_comment,
    format_creation_confirmation,
    format_task_details,
)


class TestRenderReply:
    def test_empty(self):
        assert markdown_to_html("") == ""
        assert render_reply("") == ""

    def test_heading_and_bold(self):
        result = render_reply("# Title\n\nSome **bold** text")
        assert "<b>📋 Title</b>" in result
        assert "Some <b>bold</b> text" in result

    def test_bullet_list(self):
        result = render_reply("- a\n- b")
        assert result == "• a\n• b\n\n"

    def test_fenced_code_escaped_once(self):
        result = render_reply("```\nx < y\n```")
        assert "<pre><code>x &lt; y" in result

    def test_inline_html_passes_through(self):
        result = render_reply("Status: <b>ok</b>")
        assert "Status: <b>ok</b>" in result

    def test_no_glyphs_or_truncation(self):
        long_reply = "\n\n".join(f"Step {i} completed" for i in range(400))
        result = render_reply(long_reply)
        assert "✅" not in result
        assert "content truncated" not in result


class TestTemplates:
    def test_task_details(self):
        result = format_task_details({
            "id": "HQ-1",
            "title": "Fix <bug>",
            "state": "Todo",
            "priority": "high",
            "description_html": "<p>Details done</p>",
            "url": "https://plane.example/HQ-1",
        })
        assert result.startswith("<b>📋 HQ-1: Fix &lt;bug&gt;</b>\n")
        assert "State: <b>Todo</b> • Priority: high" in result
        assert "Details done" in result  # no glyphs in descriptions
        assert result.endswith('🔗 <a href="https://plane.example/HQ-1">View in Plane</a>')

    def test_task_details_minimal(self):
        assert format_task_details({"id": "HQ-2", "title": "Bare"}) == "<b>📋 HQ-2: Bare</b>\n"

    def test_comment(self):
        result = format_comment({
            "author": "ana",
            "comment_html": "<p>LGTM</p>",
            "created_at": "2024-05-01T10:00:00Z",
        })
        assert result == "💬 <b>ana</b> (2024-05-01)\nLGTM\n\n"

    def test_comment_with_unparseable_date(self):
        result = format_comment({"author": "bo", "comment_html": "hi", "created_at": "yesterday"})
        assert "(yesterday)" in result

    def test_creation_confirmation(self):
        result = format_creation_confirmation(
            "plane", "Verdandi", identifier="VER", url="https://plane.example/ver"
        )
        assert result.startswith("✅ Created Plane project: <b>Verdandi</b>")
        assert "<code>VER</code>" in result
        assert "View in Plane</a>" in result

    def test_creation_confirmation_github(self):
        result = format_creation_confirmation("github", "org/repo")
        assert result == "✅ Created GitHub repository: <b>org/repo</b>"

    def test_long_description_links_to_full_task(self):
        from agenthq.markup import format_task_details as exported

        url = "https://plane.example/HQ-3"
        description = "".join(f"<p>{'detail ' * 20}{i}</p>" for i in range(100))
        result = exported({
            "id": "HQ-3",
            "title": "Big",
            "description_html": description,
            "url": url,
        })
        assert "... (content truncated)" in result
        assert f'<a href="{url}">Read full details in Plane</a>' in result
        assert exported is format_task_details

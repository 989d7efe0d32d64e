"""
Unit tests for email template loading and rendering.
"""

import pytest
from pathlib import Path

from app.config import DEFAULT_TEMPLATES_DIR
from app.errors import TemplateNotFound
from app.services.templates import DEFAULT_VALUE, TemplateStore, render_template


PLACEHOLDERS = [
    "CLIENT_NAME",
    "CLIENT_EMAIL",
    "CLIENT_BUDGET",
    "CLIENT_MESSAGE",
    "DEVELOPER_EMAIL",
    "SUBMISSION_TIME",
]


def _write_templates(root: Path, names=("notification", "auto-reply")) -> None:
    for name in names:
        (root / f"{name}.html").write_text(f"<p>{name} {{{{CLIENT_NAME}}}}</p>", encoding="utf-8")
        (root / f"{name}.txt").write_text(f"{name} {{{{CLIENT_NAME}}}}", encoding="utf-8")


class TestTemplateStore:
    """TemplateStore.load / load_pair."""

    def test_load_reads_file_by_name_and_format(self, tmp_path):
        _write_templates(tmp_path)
        store = TemplateStore(tmp_path)

        assert store.load("notification", "html") == "<p>notification {{CLIENT_NAME}}</p>"
        assert store.load("auto-reply", "txt") == "auto-reply {{CLIENT_NAME}}"

    def test_load_defaults_to_html(self, tmp_path):
        _write_templates(tmp_path)
        assert TemplateStore(tmp_path).load("notification").startswith("<p>")

    def test_load_pair_returns_html_then_text(self, tmp_path):
        _write_templates(tmp_path)
        html, text = TemplateStore(tmp_path).load_pair("auto-reply")

        assert html == "<p>auto-reply {{CLIENT_NAME}}</p>"
        assert text == "auto-reply {{CLIENT_NAME}}"

    def test_missing_file_raises_template_not_found(self, tmp_path):
        store = TemplateStore(tmp_path)

        with pytest.raises(TemplateNotFound) as exc_info:
            store.load("notification", "html")

        assert exc_info.value.name == "notification"
        assert exc_info.value.fmt == "html"
        assert exc_info.value.status_code == 500
        assert "notification.html not found" in exc_info.value.detail

    def test_missing_text_variant_fails_the_pair(self, tmp_path):
        (tmp_path / "notification.html").write_text("<p>hi</p>", encoding="utf-8")

        with pytest.raises(TemplateNotFound) as exc_info:
            TemplateStore(tmp_path).load_pair("notification")

        assert exc_info.value.fmt == "txt"

    def test_unreadable_file_raises_template_not_found(self, tmp_path):
        (tmp_path / "notification.html").write_bytes(b"\xff\xfe\xfa not utf-8")

        with pytest.raises(TemplateNotFound):
            TemplateStore(tmp_path).load("notification", "html")

    def test_directory_in_place_of_file_raises_template_not_found(self, tmp_path):
        (tmp_path / "notification.html").mkdir()

        with pytest.raises(TemplateNotFound):
            TemplateStore(tmp_path).load("notification", "html")

    def test_unknown_format_is_rejected(self, tmp_path):
        with pytest.raises(ValueError, match="Unknown template format"):
            TemplateStore(tmp_path).load("notification", "pdf")

    @pytest.mark.parametrize("name", ["../secrets", "emails/../../notification", "sub/notification"])
    def test_names_cannot_leave_the_templates_directory(self, tmp_path, name):
        with pytest.raises(ValueError, match="escapes"):
            TemplateStore(tmp_path).load(name, "txt")

    def test_changes_on_disk_are_picked_up(self, tmp_path):
        """No caching: every load reads the file again."""
        path = tmp_path / "notification.txt"
        path.write_text("v1", encoding="utf-8")
        store = TemplateStore(tmp_path)
        assert store.load("notification", "txt") == "v1"

        path.write_text("v2", encoding="utf-8")
        assert store.load("notification", "txt") == "v2"


class TestRenderTemplate:
    """render_template substitution rules."""

    def test_replaces_every_occurrence(self):
        result = render_template(
            "Hi {{CLIENT_NAME}}, {{CLIENT_NAME}}!",
            {"CLIENT_NAME": "Jane"},
        )
        assert result == "Hi Jane, Jane!"

    def test_empty_and_none_values_render_default(self):
        result = render_template(
            "{{CLIENT_BUDGET}} / {{CLIENT_NAME}}",
            {"CLIENT_BUDGET": None, "CLIENT_NAME": ""},
        )
        assert result == f"{DEFAULT_VALUE} / {DEFAULT_VALUE}"

    def test_keys_missing_from_template_are_ignored(self):
        assert render_template("static", {"CLIENT_NAME": "Jane"}) == "static"

    def test_unknown_tokens_are_left_intact(self):
        result = render_template(
            "{{CLIENT_NAME}} {{UNKNOWN}}",
            {"CLIENT_NAME": "Jane"},
        )
        assert result == "Jane {{UNKNOWN}}"

    def test_values_containing_tokens_are_not_expanded(self):
        result = render_template(
            "{{CLIENT_NAME}} <{{CLIENT_EMAIL}}>",
            {"CLIENT_NAME": "{{CLIENT_EMAIL}}", "CLIENT_EMAIL": "jane@x.com"},
        )
        assert result == "{{CLIENT_EMAIL}} <jane@x.com>"

    def test_rendering_is_idempotent(self):
        template = "{{CLIENT_NAME}} wrote: {{CLIENT_MESSAGE}} ({{CLIENT_BUDGET}})"
        variables = {"CLIENT_NAME": "Jane", "CLIENT_MESSAGE": "Hi", "CLIENT_BUDGET": None}

        assert render_template(template, variables) == render_template(template, variables)

    def test_token_matching_is_case_sensitive(self):
        assert render_template("{{client_name}}", {"CLIENT_NAME": "Jane"}) == "{{client_name}}"


class TestShippedTemplates:
    """The four templates shipped with the app."""

    @pytest.mark.parametrize("name", ["notification", "auto-reply"])
    @pytest.mark.parametrize("fmt", ["html", "txt"])
    def test_template_exists_and_renders_completely(self, name, fmt):
        template = TemplateStore(DEFAULT_TEMPLATES_DIR).load(name, fmt)
        variables = {key: f"value-{key.lower()}" for key in PLACEHOLDERS}

        rendered = render_template(template, variables)

        assert "{{" not in rendered
        assert "value-client_name" in rendered

    def test_notification_shows_every_submission_field(self):
        template = TemplateStore(DEFAULT_TEMPLATES_DIR).load("notification", "txt")
        for key in PLACEHOLDERS:
            assert "{{" + key + "}}" in template

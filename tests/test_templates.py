"""Tests for nosy.templates - message rendering."""

from __future__ import annotations

import logging

import pytest

from nosy.errors import TemplateError
from nosy.templates import (
    DEFAULT_SYSTEM_TEMPLATE,
    DEFAULT_USER_TEMPLATE,
    build_messages,
    placeholders,
    render,
)


class TestRender:
    def test_substitutes_variable(self):
        assert render("Hello, {{name}}!", {"name": "Alice"}) == "Hello, Alice!"

    def test_whitespace_inside_braces(self):
        assert render("{{ name }}", {"name": "Bob"}) == "Bob"

    def test_repeated_placeholder(self):
        assert render("{{x}}-{{x}}", {"x": "a"}) == "a-a"

    def test_unknown_placeholder_renders_empty(self, caplog):
        with caplog.at_level(logging.WARNING, logger="nosy.templates"):
            assert render("{{language}} {{tone}}!", {"language": "English"}) == "English !"
        assert "tone" in caplog.text

    def test_extra_variables_ignored(self):
        assert render("plain", {"unused": "x"}) == "plain"

    def test_values_are_not_re_rendered(self):
        assert render("{{content}}", {"content": "{{language}}"}) == "{{language}}"


class TestDefaults:
    def test_system_template_exposes_language(self):
        assert placeholders(DEFAULT_SYSTEM_TEMPLATE) == {"language"}

    def test_user_template_exposes_content(self):
        assert placeholders(DEFAULT_USER_TEMPLATE) == {"content"}


class TestBuildMessages:
    def test_builtin_templates(self):
        system, user = build_messages("Hello world", language="German")
        assert "German" in system
        assert "Hello world" in user

    def test_custom_template_files(self, tmp_path):
        sys_path = tmp_path / "system.hbs"
        sys_path.write_text("Answer in {{language}}.", encoding="utf-8")
        user_path = tmp_path / "user.hbs"
        user_path.write_text("TL;DR: {{content}}", encoding="utf-8")
        system, user = build_messages(
            "text", language="Spanish", system_template=sys_path, user_template=user_path,
        )
        assert system == "Answer in Spanish."
        assert user == "TL;DR: text"

    def test_unreadable_template(self, tmp_path):
        with pytest.raises(TemplateError):
            build_messages("x", language="English", system_template=tmp_path / "missing.hbs")

    def test_template_not_utf8(self, tmp_path):
        path = tmp_path / "user.hbs"
        path.write_bytes(b"\xff\xfe{{content}}")
        with pytest.raises(TemplateError) as exc_info:
            build_messages("x", language="English", user_template=path)
        assert exc_info.value.stage == "render"

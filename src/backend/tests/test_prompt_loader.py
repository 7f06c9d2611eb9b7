"""
提示词加载器测试
"""
import pytest

from prompts import PromptLoader, PromptLoadError, PromptRenderError


@pytest.fixture
def loader(tmp_path):
    (tmp_path / "greeting.yaml").write_text(
        "system_prompt: |\n"
        "  You are a grader.\n"
        "templates:\n"
        "  user_prompt: |\n"
        "    Hello {{ name }}{% if suffix %} {{ suffix }}{% endif %}\n"
        "variables:\n"
        "  suffix: \"\"\n",
        encoding="utf-8",
    )
    (tmp_path / "broken.yaml").write_text("templates: {}\n", encoding="utf-8")
    return PromptLoader(templates_dir=tmp_path)


class TestPromptLoader:

    def test_render_system_prompt(self, loader):
        assert loader.render("greeting") == "You are a grader."

    def test_render_with_defaults(self, loader):
        assert loader.render("greeting", "user_prompt", name="Ada") == "Hello Ada"

    def test_variables_override_defaults(self, loader):
        assert loader.render("greeting", "user_prompt", name="Ada", suffix="!") == "Hello Ada !"

    def test_missing_variable_raises(self, loader):
        with pytest.raises(PromptRenderError):
            loader.render("greeting", "user_prompt")

    def test_unknown_template_key_raises(self, loader):
        with pytest.raises(PromptRenderError):
            loader.render("greeting", "image_prompt")

    def test_missing_file_raises(self, loader):
        with pytest.raises(PromptLoadError):
            loader.load("nope")

    def test_missing_system_prompt_raises(self, loader):
        with pytest.raises(PromptLoadError):
            loader.load("broken")

    def test_cache_and_clear(self, loader, tmp_path):
        assert loader.render("greeting") == "You are a grader."
        (tmp_path / "greeting.yaml").write_text("system_prompt: Updated\n", encoding="utf-8")

        assert loader.render("greeting") == "You are a grader."
        loader.clear_cache("greeting")
        assert loader.render("greeting") == "Updated"

    def test_bundled_grading_template(self):
        loader = PromptLoader()

        text = loader.render(
            "assignment_grading", "user_prompt",
            assignment_title="Essay", instructions="Write", rubric=None,
        )

        assert "ASSIGNMENT: Essay" in text
        assert "completeness, quality, and effort" in text

"""Tests for plain-text rendering."""

from epa.api_types import GrammarCheckResult, TranslationResult
from epa.help_renderer import (
    render_grammar_result,
    render_text,
    render_translation_result,
)


def test_render_grammar_result_with_notes():
    result = GrammarCheckResult(
        source_text="i is fine",
        clean_up="I am fine.",
        better_flow="I'm doing fine.",
        concise="Fine.",
        notes="Subject-verb agreement.",
    )

    text = render_grammar_result(result)

    assert "• Clean up: I am fine." in text
    assert "• Better flow: I'm doing fine." in text
    assert "• Concise: Fine." in text
    assert text.endswith("📝 Subject-verb agreement.")
    assert "📝" not in render_grammar_result(result, show_notes=False)


def test_render_translation_result():
    result = TranslationResult(
        source_text="Hello",
        translated_text="你好",
        detected_source_language="en",
        target_language="zh-CN",
    )

    assert render_translation_result(result) == "🌐 翻译 (en → zh-CN)\n你好"


def test_render_translation_without_detected_language():
    result = TranslationResult(
        source_text="Hello",
        translated_text="你好",
        detected_source_language="",
        target_language="zh-CN",
    )

    assert render_translation_result(result).splitlines()[0] == "🌐 翻译"


def test_render_help_text():
    text = render_text(
        {
            "title": "英语练习助手 v1.0.0",
            "language_preset": "GLM Direct",
            "model": "",
            "target_language": "ja",
            "speech_status": "✓ Custom",
            "request_timeout": "20",
        }
    )

    assert text.startswith("📘 英语练习助手 v1.0.0")
    assert "/翻译 [文本] - 翻译为 ja" in text
    assert "• 模型: 未配置" in text
    assert "• 语音合成: ✓ Custom" in text

"""
文本渲染模块
帮助页与语法改写/翻译结果的纯文本渲染
"""

from .api_types import GrammarCheckResult, TranslationResult


def render_text(template_data: dict) -> str:
    """纯文本渲染"""
    return f"""📘 {template_data.get("title", "英语练习助手")}

基础指令:
• /语法 [英文] - 给出三种改写（也可引用一条消息）
• /翻译 [文本] - 翻译为 {template_data.get("target_language", "zh-CN")}
• /朗读 [英文] - 语音朗读
• /英语助手帮助 - 显示帮助

当前配置:
• 语言服务: {template_data.get("language_preset", "N/A")}
• 模型: {template_data.get("model") or "未配置"}
• 语音合成: {template_data.get("speech_status", "✗ 禁用")}
• 请求超时: {template_data.get("request_timeout", 20)}秒"""


def render_grammar_result(result: GrammarCheckResult, show_notes: bool = True) -> str:
    lines = [
        "✍️ 语法改写",
        f"• Clean up: {result.clean_up}",
        f"• Better flow: {result.better_flow}",
        f"• Concise: {result.concise}",
    ]
    if show_notes and result.notes:
        lines.append(f"📝 {result.notes}")
    return "\n".join(lines)


def render_translation_result(
    result: TranslationResult, show_notes: bool = True
) -> str:
    header = "🌐 翻译"
    if result.detected_source_language:
        header += f" ({result.detected_source_language} → {result.target_language})"
    lines = [header, result.translated_text]
    if show_notes and result.notes:
        lines.append(f"📝 {result.notes}")
    return "\n".join(lines)

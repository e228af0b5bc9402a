"""语法改写与翻译提示词模块"""

GRAMMAR_SYSTEM_PROMPT = "You are a precise writing assistant. Output valid JSON only."
TRANSLATION_SYSTEM_PROMPT = (
    "You are a precise translation assistant. Output valid JSON only."
)


def get_grammar_prompt(text: str) -> str:
    """三种改写：clean_up / better_flow / concise"""
    return f"""Rewrite the provided text into three alternatives.
Return JSON only with keys: clean_up, better_flow, concise, notes.
Keep original meaning.

text:
{text}"""


def get_translation_prompt(text: str, target_language: str) -> str:
    return f"""Translate the provided text to the target language.
Target language: {target_language}.
Auto-detect the source language.
Return JSON only with keys: translation, detected_source_language, notes.

text:
{text}"""

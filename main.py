"""
AstrBot 英语练习助手插件主文件
支持 GLM / Gemini 直连与自定义后端的语法改写、翻译，以及豆包语音合成朗读
"""

from __future__ import annotations

import asyncio
import os
import time
from typing import Any

import yaml

import astrbot.api.message_components as Comp
from astrbot.api import logger
from astrbot.api.event import AstrMessageEvent, filter
from astrbot.api.message_components import Plain, Reply
from astrbot.api.star import Context, Star, register

from .epa import (
    ConfigLoader,
    cleanup_old_audio,
    clear_api_client,
    format_request_error,
    get_api_client,
    save_audio_data,
    validate_language_config,
)
from .epa.help_renderer import (
    render_grammar_result,
    render_text,
    render_translation_result,
)
from .epa.plugin_config import is_cancelled_error

MAX_INPUT_CHARS = 4000


@register(
    "astrbot_plugin_english_practice",
    "english-practice",
    "英语练习助手：语法改写、翻译和语音朗读，支持 GLM、Gemini 与自定义后端",
    "",
)
class EnglishPracticePlugin(Star):
    def __init__(self, context: Context, config: dict[str, Any]):
        super().__init__(context)
        self.config = config
        # 从 metadata.yaml 读取版本号
        try:
            metadata_path = os.path.join(os.path.dirname(__file__), "metadata.yaml")
            with open(metadata_path, encoding="utf-8") as f:
                metadata = yaml.safe_load(f) or {}
                self.version = str(metadata.get("version", "")).strip()
        except Exception:
            self.version = ""
        if not self.version:
            self.version = "v1.0.0"
        self._cleanup_task: asyncio.Task | None = None

        # 加载配置
        self.cfg = ConfigLoader(config).load()
        clear_api_client()
        self.api_client = get_api_client(
            retry_policy=self.cfg.retry_policy(),
            request_timeout=self.cfg.request_timeout,
        )

        # 启动定时清理任务
        self._start_cleanup_task()

    def _start_cleanup_task(self):
        """启动定时清理任务"""
        if self._cleanup_task and not self._cleanup_task.done():
            return

        interval = self.cfg.cleanup_interval_minutes * 60
        ttl_minutes = self.cfg.audio_ttl_minutes

        async def cleanup_loop():
            while True:
                try:
                    await cleanup_old_audio(ttl_minutes=ttl_minutes)
                    await asyncio.sleep(interval)
                except asyncio.CancelledError:
                    break
                except Exception as e:
                    logger.warning(f"清理任务异常: {e}")
                    await asyncio.sleep(300)

        self._cleanup_task = asyncio.create_task(cleanup_loop())
        logger.debug("定时清理任务已启动")

    async def terminate(self):
        """插件卸载/重载时调用"""
        if self._cleanup_task and not self._cleanup_task.done():
            self._cleanup_task.cancel()
            logger.debug("定时清理任务已停止")
        await self.api_client.close()
        clear_api_client()
        logger.info("📘 英语练习助手插件已卸载")

    @staticmethod
    def _extract_input_text(event: AstrMessageEvent) -> str:
        """取指令后的全部文本；为空时回退到引用消息"""
        parts = (event.message_str or "").strip().split(maxsplit=1)
        text = parts[1].strip() if len(parts) > 1 else ""
        if text:
            return text

        for component in event.get_messages():
            if not isinstance(component, Reply):
                continue
            quoted = (getattr(component, "message_str", "") or "").strip()
            if quoted:
                return quoted
            if component.chain:
                quoted = "".join(
                    seg.text for seg in component.chain if isinstance(seg, Plain)
                ).strip()
                if quoted:
                    return quoted
        return ""

    def _check_input(self, text: str) -> str | None:
        if not text:
            return "请在指令后输入文本，或引用一条消息"
        if len(text) > MAX_INPUT_CHARS:
            return f"文本过长，最多 {MAX_INPUT_CHARS} 个字符"
        return None

    async def _safe_send(self, event: AstrMessageEvent, payload):
        """包装发送，若平台发送失败则提示用户"""
        try:
            yield payload
        except Exception as e:
            logger.error(f"发送消息失败: {e}")
            yield event.plain_result("⚠️ 消息发送失败，请稍后重试或检查网络/权限。")

    @filter.command("语法", alias={"grammar"})
    async def grammar_check(self, event: AstrMessageEvent):
        """语法改写指令"""
        text = self._extract_input_text(event)
        input_error = self._check_input(text)
        if input_error:
            yield event.plain_result(f"⚠️ {input_error}")
            return

        validation_message = validate_language_config(
            self.cfg.language_preset, self.cfg.language_config
        )
        if validation_message:
            yield event.plain_result(f"⚠️ {validation_message}")
            return

        api_start_time = time.perf_counter()
        try:
            result = await self.api_client.grammar_check(
                text, self.cfg.language_preset, self.cfg.language_config
            )
        except Exception as e:
            if is_cancelled_error(e):
                logger.debug("语法改写请求已取消")
                return
            logger.error(f"语法改写失败: {e}")
            yield event.plain_result(
                f"❌ 语法改写失败: {format_request_error(e, self.cfg.request_timeout)}"
            )
            return

        self.cfg.log_info(
            f"语法改写完成 耗时 {time.perf_counter() - api_start_time:.1f}s "
            f"legacy={result.used_legacy_fallback}"
        )
        async for res in self._safe_send(
            event,
            event.plain_result(render_grammar_result(result, self.cfg.show_notes)),
        ):
            yield res

    @filter.command("翻译", alias={"translate"})
    async def translate(self, event: AstrMessageEvent):
        """翻译指令"""
        text = self._extract_input_text(event)
        input_error = self._check_input(text)
        if input_error:
            yield event.plain_result(f"⚠️ {input_error}")
            return

        validation_message = validate_language_config(
            self.cfg.language_preset, self.cfg.language_config
        )
        if validation_message:
            yield event.plain_result(f"⚠️ {validation_message}")
            return

        api_start_time = time.perf_counter()
        try:
            result = await self.api_client.translate(
                text,
                self.cfg.language_preset,
                self.cfg.language_config,
                self.cfg.target_language,
            )
        except Exception as e:
            if is_cancelled_error(e):
                logger.debug("翻译请求已取消")
                return
            logger.error(f"翻译失败: {e}")
            yield event.plain_result(
                f"❌ 翻译失败: {format_request_error(e, self.cfg.request_timeout)}"
            )
            return

        self.cfg.log_info(
            f"翻译完成 耗时 {time.perf_counter() - api_start_time:.1f}s "
            f"legacy={result.used_legacy_fallback}"
        )
        async for res in self._safe_send(
            event,
            event.plain_result(render_translation_result(result, self.cfg.show_notes)),
        ):
            yield res

    @filter.command("朗读", alias={"speak"})
    async def speak(self, event: AstrMessageEvent):
        """语音朗读指令"""
        if not self.cfg.enable_tts:
            yield event.plain_result("⚠️ 语音合成未启用")
            return

        text = self._extract_input_text(event)
        input_error = self._check_input(text)
        if input_error:
            yield event.plain_result(f"⚠️ {input_error}")
            return

        try:
            audio = await self.api_client.tts_audio(
                text, self.cfg.speech_config, self.cfg.speech_preset
            )
        except Exception as e:
            if is_cancelled_error(e):
                logger.debug("语音合成请求已取消")
                return
            logger.error(f"语音合成失败: {e}")
            yield event.plain_result(f"❌ 语音合成失败: {format_request_error(e)}")
            return

        audio_path = await save_audio_data(audio)
        if not audio_path:
            yield event.plain_result("❌ 音频保存失败")
            return

        async for res in self._safe_send(
            event, event.chain_result([Comp.Record.fromFileSystem(audio_path)])
        ):
            yield res

    @filter.command("英语助手帮助", alias={"epa_help"})
    async def show_help(self, event: AstrMessageEvent):
        """显示插件使用帮助"""
        speech_status = (
            f"✓ {self.cfg.speech_preset.title}" if self.cfg.enable_tts else "✗ 禁用"
        )
        template_data = {
            "title": f"英语练习助手 {self.version}",
            "language_preset": self.cfg.language_preset.title,
            "model": self.cfg.language_config.model,
            "target_language": self.cfg.target_language,
            "speech_status": speech_status,
            "request_timeout": f"{self.cfg.request_timeout:g}",
        }
        yield event.plain_result(render_text(template_data))

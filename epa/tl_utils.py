"""
工具函数模块
提供插件数据目录、音频文件保存与过期清理
"""

from datetime import datetime, timedelta
from pathlib import Path
from uuid import uuid4

from astrbot.api import logger

PLUGIN_NAME = "astrbot_plugin_english_practice"
AUDIO_PREFIX = "epa_tts"


def get_plugin_data_dir() -> Path:
    """获取插件数据目录"""
    # 使用AstrBot的StarTools获取标准数据目录
    from astrbot.api.star import StarTools

    return StarTools.get_data_dir(PLUGIN_NAME)


def _build_audio_path(
    audio_dir: Path | None = None, audio_format: str = "mp3"
) -> Path:
    """生成规范的音频路径"""
    if audio_dir is None:
        audio_dir = get_plugin_data_dir() / "audio"
    audio_dir.mkdir(parents=True, exist_ok=True)

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S_%f")[:-3]
    unique_suffix = uuid4().hex[:6]
    return audio_dir / f"{AUDIO_PREFIX}_{timestamp}_{unique_suffix}.{audio_format}"


def guess_audio_format(audio_data: bytes) -> str:
    """根据文件头判断音频格式，无法识别时按 mp3 处理"""
    if audio_data[:4] == b"RIFF" and audio_data[8:12] == b"WAVE":
        return "wav"
    if audio_data[:4] == b"OggS":
        return "ogg"
    if audio_data[:4] == b"fLaC":
        return "flac"
    return "mp3"


async def save_audio_data(
    audio_data: bytes, audio_dir: Path | None = None
) -> str | None:
    """
    保存音频字节数据到文件

    Args:
        audio_data: 音频字节数据
        audio_dir: 保存目录，为None时使用插件数据目录下的 audio

    Returns:
        保存的文件路径，失败返回None
    """
    try:
        file_path = _build_audio_path(audio_dir, guess_audio_format(audio_data))
        with open(file_path, "wb") as f:
            f.write(audio_data)

        logger.debug(f"音频已保存: {file_path}")
        return str(file_path)

    except Exception as e:
        logger.error(f"保存音频失败: {e}")
        return None


async def cleanup_old_audio(audio_dir: Path | None = None, ttl_minutes: int = 10) -> int:
    """
    清理超过保留时长的音频文件

    Args:
        audio_dir: audio 目录路径，如果为None则使用默认路径
        ttl_minutes: 保留分钟数

    Returns:
        清理的文件数量
    """
    if audio_dir is None:
        audio_dir = get_plugin_data_dir() / "audio"
    if not audio_dir.exists():
        return 0

    cutoff_time = datetime.now() - timedelta(minutes=ttl_minutes)
    cleaned_count = 0
    for file_path in audio_dir.glob(f"{AUDIO_PREFIX}_*.*"):
        try:
            if datetime.fromtimestamp(file_path.stat().st_mtime) < cutoff_time:
                file_path.unlink()
                cleaned_count += 1
        except Exception as e:
            logger.warning(f"清理文件 {file_path} 时出错: {e}")

    if cleaned_count > 0:
        logger.debug(f"共清理 {cleaned_count} 个过期音频文件")
    return cleaned_count

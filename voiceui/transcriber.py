"""转写模块：把录音交给外部语音识别服务"""

import logging
from typing import Optional

import openai
from openai import AsyncOpenAI

from .errors import UpstreamError

logger = logging.getLogger(__name__)


class Transcriber:
    """外部转写服务的客户端"""

    def __init__(self, client: AsyncOpenAI, model: str = "whisper-1"):
        self.client = client
        self.model = model

    async def transcribe(
        self,
        audio: bytes,
        filename: str = "recording.webm",
        content_type: str = "audio/webm",
        language: Optional[str] = None,
    ) -> str:
        """返回转写文本；调用失败抛 UpstreamError"""
        kwargs = {"model": self.model, "file": (filename, audio, content_type)}
        if language:
            kwargs["language"] = language
        try:
            transcription = await self.client.audio.transcriptions.create(**kwargs)
        except openai.OpenAIError as e:
            logger.error("❌ 转写失败: %s", e)
            raise UpstreamError("Failed to transcribe audio") from e

        text = (transcription.text or "").strip()
        logger.info("转写结果: %s", text)
        return text

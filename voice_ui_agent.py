"""
Voice UI Agent - 在真实浏览器页面上执行语音命令

打开目标页面后：
  1. 依次处理 --audio 指定的录音文件（转写 → 执行）；
  2. 进入交互循环，每输入一行文本当作一条已转写的语音命令。

运行示例：
    python voice_ui_agent.py http://localhost:3000 --audio recording.webm
"""

import argparse
import asyncio
import logging
import mimetypes
from pathlib import Path

from playwright.async_api import async_playwright

from voiceui import Settings, VoiceSession, setup_logging
from voiceui.errors import ConfigError

logger = logging.getLogger("voice_ui_agent")

EXIT_WORDS = {"exit", "quit"}
HISTORY_WORD = "history"
PLAN_WORD = "plan"


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Execute voice commands against a live web page")
    parser.add_argument("url", help="Page to open")
    parser.add_argument("--headless", action="store_true", help="Run Chromium in headless mode")
    parser.add_argument("--no-ai", action="store_true", help="Only use deterministic data-voice matching")
    parser.add_argument("--audio", nargs="*", default=[], help="Audio files to transcribe and execute first")
    parser.add_argument("--debug", action="store_true", help="Verbose logging")
    return parser.parse_args(argv)


def build_session(page, settings: Settings) -> VoiceSession:
    if not settings.use_ai and not settings.api_key:
        return VoiceSession(page, settings=settings)
    try:
        return VoiceSession.from_settings(page, settings)
    except ConfigError as e:
        logger.warning("⚠ %s，仅使用确定性匹配", e)
        settings.use_ai = False
        return VoiceSession(page, settings=settings)


def format_plan(plan) -> str:
    """打印最近一次 AI 计划"""
    if plan is None:
        return "(还没有 AI 计划)"
    lines = [f"置信度 {plan.confidence:.0%}: {plan.reasoning}"]
    for i, step in enumerate(plan.steps, 1):
        value = f" = '{step.value}'" if step.value is not None else ""
        lines.append(f"  {i}. {step.kind.value} {step.target}{value}  # {step.description}")
    return "\n".join(lines)


async def run_agent(args: argparse.Namespace) -> None:
    """主循环：读命令 → 分派 → 执行"""
    settings = Settings.from_env()
    if args.no_ai:
        settings.use_ai = False
    settings.debug = settings.debug or args.debug
    setup_logging(settings.debug)

    async with async_playwright() as p:
        browser = await p.chromium.launch(headless=args.headless)
        page = await browser.new_page()
        await page.goto(args.url)
        await asyncio.sleep(2)  # 等待页面加载

        session = build_session(page, settings)
        session.rate_limiter.start()
        try:
            for path in args.audio:
                audio_path = Path(path)
                content_type = mimetypes.guess_type(audio_path.name)[0] or "audio/webm"
                await session.handle_audio(audio_path.read_bytes(), audio_path.name, content_type)

            while True:
                command = (await asyncio.to_thread(input, "🎤 > ")).strip()
                if command.lower() in EXIT_WORDS:
                    break
                if command.lower() == HISTORY_WORD:
                    print(session.history.format_history(10))
                elif command.lower() == PLAN_WORD:
                    print(format_plan(session.history.last_plan))
                elif command:
                    await session.handle_transcript(command)
        except (EOFError, KeyboardInterrupt):
            pass
        finally:
            session.rate_limiter.close()
            await browser.close()

        print(f"\n✓ 会话结束（共 {session.history.command_counter} 条命令）")
        print(session.history.format_history(10))


def main() -> None:
    asyncio.run(run_agent(parse_args()))


if __name__ == "__main__":
    main()

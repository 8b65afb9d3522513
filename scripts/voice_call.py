#!/usr/bin/env python3
"""Voice call - talk to the assistant hands-free from your terminal.

Uses:
- Deepgram for speech-to-text
- Groq LLM for replies
- Edge TTS for spoken replies

Keys:
    Enter      done speaking (push-to-talk: press, then Enter again to release)
    i + Enter  interrupt the reply
    q + Enter  end the call (Ctrl+C works too)
"""

import asyncio
import sys

from voicecall.audio.microphone import SoundDeviceMicrophone
from voicecall.config import get_settings
from voicecall.core import (
    CallEvent,
    CallEventType,
    CallOrchestrator,
    CallState,
    StartError,
)
from voicecall.logging_config import setup_logging
from voicecall.services.llm.groq import GroqService
from voicecall.services.stt.deepgram import DeepgramService
from voicecall.services.tts.edge import EdgeTTSService

STATUS_LABELS = {
    CallState.LISTENING: "[Listening... speak now]",
    CallState.PROCESSING: "[Processing...]",
    CallState.SPEAKING: "[Speaking]",
    CallState.WAITING: "[Press Enter to talk]",
    CallState.ENDED: "[Call ended]",
}


def print_event(event: CallEvent) -> None:
    """Render call events as terminal lines."""
    if event.type == CallEventType.STATE_CHANGED and event.state in STATUS_LABELS:
        print(f"    {STATUS_LABELS[event.state]}")
    elif event.type == CallEventType.TRANSCRIPT_UPDATED:
        print(f"You: {event.text}")
    elif event.type == CallEventType.REPLY_AVAILABLE:
        print(f"Bot: {event.text}")
    elif event.type == CallEventType.NOTICE:
        print(f"    (notice: {event.detail})")
    elif event.type == CallEventType.ERROR:
        print(f"ERROR: {event.detail}")


async def read_keys(orchestrator: CallOrchestrator, push_to_talk: bool) -> None:
    """Map stdin lines onto call controls until the call ends."""
    while orchestrator.state != CallState.ENDED:
        line = await asyncio.to_thread(sys.stdin.readline)
        if not line:
            orchestrator.end_call()
            return

        key = line.strip().lower()
        if key == "q":
            orchestrator.end_call()
        elif key == "i":
            orchestrator.interrupt()
        elif push_to_talk and orchestrator.state == CallState.WAITING:
            orchestrator.press_to_talk()
        elif push_to_talk:
            orchestrator.release_to_talk()
        else:
            orchestrator.done_speaking()


async def main() -> int:
    settings = get_settings()
    setup_logging(settings.log_level)

    print("=" * 60)
    print("  Voice Call - Local Assistant")
    print("=" * 60)
    mode = "push-to-talk" if settings.push_to_talk else "hands-free"
    print(f"\n  Mode: {mode}. Enter = done speaking, i = interrupt, q = end.\n")

    orchestrator = CallOrchestrator(
        transcriber=DeepgramService(settings),
        responder=GroqService(settings),
        player=EdgeTTSService(settings),
        microphone=SoundDeviceMicrophone(),
        settings=settings,
    )
    unsubscribe = orchestrator.subscribe(print_event)

    try:
        await orchestrator.start_call()
    except StartError as e:
        print(f"ERROR: {e}")
        print("Check DEEPGRAM_API_KEY, GROQ_API_KEY and microphone access.")
        unsubscribe()
        await orchestrator.close()
        return 1

    keys = asyncio.create_task(read_keys(orchestrator, settings.push_to_talk))
    try:
        await orchestrator.wait_ended()
    except asyncio.CancelledError:
        orchestrator.end_call()
    finally:
        keys.cancel()
        print(f"\n  Call summary: {orchestrator.get_metrics()}")
        unsubscribe()
        await orchestrator.close()

    print("\nGoodbye!")
    return 0


if __name__ == "__main__":
    try:
        sys.exit(asyncio.run(main()))
    except KeyboardInterrupt:
        print("\n\nGoodbye!")

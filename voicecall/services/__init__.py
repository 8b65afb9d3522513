"""Pluggable engines: transcription (stt), replies (llm), playback (tts)."""

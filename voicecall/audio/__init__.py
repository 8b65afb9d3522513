"""Audio capture and analysis for listening cycles.

- AudioCapture: owns the microphone for one cycle, yields an AudioUnit
- LevelAnalyser: per-cycle analysis context fed by the same stream
- SilenceDetector: decides when the user has finished speaking
"""

from voicecall.audio.analysis import LevelAnalyser, compute_rms
from voicecall.audio.capture import AudioCapture, AudioUnit, CaptureConfig
from voicecall.audio.microphone import AudioInput, AudioStream, SoundDeviceMicrophone
from voicecall.audio.silence import SilenceDetector, SilenceWindow

__all__ = [
    "AudioCapture",
    "AudioUnit",
    "CaptureConfig",
    "AudioInput",
    "AudioStream",
    "SoundDeviceMicrophone",
    "LevelAnalyser",
    "compute_rms",
    "SilenceDetector",
    "SilenceWindow",
]

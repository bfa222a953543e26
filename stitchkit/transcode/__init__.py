from .settings import EncoderSettings, LongStitchContingency, SequinContingency, ThreadChangeCommand
from .transcoder import Transcoder, TranscodeState, transcode

__all__ = [
    # Settings
    "EncoderSettings",
    "LongStitchContingency",
    "SequinContingency",
    "ThreadChangeCommand",
    # Pipeline
    "Transcoder",
    "TranscodeState",
    "transcode",
]

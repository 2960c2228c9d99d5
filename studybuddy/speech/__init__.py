from studybuddy.speech.cache import AudioCache
from studybuddy.speech.engines import (
    AudioPlayer,
    FallbackSynthesizer,
    PlaybackError,
    SubprocessAudioPlayer,
    SubprocessSpeechSynthesizer,
)
from studybuddy.speech.ledger import DatabaseTTSLedger, EntitlementsClient, LedgerError, TTSUsageInfo
from studybuddy.speech.premium import (
    PremiumAudio,
    PremiumFallback,
    PremiumVoiceClient,
    SpeechServiceError,
)
from studybuddy.speech.selector import ActiveEngine, EngineBadge, SpeechEngineSelector, SpeechState
from studybuddy.speech.voices import PREMIUM_VOICES, Voice

__all__ = [
    "ActiveEngine",
    "AudioCache",
    "AudioPlayer",
    "DatabaseTTSLedger",
    "EngineBadge",
    "EntitlementsClient",
    "FallbackSynthesizer",
    "LedgerError",
    "PREMIUM_VOICES",
    "PlaybackError",
    "PremiumAudio",
    "PremiumFallback",
    "PremiumVoiceClient",
    "SpeechEngineSelector",
    "SpeechServiceError",
    "SpeechState",
    "SubprocessAudioPlayer",
    "SubprocessSpeechSynthesizer",
    "TTSUsageInfo",
    "Voice",
]

"""
BEHAVIOURAL CONSTANTS
---------------------
Single source of truth for all behavioral invariants in the system.

Rules:
- If changing a value changes runtime behavior, it belongs here.
- No magic numbers elsewhere in the codebase.
- Other modules MUST import from this file.
"""

from __future__ import annotations

from typing import Final, Tuple

# =============================================================================
# Audio Format (PCM16 mono, 16kHz out / 24kHz in)
# =============================================================================

AUDIO_CHANNELS: Final[int] = 1

# Microphone -> remote session
CAPTURE_SAMPLE_RATE_HZ: Final[int] = 16_000
CAPTURE_BLOCK_SAMPLES: Final[int] = 4096
CAPTURE_MIME_TYPE: Final[str] = f"audio/pcm;rate={CAPTURE_SAMPLE_RATE_HZ}"

# Remote session -> speaker
PLAYBACK_SAMPLE_RATE_HZ: Final[int] = 24_000
PLAYBACK_BLOCK_SAMPLES: Final[int] = 1024

# Float -> PCM16 scaling (asymmetric, matches two's complement range)
PCM16_NEGATIVE_SCALE: Final[float] = 32768.0
PCM16_POSITIVE_SCALE: Final[float] = 32767.0

# =============================================================================
# Remote Voice Session
# =============================================================================

LIVE_HOST: Final[str] = "generativelanguage.googleapis.com"
LIVE_API_VERSION_DEFAULT: Final[str] = "v1alpha"
LIVE_MODEL_DEFAULT: Final[str] = "gemini-2.5-flash-native-audio-preview-12-2025"
LIVE_VOICE_DEFAULT: Final[str] = "Puck"
LIVE_ACTIVITY_HANDLING: Final[str] = "START_OF_ACTIVITY_INTERRUPTS"
LIVE_RESPONSE_MODALITIES: Final[Tuple[str, ...]] = ("AUDIO",)

# Handshake: socket open + setupComplete
LIVE_SETUP_TIMEOUT_S: Final[float] = 10.0
LIVE_MAX_MESSAGE_BYTES: Final[int] = 2**24

# Implicit connect from start_listening / send_text_message waits for the
# lifecycle to settle (Connected or Error), bounded by this timeout.
CONNECT_SETTLE_TIMEOUT_S: Final[float] = LIVE_SETUP_TIMEOUT_S + 2.0

# Notice surfaced through the assistant callback before a tool runs
TOOL_NOTICE_TEMPLATE: Final[str] = "Executing: {name}"

# =============================================================================
# Diagram Layout
# =============================================================================

LAYOUT_ORIGIN_X: Final[int] = 300
LAYOUT_ORIGIN_Y: Final[int] = 200
LAYOUT_COLUMNS: Final[int] = 6
LAYOUT_SPACING_X: Final[int] = 150
LAYOUT_SPACING_Y: Final[int] = 130

TASK_SIZE: Final[Tuple[int, int]] = (100, 80)
GATEWAY_SIZE: Final[Tuple[int, int]] = (50, 50)
EVENT_SIZE: Final[Tuple[int, int]] = (36, 36)

ELEMENT_ID_SUFFIX_LEN: Final[int] = 7

# exportDiagram tool returns a preview only
EXPORT_PREVIEW_CHARS: Final[int] = 500

# =============================================================================
# Sessions & Persistence
# =============================================================================

STORAGE_KEY_SESSIONS: Final[str] = "bpmn-sessions"
STORAGE_KEY_ACTIVE_SESSION: Final[str] = "bpmn-active-session"
STORAGE_KEY_API_KEY: Final[str] = "gemini-api-key"

DEFAULT_SESSION_NAME: Final[str] = "My First Diagram"
SESSION_NAME_FORMAT: Final[str] = "Diagram %b %d, %I:%M %p"

AUTOSAVE_QUIET_PERIOD_MS: Final[int] = 1_000


# =============================================================================
# Helper Functions
# =============================================================================

def samples_to_seconds(num_samples: int, sample_rate_hz: int) -> float:
    """
    Convert a sample count to a duration in seconds.

    Non-positive input returns 0.0.
    """
    if num_samples <= 0:
        return 0.0
    return num_samples / float(sample_rate_hz)

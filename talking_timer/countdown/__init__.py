"""
Countdown announcement engine

Turns notation tokens into announcements and speaks them on time:

- Notation parsing: "1/2 30s last20 allLast10" into interval directives
- Offset generation: directives expanded against a countdown duration
- Schedule building: priority merge, closeness filtering, descending order
- Tick dispatch: lead-time compensated emission with stale-drop
- Speech adapters: Wyoming Piper TTS, Home Assistant tts.speak, MQTT, log

Key modules:
- config: Timer and announcer settings from environment variables
- notation: Token scanner and directive parser
- schedule: Schedule compilation
- dispatcher: Tick-driven state machine
- runner: Asyncio tick loop with start/end sequencing and remote control
"""

from __future__ import annotations

__all__ = [
    "config",
    "notation",
    "messages",
    "offsets",
    "schedule",
    "dispatcher",
    "runner",
    "speakers",
    "mqtt",
]

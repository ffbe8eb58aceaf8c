#!/usr/bin/env python3
"""Talking countdown daemon."""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import logging
import signal
import sys
from dataclasses import dataclass
from typing import Literal

from talking_timer.countdown.config import PRIORITIES, AnnouncerConfig, parse_auto_destruct
from talking_timer.countdown.dispatcher import DispatcherError, TickDispatcher
from talking_timer.countdown.home_assistant import HomeAssistantClient, HomeAssistantError, verify_home_assistant_access
from talking_timer.countdown.mqtt import TimerMqtt
from talking_timer.countdown.runner import CountdownRunner
from talking_timer.countdown.speakers import build_speaker
from talking_timer.countdown.wyoming import probe_synthesize
from talking_timer.time_codec import DurationError, format_duration, parse_duration

LOGGER = logging.getLogger("talking-timer")

Status = Literal["ok", "fail", "skip"]


@dataclass(slots=True)
class CheckResult:
    name: str
    status: Status
    detail: str


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Speak countdown progress announcements.")
    parser.add_argument("duration", nargs="?", help='Countdown length: "SS", "MM:SS" or "HH:MM:SS"')
    parser.add_argument("--say", default=None, help='Announcement notation, e.g. "1/2 30s last20 allLast10"')
    parser.add_argument("--priority", choices=sorted(PRIORITIES), default=None)
    parser.add_argument("--say-start", action="store_true", help="Speak the start phrase before counting")
    parser.add_argument("--no-end-text", action="store_true", help="Skip the end phrase")
    parser.add_argument("--no-chime", action="store_true", help="Skip the end chime")
    parser.add_argument("--auto-reset", action="store_true", help="Return to idle after finishing")
    parser.add_argument("--self-destruct", default=None, metavar="SECONDS", help="Exit this long after finishing")
    parser.add_argument("--show-clock", action="store_true", help="Log the remaining time once a second")
    parser.add_argument("--wait", action="store_true", help="Wait for an MQTT start command instead of starting")
    parser.add_argument("--stay", action="store_true", help="Keep running after the countdown ends")
    parser.add_argument("--dry-run", action="store_true", help="Print the compiled schedule and exit")
    parser.add_argument("--check-outputs", action="store_true", help="Probe Piper and Home Assistant, then exit")
    parser.add_argument("--log-level", default="INFO")
    return parser


def print_schedule(notation: str | None, duration_ms: int, config: AnnouncerConfig) -> None:
    dispatcher = TickDispatcher.from_notation(notation, duration_ms, sink=lambda _message: None, config=config.timer)
    print(f"Countdown {format_duration(duration_ms)} ({len(dispatcher.schedule)} announcements)")
    for item in dispatcher.schedule:
        print(f"  {format_duration(item.offset_ms):>8}  {item.message}")


async def check_outputs(config: AnnouncerConfig, timeout: float = 5.0) -> list[CheckResult]:
    results: list[CheckResult] = []
    endpoint = config.tts_endpoint
    if endpoint is None:
        results.append(CheckResult("Wyoming Piper", "skip", "WYOMING_PIPER_HOST is not set."))
    else:
        try:
            started, chunks = await probe_synthesize(
                endpoint=endpoint, text="Ten", voice_name=config.tts_voice, timeout=timeout
            )
        except (OSError, asyncio.TimeoutError) as exc:
            results.append(CheckResult("Wyoming Piper", "fail", f"{endpoint.host}:{endpoint.port} ({exc})."))
        else:
            status: Status = "ok" if started and chunks else "fail"
            results.append(CheckResult("Wyoming Piper", status, f"audio started={started}, {chunks} chunks."))

    ha = config.home_assistant
    if not (ha.base_url and ha.token):
        results.append(CheckResult("Home Assistant", "skip", "HOME_ASSISTANT_BASE_URL or token is not set."))
    else:
        try:
            info = await verify_home_assistant_access(ha, timeout=timeout)
        except HomeAssistantError as exc:
            results.append(CheckResult("Home Assistant", "fail", str(exc)))
        else:
            message = info.get("message", "reachable") if isinstance(info, dict) else "reachable"
            results.append(CheckResult("Home Assistant", "ok", str(message)))
    return results


async def main() -> None:
    parser = build_parser()
    args = parser.parse_args()
    logging.basicConfig(level=getattr(logging, args.log_level.upper(), logging.INFO))

    if args.check_outputs:
        results = await check_outputs(AnnouncerConfig.from_env())
        status_labels = {"ok": "[OK] ", "fail": "[FAIL]", "skip": "[SKIP]"}
        for result in results:
            print(f"{status_labels[result.status]} {result.name}: {result.detail}")
        if any(result.status == "fail" for result in results):
            sys.exit(1)
        return
    if args.duration is None:
        parser.error("a duration is required")

    try:
        duration_ms = parse_duration(args.duration)
    except DurationError as exc:
        parser.error(str(exc))

    config = AnnouncerConfig.from_env()
    timer = config.timer.with_overrides(
        priority=args.priority,
        say_start=True if args.say_start else None,
        say_end=False if args.no_end_text else None,
        end_chime=False if args.no_chime else None,
        auto_reset=True if args.auto_reset else None,
        auto_destruct_ms=parse_auto_destruct(args.self_destruct),
    )
    config = AnnouncerConfig(
        hostname=config.hostname,
        timer=timer,
        tts_endpoint=config.tts_endpoint,
        tts_voice=config.tts_voice,
        mqtt=config.mqtt,
        home_assistant=config.home_assistant,
    )

    if args.dry_run:
        print_schedule(args.say, duration_ms, config)
        return

    mqtt = TimerMqtt(config.mqtt, logger=LOGGER)
    mqtt_connected = mqtt.connect()
    ha_client = None
    if config.home_assistant.base_url and config.home_assistant.token:
        ha_client = HomeAssistantClient(config.home_assistant)

    loop = asyncio.get_running_loop()
    stop_event = asyncio.Event()
    last_second: list[int] = [-1]

    def _show_clock(dispatcher: TickDispatcher) -> None:
        second = dispatcher.remaining_ms // 1000
        if second != last_second[0]:
            last_second[0] = second
            LOGGER.info("%s", dispatcher.display)

    runner = CountdownRunner(
        args.say,
        duration_ms,
        speaker=build_speaker(config, mqtt=mqtt if mqtt_connected else None, ha_client=ha_client, logger=LOGGER),
        config=config.timer,
        on_state=mqtt.publish_state if mqtt_connected else None,
        on_progress=_show_clock if args.show_clock else None,
        on_remove=stop_event.set,
        logger=LOGGER,
    )

    if mqtt_connected:
        mqtt.listen_for_commands(runner.handle_command)

    def _handle_signal(signum: int) -> None:
        LOGGER.info("Received signal %s, shutting down", signum)
        stop_event.set()

    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, _handle_signal, sig)

    if not args.wait:
        try:
            await runner.start()
        except DispatcherError as exc:
            LOGGER.error("%s", exc)
            stop_event.set()

    waiters = [asyncio.create_task(stop_event.wait())]
    if not (args.wait or args.stay):
        waiters.append(asyncio.create_task(runner.wait_finished()))
    _done, pending = await asyncio.wait(waiters, return_when=asyncio.FIRST_COMPLETED)
    for task in pending:
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task

    await runner.close()
    if ha_client:
        await ha_client.close()
    mqtt.disconnect()


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        sys.exit(130)

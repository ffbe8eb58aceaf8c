import sys

import atheris

with atheris.instrument_imports():
    from talking_timer.countdown.notation import parse_notation
    from talking_timer.countdown.schedule import compile_schedule
    from talking_timer.time_codec import DurationError, parse_duration


def TestOneInput(data: bytes) -> None:
    """Fuzz notation and duration parsing with arbitrary input."""
    value = data.decode("utf-8", errors="ignore")

    # Notation parsing never raises; unknown tokens are dropped
    directives = parse_notation(value)

    try:
        duration_ms = parse_duration(value)
    except DurationError:
        duration_ms = 600_000  # Expected for invalid input

    # Compiled offsets must stay strictly inside the countdown
    schedule = compile_schedule(directives, duration_ms)
    for offset in schedule.offsets():
        assert 0 < offset < duration_ms


def main() -> None:
    atheris.Setup(sys.argv, TestOneInput)
    atheris.Fuzz()


if __name__ == "__main__":
    main()

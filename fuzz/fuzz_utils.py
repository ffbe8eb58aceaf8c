import sys

import atheris

with atheris.instrument_imports():
    from talking_timer.countdown.config import parse_auto_destruct, parse_lead_bands
    from talking_timer.utils import parse_bool, parse_int, split_csv


def TestOneInput(data: bytes) -> None:
    """Fuzz environment-style parsers with arbitrary input."""
    value = data.decode("utf-8", errors="ignore")

    # Parsers with default fallbacks (should never raise)
    parse_bool(value)
    parse_int(value, default=0)
    split_csv(value)
    parse_lead_bands(value)

    auto_destruct = parse_auto_destruct(value)
    assert auto_destruct is not None and 0 < auto_destruct <= 43_200_000


def main() -> None:
    atheris.Setup(sys.argv, TestOneInput)
    atheris.Fuzz()


if __name__ == "__main__":
    main()

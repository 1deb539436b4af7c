from outreach.core.pacing import FixedDelayPacer, NoDelayPacer


def test_fixed_delay_pacer_sleeps_for_configured_delay() -> None:
    calls: list[float] = []
    pacer = FixedDelayPacer(2.5, sleep=calls.append)

    pacer.wait()
    pacer.wait()

    assert calls == [2.5, 2.5]


def test_zero_delay_never_sleeps() -> None:
    calls: list[float] = []
    FixedDelayPacer(0, sleep=calls.append).wait()

    assert calls == []


def test_no_delay_pacer_is_a_noop() -> None:
    assert NoDelayPacer().wait() is None

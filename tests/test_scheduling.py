import pytest

from alonea_deployment.scheduling import SerialStepQueue

ACCOUNT = "0x" + "de" * 20


def test_steps_run_in_order():
    seen = list()
    queue = SerialStepQueue(account=ACCOUNT, steps=["a", "b", "c"])
    results = queue.run(lambda step: seen.append(step) or step.upper())
    assert seen == ["a", "b", "c"]
    assert results == ["A", "B", "C"]
    assert queue.pending == []
    assert not queue.stopped


def test_declined_step_stops_the_queue(capsys):
    queue = SerialStepQueue(
        account=ACCOUNT, steps=["a", "b", "c"], before_step=lambda step: step != "b"
    )
    results = queue.run(lambda step: step)
    assert results == ["a"]
    assert queue.stopped
    assert queue.pending == ["b", "c"]
    assert "Stopped with 2 step(s) not submitted" in capsys.readouterr().out


def test_stop_takes_effect_after_the_current_step():
    queue = SerialStepQueue(account=ACCOUNT, steps=["a", "b", "c"])

    def worker(step):
        queue.stop()
        return step

    assert queue.run(worker) == ["a"]
    assert queue.pending == ["b", "c"]


def test_failed_step_stays_pending():
    queue = SerialStepQueue(account=ACCOUNT, steps=["a", "b"])

    def worker(step):
        if step == "b":
            raise RuntimeError("reverted")
        return step

    with pytest.raises(RuntimeError):
        queue.run(worker)
    assert queue.pending == ["b"]

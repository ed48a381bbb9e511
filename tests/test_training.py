import json
from pathlib import Path

import pytest

from tttmdp.game_basics import X, GameState, Move
from tttmdp.policy import Policy
from tttmdp.tracking import Tracker, flatten_stats, tracking_run
from tttmdp.training import TrainArgs, build_solver, compare_value_and_policy_iteration, run_train


@pytest.mark.parametrize(
    "args",
    [
        TrainArgs(solver="value", k=10, eval_games=20, seed=0),
        TrainArgs(solver="policy", delta=0.1, eval_games=20, seed=0),
        TrainArgs(solver="qlearning", episodes=500, eval_games=20, seed=0),
    ],
    ids=["value", "policy", "qlearning"],
)
def test_run_train_writes_policy_and_manifest(tmp_path: Path, args: TrainArgs):
    args.out = tmp_path / args.solver
    out = run_train(args)
    policy_path = out / f"{args.solver}_policy.json"
    manifest = json.loads((out / "manifest.json").read_text())
    assert manifest["solver"] == args.solver
    assert manifest["stats"]["policy_states"] == len(Policy.load(policy_path))
    ev = manifest["evaluation"]
    assert ev["wins"] + ev["draws"] + ev["losses"] == 20
    assert len(manifest["checksums"]["policy"]) == 64
    assert "git_commit" in manifest and "numpy" in manifest["python"]["packages"]


def test_run_train_defaults_to_policy_dir_env(tmp_path: Path, monkeypatch):
    monkeypatch.setenv("TTT_POLICY_DIR", str(tmp_path / "pols"))
    out = run_train(TrainArgs(solver="value", k=6, eval_games=0))
    assert out == tmp_path / "pols"
    assert (out / "value_policy.json").exists()
    assert json.loads((out / "manifest.json").read_text())["evaluation"] is None


def test_trained_policies_take_the_immediate_win():
    near_win = GameState((1, 2, 2, 0, 1, 0, 0, 0, 0), X)
    for solver in ("value", "policy"):
        policy = build_solver(TrainArgs(solver=solver, seed=0)).train()
        assert policy.move_for(near_win) == Move(8, X)


def test_unknown_solver_rejected():
    with pytest.raises(ValueError):
        build_solver(TrainArgs(solver="sarsa"))


def test_compare_reports_agreement():
    res = compare_value_and_policy_iteration(k=20, delta=1e-9, seed=0)
    assert res["max_value_difference"] < 1e-3
    assert res["strict_disagreements"] == 0
    assert res["pi_iterations"] >= 1


def test_tracking_none_is_a_no_op():
    with tracking_run("none", run_name="t") as tracker:
        assert isinstance(tracker, Tracker)
        assert not tracker.active
        tracker.log_params({"a": 1})
        tracker.log_metrics({"b": 2.0})
    with pytest.raises(ValueError):
        with tracking_run("wandb", run_name="t"):
            pass


def test_tracker_forwards_to_backend(tmp_path: Path):
    calls = []

    class FakeMlflow:
        def log_params(self, p):
            calls.append(("params", p))

        def log_metrics(self, m):
            calls.append(("metrics", m))

        def log_artifact(self, path, artifact_path=None):
            raise OSError("disk full")

    tracker = Tracker(FakeMlflow())
    tracker.log_params({"solver": "value"})
    tracker.log_metrics({"x": 1})
    tracker.log_artifact(tmp_path / "f")  # backend failure is logged, not raised
    assert calls == [("params", {"solver": "value"}), ("metrics", {"x": 1.0})]


def test_flatten_stats():
    flat = flatten_stats({"train": {"seconds": 1.5, "sweeps": 10}, "eval": {"win_rate": 0.9, "ok": True}, "name": "x"})
    assert flat == {"train.seconds": 1.5, "train.sweeps": 10.0, "eval.win_rate": 0.9}

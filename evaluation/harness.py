"""Lightweight evaluation harness replaying deterministic feedback scenarios."""

from __future__ import annotations

from datetime import timedelta
from pathlib import Path
from tempfile import TemporaryDirectory
from typing import Dict, List

from evaluation.scenarios import BASE_TIME, EvaluationScenario, SCENARIOS
from memory.profile_store import JSONProfileStore
from style_app.app import StylePreferenceApp
from style_app.config import AppConfig


def _evaluate_expectations(
    expectations: Dict[str, object], summary: Dict[str, object], ranked: List[Dict[str, object]]
) -> Dict[str, bool]:
    weights = {item["key"]: item["weight"] for item in summary["likes"] + summary["dislikes"]}
    checks: Dict[str, bool] = {}
    if "positive_weights" in expectations:
        checks["positive_weights"] = all(weights.get(key, 0.0) > 0 for key in expectations["positive_weights"])
    if "negative_weights" in expectations:
        checks["negative_weights"] = all(weights.get(key, 0.0) < 0 for key in expectations["negative_weights"])
    if "hard_bans" in expectations:
        checks["hard_bans"] = set(expectations["hard_bans"]) <= set(summary["hard_bans"])
    if "cooldowns" in expectations:
        checks["cooldowns"] = set(expectations["cooldowns"]) <= set(summary["cooldowns"])
    if "disliked_colors" in expectations:
        checks["disliked_colors"] = set(expectations["disliked_colors"]) <= set(summary["disliked_colors"])
    if "survivor_indexes" in expectations:
        checks["survivor_indexes"] = [item["index"] for item in ranked] == list(expectations["survivor_indexes"])
    return checks


def run_scenario(scenario: EvaluationScenario, user_id: str = "eval_user") -> Dict[str, object]:
    with TemporaryDirectory() as tmpdir:
        config = AppConfig(profile_store_backend="json", profile_store_path=tmpdir)
        engine = StylePreferenceApp(config=config, store=JSONProfileStore(Path(tmpdir) / "profiles"))

        engine.onboard_user(user_id, scenario.answers, now=BASE_TIME)
        warnings: List[str] = []
        for step in scenario.steps:
            result = engine.submit_feedback(
                user_id,
                {
                    "theme": scenario.name,
                    "feedbackType": step.feedback_type,
                    "outfitAnalysis": step.analysis,
                    "microReasons": step.micro_reasons,
                    "reason": step.reason,
                },
                now=BASE_TIME + timedelta(days=step.day),
            )
            warnings.extend(result["warnings"])

        evaluated_at = BASE_TIME + timedelta(days=scenario.evaluate_on_day)
        ranked = engine.score_outfits(user_id, scenario.candidates, now=evaluated_at)["ranked"]
        summary = engine.profile_summary(user_id, now=evaluated_at)
        checks = _evaluate_expectations(scenario.expectations, summary, ranked)
        return {
            "scenario": scenario.name,
            "passed": all(checks.values()) and not warnings,
            "checks": checks,
            "warnings": warnings,
            "ranked": ranked,
            "summary": summary,
        }


def run_evaluation_suite() -> List[Dict[str, object]]:
    return [run_scenario(scenario) for scenario in SCENARIOS]


def run_smoke_checks() -> List[str]:
    results = run_evaluation_suite()
    return [f"{result['scenario']}: {'passed' if result['passed'] else 'failed'}" for result in results]


__all__ = ["run_evaluation_suite", "run_scenario", "run_smoke_checks"]

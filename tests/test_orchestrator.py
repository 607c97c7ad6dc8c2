"""End-to-end tests for the request-scoped verification engine."""

import requests

from scopegate.models import EngineLimits, Finding, Verdict
from scopegate.orchestrator import VerificationEngine

REPO_URL = "https://github.com/acme/shop"
SHA = "f" * 40


def _engine(client, **kwargs):
    return VerificationEngine(client=client, app_base_url="https://dash.example.com", **kwargs)


def test_verify_end_to_end(repo_client):
    findings = [
        Finding(rule_id="SQLI", file_path="app/views.py", line_number=13),
        Finding(rule_id="EVAL", file_path="app/views.py", line_number=26),
        Finding(rule_id="CMD", file_path="app/admin.py", line_number=18),
        Finding(rule_id="X", file_path="vendor/lib.py", line_number=1),
    ]
    report = _engine(repo_client).verify(REPO_URL, SHA, findings)

    assert [v.verdict for v in report.verdicts] == [
        Verdict.VERIFIED, Verdict.REFUTED, Verdict.VERIFIED, Verdict.UNKNOWN,
    ]
    assert report.verdicts[2].evidence["chain"][0] == {"fn": "admin_panel", "file": "app/admin.py"}


def test_verify_with_unreachable_host_is_all_unknown(mock_client):
    mock_client.get_tree.side_effect = requests.ConnectionError("down")
    findings = [Finding(rule_id="X", file_path="app/views.py", line_number=13)]

    report = _engine(mock_client).verify(REPO_URL, SHA, findings)
    assert report.unknown_count == 1


def test_verify_with_invalid_repo_url(repo_client):
    report = _engine(repo_client).verify("not a url", SHA, [
        Finding(rule_id="X", file_path="app/views.py", line_number=13),
    ])
    assert report.verdicts[0].verdict is Verdict.UNKNOWN
    repo_client.get_tree.assert_not_called()


def test_snapshot_respects_fetch_cap(repo_client):
    snap = _engine(repo_client, limits=EngineLimits(max_fetched_files=1)).snapshot(REPO_URL, SHA)
    assert list(snap.sources) == ["app/views.py"]
    assert snap.extraction.entrypoints == {"get_user"}


def test_annotate_classifies_unlabelled_findings(mock_client):
    mock_client.list_commit_pulls.return_value = [{"number": 3}]
    mock_client.get_pull.return_value = {"base": {"ref": "main", "sha": "a" * 40}, "head": {"sha": SHA}}
    mock_client.list_pull_files.return_value = [
        {"filename": "app/views.py", "patch": "@@ -10,2 +10,3 @@\n x\n+y\n z"},
        {"filename": "data.bin"},
    ]
    findings = [
        Finding(rule_id="A", file_path="app/views.py", line_number=11),
        Finding(rule_id="B", file_path="app/views.py", line_number=12),
        Finding(rule_id="C", file_path="data.bin", line_number=1),
        Finding(rule_id="D", file_path="other.py", line_number=1, is_new=True, new_reason="legacy"),
    ]

    payload, published = _engine(mock_client).annotate(REPO_URL, SHA, findings, passed_gate=False)

    assert [a.title for a in payload.annotations] == ["A", "C", "D"]
    assert "- changed-line hits: 1" in payload.summary
    assert "- file-fallback hits: 1" in payload.summary
    assert published is True
    mock_client.create_check_run.assert_called_once()


def test_annotate_dry_run_does_not_publish(mock_client):
    findings = [Finding(rule_id="A", file_path="x.py", line_number=1)]
    payload, published = _engine(mock_client).annotate(
        REPO_URL, SHA, findings, passed_gate=True, publish=False
    )
    assert published is False
    assert len(payload.annotations) == 1
    mock_client.create_check_run.assert_not_called()


def test_classify_leaves_input_findings_untouched(mock_client):
    original = Finding(rule_id="A", file_path="app/views.py", line_number=3)
    [classified] = _engine(mock_client).classify([original], None)

    assert (classified.is_new, classified.new_reason) == (True, "non-pr")
    assert original.is_new is None
    assert original.new_reason is None
    assert classified.finding_id == original.finding_id


def test_classify_keeps_caller_labels(mock_client):
    labelled = Finding(rule_id="A", file_path="x.py", line_number=1, is_new=False, new_reason="baseline")
    assert _engine(mock_client).classify([labelled], None) == [labelled]

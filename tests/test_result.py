import pytest

from tagscan.errors import TagscanError
from tagscan.filters import create_filter
from tagscan.result import Finding, FindingCollection, LintResult
from tagscan.severity import Severity


def _finding(code="AVOID_USING_WRITEDUMP", severity=Severity.INFO, line=1, file="a.cfm"):
    return Finding(code=code, message="msg", severity=severity, file=file, line=line, column=1)


def test_counts_follow_contents():
    collection = FindingCollection()
    collection.append(_finding())
    collection.extend([_finding(code="INCORRECT_COMPONENT_NAME", severity=Severity.ERROR), _finding(line=2)])

    counts = collection.counts_by_severity()
    assert counts[Severity.INFO] == 2
    assert counts[Severity.ERROR] == 1
    assert counts[Severity.WARNING] == 0
    assert collection.counts_by_code()["AVOID_USING_WRITEDUMP"] == {Severity.INFO: 2}
    assert len(collection) == 3
    assert [finding.line for finding in collection.by_rule("AVOID_USING_WRITEDUMP")] == [1, 2]


def test_filter_must_be_attached_before_admission():
    collection = FindingCollection()
    collection.attach_filter(create_filter(None))
    collection.append(_finding())

    with pytest.raises(TagscanError):
        collection.attach_filter(create_filter([{"code": "X"}]))


def test_finding_requires_code():
    with pytest.raises(ValueError):
        _finding(code="")


def test_result_to_dict_reports_summary():
    result = LintResult()
    result.findings.append(_finding(code="INCORRECT_COMPONENT_NAME", severity=Severity.ERROR))
    result.scanned_files.append("a.cfm")

    data = result.to_dict()

    assert data["summary"]["ERROR"] == 1
    assert data["codes"]["INCORRECT_COMPONENT_NAME"] == {"ERROR": 1}
    assert data["findings"][0]["severity"] == "ERROR"
    assert data["files"]["scanned"] == ["a.cfm"]
    assert data["passed"] is False

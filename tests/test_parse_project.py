import datetime as dt
import textwrap

import pytest

from msp_timeline.normalize import ProjectValidationError, normalize_records
from msp_timeline.parse_project import load_project, parse_duration, parse_ms_project_xml, parse_record_mapping

MSP_XML = """<?xml version="1.0" encoding="UTF-8"?>
<Project xmlns="http://schemas.microsoft.com/project">
  <Name>Depot Upgrade</Name>
  <Author>R. Lee</Author>
  <Company>ACME</Company>
  <StartDate>2024-01-01T08:00:00</StartDate>
  <Tasks>
    <Task><UID>0</UID><Name>Depot Upgrade</Name><OutlineLevel>0</OutlineLevel><Summary>1</Summary></Task>
    <Task>
      <UID>1</UID><ID>1</ID><Name>Phase 1</Name><WBS>1</WBS><OutlineLevel>1</OutlineLevel><Summary>1</Summary>
      <Start>2024-01-01T08:00:00</Start><Finish>2024-01-12T17:00:00</Finish><Duration>PT80H0M0S</Duration>
    </Task>
    <Task>
      <UID>2</UID><ID>2</ID><Name>Survey</Name><WBS>1.1</WBS><OutlineLevel>2</OutlineLevel><Summary>0</Summary>
      <Start>2024-01-01T08:00:00Z</Start><Finish>2024-01-05T17:00:00Z</Finish><Duration>P4DT8H</Duration>
      <PercentComplete>40</PercentComplete><Notes>walk the site</Notes>
    </Task>
    <Task>
      <UID>3</UID><ID>3</ID><Name>Sign-off</Name><OutlineLevel>2</OutlineLevel><Milestone>1</Milestone>
      <Start>2024-01-12T17:00:00</Start><Finish>2024-01-12T17:00:00</Finish>
      <PredecessorLink><PredecessorUID>2</PredecessorUID><Type>1</Type></PredecessorLink>
    </Task>
    <Task><UID>4</UID><Name></Name></Task>
  </Tasks>
  <Resources>
    <Resource><UID>0</UID><Name>Unassigned</Name></Resource>
    <Resource><UID>7</UID><Name>Surveyor</Name><Initials>S</Initials></Resource>
  </Resources>
  <Assignments>
    <Assignment><UID>1</UID><TaskUID>2</TaskUID><ResourceUID>7</ResourceUID><Units>0.5</Units></Assignment>
  </Assignments>
</Project>
"""


def test_ms_project_xml_is_parsed_into_records():
    records = parse_ms_project_xml(MSP_XML)

    assert records.info.name == "Depot Upgrade"
    assert records.info.author == "R. Lee"
    assert records.info.start == dt.datetime(2024, 1, 1, 8)
    assert [t.uid for t in records.tasks] == ["1", "2", "3"]
    survey = records.tasks[1]
    assert survey.start == dt.datetime(2024, 1, 1, 8)
    assert survey.duration_hours == 40
    assert survey.percent_complete == 40
    assert survey.notes == "walk the site"
    assert records.tasks[2].is_milestone
    assert records.tasks[2].predecessors == ["2"]
    assert [r.name for r in records.resources] == ["Surveyor"]
    assert records.assignments[0].units == 0.5


def test_ms_project_records_normalize_with_hierarchy_and_resources():
    project = normalize_records(parse_ms_project_xml(MSP_XML))

    phase = project.tasks_by_uid["1"]
    assert phase.children == ("2", "3")
    assert project.tasks_by_uid["3"].parent_uid == "1"
    assert project.tasks_by_uid["2"].resources == ("Surveyor",)
    assert project.summary.company == "ACME"
    assert project.summary.resource_count == 1
    assert project.summary.min_date == dt.datetime(2024, 1, 1, 8)
    assert project.summary.project_finish == dt.datetime(2024, 1, 12, 17)


def test_invalid_xml_is_rejected_once():
    with pytest.raises(ProjectValidationError):
        parse_ms_project_xml("<Project><Tasks><Task></Project>")


def test_non_numeric_outline_level_is_rejected():
    broken = MSP_XML.replace("<OutlineLevel>2</OutlineLevel><Summary>0</Summary>", "<OutlineLevel>two</OutlineLevel>")

    with pytest.raises(ProjectValidationError):
        parse_ms_project_xml(broken)


def test_unparseable_dates_degrade_to_absent():
    records = parse_ms_project_xml(MSP_XML.replace("2024-01-05T17:00:00Z", "someday"))

    assert records.tasks[1].finish is None


@pytest.mark.parametrize(
    "value, hours",
    [("PT8H0M0S", 8), ("P2DT4H", 20), ("PT90M", 1.5), ("PT7H30M0S", 7.5), ("12.5", 12.5), ("", 0)],
)
def test_parse_duration(value, hours):
    assert parse_duration(value) == hours


def test_yaml_record_set_loads(tmp_path):
    path = tmp_path / "plan.yaml"
    path.write_text(
        textwrap.dedent(
            """
            project:
              name: Demo
            tasks:
              - uid: 1
                name: Phase
                summary: true
                start: 2024-01-01
                finish: 2024-01-10
              - uid: 2
                name: Work
                outline_level: 2
                start: 2024-01-02T08:00:00
                finish: 2024-01-05T17:00:00
                predecessors: [1]
            resources:
              - {uid: r1, name: Ana}
            assignments:
              - {task_uid: 2, resource_uid: r1}
            """
        ),
        encoding="utf-8",
    )

    project = load_project(str(path))

    assert project.summary.name == "Demo"
    assert project.tasks_by_uid["1"].start == dt.datetime(2024, 1, 1)
    assert project.tasks_by_uid["2"].start == dt.datetime(2024, 1, 2, 8)
    assert project.tasks_by_uid["2"].predecessors == ("1",)
    assert project.tasks_by_uid["2"].resources == ("Ana",)
    assert project.tasks_by_uid["2"].parent_uid == "1"


def test_yaml_unknown_fields_are_rejected():
    with pytest.raises(ProjectValidationError, match="unexpected fields"):
        parse_record_mapping({"tasks": [{"uid": 1, "name": "A", "colour": "red"}]})


def test_duplicate_uids_are_rejected():
    records = parse_record_mapping({"tasks": [{"uid": 1, "name": "A"}, {"uid": "1", "name": "B"}]})

    with pytest.raises(ProjectValidationError, match="duplicate"):
        normalize_records(records)


def test_empty_task_list_is_rejected():
    with pytest.raises(ProjectValidationError):
        normalize_records(parse_record_mapping({"tasks": []}))


def test_unsupported_suffix_is_rejected(tmp_path):
    path = tmp_path / "plan.mpp"
    path.write_text("binary", encoding="utf-8")

    with pytest.raises(ProjectValidationError):
        load_project(str(path))


def test_xml_declared_encoding_is_honoured(tmp_path):
    path = tmp_path / "plan.xml"
    path.write_text(MSP_XML.replace('encoding="UTF-8"', 'encoding="UTF-16"'), encoding="utf-16")

    project = load_project(str(path))

    assert project.summary.name == "Depot Upgrade"
    assert [t.uid for t in project.tasks] == ["1", "2", "3"]


def test_undecodable_yaml_is_a_validation_error(tmp_path):
    path = tmp_path / "plan.yaml"
    path.write_bytes(b"tasks:\n  - {uid: 1, name: caf\xff}\n")

    with pytest.raises(ProjectValidationError):
        load_project(str(path))

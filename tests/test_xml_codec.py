"""
Test XML export / import of a whole model.
"""

import io
from datetime import date

import pytest

from activitymgr import Collaborator, Database, ModelManager
from activitymgr.exceptions import DuplicateLoginError, XmlImportError
from activitymgr.services import xml_codec
from activitymgr.services.model_manager import _ImportDelegate


@pytest.fixture
def populated(manager, make_task, collaborator, contribute):
    prj = make_task(None, "PRJ", name="Project")
    dev = make_task(prj, "DEV", name="Development", budget=500, todo=300, comment="phase 1")
    make_task(prj, "DOC", name="Documentation", budget=100, initially_consumed=25, todo=75)
    make_task(None, "OPS", name="Operations & support")
    contribute(dev, date(2024, 5, 13), 100, update_todo=True)
    contribute(dev, date(2024, 5, 14), 50, update_todo=True)
    return manager


@pytest.fixture
def empty_manager():
    database = Database("sqlite://", echo=False)
    database.create_tables()
    yield ModelManager(database)
    database.dispose()


def export(manager) -> bytes:
    out = io.BytesIO()
    manager.export_to_xml(out)
    return out.getvalue()


class TestExport:

    def test_header(self, populated):
        document = export(populated).decode("utf-8")

        assert document.startswith("<?xml version=")
        assert "UTF-8" in document.splitlines()[0]
        assert '<!DOCTYPE model SYSTEM "activitymgr.dtd">' in document
        assert "Root tasks check sums" in document
        assert "<model>" in document

    def test_check_sums_comment_precedes_model(self, populated):
        """
        Scenario: PRJ holds DEV (budget 5, todo 1.5 after 1.5 consumed) and
        DOC (budget 1, initially consumed 0.25, todo 0.75).
        Expected: the comment before <model> carries PRJ's aggregated figures.
        """
        document = export(populated).decode("utf-8")
        comment = document[document.index("<!--"):document.index("-->")]
        lines = [line.strip() for line in comment.splitlines()]

        assert document.index("-->") < document.index("<model>")
        assert lines.index("#0 PRJ (Project)") < lines.index("#1 OPS (Operations & support)")
        prj_figures = lines[lines.index("#0 PRJ (Project)") + 1:lines.index("#1 OPS (Operations & support)")]
        assert prj_figures == [
            "budget             : 6",
            "initially consumed : 0.25",
            "consumed           : 1.5",
            "todo               : 2.25",
            "contributions      : 2",
        ]

    def test_tasks_are_written_depth_first(self, populated):
        document = export(populated).decode("utf-8")

        positions = [
            document.index(f"<path>{code_path}</path>")
            for code_path in ("/PRJ", "/PRJ/DEV", "/PRJ/DOC", "/OPS")
        ]
        assert positions == sorted(positions)

    def test_text_is_escaped(self, populated):
        document = export(populated).decode("utf-8")

        assert "<name>Operations &amp; support</name>" in document

    def test_empty_model(self, empty_manager):
        document = export(empty_manager).decode("utf-8")

        assert "<model>" in document
        assert "<tasks>" not in document
        assert "<!--" not in document


class TestRoundTrip:

    def test_model_survives_export_and_import(self, populated, empty_manager):
        empty_manager.import_from_xml(io.BytesIO(export(populated)))

        assert [d.id for d in empty_manager.get_durations()] == [25, 50, 75, 100]
        assert [c.login for c in empty_manager.get_collaborators()] == ["jdoe"]

        dev = empty_manager.get_task_by_code_path("/PRJ/DEV")
        assert dev.budget == 500
        assert dev.todo == 150
        assert dev.comment == "phase 1"
        assert empty_manager.get_task_by_code_path("/PRJ/DOC").initially_consumed == 25
        assert empty_manager.get_task_by_code_path("/OPS").number == 2

        sums = empty_manager.get_task_sums(None)
        assert sums.consumed_sum == 150
        assert sums.contributions_nb == 2

    def test_reexport_is_identical(self, populated, empty_manager):
        document = export(populated)

        empty_manager.import_from_xml(io.BytesIO(document))

        assert export(empty_manager) == document


MINIMAL = b"""<?xml version="1.0" encoding="UTF-8"?>
<model>
  <durations>
    <duration><value>100</value><is-active>true</is-active></duration>
  </durations>
  <collaborators>
    <collaborator>
      <login>jdoe</login><first-name>John</first-name>
      <last-name>Doe</last-name><is-active>true</is-active>
    </collaborator>
  </collaborators>
  <tasks>
    <task>
      <path>/PRJ</path><name>Project</name><budget>0</budget>
      <initially-consumed>0</initially-consumed><todo>0</todo>
    </task>
    <task>
      <path>/PRJ/DEV</path><name>Development</name><budget>200</budget>
      <initially-consumed>0</initially-consumed><todo>200</todo>
    </task>
  </tasks>
  <contributions>
    <contribution year="2024" month="5" day="13" duration="100">
      <contributor-ref>jdoe</contributor-ref><task-ref>/PRJ/DEV</task-ref>
    </contribution>
  </contributions>
</model>
"""


class TestImport:

    def test_minimal_document(self, empty_manager):
        empty_manager.import_from_xml(io.BytesIO(MINIMAL))

        dev = empty_manager.get_task_by_code_path("/PRJ/DEV")
        assert dev.todo == 200
        assert empty_manager.get_contributions_sum(task=dev) == 100

    def test_small_chunks(self, empty_manager):
        with empty_manager.database.transaction() as session:
            counts = xml_codec.import_model(
                io.BytesIO(MINIMAL), _ImportDelegate(empty_manager, session), chunk_size=16
            )

        assert counts == {"duration": 1, "collaborator": 1, "task": 2, "contribution": 1}

    @pytest.mark.parametrize(
        "document",
        [
            pytest.param(b"<model><projects/></model>", id="unknown element"),
            pytest.param(b"<tasks/>", id="wrong root"),
            pytest.param(
                b"<model><tasks/><durations/></model>", id="sections out of order"
            ),
            pytest.param(
                b"<model><tasks><duration><value>1</value>"
                b"<is-active>true</is-active></duration></tasks></model>",
                id="entity in wrong section",
            ),
            pytest.param(
                b"<model><durations><duration><value>1</value></duration></durations></model>",
                id="missing field",
            ),
            pytest.param(
                b"<model><durations><duration><value>ten</value>"
                b"<is-active>true</is-active></duration></durations></model>",
                id="invalid number",
            ),
            pytest.param(b"<model><durations></model>", id="malformed"),
            pytest.param(
                MINIMAL.replace(b"<task-ref>/PRJ/DEV</task-ref>", b"<task-ref>/</task-ref>"),
                id="task reference without a task",
            ),
            pytest.param(
                MINIMAL.replace(b'month="5"', b'month="13"'),
                id="impossible contribution date",
            ),
        ],
    )
    def test_invalid_documents_rejected(self, empty_manager, document):
        with pytest.raises(XmlImportError):
            empty_manager.import_from_xml(io.BytesIO(document))

    def test_failed_import_leaves_nothing(self, empty_manager):
        """
        Scenario: the document is broken after its durations and collaborators.
        Expected: the whole import is rolled back.
        """
        broken = MINIMAL.replace(b"<task-ref>", b"<task-reference>").replace(
            b"</task-ref>", b"</task-reference>"
        )

        with pytest.raises(XmlImportError):
            empty_manager.import_from_xml(io.BytesIO(broken))

        assert empty_manager.get_durations() == []
        assert empty_manager.get_collaborators() == []
        assert empty_manager.get_root_tasks_count() == 0

    def test_model_rules_apply(self, empty_manager):
        empty_manager.create_collaborator(Collaborator(login="jdoe"))

        with pytest.raises(DuplicateLoginError):
            empty_manager.import_from_xml(io.BytesIO(MINIMAL))

        assert empty_manager.get_durations() == []

    def test_logins_are_trimmed(self, empty_manager):
        document = MINIMAL.replace(b"<login>jdoe</login>", b"<login>\n        jdoe\n      </login>")

        empty_manager.import_from_xml(io.BytesIO(document))

        assert [c.login for c in empty_manager.get_collaborators()] == ["jdoe"]
        assert empty_manager.get_contributions_count() == 1

    def test_unknown_reference_rejected(self, empty_manager):
        document = MINIMAL.replace(
            b"<contributor-ref>jdoe</contributor-ref>",
            b"<contributor-ref>ghost</contributor-ref>",
        )

        with pytest.raises(XmlImportError):
            empty_manager.import_from_xml(io.BytesIO(document))

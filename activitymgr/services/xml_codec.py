"""
XML import / export of a whole model.

Document layout (see ACTIVITYMGR_DTD):

    <model>
      <durations>       duration: value, is-active
      <collaborators>   collaborator: login, first-name, last-name, is-active
      <tasks>           task: path, name, budget, initially-consumed, todo, comment?
      <contributions>   contribution[year, month, day, duration]: contributor-ref, task-ref
    </model>

Tasks are written flat in depth-first order; their `path` is the
'/'-joined code path (/PRJ/SPEC), so a parent always precedes its children
and contributions reference tasks and collaborators independently of the
database ids.

Both directions stream: export writes through `lxml.etree.xmlfile`,
import feeds an `XMLPullParser` and releases every entity element once it
has been validated against the DTD and created.
"""

import io
from datetime import date
from typing import BinaryIO, Protocol

from lxml import etree
from sqlmodel import Session

from activitymgr.exceptions import XmlImportError
from activitymgr.logging_config import get_logger
from activitymgr.models import Collaborator, Contribution, Duration, Task
from activitymgr.repositories import CollaboratorRepository, ContributionRepository, DurationRepository
from activitymgr.services import aggregation, tree

logger = get_logger(__name__)

DTD_SYSTEM_ID = "activitymgr.dtd"

ACTIVITYMGR_DTD = """\
<!ELEMENT model (durations?, collaborators?, tasks?, contributions?)>
<!ELEMENT durations (duration*)>
<!ELEMENT duration (value, is-active)>
<!ELEMENT value (#PCDATA)>
<!ELEMENT is-active (#PCDATA)>
<!ELEMENT collaborators (collaborator*)>
<!ELEMENT collaborator (login, first-name, last-name, is-active)>
<!ELEMENT login (#PCDATA)>
<!ELEMENT first-name (#PCDATA)>
<!ELEMENT last-name (#PCDATA)>
<!ELEMENT tasks (task*)>
<!ELEMENT task (path, name, budget, initially-consumed, todo, comment?)>
<!ELEMENT path (#PCDATA)>
<!ELEMENT name (#PCDATA)>
<!ELEMENT budget (#PCDATA)>
<!ELEMENT initially-consumed (#PCDATA)>
<!ELEMENT todo (#PCDATA)>
<!ELEMENT comment (#PCDATA)>
<!ELEMENT contributions (contribution*)>
<!ELEMENT contribution (contributor-ref, task-ref)>
<!ATTLIST contribution
    year CDATA #REQUIRED
    month CDATA #REQUIRED
    day CDATA #REQUIRED
    duration CDATA #REQUIRED>
<!ELEMENT contributor-ref (#PCDATA)>
<!ELEMENT task-ref (#PCDATA)>
"""

# Sections of <model>, in document order
SECTIONS = ("durations", "collaborators", "tasks", "contributions")

# Entity element -> enclosing section
ENTITIES = {
    "duration": "durations",
    "collaborator": "collaborators",
    "task": "tasks",
    "contribution": "contributions",
}

FIELDS = {
    "duration": ("value", "is-active"),
    "collaborator": ("login", "first-name", "last-name", "is-active"),
    "task": ("path", "name", "budget", "initially-consumed", "todo", "comment"),
    "contribution": ("contributor-ref", "task-ref"),
}

_dtd = etree.DTD(io.StringIO(ACTIVITYMGR_DTD))


# =============================================================================
# Export
# =============================================================================

def _format_hundredths(value: int) -> str:
    return f"{value / 100:g}"


def _comment_text(text: str) -> str:
    # "--" is not allowed inside an XML comment
    return text.replace("--", "- -")


def _checksums_comment(session: Session) -> etree._Comment | None:
    root_tasks = tree.get_sub_tasks(session, None)
    if not root_tasks:
        return None
    lines = ["", "  Root tasks check sums:"]
    for index, task in enumerate(root_tasks):
        sums = aggregation.get_task_sums(session, task)
        lines += [
            f"  #{index} {task.code} ({task.name})",
            f"    budget             : {_format_hundredths(sums.budget_sum)}",
            f"    initially consumed : {_format_hundredths(sums.initially_consumed_sum)}",
            f"    consumed           : {_format_hundredths(sums.consumed_sum)}",
            f"    todo               : {_format_hundredths(sums.todo_sum)}",
            f"    contributions      : {sums.contributions_nb}",
        ]
    return etree.Comment(_comment_text("\n".join(lines)) + "\n  ")


def _element(tag: str, children: list[tuple[str, object]], **attributes) -> etree._Element:
    element = etree.Element(tag, {key: str(value) for key, value in attributes.items()})
    for name, value in children:
        if value is None:
            continue
        child = etree.SubElement(element, name)
        child.text = str(value).lower() if isinstance(value, bool) else str(value)
    return element


def _walk_tasks(session: Session, parent: Task | None, parent_code_path: str):
    """Yield (task, code path) depth-first, siblings by number."""
    for task in tree.get_sub_tasks(session, parent):
        code_path = f"{parent_code_path}/{task.code}"
        yield task, code_path
        yield from _walk_tasks(session, task, code_path)


def export_model(session: Session, out: BinaryIO) -> None:
    """Write the whole model to `out` (a binary stream)."""
    durations = DurationRepository(session).find_all()
    collaborators = CollaboratorRepository(session).find_all()
    logins = {collaborator.id: collaborator.login for collaborator in collaborators}
    code_paths: dict[int, str] = {}

    with etree.xmlfile(out, encoding="UTF-8") as xf:
        xf.write_declaration()
        xf.write_doctype(f'<!DOCTYPE model SYSTEM "{DTD_SYSTEM_ID}">')
        comment = _checksums_comment(session)
        if comment is not None:
            # Only markup is allowed outside the root element, no text
            xf.write(comment)
        with xf.element("model"):
            xf.write("\n")
            if durations:
                with xf.element("durations"):
                    xf.write("\n")
                    for duration in durations:
                        xf.write(
                            _element("duration", [("value", duration.id), ("is-active", duration.is_active)]),
                            pretty_print=True,
                        )
                xf.write("\n")

            if collaborators:
                with xf.element("collaborators"):
                    xf.write("\n")
                    for collaborator in collaborators:
                        xf.write(
                            _element(
                                "collaborator",
                                [
                                    ("login", collaborator.login),
                                    ("first-name", collaborator.first_name),
                                    ("last-name", collaborator.last_name),
                                    ("is-active", collaborator.is_active),
                                ],
                            ),
                            pretty_print=True,
                        )
                xf.write("\n")

            tasks = list(_walk_tasks(session, None, ""))
            if tasks:
                with xf.element("tasks"):
                    xf.write("\n")
                    for task, code_path in tasks:
                        code_paths[task.id] = code_path
                        xf.write(
                            _element(
                                "task",
                                [
                                    ("path", code_path),
                                    ("name", task.name),
                                    ("budget", task.budget),
                                    ("initially-consumed", task.initially_consumed),
                                    ("todo", task.todo),
                                    ("comment", task.comment),
                                ],
                            ),
                            pretty_print=True,
                        )
                xf.write("\n")

            contributions = ContributionRepository(session).find()
            if contributions:
                with xf.element("contributions"):
                    xf.write("\n")
                    for contribution in contributions:
                        xf.write(
                            _element(
                                "contribution",
                                [
                                    ("contributor-ref", logins[contribution.contributor_id]),
                                    ("task-ref", code_paths[contribution.task_id]),
                                ],
                                year=contribution.year,
                                month=contribution.month,
                                day=contribution.day,
                                duration=contribution.duration_id,
                            ),
                            pretty_print=True,
                        )
                xf.write("\n")

    logger.info(
        f"Exported {len(durations)} durations, {len(collaborators)} collaborators, "
        f"{len(code_paths)} tasks, {len(contributions)} contributions"
    )


# =============================================================================
# Import
# =============================================================================

class ImportDelegate(Protocol):
    """Creation and lookup calls the importer drives, all in one transaction."""

    def create_duration(self, duration: Duration) -> Duration: ...

    def create_collaborator(self, collaborator: Collaborator) -> Collaborator: ...

    def create_task(self, parent: Task | None, task: Task) -> Task: ...

    def create_contribution(self, contribution: Contribution) -> Contribution: ...

    def get_task_by_code_path(self, code_path: str) -> Task | None: ...

    def get_collaborator(self, login: str) -> Collaborator | None: ...


def _parse_int(element: etree._Element, value: str | None, name: str) -> int:
    if value is None:
        raise XmlImportError(f"Missing value for '{name}'", element.sourceline)
    try:
        return int(value.strip())
    except ValueError:
        raise XmlImportError(f"Invalid number '{value}' for '{name}'", element.sourceline) from None


def _parse_bool(element: etree._Element, value: str | None, name: str) -> bool:
    text = (value or "").strip().lower()
    if text not in ("true", "false"):
        raise XmlImportError(f"Invalid boolean '{value}' for '{name}'", element.sourceline)
    return text == "true"


def _field_values(element: etree._Element) -> dict[str, str]:
    return {child.tag: child.text or "" for child in element if child.tag in FIELDS[element.tag]}


class ModelImporter:
    """
    Streams an XML document into the model through an ImportDelegate.

    Tasks and collaborators created during the import are cached by code
    path / login, so references resolve without querying storage again.
    """

    def __init__(self, delegate: ImportDelegate):
        self.delegate = delegate
        self.tasks_by_code_path: dict[str, Task] = {}
        self.collaborators_by_login: dict[str, Collaborator] = {}
        self.counts = {entity: 0 for entity in ENTITIES}
        self._section_index = -1

    def _task(self, element: etree._Element, code_path: str) -> Task:
        task = self.tasks_by_code_path.get(code_path)
        if task is None:
            task = self.delegate.get_task_by_code_path(code_path)
            if task is None:
                raise XmlImportError(f"'{code_path}' does not reference a task", element.sourceline)
            self.tasks_by_code_path[code_path] = task
        return task

    def _collaborator(self, element: etree._Element, login: str) -> Collaborator:
        collaborator = self.collaborators_by_login.get(login)
        if collaborator is None:
            collaborator = self.delegate.get_collaborator(login)
            if collaborator is None:
                raise XmlImportError(f"Unknown collaborator '{login}'", element.sourceline)
            self.collaborators_by_login[login] = collaborator
        return collaborator

    def start(self, element: etree._Element, depth: int) -> None:
        """Structural checks that do not need the element content."""
        tag = element.tag
        parent = element.getparent()
        parent_tag = parent.tag if parent is not None else None

        if depth == 0:
            if tag != "model":
                raise XmlImportError(f"Unexpected root element '{tag}'", element.sourceline)
        elif tag in SECTIONS:
            if parent_tag != "model":
                raise XmlImportError(f"Unexpected element '{tag}'", element.sourceline)
            index = SECTIONS.index(tag)
            if index <= self._section_index:
                raise XmlImportError(f"Element '{tag}' is out of order", element.sourceline)
            self._section_index = index
        elif tag in ENTITIES:
            if parent_tag != ENTITIES[tag]:
                raise XmlImportError(f"Unexpected element '{tag}'", element.sourceline)
        elif parent_tag not in FIELDS or tag not in FIELDS[parent_tag]:
            raise XmlImportError(f"Unexpected element '{tag}'", element.sourceline)

    def end(self, element: etree._Element) -> None:
        """Validate and create a completed entity element."""
        tag = element.tag
        if tag not in ENTITIES:
            return
        if not _dtd.validate(element):
            error = _dtd.error_log.last_error
            raise XmlImportError(f"Invalid '{tag}' element: {error.message if error else ''}", element.sourceline)

        values = _field_values(element)
        if tag == "duration":
            self._import_duration(element, values)
        elif tag == "collaborator":
            self._import_collaborator(element, values)
        elif tag == "task":
            self._import_task(element, values)
        else:
            self._import_contribution(element, values)
        self.counts[tag] += 1

    def _import_duration(self, element, values) -> None:
        self.delegate.create_duration(
            Duration(
                id=_parse_int(element, values["value"], "value"),
                is_active=_parse_bool(element, values["is-active"], "is-active"),
            )
        )

    def _import_collaborator(self, element, values) -> None:
        collaborator = self.delegate.create_collaborator(
            Collaborator(
                login=values["login"].strip(),
                first_name=values["first-name"],
                last_name=values["last-name"],
                is_active=_parse_bool(element, values["is-active"], "is-active"),
            )
        )
        self.collaborators_by_login[collaborator.login] = collaborator

    def _import_task(self, element, values) -> None:
        code_path = values["path"].strip()
        if not code_path.startswith("/") or code_path.endswith("/"):
            raise XmlImportError(f"Invalid task path '{code_path}'", element.sourceline)
        parent_code_path, _, code = code_path.rpartition("/")
        parent = self._task(element, parent_code_path) if parent_code_path else None
        task = self.delegate.create_task(
            parent,
            Task(
                code=code,
                name=values["name"],
                budget=_parse_int(element, values["budget"], "budget"),
                initially_consumed=_parse_int(element, values["initially-consumed"], "initially-consumed"),
                todo=_parse_int(element, values["todo"], "todo"),
                comment=values.get("comment"),
            ),
        )
        self.tasks_by_code_path[code_path] = task

    def _import_contribution(self, element, values) -> None:
        contributor = self._collaborator(element, values["contributor-ref"].strip())
        task = self._task(element, values["task-ref"].strip())
        try:
            day = date(
                _parse_int(element, element.get("year"), "year"),
                _parse_int(element, element.get("month"), "month"),
                _parse_int(element, element.get("day"), "day"),
            )
        except ValueError as e:
            raise XmlImportError(f"Invalid contribution date: {e}", element.sourceline) from None
        self.delegate.create_contribution(
            Contribution.on(
                day,
                contributor.id,
                task.id,
                _parse_int(element, element.get("duration"), "duration"),
            )
        )


def import_model(source: BinaryIO, delegate: ImportDelegate, chunk_size: int = 64 * 1024) -> dict[str, int]:
    """
    Parse `source` and create its entities through `delegate`.

    Returns the number of entities created per kind.

    Raises:
        XmlImportError: malformed document or element outside the model DTD
        ModelError: an entity was rejected by the model rules
    """
    importer = ModelImporter(delegate)
    parser = etree.XMLPullParser(
        events=("start", "end"),
        resolve_entities=False,
        no_network=True,
    )
    depth = 0

    def handle_events() -> None:
        nonlocal depth
        for event, element in parser.read_events():
            if event == "start":
                importer.start(element, depth)
                depth += 1
                continue
            depth -= 1
            importer.end(element)
            if element.tag in ENTITIES:
                # Release what has been imported
                element.clear()
                while element.getprevious() is not None:
                    del element.getparent()[0]

    try:
        for chunk in iter(lambda: source.read(chunk_size), b""):
            parser.feed(chunk)
            handle_events()
        parser.close()
        handle_events()
    except etree.XMLSyntaxError as e:
        raise XmlImportError(f"Malformed XML document: {e.msg}", e.lineno) from e

    logger.info(f"Imported {importer.counts}")
    return importer.counts

import pytest

from conftest import create_dummy_pdf_bytes, create_dummy_user
from modules.documents.approval.errors import (
    AssignmentNotAvailableError,
    InvalidTransitionError,
    NotYourTurnError,
    ReportRequiredError,
    TeamCompositionError,
)
from modules.documents.approval.workflow import Actor, DocumentStatus
from modules.documents.models.document import Document
from modules.documents.models.user import UserRole
from modules.notifications.models.notification import Notification
from modules.tasks.models.task_assignment import ReportLink
from modules.tasks.services.task_service import TaskService
from modules.tasks.team import AggregateStatus, Participant, TaskStatus, Team

LEADER, MEMBER, REPORTER = 10, 11, 12


def team_of_three():
    return Team([
        Participant(1, LEADER, is_team_leader=True, is_reporter=True),
        Participant(2, MEMBER),
        Participant(3, REPORTER),
    ])


# --- modelo de equipo -----------------------------------------------------

def test_equipo_de_tres_con_un_reportero():
    team = team_of_three()
    assert team.aggregate_status() == AggregateStatus.NOT_STARTED

    changed = team.acknowledge(1, [REPORTER])
    assert {p.user_id for p in changed} == {LEADER, REPORTER}
    assert [p.status for p in team.participants] == [
        TaskStatus.IN_PROGRESS, TaskStatus.PENDING, TaskStatus.IN_PROGRESS
    ]
    assert [p.user_id for p in team.reporters()] == [REPORTER]
    assert team.aggregate_status() == AggregateStatus.IN_PROGRESS

    team.complete(3, "Listo", report_document_id=77)
    assert team.get(2).status == TaskStatus.PENDING
    assert team.aggregate_status() == AggregateStatus.DONE


def test_reportero_necesita_documento_de_informe():
    team = team_of_three()
    team.acknowledge(1, [REPORTER])
    with pytest.raises(ReportRequiredError):
        team.complete(3, "sin informe")
    assert team.get(3).status == TaskStatus.IN_PROGRESS
    team.complete(3, "con informe", report_document_id=5)
    assert team.get(3).status == TaskStatus.COMPLETED
    assert team.get(3).completed_at is not None


def test_no_reportero_completa_sin_informe():
    team = team_of_three()
    team.acknowledge(2)
    assert team.complete(2, "hecho").status == TaskStatus.COMPLETED


def test_lider_debe_elegir_reporteros_del_equipo():
    team = team_of_three()
    with pytest.raises(TeamCompositionError):
        team.acknowledge(1, [])
    with pytest.raises(TeamCompositionError):
        team.acknowledge(1, [99])
    assert team.get(1).status == TaskStatus.PENDING


def test_quien_termino_sin_informe_no_puede_ser_reportero():
    team = team_of_three()
    team.acknowledge(2)
    team.complete(2, "hecho sin informe")

    with pytest.raises(TeamCompositionError):
        team.acknowledge(1, [MEMBER])
    assert team.get(1).status == TaskStatus.PENDING
    assert [p.user_id for p in team.reporters()] == [LEADER]
    assert team.aggregate_status() == AggregateStatus.IN_PROGRESS


def test_quien_termino_con_informe_puede_ser_reportero():
    team = team_of_three()
    team.acknowledge(2)
    team.complete(2, "hecho", report_document_id=40)

    team.acknowledge(1, [MEMBER])
    assert [p.user_id for p in team.reporters()] == [MEMBER]
    assert team.aggregate_status() == AggregateStatus.DONE


def test_reportero_terminado_sin_informe_no_cuenta_como_hecho():
    team = Team([
        Participant(1, LEADER, is_team_leader=True, status=TaskStatus.IN_PROGRESS),
        Participant(2, MEMBER, is_reporter=True, status=TaskStatus.COMPLETED),
    ])
    assert team.aggregate_status() == AggregateStatus.IN_PROGRESS


def test_solo_pendientes_se_aceptan_y_solo_en_curso_se_completan():
    team = team_of_three()
    with pytest.raises(InvalidTransitionError):
        team.complete(2, "aún pendiente")
    team.acknowledge(2)
    with pytest.raises(InvalidTransitionError):
        team.acknowledge(2)


def test_cancelar():
    team = team_of_three()
    team.cancel(2)
    assert team.get(2).status == TaskStatus.CANCELLED
    with pytest.raises(InvalidTransitionError):
        team.cancel(2)
    with pytest.raises(TeamCompositionError):
        team.acknowledge(1, [MEMBER])
    team.cancel(1)
    team.cancel(3)
    assert team.aggregate_status() == AggregateStatus.CANCELLED


def test_composicion_del_equipo():
    team = Team.create(LEADER, [MEMBER, LEADER, MEMBER])
    assert [p.user_id for p in team.participants] == [LEADER, MEMBER]
    assert team.leader.is_reporter
    with pytest.raises(TeamCompositionError):
        Team.create(LEADER, [MEMBER], reporter_ids=[42])
    with pytest.raises(TeamCompositionError):
        Team([Participant(1, LEADER, is_reporter=True)])


# --- servicio -------------------------------------------------------------

@pytest.fixture
def completed_document(session):
    create_dummy_user(session, 1, UserRole.CLERK)
    for user_id in (LEADER, MEMBER, REPORTER):
        create_dummy_user(session, user_id)
    doc = Document(
        subject="Memo aprobado", name="memo.pdf", file_path="documents/1/memo.pdf", file_size=10,
        status=DocumentStatus.APPROVED, current_signer_order=5, user_id=1,
    )
    report = Document(
        subject="Informe", name="informe.pdf", file_path="documents/12/informe.pdf", file_size=10,
        is_report_memo=True, user_id=REPORTER,
    )
    session.add_all([doc, report])
    session.commit()
    return doc, report


def test_crear_equipo_solo_para_documentos_aprobados(session, completed_document):
    doc, report = completed_document
    with pytest.raises(AssignmentNotAvailableError):
        TaskService.create_team(session, report.id, 1, LEADER)

    rows = TaskService.create_team(session, doc.id, 1, LEADER, [MEMBER, REPORTER], note="Ejecutar")
    assert [(r.assigned_to, r.is_team_leader, r.is_reporter) for r in rows] == [
        (LEADER, True, True), (MEMBER, False, False), (REPORTER, False, False)
    ]
    assert session.get(Document, doc.id).is_assigned
    assert [d.id for d in TaskService.list_ready_documents(session)] == [doc.id]

    with pytest.raises(AssignmentNotAvailableError):
        TaskService.create_team(session, doc.id, 1, MEMBER)


def test_flujo_completo_del_equipo(session, completed_document):
    doc, report = completed_document
    rows = TaskService.create_team(session, doc.id, 1, LEADER, [MEMBER, REPORTER])
    leader, member, reporter = (r.id for r in rows)

    with pytest.raises(NotYourTurnError):
        TaskService.acknowledge(session, leader, Actor(MEMBER), [REPORTER])

    TaskService.acknowledge(session, leader, Actor(LEADER), [REPORTER])
    status, team_rows = TaskService.get_team(session, doc.id)
    assert status == AggregateStatus.IN_PROGRESS
    assert [r.status for r in team_rows] == [TaskStatus.IN_PROGRESS, TaskStatus.PENDING, TaskStatus.IN_PROGRESS]

    with pytest.raises(ReportRequiredError):
        TaskService.complete(session, reporter, Actor(REPORTER), "sin informe")
    with pytest.raises(ReportRequiredError):
        TaskService.complete(session, reporter, Actor(REPORTER), "informe equivocado", report_document_id=doc.id)

    TaskService.complete(session, reporter, Actor(REPORTER, name="Reportero"), "Listo", report_document_id=report.id)
    status, _ = TaskService.get_team(session, doc.id)
    assert status == AggregateStatus.DONE

    links = TaskService.report_links(session, doc.id)
    assert [(l.original_document_id, l.report_document_id) for l in links] == [(doc.id, report.id)]
    assert session.query(ReportLink).count() == 1
    notified = {n.user_id for n in session.query(Notification).filter_by(event="assignment.completed")}
    assert notified == {1, LEADER}


def test_mis_tareas_y_pendientes(session, completed_document):
    doc, _ = completed_document
    rows = TaskService.create_team(session, doc.id, 1, LEADER, [MEMBER])
    TaskService.cancel(session, rows[1].id, Actor(1))

    items, total = TaskService.get_user_tasks(session, MEMBER)
    assert total == 1 and items[0].status == TaskStatus.CANCELLED
    items, total = TaskService.get_user_tasks(session, MEMBER, TaskStatus.PENDING)
    assert (items, total) == ([], 0)
    assert TaskService.pending_count(session, LEADER) == 1
    assert TaskService.pending_count(session, MEMBER) == 0

    with pytest.raises(NotYourTurnError):
        TaskService.cancel(session, rows[0].id, Actor(MEMBER))

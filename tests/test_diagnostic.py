import pytest

from conftest import FakeAI
from repairhub.repositories.diagnostic_repository import DiagnosticReportRepository
from repairhub.schemas.domain import RepairStatus
from repairhub.services.diagnostic_service import DiagnosticService, build_prompt
from repairhub.utils.errors import DiagnosticGenerationError, NotFoundError, StaleRequestError


def test_generates_report_and_links_it(diagnostics, store, make_request, ai):
    request = make_request()
    report = diagnostics.get_or_generate(request)

    assert report.repair_request_id == request.id
    assert report.estimated_complexity == "high"
    assert report.estimated_cost.model_dump() == {"min": 200, "max": 400, "min_inr": 15000, "max_inr": 30000}
    assert (report.estimated_time.min, report.estimated_time.max) == (2, 4)
    assert report.suggested_parts == ["Replacement battery", "DC charging port"]

    stored = store.get(request.id)
    assert stored.diagnostic_report_id == report.id
    assert stored.status == RepairStatus.DIAGNOSED
    assert stored.repairer_id is None
    assert len(ai.text_calls) == 1


def test_second_call_returns_same_report_without_ai(diagnostics, store, make_request, ai):
    request = make_request()
    first = diagnostics.get_or_generate(request)
    second = diagnostics.get_or_generate(store.get(request.id))

    assert second.id == first.id
    assert second.model_dump() == first.model_dump()
    assert len(ai.text_calls) == 1


def test_ai_failure_persists_nothing(tables, store, make_request):
    request = make_request()
    service = DiagnosticService(store, DiagnosticReportRepository(tables), FakeAI(fail=True))

    with pytest.raises(DiagnosticGenerationError):
        service.get_or_generate(request)

    assert tables.reports.scan()["Items"] == []
    stored = store.get(request.id)
    assert stored.diagnostic_report_id is None
    assert stored.status == RepairStatus.PENDING_DIAGNOSIS


def test_later_states_only_get_the_report_link(diagnostics, store, make_request):
    request = make_request(status="in_progress", repairer_id="rep-1")
    report = diagnostics.get_or_generate(request)

    stored = store.get(request.id)
    assert stored.diagnostic_report_id == report.id
    assert stored.status == RepairStatus.IN_PROGRESS


def test_preselected_repairer_is_kept(diagnostics, store, make_request):
    request = make_request(status="awaiting_repairer", repairer_id="rep-1")
    diagnostics.get_or_generate(request)
    stored = store.get(request.id)
    assert stored.status == RepairStatus.DIAGNOSED
    assert stored.repairer_id == "rep-1"


def test_request_vanishing_before_link_is_stale(diagnostics, tables, make_request):
    request = make_request()
    tables.requests.delete_item(Key={"id": request.id})

    with pytest.raises(StaleRequestError):
        diagnostics.get_or_generate(request)


def test_unparseable_ai_text_uses_defaults(tables, store, make_request):
    service = DiagnosticService(store, DiagnosticReportRepository(tables), FakeAI(text="Hard to say."))
    report = service.get_or_generate(make_request())

    assert report.estimated_complexity == "medium"
    assert report.estimated_cost.min_inr == 3750
    assert report.formatted_analysis == "Hard to say."


def test_get_report_not_found(diagnostics):
    with pytest.raises(NotFoundError):
        diagnostics.get_report("nope")


def test_prompt_mentions_request_and_inr(make_request):
    prompt = build_prompt(make_request())
    assert "Laptop won't charge" in prompt
    assert "electronics" in prompt
    assert "Image references are provided." in prompt
    assert "1 USD = 75 INR" in prompt

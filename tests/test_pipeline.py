import pytest
from langchain_core.messages import HumanMessage, SystemMessage

from polyclinic.errors import MalformedModelOutput, RemoteRejected, RemoteUnavailable, UnknownSpecialty
from polyclinic.gemini import GOOGLE_SEARCH_TOOL, GeminiAdapter
from polyclinic.models import AnalysisRequest, Attachment
from polyclinic.pipeline import FAILED, SUCCESS, AnalysisPipeline
from polyclinic.specialties import Specialty

from conftest import FakeChatModel, grounded_reply

DERMATOLOGY = Specialty(
    department="dermatology",
    mode="lesion",
    title="Skin lesion",
    persona="You are a Dermatologist.",
    task="Describe the lesion.",
    schema={"diagnosis": "string", "findings": ["string"]},
)

INTERACTIONS = Specialty(
    department="pharmacy",
    mode="interactions",
    title="Drug interactions",
    persona="You are a clinical pharmacist.",
    task="List the interactions.",
    schema=[{"drugs": ["string"], "severity": "string"}],
    inputs=("fields",),
    expected="array",
)

TABLE = {DERMATOLOGY.key: DERMATOLOGY, INTERACTIONS.key: INTERACTIONS}


def test_end_to_end_image_analysis(png_bytes):
    model = FakeChatModel(replies=[grounded_reply(
        '```json\n{"diagnosis":"X","findings":["a"]}\n```',
        {"title": "DermNet", "uri": "https://dermnetnz.org/x"},
    )])
    pipeline = AnalysisPipeline(GeminiAdapter(model), table=TABLE)
    request = AnalysisRequest(specialty="dermatology", mode="lesion",
                              attachments=[Attachment(png_bytes, "image/png")],
                              context="Itchy plaque on the elbow")

    analysis = pipeline.run(request)

    assert analysis == {
        "diagnosis": "X",
        "findings": ["a"],
        "sources": [{"title": "DermNet", "uri": "https://dermnetnz.org/x"}],
    }
    system, human = model.calls[0]
    assert isinstance(system, SystemMessage)
    assert isinstance(human, HumanMessage)
    assert [part["type"] for part in human.content] == ["text", "image", "text"]


def test_table_specialty_gets_list_defaults(pipeline, fake_model, png_bytes):
    fake_model.replies.append('{"impression": "Normal chest", "severity": "normal"}')
    request = AnalysisRequest(specialty="radiology", mode="study",
                              attachments=[Attachment(png_bytes, "image/png")], context="CXR PA")

    analysis = pipeline.run(request)

    assert analysis["impression"] == "Normal chest"
    assert analysis["findings"] == []
    assert analysis["sources"] == []


def test_scores_are_passed_through_unvalidated(pipeline, fake_model, png_bytes):
    fake_model.replies.append('{"diagnosis": "caries", "confidence": 180}')
    request = AnalysisRequest(specialty="dentistry", mode="caries", attachments=[Attachment(png_bytes, "image/png")])
    assert pipeline.run(request)["confidence"] == 180


def test_array_mode_specialty():
    model = FakeChatModel(replies=['Found these: [{"drugs": ["warfarin", "aspirin"], "severity": "high"}]'])
    pipeline = AnalysisPipeline(GeminiAdapter(model), table=TABLE)
    request = AnalysisRequest(specialty="pharmacy", mode="interactions", fields={"drugs": "warfarin, aspirin"})
    assert pipeline.run(request) == [{"drugs": ["warfarin", "aspirin"], "severity": "high"}]


def test_unparseable_reply_fails(pipeline, fake_model):
    fake_model.replies.append("I cannot help with that.")
    request = AnalysisRequest(specialty="psychology", mode="dream", context="I was flying over a lake")
    with pytest.raises(MalformedModelOutput):
        pipeline.run(request)


def test_object_expected_but_array_returned(pipeline, fake_model):
    fake_model.replies.append("[1, 2, 3]")
    request = AnalysisRequest(specialty="psychology", mode="dream", context="falling")
    with pytest.raises(MalformedModelOutput):
        pipeline.run(request)


@pytest.mark.parametrize("error, expected", [
    (ConnectionError("connection refused"), RemoteUnavailable),
    (ValueError("bad request"), RemoteRejected),
])
def test_remote_failures_propagate(error, expected):
    model = FakeChatModel(error=error)
    pipeline = AnalysisPipeline(GeminiAdapter(model))
    request = AnalysisRequest(specialty="genetics", mode="family", context="Two uncles with hemophilia")
    with pytest.raises(expected):
        pipeline.run(request)


def test_unknown_specialty(pipeline):
    with pytest.raises(UnknownSpecialty):
        pipeline.run(AnalysisRequest(specialty="astrology", mode="chart"))


def test_each_run_starts_fresh(pipeline, fake_model):
    fake_model.replies.extend(["not json", '{"diagnosis": "ok"}'])
    request = AnalysisRequest(specialty="psychology", mode="dream", context="a dream")
    with pytest.raises(MalformedModelOutput):
        pipeline.run(request)
    assert pipeline.run(request)["diagnosis"] == "ok"


def test_graph_records_status(pipeline, fake_model):
    fake_model.replies.extend(['{"diagnosis": "ok"}', "nope"])
    request = AnalysisRequest(specialty="psychology", mode="dream", context="a dream")
    state = {"request": request, "specialty": pipeline.table[("psychology", "dream")], "messages": [],
             "reply": None, "parsed": None, "analysis": None, "status": "submitting", "error": None}

    assert pipeline.graph.invoke(dict(state))["status"] == SUCCESS
    failed = pipeline.graph.invoke(dict(state))
    assert failed["status"] == FAILED
    assert isinstance(failed["error"], MalformedModelOutput)
    assert failed["analysis"] is None


def test_intake_uses_search_and_reasoning_budget(pipeline, fake_model):
    fake_model.replies.append(grounded_reply(
        '{"modern": {"diagnosis": "flu"}, "traditional": {"diagnosis": "cold temperament"}}',
        {"title": "CDC", "uri": "https://cdc.gov/flu"},
        {"uri": "#"},
    ))
    request = AnalysisRequest(specialty="intake", mode="general",
                              fields={"name": "A", "age": 40, "chiefComplaint": "fever"})

    analysis = pipeline.run(request)

    assert fake_model.tools == [GOOGLE_SEARCH_TOOL]
    assert fake_model.seen[0][1] == 2048
    assert analysis["sources"] == [{"title": "CDC", "uri": "https://cdc.gov/flu"}]
    assert analysis["modern"] == {"diagnosis": "flu"}


def test_array_expected_but_object_returned():
    model = FakeChatModel(replies=['{"drugs": ["warfarin"], "severity": "high"}'])
    pipeline = AnalysisPipeline(GeminiAdapter(model), table=TABLE)
    request = AnalysisRequest(specialty="pharmacy", mode="interactions", fields={"drugs": "warfarin"})
    with pytest.raises(MalformedModelOutput) as excinfo:
        pipeline.run(request)
    assert '"severity"' in excinfo.value.snippet


def test_model_node_is_traced():
    assert hasattr(AnalysisPipeline.invoke_model, "__wrapped__")

import pytest
from langchain_core.messages import AIMessage, HumanMessage, SystemMessage

from polyclinic.consult import ConsultChat
from polyclinic.errors import RemoteRejected, RemoteUnavailable
from polyclinic.gemini import GeminiAdapter

from conftest import FakeChatModel

REPORT = {"impression": "Atrial fibrillation", "findings": ["irregular RR"], "sources": []}


def test_conversation_is_kept_per_thread():
    model = FakeChatModel(replies=["Start anticoagulation if CHA2DS2-VASc allows.", "Yes, rate control first."])
    chat = ConsultChat(GeminiAdapter(model))

    first = chat.ask("case-1", "What next?", department="cardiology", test="ECG interpretation", analysis=REPORT)
    second = chat.ask("case-1", "Rate or rhythm control?")

    assert first.startswith("Start anticoagulation")
    assert second == "Yes, rate control first."
    history = chat.history("case-1")
    assert [type(message) for message in history] == [HumanMessage, AIMessage, HumanMessage, AIMessage]

    # The case context is sent as the system instruction on every turn
    for call in model.calls:
        assert isinstance(call[0], SystemMessage)
        assert "Atrial fibrillation" in call[0].content
    assert len(model.calls[1]) == 4


def test_threads_are_independent():
    model = FakeChatModel(replies=["a", "b"])
    chat = ConsultChat(GeminiAdapter(model))
    chat.ask("one", "hello", analysis=REPORT)
    chat.ask("two", "hello")
    assert len(chat.history("one")) == 2
    assert len(chat.history("two")) == 2
    assert chat.history("unknown") == []


def test_failed_turn_leaves_thread_unchanged():
    model = FakeChatModel(error=ConnectionError("connection reset"))
    chat = ConsultChat(GeminiAdapter(model))

    with pytest.raises(RemoteUnavailable):
        chat.ask("t1", "What next?", department="cardiology", test="ECG interpretation", analysis=REPORT)
    assert chat.history("t1") == []

    model.error = None
    model.replies.append("Not urgent.")
    assert chat.ask("t1", "Is it serious?") == "Not urgent."

    history = chat.history("t1")
    assert [message.content for message in history] == ["Is it serious?", "Not urgent."]
    assert len(model.calls[-1]) == 2


def test_failure_after_answers_keeps_earlier_turns():
    model = FakeChatModel(replies=["Start a beta blocker."])
    chat = ConsultChat(GeminiAdapter(model))
    chat.ask("t2", "Treatment?", analysis=REPORT)

    model.error = ValueError("invalid argument")
    with pytest.raises(RemoteRejected):
        chat.ask("t2", "Dose?")

    assert [message.content for message in chat.history("t2")] == ["Treatment?", "Start a beta blocker."]


def test_consensus_is_part_of_the_case_context():
    model = FakeChatModel(replies=["Follow the unified plan."])
    chat = ConsultChat(GeminiAdapter(model))
    chat.ask("t3", "Summary?", department="intake", test="Two-physician intake", analysis=REPORT,
             consensus="Rest, fluids and paracetamol; avoid licorice with the diuretic.")
    assert "avoid licorice" in model.calls[0][0].content

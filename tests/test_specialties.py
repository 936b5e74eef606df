import pytest

from polyclinic.errors import MissingInput, UnknownSpecialty
from polyclinic.models import AnalysisRequest, Attachment
from polyclinic.specialties import SPECIALTIES, departments, get_specialty

REQUIRED_DEPARTMENTS = [
    "cardiology", "dentistry", "emergency", "gastroenterology", "genetics", "gynecology", "hematology",
    "laboratory", "neurology", "ophthalmology", "orthopedics", "pediatrics", "psychology", "radiology",
]


@pytest.mark.parametrize("department", REQUIRED_DEPARTMENTS)
def test_department_has_at_least_one_mode(department):
    assert departments()[department]


def test_every_row_has_persona_task_and_schema():
    for (department, mode), specialty in SPECIALTIES.items():
        assert specialty.key == (department, mode)
        assert specialty.persona and specialty.task and specialty.schema
        assert specialty.expected in ("object", "array")


def test_lookup_is_case_insensitive():
    assert get_specialty("Cardiology", "ECG").title == "ECG interpretation"


def test_unknown_mode():
    with pytest.raises(UnknownSpecialty):
        get_specialty("cardiology", "horoscope")


def test_list_fields_come_from_schema():
    assert get_specialty("radiology", "study").list_fields == ["findings"]


def test_invocation_config_uses_row_overrides():
    assert get_specialty("prescription", "digitize").invocation_config(0.2).temperature == 0.0
    assert get_specialty("radiology", "study").invocation_config(0.2).temperature == 0.2

    intake = get_specialty("intake", "general").invocation_config(0.2)
    assert intake.enable_search_augmentation
    assert intake.reasoning_budget == 2048


def test_image_mode_requires_an_image():
    specialty = get_specialty("dentistry", "caries")
    with pytest.raises(MissingInput):
        specialty.check_request(AnalysisRequest(specialty="dentistry", mode="caries", context="molar pain"))
    with pytest.raises(MissingInput):
        specialty.check_request(AnalysisRequest(specialty="dentistry", mode="caries",
                                                attachments=[Attachment(b"RIFF", "audio/wav")]))
    specialty.check_request(AnalysisRequest(specialty="dentistry", mode="caries",
                                            attachments=[Attachment(b"\x89PNG", "image/png")]))


def test_text_and_field_modes():
    with pytest.raises(MissingInput):
        get_specialty("psychology", "dream").check_request(
            AnalysisRequest(specialty="psychology", mode="dream", context="   "))
    with pytest.raises(MissingInput):
        get_specialty("cardiology", "risk").check_request(
            AnalysisRequest(specialty="cardiology", mode="risk", fields={"age": ""}))
    get_specialty("cardiology", "risk").check_request(
        AnalysisRequest(specialty="cardiology", mode="risk", fields={"age": 55}))


def test_describe():
    described = get_specialty("pediatrics", "cry").describe()
    assert described["inputs"] == ["audio"]
    assert described["department"] == "pediatrics"

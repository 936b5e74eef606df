import pytest
from langchain_google_genai import ChatGoogleGenerativeAI
from langchain_ollama import ChatOllama

from polyclinic.config import DEFAULT_MODEL, Settings, create_chat_model, load_settings
from polyclinic.errors import ConfigurationInvalid, ConfigurationMissing


def test_missing_key_is_a_configuration_error():
    with pytest.raises(ConfigurationMissing):
        load_settings({})


def test_blank_key_counts_as_missing():
    with pytest.raises(ConfigurationMissing):
        load_settings({"GOOGLE_API_KEY": "   "})


def test_either_key_variable_is_accepted():
    assert load_settings({"GEMINI_API_KEY": "abc"}).api_key == "abc"
    assert load_settings({"GOOGLE_API_KEY": "first", "GEMINI_API_KEY": "second"}).api_key == "first"


def test_defaults_and_overrides():
    settings = load_settings({"GOOGLE_API_KEY": "k"})
    assert settings.model == DEFAULT_MODEL
    assert settings.language == "English"

    settings = load_settings({"GOOGLE_API_KEY": "k", "POLYCLINIC_LANGUAGE": "Persian",
                              "POLYCLINIC_MODEL": "gemini-2.5-pro", "POLYCLINIC_TEMPERATURE": "0.5"})
    assert (settings.language, settings.model, settings.temperature) == ("Persian", "gemini-2.5-pro", 0.5)


def test_local_mode_needs_no_key():
    settings = load_settings({"POLYCLINIC_LOCAL_LLMS": "true"})
    assert settings.local_llms
    assert settings.api_key is None


def test_chat_model_selection():
    assert isinstance(create_chat_model(Settings(api_key="k")), ChatGoogleGenerativeAI)
    assert isinstance(create_chat_model(Settings(api_key=None, local_llms=True)), ChatOllama)


@pytest.mark.parametrize("value", ["1.5", "-0.1", "warm"])
def test_temperature_out_of_range_is_refused(value):
    with pytest.raises(ConfigurationInvalid):
        load_settings({"GOOGLE_API_KEY": "k", "POLYCLINIC_TEMPERATURE": value})


def test_invalid_setting_is_a_setup_error():
    assert issubclass(ConfigurationInvalid, ConfigurationMissing)

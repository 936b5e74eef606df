import os
import logging
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

from polyclinic.errors import ConfigurationInvalid, ConfigurationMissing

############### CONFIG FLAGS ############
DEFAULT_MODEL = "gemini-2.5-flash"  # Gemini model used by every screen
DEFAULT_OLLAMA_MODEL = "qwen3:4b"  # Local model when POLYCLINIC_LOCAL_LLMS is set
DEFAULT_LANGUAGE = "English"  # Language of the values inside the JSON reports
DEFAULT_TEMPERATURE = 0.2
MAX_IMAGE_SIDE = 1024  # Longest image side sent to the model, in pixels
JPEG_QUALITY = 70
SNIPPET_LIMIT = 500  # Characters of bad model output kept for diagnostics
PLACEHOLDER_SOURCE_TITLE = "Credible medical source"
#########################################

load_dotenv()

logging.basicConfig(level=os.getenv("POLYCLINIC_LOG_LEVEL", "INFO").upper(),
                    format='%(asctime)s - %(levelname)s - %(message)s',
                    filename=os.getenv("POLYCLINIC_LOG_FILE"),
                    filemode='a')
logger = logging.getLogger("polyclinic")

API_KEY_VARIABLES = ("GOOGLE_API_KEY", "GEMINI_API_KEY")


@dataclass(frozen=True)
class Settings:
    """Runtime settings, resolved once when the app starts."""
    api_key: Optional[str]
    model: str = DEFAULT_MODEL
    local_llms: bool = False
    ollama_model: str = DEFAULT_OLLAMA_MODEL
    language: str = DEFAULT_LANGUAGE
    temperature: float = DEFAULT_TEMPERATURE


def _flag(value: Optional[str]) -> bool:
    return (value or "").strip().lower() in ("1", "true", "yes", "on")


def _temperature(value) -> float:
    try:
        temperature = float(value)
    except (TypeError, ValueError):
        raise ConfigurationInvalid(f"POLYCLINIC_TEMPERATURE must be a number, got {value!r}") from None
    if not 0.0 <= temperature <= 1.0:
        raise ConfigurationInvalid(f"POLYCLINIC_TEMPERATURE must be between 0 and 1, got {temperature}")
    return temperature


def load_settings(environ=None) -> Settings:
    """
    Read settings from the environment (and the .env file loaded at import).

    Args:
        environ: Mapping to read instead of os.environ, mainly for tests

    Returns:
        Settings instance

    Raises:
        ConfigurationMissing: Gemini is selected but no API key is set
        ConfigurationInvalid: POLYCLINIC_TEMPERATURE is not a number between 0 and 1
    """
    env = os.environ if environ is None else environ

    api_key = None
    for name in API_KEY_VARIABLES:
        if env.get(name, "").strip():
            api_key = env[name].strip()
            break

    local_llms = _flag(env.get("POLYCLINIC_LOCAL_LLMS"))
    if api_key is None and not local_llms:
        raise ConfigurationMissing(
            "No Gemini API key found. Set GOOGLE_API_KEY or GEMINI_API_KEY "
            "(or POLYCLINIC_LOCAL_LLMS=true to use Ollama)."
        )

    temperature = _temperature(env.get("POLYCLINIC_TEMPERATURE", DEFAULT_TEMPERATURE))
    settings = Settings(
        api_key=api_key,
        model=env.get("POLYCLINIC_MODEL", DEFAULT_MODEL),
        local_llms=local_llms,
        ollama_model=env.get("POLYCLINIC_OLLAMA_MODEL", DEFAULT_OLLAMA_MODEL),
        language=env.get("POLYCLINIC_LANGUAGE", DEFAULT_LANGUAGE),
        temperature=temperature,
    )
    logger.info(f"Settings loaded (model={settings.ollama_model if local_llms else settings.model})")
    return settings


def create_chat_model(settings: Settings):
    """Build the chat model every adapter call goes through."""
    if settings.local_llms:
        # Ollama LLM
        from langchain_ollama import ChatOllama

        return ChatOllama(
            model=settings.ollama_model,
            temperature=settings.temperature,
        )

    # Gemini LLM
    from langchain_google_genai import ChatGoogleGenerativeAI

    return ChatGoogleGenerativeAI(
        model=settings.model,
        google_api_key=settings.api_key,
        temperature=settings.temperature,
        timeout=None,
        max_retries=1,
    )

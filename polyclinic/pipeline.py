from typing import Any, Dict, List, Optional, Tuple, TypedDict
from langsmith import traceable

# LangChain imports
from langchain_core.messages import AnyMessage

# LangGraph imports
from langgraph.graph import StateGraph, END

# Local imports
from polyclinic.config import DEFAULT_LANGUAGE, DEFAULT_TEMPERATURE, SNIPPET_LIMIT, Settings, logger
from polyclinic.errors import MalformedModelOutput, PolyclinicError, RemoteRejected, RemoteUnavailable
from polyclinic.gemini import GeminiAdapter
from polyclinic.models import AnalysisRequest, ModelReply
from polyclinic.normalizer import normalize_analysis
from polyclinic.parser import parse_model_json
from polyclinic.prompt_builder import build_messages
from polyclinic.specialties import SPECIALTIES, Specialty, get_specialty

SUBMITTING = "submitting"
SUCCESS = "success"
FAILED = "failed"


##################### Graph Compiling Script #####################
# One analysis: build prompt -> call model -> parse JSON -> normalize.
class AnalysisState(TypedDict):
    request: AnalysisRequest
    specialty: Specialty
    messages: List[AnyMessage]
    reply: Optional[ModelReply]
    parsed: Any
    analysis: Any
    status: str
    error: Optional[PolyclinicError]


class AnalysisPipeline:
    """Generic analysis pipeline shared by every department screen."""

    def __init__(self, adapter: GeminiAdapter, language: str = DEFAULT_LANGUAGE,
                 temperature: float = DEFAULT_TEMPERATURE,
                 table: Optional[Dict[Tuple[str, str], Specialty]] = None):
        self.adapter = adapter
        self.language = language
        self.temperature = temperature
        self.table = SPECIALTIES if table is None else table
        self.graph = self._compile()

    @classmethod
    def from_settings(cls, settings: Settings) -> "AnalysisPipeline":
        adapter = GeminiAdapter.from_settings(settings)
        return cls(adapter, language=settings.language, temperature=settings.temperature)

    def build_prompt(self, state: AnalysisState) -> AnalysisState:
        state["messages"] = build_messages(state["request"], state["specialty"], self.language)
        state["status"] = SUBMITTING
        return state

    @traceable(run_type="llm")
    def invoke_model(self, state: AnalysisState) -> AnalysisState:
        specialty = state["specialty"]
        try:
            config = specialty.invocation_config(self.temperature)
            state["reply"] = self.adapter.invoke(state["messages"], config)
        except (RemoteUnavailable, RemoteRejected) as e:
            logger.error(f"Model call failed for {specialty.department}/{specialty.mode}: {e}")
            state["status"] = FAILED
            state["error"] = e
        return state

    def parse_reply(self, state: AnalysisState) -> AnalysisState:
        specialty = state["specialty"]
        try:
            parsed = parse_model_json(state["reply"].text, specialty.expected)
            wanted = dict if specialty.expected == "object" else list
            if not isinstance(parsed, wanted):
                raise MalformedModelOutput(f"Model reply is not a JSON {specialty.expected}",
                                           snippet=state["reply"].text[:SNIPPET_LIMIT])
            state["parsed"] = parsed
        except MalformedModelOutput as e:
            logger.error(f"Unparseable reply for {specialty.department}/{specialty.mode}: {e}")
            logger.error(f"Result:\n{e.snippet}")
            state["status"] = FAILED
            state["error"] = e
        return state

    def normalize_reply(self, state: AnalysisState) -> AnalysisState:
        state["analysis"] = normalize_analysis(
            state["parsed"],
            state["reply"].citations,
            state["specialty"].list_fields,
        )
        state["status"] = SUCCESS
        return state

    def _compile(self):
        workflow = StateGraph(AnalysisState)

        # Add nodes
        workflow.add_node("build_prompt", self.build_prompt)
        workflow.add_node("invoke_model", self.invoke_model)
        workflow.add_node("parse_reply", self.parse_reply)
        workflow.add_node("normalize_reply", self.normalize_reply)

        # Create edges
        workflow.add_edge("build_prompt", "invoke_model")
        workflow.add_conditional_edges("invoke_model", self.router,
                                       {"next": "parse_reply", END: END})
        workflow.add_conditional_edges("parse_reply", self.router,
                                       {"next": "normalize_reply", END: END})
        workflow.add_edge("normalize_reply", END)

        # Set the entry point
        workflow.set_entry_point("build_prompt")

        return workflow.compile()

    @staticmethod
    def router(state: AnalysisState):
        return END if state["status"] == FAILED else "next"

    def run(self, request: AnalysisRequest):
        """
        Run one analysis from a fresh state.

        Args:
            request: Inputs collected by the calling screen

        Returns:
            The normalized analysis (a dict, or a list for array-mode tests)

        Raises:
            UnknownSpecialty: the department/mode is not in the table
            RemoteUnavailable, RemoteRejected: the model call failed
            MalformedModelOutput: no JSON could be recovered from the reply
        """
        specialty = get_specialty(request.specialty, request.mode, self.table)
        logger.info(f"Analysis started: {specialty.department}/{specialty.mode}")
        initial_state = {
            "request": request,
            "specialty": specialty,
            "messages": [],
            "reply": None,
            "parsed": None,
            "analysis": None,
            "status": SUBMITTING,
            "error": None,
        }
        result = self.graph.invoke(initial_state)
        if result["status"] == FAILED:
            raise result["error"]
        logger.info(f"Analysis finished: {specialty.department}/{specialty.mode}")
        return result["analysis"]

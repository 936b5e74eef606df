from typing import Annotated, List, Optional, TypedDict
from uuid import uuid4

# LangChain imports
from langchain_core.messages import AIMessage, AnyMessage, HumanMessage, RemoveMessage, SystemMessage

# LangGraph imports
from langgraph.graph import StateGraph, add_messages, END
from langgraph.checkpoint.memory import MemorySaver

# Local imports
from polyclinic.config import DEFAULT_LANGUAGE, DEFAULT_TEMPERATURE, logger
from polyclinic.errors import PolyclinicError
from polyclinic.gemini import GeminiAdapter
from polyclinic.models import InvocationConfig
from polyclinic.prompts import consult_prompt


##################### Graph Compiling Script #####################
# Follow-up chat between the doctor and the "Medical Council" about one report.
class ConsultState(TypedDict):
    messages: Annotated[List[AnyMessage], add_messages]  # Built-in MessagesState
    context: Optional[SystemMessage]


class ConsultChat:
    """Per-thread consultation chat, checkpointed in memory."""

    def __init__(self, adapter: GeminiAdapter, language: str = DEFAULT_LANGUAGE,
                 temperature: float = DEFAULT_TEMPERATURE):
        self.adapter = adapter
        self.language = language
        self.temperature = temperature
        self.graph = self._compile()

    def respond(self, state: ConsultState) -> ConsultState:
        # Generate an answer using the case context and the conversation so far
        context = state.get("context") or consult_prompt("General", "-", {}, self.language)
        reply = self.adapter.invoke([context] + state["messages"],
                                    InvocationConfig(temperature=self.temperature))
        state["messages"] = [AIMessage(content=reply.text)]
        return state

    def _compile(self):
        workflow = StateGraph(ConsultState)
        memory = MemorySaver()

        # Add nodes
        workflow.add_node("respond", self.respond)

        # Create edges
        workflow.add_edge("respond", END)

        # Set the entry point
        workflow.set_entry_point("respond")

        return workflow.compile(checkpointer=memory)

    def ask(self, thread_id: str, message: str, department: Optional[str] = None,
            test: Optional[str] = None, analysis: Optional[dict] = None,
            consensus: Optional[str] = None) -> str:
        """
        Send one doctor message and return the council's answer.

        Args:
            thread_id: Conversation id; history is kept per thread
            message: The doctor's question
            department: Department of the report being discussed (first message)
            test: Test name of the report (first message)
            analysis: The normalized report (first message, or to switch case)
            consensus: Board consensus text for the case, sent with the report

        Returns:
            The answer text

        Raises:
            PolyclinicError: the model call failed; the thread is left as it was before the call
        """
        question = HumanMessage(content=message, id=str(uuid4()))
        update = {"messages": [question]}
        if analysis is not None:
            update["context"] = consult_prompt(department or "General", test or "-", analysis,
                                               self.language, consensus)

        config = {"configurable": {"thread_id": thread_id}}
        previous = self.graph.get_state(config)
        try:
            result = self.graph.invoke(update, config)
        except PolyclinicError:
            # Drop the unanswered question and any context it brought
            rollback = {"messages": [RemoveMessage(id=question.id)],
                        "context": (previous.values or {}).get("context")}
            self.graph.update_state(config, rollback, as_node="respond")
            raise
        logger.info(f"Consult thread {thread_id}: {len(result['messages'])} messages")
        return result["messages"][-1].content

    def history(self, thread_id: str) -> List[AnyMessage]:
        snapshot = self.graph.get_state({"configurable": {"thread_id": thread_id}})
        if snapshot and getattr(snapshot, "values", None):
            return snapshot.values.get("messages", [])
        return []

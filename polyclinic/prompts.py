import json
from typing import Optional

from langchain_core.messages import SystemMessage

analysis_prompt_template = """# IDENTITY AND MISSION
{persona}

# TASK
{task}

# SAFETY RULES
1. You are assisting a licensed clinician. Your output is decision support, NOT a final diagnosis.
2. Only describe what is visible, audible or stated in the provided inputs. Do NOT invent measurements, history or findings.
3. If the input is unreadable, of poor quality or unrelated to the task, say so in the findings and lower the confidence accordingly.
4. Any finding that may need urgent care MUST be reflected in the severity field.
5. Never recommend a prescription-only drug dose without stating it must be confirmed by the treating physician.

# LANGUAGE
All text VALUES must be written in {language}. JSON keys stay exactly as in the schema below (English).

# OUTPUT FORMAT
RETURN RAW JSON ONLY. NO MARKDOWN, NO CODE FENCES, NO TEXT BEFORE OR AFTER THE JSON.
The reply must be a single JSON {kind} with exactly this structure:
{schema}
"""

consult_prompt_template = """# IDENTITY AND MISSION
You are the "Medical Council", a panel of senior physicians helping a doctor review an AI-assisted analysis.

# CASE CONTEXT
Department: {department}
Test: {test}
Analysis report (JSON):
{report}
{consensus}
# RULES
- Answer the doctor's follow-up questions about this case in {language}.
- Stay within what the report and the doctor's messages support; say clearly when more tests are needed.
- Keep a professional, collaborative tone and keep answers short unless asked for detail.
"""

consensus_prompt_template = """# IDENTITY AND MISSION
You are the Medical Board Director reviewing two independent opinions on the same patient.

# MODERN MEDICINE OPINION
{modern}

# TRADITIONAL MEDICINE OPINION
{traditional}

# TASK
1. Identify conflicts between the two plans (e.g. drug-herb interactions, contradicting lifestyle advice).
2. Write one unified, safe plan. Where the opinions conflict, patient safety and the modern plan take precedence.
3. Close with a brief dialogue between the two doctors in which they agree on the final path.

# OUTPUT FORMAT
Structured markdown in {language}.
"""

transcription_prompt_template = """# IDENTITY AND MISSION
You are a medical transcriptionist.

# TASK
Listen to the attached dictation and transcribe it exactly, in {language}.
Keep drug names, doses and numbers as spoken. Do not summarize, translate or add commentary.
Return only the transcript text.
"""

timeline_prompt_template = """# IDENTITY AND MISSION
You are a senior internist reviewing a patient's record over time.

# CURRENT VISIT
{current}

# PAST VISITS (oldest first)
{history}

# TASK
Identify trends across the visits: improving or worsening values, recurring complaints and new findings.
Point out anything that needs follow-up.

# OUTPUT FORMAT
A brief markdown report in {language}.
"""


def analysis_prompt(persona: str, task: str, schema, language: str, kind: str = "object") -> SystemMessage:
    """System instruction for one analysis: persona, task, safety rules and output schema."""
    return SystemMessage(
        content=analysis_prompt_template.format(
            persona=persona.strip(),
            task=task.strip(),
            language=language,
            kind=kind,
            schema=json.dumps(schema, indent=2, ensure_ascii=False),
        )
    )


def consult_prompt(department: str, test: str, report: dict, language: str,
                   consensus: Optional[str] = None) -> SystemMessage:
    return SystemMessage(
        content=consult_prompt_template.format(
            department=department,
            test=test,
            report=json.dumps(report, indent=2, ensure_ascii=False),
            consensus=f"\nBoard consensus:\n{consensus.strip()}\n" if consensus else "",
            language=language,
        )
    )


def consensus_prompt(modern: dict, traditional: dict, language: str) -> SystemMessage:
    return SystemMessage(
        content=consensus_prompt_template.format(
            modern=json.dumps(modern, indent=2, ensure_ascii=False),
            traditional=json.dumps(traditional, indent=2, ensure_ascii=False),
            language=language,
        )
    )


def transcription_prompt(language: str) -> SystemMessage:
    return SystemMessage(content=transcription_prompt_template.format(language=language))


def timeline_prompt(current: dict, history: list, language: str) -> SystemMessage:
    """Trend review of the current visit against past visits (oldest first)."""
    return SystemMessage(
        content=timeline_prompt_template.format(
            current=json.dumps(current, indent=2, ensure_ascii=False),
            history=json.dumps(history, indent=2, ensure_ascii=False),
            language=language,
        )
    )

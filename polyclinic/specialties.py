"""
Specialty table.

Every department screen is a row here: persona, task, output schema and the
inputs the screen must collect before it may submit. The pipeline reads the
row and does the rest, so adding a test to a department means adding one
``Specialty`` entry.
"""

from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from polyclinic.errors import MissingInput, UnknownSpecialty
from polyclinic.models import AnalysisRequest, InvocationConfig

# Input kinds a mode can require
IMAGE = "image"
AUDIO = "audio"
VIDEO = "video"
MEDIA = "media"  # any attachment (image or document)
TEXT = "text"  # free-text context
FIELDS = "fields"  # structured form fields

SEVERITY_3 = "low | medium | high"
SEVERITY_4 = "low | medium | high | critical"
SEVERITY_RADIOLOGY = "normal | abnormal | critical"


@dataclass(frozen=True)
class Specialty:
    department: str
    mode: str
    title: str
    persona: str
    task: str
    schema: dict
    inputs: Tuple[str, ...] = (IMAGE,)
    caption: str = "Attached file for analysis."
    expected: str = "object"
    temperature: Optional[float] = None
    search: bool = False
    reasoning_budget: Optional[int] = None
    structured_output: Optional[str] = None

    @property
    def key(self) -> Tuple[str, str]:
        return (self.department, self.mode)

    @property
    def list_fields(self) -> List[str]:
        """Top-level schema fields the report renders as lists."""
        if not isinstance(self.schema, dict):
            return []
        return [name for name, value in self.schema.items() if isinstance(value, list)]

    def invocation_config(self, default_temperature: float) -> InvocationConfig:
        return InvocationConfig(
            temperature=default_temperature if self.temperature is None else self.temperature,
            enable_search_augmentation=self.search,
            reasoning_budget=self.reasoning_budget,
            structured_output_mode=self.structured_output,
        )

    def check_request(self, request: AnalysisRequest) -> None:
        """
        Verify a screen collected everything this mode needs.

        Raises:
            MissingInput: a required input is absent
        """
        kinds = request.media_kinds()
        missing = []
        for required in self.inputs:
            if required == MEDIA and not kinds:
                missing.append("file")
            elif required in (IMAGE, AUDIO, VIDEO) and required not in kinds:
                missing.append(required)
            elif required == TEXT and not request.context.strip():
                missing.append("description")
            elif required == FIELDS and not any(str(v).strip() for v in request.fields.values()):
                missing.append("form fields")
        if missing:
            raise MissingInput(f"{self.department}/{self.mode} requires: {', '.join(missing)}")

    def describe(self) -> Dict[str, object]:
        return {
            "department": self.department,
            "mode": self.mode,
            "title": self.title,
            "inputs": list(self.inputs),
            "expected": self.expected,
            "search": self.search,
        }


def _department(department: str, persona: str, schema: dict, modes: List[dict]) -> List[Specialty]:
    rows = []
    for mode in modes:
        mode = dict(mode)
        mode_schema = dict(schema, **mode.pop("schema", {}))
        rows.append(Specialty(department=department, persona=persona, schema=mode_schema, **mode))
    return rows


CARDIOLOGY = _department(
    "cardiology",
    "You are a senior Cardiologist with 20 years of experience in electrocardiography, auscultation and cardiovascular risk assessment.",
    {
        "type": "ecg | sound | risk",
        "impression": "string (one-line summary)",
        "findings": ["string"],
        "metrics": {"name": "value with unit"},
        "differentialDiagnosis": ["string"],
        "recommendations": ["string"],
        "severity": SEVERITY_RADIOLOGY,
        "confidence": "number 0-100",
    },
    [
        dict(mode="ecg", title="ECG interpretation",
             task="Interpret the attached 12-lead ECG. Report rhythm, rate, axis, intervals (PR, QRS, QT/QTc), ST-T changes and any ischemia or arrhythmia patterns. Use the clinical context if provided.",
             caption="ECG tracing to interpret.", schema={"type": "ecg"}),
        dict(mode="sound", title="Heart sound analysis", inputs=(AUDIO,),
             task="Listen to the attached heart sound recording. Identify S1/S2 character, extra sounds (S3, S4, clicks), murmurs (timing, grade, location) and rhythm irregularities.",
             caption="Heart sound recording (digital stethoscope or phone microphone).", schema={"type": "sound"}),
        dict(mode="risk", title="Cardiovascular risk", inputs=(FIELDS,),
             task="Estimate the 10-year cardiovascular risk from the patient profile (age, gender, smoking, diabetes, blood pressure, cholesterol, HDL). Put the estimated risk percentage in metrics and explain the main drivers.",
             schema={"type": "risk"}),
    ],
)

DENTISTRY = _department(
    "dentistry",
    "You are an expert Dentist and oral radiologist.",
    {
        "diagnosis": "string",
        "findings": ["string"],
        "toothNumbers": ["string (FDI notation)"],
        "nextSteps": ["string"],
        "severity": SEVERITY_3,
        "confidence": "number 0-100",
    },
    [
        dict(mode="caries", title="Caries detection",
             task="Inspect the intraoral photo for caries, fractures, plaque and gingival inflammation. Name the affected teeth.",
             caption="Intraoral photograph."),
        dict(mode="opg", title="Panoramic X-ray (OPG)",
             task="Read the panoramic radiograph: caries, periapical lesions, bone loss, impacted or missing teeth, restorations and any jaw pathology.",
             caption="Panoramic dental radiograph (OPG)."),
        dict(mode="smile", title="Smile analysis",
             task="Assess the smile aesthetics: alignment, midline, spacing, crowding, shade and gingival display. Suggest cosmetic or orthodontic next steps.",
             caption="Frontal smile photograph."),
    ],
)

EMERGENCY = _department(
    "emergency",
    "You are an Emergency Medicine physician working in a busy trauma center.",
    {
        "diagnosis": "string",
        "findings": ["string"],
        "triageLevel": "string (ESI level 1-5)",
        "actions": ["string (ordered, most urgent first)"],
        "antidote": "string or null",
        "severity": SEVERITY_4,
    },
    [
        dict(mode="wound", title="Wound assessment",
             task="Assess the wound: type, depth estimate, contamination, signs of infection, need for closure, tetanus prophylaxis and referral.",
             caption="Photograph of the wound."),
        dict(mode="toxicology", title="Toxicology identification",
             task="Identify the substance, pill, plant or animal in the image, the likely toxidrome and the specific antidote if one exists.",
             caption="Photograph of the suspected toxic substance or exposure."),
        dict(mode="triage", title="Triage", inputs=(FIELDS,),
             task="Assign an ESI triage level from the vital signs and chief complaint, list the immediate actions and flag any life threat.",
             temperature=0.1),
    ],
)

GASTROENTEROLOGY = _department(
    "gastroenterology",
    "You are a Gastroenterologist who also practices clinical nutrition and traditional (Mizaj-based) dietetics.",
    {
        "diagnosis": "string",
        "organ": "string",
        "findings": ["string"],
        "nutrients": {"calories": "number", "protein": "grams", "carbohydrates": "grams", "fat": "grams"},
        "mizaj": "string (traditional temperament of the food or patient)",
        "recommendations": ["string"],
        "severity": SEVERITY_3,
    },
    [
        dict(mode="meal", title="Meal analysis",
             task="Identify the foods in the meal photo, estimate the nutrients and comment on suitability for a patient with digestive complaints.",
             caption="Photograph of the meal."),
        dict(mode="endoscopy", title="Endoscopy image",
             task="Describe the endoscopic image: location, mucosal appearance, ulcers, polyps, bleeding or masses, and the most likely diagnosis.",
             caption="Endoscopy frame."),
        dict(mode="pain", title="Abdominal pain map", inputs=(FIELDS,),
             task="From the pain location, character, timing and associated symptoms, name the most likely organ and diagnosis and the red flags to rule out.",
             schema={"nutrients": {}}),
    ],
)

GENETICS = _department(
    "genetics",
    "You are a Clinical Geneticist and pharmacogenomics consultant.",
    {
        "diagnosis": "string",
        "findings": ["string"],
        "risks": ["string"],
        "drugCompatibility": [{"drug": "string", "compatibility": "compatible | caution | avoid", "note": "string"}],
        "recommendations": ["string"],
        "severity": SEVERITY_3,
    },
    [
        dict(mode="report", title="Genetic report", inputs=(MEDIA,),
             task="Interpret the attached genetic test report. Explain pathogenic and likely pathogenic variants, inheritance pattern and clinical implications.",
             caption="Genetic test report."),
        dict(mode="pharma", title="Pharmacogenomics", inputs=(FIELDS,),
             task="Given the genotype/phenotype entries and the listed drugs, assess drug-gene compatibility following CPIC-style guidance."),
        dict(mode="family", title="Family history", inputs=(TEXT,),
             task="Analyze the family history narrative, infer likely hereditary conditions and inheritance patterns, and estimate risks for the patient and offspring."),
    ],
)

GYNECOLOGY = _department(
    "gynecology",
    "You are an Obstetrician-Gynecologist with expertise in pelvic ultrasound and breast imaging.",
    {
        "diagnosis": "string",
        "findings": ["string"],
        "measurements": {"name": "value with unit"},
        "recommendations": ["string"],
        "severity": SEVERITY_3,
    },
    [
        dict(mode="ultrasound", title="Pelvic / obstetric ultrasound",
             task="Read the ultrasound: uterus, endometrium, ovaries, adnexa or fetal biometry as applicable. Report measurements that are visible on the image.",
             caption="Ultrasound image."),
        dict(mode="mammography", title="Mammography",
             task="Read the mammogram: breast density, masses, calcifications, architectural distortion. Give a BI-RADS category in the diagnosis.",
             caption="Mammography image."),
        dict(mode="fertility", title="Fertility assessment", inputs=(FIELDS,),
             task="Assess fertility from cycle data, hormone levels and history; list likely causes of subfertility and the next investigations."),
    ],
)

HEMATOLOGY = _department(
    "hematology",
    "You are a Hematologist and hematopathologist.",
    {
        "diagnosis": "string",
        "findings": ["string"],
        "cellTypes": [{"name": "string", "percentage": "number"}],
        "markersTrend": "string",
        "recommendations": ["string"],
        "severity": SEVERITY_3,
    },
    [
        dict(mode="smear", title="Peripheral blood smear",
             task="Examine the blood smear: red cell morphology, white cell differential, platelets, blasts or inclusions.",
             caption="Peripheral blood smear micrograph."),
        dict(mode="pathology", title="Pathology slide",
             task="Describe the histopathology slide: tissue, architecture, cellular atypia and the most likely diagnosis.",
             caption="Histopathology slide."),
        dict(mode="markers", title="Blood markers trend", inputs=(FIELDS,),
             task="Interpret the CBC and iron/B12/folate markers, describe the trend across the given values and suggest the most likely hematologic condition."),
    ],
)

LABORATORY = _department(
    "laboratory",
    "You are an expert Microbiologist.",
    {
        "sampleType": "string",
        "visualFindings": "string",
        "suspectedOrganism": "string",
        "recommendations": ["string"],
        "severity": SEVERITY_3,
    },
    [
        dict(mode="culture", title="Culture plate",
             task="Analyze the culture plate. Identify colony morphology, hemolysis, lactose fermentation and the likely organism. Use the culture type and notes from the context.",
             caption="Photograph of the culture plate."),
    ],
)

NEUROLOGY = _department(
    "neurology",
    "You are a Neurologist specialized in movement disorders and cognitive neurology.",
    {
        "diagnosis": "string",
        "findings": ["string"],
        "confidenceScore": "number 0-100",
        "recommendations": ["string"],
        "severity": SEVERITY_3,
    },
    [
        dict(mode="tremor", title="Tremor analysis", inputs=(VIDEO,),
             task="Analyze the tremor in the video: rest vs action, frequency estimate, amplitude, symmetry. Differentiate Parkinsonian, essential and other tremors.",
             caption="Video of the patient's hands / tremor."),
        dict(mode="gait", title="Gait analysis", inputs=(VIDEO,),
             task="Analyze the gait: stride, base, arm swing, turning, freezing and balance. Name the gait pattern and likely cause.",
             caption="Video of the patient walking."),
        dict(mode="speech", title="Cognitive speech", inputs=(AUDIO,),
             task="Listen to the speech sample for word-finding pauses, fluency, articulation and coherence that could indicate cognitive decline or aphasia.",
             caption="Recording of the patient speaking."),
    ],
)

OPHTHALMOLOGY = _department(
    "ophthalmology",
    "You are an Ophthalmologist with expertise in retina and systemic disease signs of the eye.",
    {
        "diagnosis": "string",
        "findings": ["string"],
        "systemicIndicators": ["string"],
        "recommendations": ["string"],
        "severity": SEVERITY_3,
    },
    [
        dict(mode="retina", title="Fundus photograph",
             task="Read the fundus image: optic disc, cup-to-disc ratio, vessels, macula, hemorrhages, exudates. Note signs of diabetic or hypertensive retinopathy.",
             caption="Fundus (retina) photograph."),
        dict(mode="external", title="External eye",
             task="Inspect the external eye photo: lids, conjunctiva, cornea, sclera and pupil. Note jaundice, anemia or other systemic clues.",
             caption="Close-up photograph of the eye."),
        dict(mode="vision", title="Vision chart",
             task="From the photo of the vision test, estimate the visual acuity and describe any pattern suggesting refractive error or field defect.",
             caption="Photograph of the completed vision test."),
    ],
)

ORTHOPEDICS = _department(
    "orthopedics",
    "You are an Orthopedic surgeon and physiatrist.",
    {
        "diagnosis": "string",
        "findings": ["string"],
        "angles": {"name": "degrees"},
        "recommendations": ["string"],
        "severity": SEVERITY_3,
    },
    [
        dict(mode="posture", title="Posture analysis",
             task="Evaluate the posture photo: head, shoulders, spine curvature, pelvis and knees. Estimate the visible alignment angles.",
             caption="Full-body posture photograph."),
        dict(mode="joints", title="Joint X-ray",
             task="Read the joint radiograph: fractures, joint space, osteophytes, alignment, bone density. Grade osteoarthritis where applicable.",
             caption="Joint radiograph."),
    ],
)

PEDIATRICS = _department(
    "pediatrics",
    "You are a Pediatrician with expertise in infant development.",
    {
        "diagnosis": "string",
        "findings": ["string"],
        "confidenceScore": "number 0-100",
        "recommendations": ["string"],
        "severity": SEVERITY_3,
    },
    [
        dict(mode="cry", title="Baby cry", inputs=(AUDIO,),
             task="Classify the infant's cry (hunger, pain, discomfort, tiredness, colic) from pitch, rhythm and intensity, and flag any cry pattern that needs medical review.",
             caption="Recording of the infant crying."),
        dict(mode="development", title="Developmental milestones", inputs=(VIDEO,),
             task="Assess motor, social and language milestones visible in the video relative to the stated age.",
             caption="Video of the child playing or moving."),
        dict(mode="growth", title="Growth projection", inputs=(FIELDS,),
             task="Plot the given height/weight/head circumference against WHO growth standards, give the percentiles and project adult height."),
    ],
)

PSYCHOLOGY = _department(
    "psychology",
    "You are a Clinical Psychologist who also knows traditional interpretations of dreams and art.",
    {
        "type": "art | dream | sentiment",
        "interpretation": "string",
        "findings": ["string"],
        "modernAnalysis": "string",
        "traditionalAnalysis": "string",
        "recommendations": ["string"],
        "severity": SEVERITY_3,
    },
    [
        dict(mode="art", title="Art therapy",
             task="Interpret the drawing as in projective art therapy: colors, pressure, placement, figures and what they may reflect emotionally.",
             caption="The patient's drawing.", schema={"type": "art"}),
        dict(mode="dream", title="Dream analysis", inputs=(TEXT,),
             task="Analyze the dream narrative from a modern psychological view and a traditional view.",
             schema={"type": "dream"}),
        dict(mode="sentiment", title="Voice sentiment", inputs=(AUDIO,),
             task="Listen to the voice recording and assess mood, anxiety and depressive markers from tone, pace and content.",
             caption="Recording of the patient talking.", schema={"type": "sentiment"}),
    ],
)

RADIOLOGY = _department(
    "radiology",
    "You are an expert Radiologist.",
    {
        "modality": "string",
        "region": "string",
        "findings": ["string"],
        "impression": "string",
        "severity": SEVERITY_RADIOLOGY,
        "anatomicalLocation": "string",
    },
    [
        dict(mode="study", title="Imaging study",
             task="Analyze the study using the modality and body region given in the context. Provide findings, impression, severity and anatomical location.",
             caption="Radiology image."),
    ],
)

PULMONOLOGY = _department(
    "pulmonology",
    "You are a Pulmonologist.",
    {
        "diagnosis": "string",
        "findings": ["string"],
        "metrics": {"name": "value with unit"},
        "recommendations": ["string"],
        "severity": SEVERITY_3,
    },
    [
        dict(mode="cough", title="Cough sound", inputs=(AUDIO,),
             task="Characterize the cough (dry, wet, barking, whooping, wheezy) and suggest the likely cause.",
             caption="Recording of the patient coughing."),
        dict(mode="breath", title="Breath sounds", inputs=(AUDIO,),
             task="Analyze the lung auscultation recording for wheezes, crackles, rhonchi, stridor or reduced air entry.",
             caption="Lung auscultation recording."),
        dict(mode="spirometry", title="Spirometry report", inputs=(MEDIA,),
             task="Interpret the spirometry report: FEV1, FVC, FEV1/FVC, flow-volume loop shape; classify obstructive, restrictive or normal pattern and bronchodilator response.",
             caption="Spirometry report."),
    ],
)

UROLOGY = _department(
    "urology",
    "You are a Urologist and nephrologist.",
    {
        "diagnosis": "string",
        "findings": ["string"],
        "dipstickValues": {"parameter": "value"},
        "stoneDetails": "string",
        "kidneyFunction": "string",
        "recommendations": ["string"],
        "severity": SEVERITY_3,
    },
    [
        dict(mode="dipstick", title="Urine dipstick",
             task="Read each pad of the urine dipstick against the color chart and interpret the result.",
             caption="Photograph of the urine dipstick next to its color chart."),
        dict(mode="stone", title="Kidney stone",
             task="Describe the stone or imaging: size, location, likely composition and whether spontaneous passage is likely.",
             caption="Photograph or imaging of the stone."),
        dict(mode="function", title="Kidney function", inputs=(FIELDS,),
             task="Estimate eGFR (CKD-EPI) from creatinine, age and sex, stage the chronic kidney disease and list the next steps."),
    ],
)

PHYSICAL_EXAM = _department(
    "physical-exam",
    "You are an Internist who also practices Persian traditional medicine diagnosis from physical signs.",
    {
        "examType": "skin | tongue | face",
        "findings": ["string"],
        "diagnosis": "string",
        "severity": SEVERITY_3,
        "traditionalAnalysis": "string",
        "recommendations": ["string"],
    },
    [
        dict(mode="skin", title="Skin", task="Analyze the skin lesion photo: morphology, color, borders, distribution; apply ABCDE where relevant.",
             caption="Photograph of the skin.", schema={"examType": "skin"}),
        dict(mode="tongue", title="Tongue", task="Analyze the tongue: color, coating, moisture, fissures and papillae.",
             caption="Photograph of the tongue.", schema={"examType": "tongue"}),
        dict(mode="face", title="Face", task="Analyze the face for pallor, jaundice, cyanosis, edema, asymmetry and other systemic signs.",
             caption="Photograph of the face.", schema={"examType": "face"}),
    ],
)

PRESCRIPTION = _department(
    "prescription",
    "You are a Forensic Medical Transcriber digitizing handwritten prescriptions with 100% fidelity to the source text.",
    {
        "items": [{"drug": "string (EXACT COPY)", "dosage": "string (EXACT COPY)", "instruction": "string"}],
        "diagnosis": "string",
        "vitals": {
            "bloodPressure": "string",
            "heartRate": "string",
            "temperature": "string",
            "spO2": "string",
            "weight": "string",
            "height": "string",
            "respiratoryRate": "string",
            "bloodSugar": "string",
        },
    },
    [
        dict(mode="digitize", title="Digitize prescription", temperature=0.0,
             task="""Transcribe the handwritten prescription.
- DO NOT AUTOCORRECT: copy drug names and doses exactly as written, even if misspelled or abbreviated.
- DO NOT GUESS OR SWAP BRANDS: if a stroke is ambiguous, transcribe the most likely characters.
- PRESERVE NOTATION such as "Tab", "N=20", "PR: 80".
- Translate Latin sig codes (BID, TDS, q8h) into the instruction field.
- Extract the diagnosis and any vitals exactly as written. Never add drugs or vitals that are not present.""",
             caption="Photograph of the handwritten prescription."),
    ],
)

INTAKE = _department(
    "intake",
    "You are two expert doctors analyzing this patient simultaneously: a Modern Medical Specialist (Internal Medicine) and a Master of Persian Traditional Medicine (Hakim).",
    {
        "modern": {
            "diagnosis": "string",
            "reasoning": "string",
            "treatmentPlan": ["string"],
            "lifestyle": ["string"],
            "warnings": ["string"],
        },
        "traditional": {
            "diagnosis": "string (temperament / humors)",
            "reasoning": "string",
            "treatmentPlan": ["string (herbal measures)"],
            "lifestyle": ["string"],
            "warnings": ["string"],
        },
        "confidence": "number 0-100",
    },
    [
        dict(mode="general", title="Two-physician intake", inputs=(FIELDS,), search=True, reasoning_budget=2048,
             task="Analyze the patient's demographics, complaint, history and vitals. If a photo of the patient or a lab report is attached, use it. Each doctor gives an independent diagnosis and plan.",
             caption="Additional patient file (photo or lab report)."),
    ],
)

SPECIALTIES: Dict[Tuple[str, str], Specialty] = {
    row.key: row
    for rows in (
        CARDIOLOGY, DENTISTRY, EMERGENCY, GASTROENTEROLOGY, GENETICS, GYNECOLOGY, HEMATOLOGY,
        LABORATORY, NEUROLOGY, OPHTHALMOLOGY, ORTHOPEDICS, PEDIATRICS, PSYCHOLOGY, RADIOLOGY,
        PULMONOLOGY, UROLOGY, PHYSICAL_EXAM, PRESCRIPTION, INTAKE,
    )
    for row in rows
}


def get_specialty(department: str, mode: str, table: Optional[Dict[Tuple[str, str], Specialty]] = None) -> Specialty:
    table = SPECIALTIES if table is None else table
    try:
        return table[(department.lower(), mode.lower())]
    except KeyError:
        raise UnknownSpecialty(f"No analysis defined for {department}/{mode}") from None


def departments(table: Optional[Dict[Tuple[str, str], Specialty]] = None) -> Dict[str, List[Specialty]]:
    """Specialties grouped by department, in table order."""
    table = SPECIALTIES if table is None else table
    grouped: Dict[str, List[Specialty]] = {}
    for row in table.values():
        grouped.setdefault(row.department, []).append(row)
    return grouped

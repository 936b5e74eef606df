import mimetypes
from pathlib import Path

from polyclinic.config import load_settings
from polyclinic.council import MedicalCouncil
from polyclinic.errors import ConfigurationMissing, MissingInput, PolyclinicError, UnknownSpecialty
from polyclinic.models import AnalysisRequest, Attachment
from polyclinic.pipeline import AnalysisPipeline
from polyclinic.report import format_report
from polyclinic.specialties import departments, get_specialty


def read_attachment(path: str) -> Attachment:
    """Load a local file as an attachment, guessing its media type from the extension."""
    file_path = Path(path.strip()).expanduser()
    mime_type = mimetypes.guess_type(file_path.name)[0] or "application/octet-stream"
    return Attachment(data=file_path.read_bytes(), mime_type=mime_type)


def parse_fields(text: str) -> dict:
    """'age=54; smoker=yes' -> {'age': '54', 'smoker': 'yes'}"""
    fields = {}
    for item in text.split(";"):
        if "=" in item:
            key, value = item.split("=", 1)
            fields[key.strip()] = value.strip()
    return fields


def collect_request() -> AnalysisRequest:
    """
    Ask for the department, test and inputs on the terminal.

    Returns:
        The request for the chosen test
    """
    print("\nAvailable departments and tests:")
    for name, rows in departments().items():
        print(f"  {name}: " + ", ".join(row.mode for row in rows))

    department = input("Department: ").strip()
    mode = input("Test: ").strip()
    specialty = get_specialty(department, mode)
    print(f"{specialty.title} requires: {', '.join(specialty.inputs)}")

    paths = input("File paths (comma separated, empty for none): ")
    attachments = [read_attachment(p) for p in paths.split(",") if p.strip()]
    fields = parse_fields(input("Form fields (key=value; key=value): "))
    context = input("Clinical context: ")

    request = AnalysisRequest(specialty=specialty.department, mode=specialty.mode,
                              attachments=attachments, context=context, fields=fields)
    specialty.check_request(request)
    return request


def show_consensus(council: MedicalCouncil, analysis: dict):
    if input("\nAsk the board for a consensus? (y/n): ").strip().lower() != "y":
        return
    try:
        print("\n" + council.consensus(analysis["modern"], analysis["traditional"]))
    except PolyclinicError as e:
        print(e.user_message)


def main():
    try:
        pipeline = AnalysisPipeline.from_settings(load_settings())
        council = MedicalCouncil(pipeline.adapter, pipeline.language, pipeline.temperature)
    except ConfigurationMissing as e:
        print(f"Setup error: {e}")
        return

    print("\nHi, I am your Polyclinic AI assistant.")
    while True:
        try:
            request = collect_request()
        except (UnknownSpecialty, MissingInput, OSError) as e:
            print(f"Error: {e}")
        else:
            print("\nAnalyzing...")
            try:
                analysis = pipeline.run(request)
            except PolyclinicError as e:
                print(e.user_message)
            else:
                title = get_specialty(request.specialty, request.mode).title
                print("\n" + format_report(analysis, title))
                if isinstance(analysis, dict) and analysis.get("modern") and analysis.get("traditional"):
                    show_consensus(council, analysis)

        if input("\nAnother analysis? Exit with 'e': ").strip().lower() == 'e':
            print("Exiting....")
            break


if __name__ == "__main__":
    main()

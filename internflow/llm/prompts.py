"""System prompt for turning raw recruitment text into posting records."""

from internflow.core.config import CandidateProfile

OUTPUT_KEYS = (
    "company",
    "department",
    "position",
    "email",
    "profileSelected",
    "emailSubject",
    "openingLine",
    "jobSourceLine",
    "praiseLine",
    "needsReview",
    "reviewReason",
    "passesFilter",
    "filterReason",
)


def default_subject(candidate: CandidateProfile, school: str) -> str:
    """Subject used when a posting states no naming format."""
    return "-".join([
        candidate.name,
        school,
        candidate.availability,
        candidate.frequency,
        candidate.arrival,
    ])


def build_system_prompt(candidate: CandidateProfile) -> str:
    """Assemble the extraction instructions for one candidate."""
    master_year = candidate.master_year or "graduation year"
    filter_criteria = candidate.filter_criteria or "none (every posting passes)"

    context = (
        "CANDIDATE CONTEXT\n"
        f"Name: {candidate.name}\n"
        f"Base school: {candidate.base_school} (major: {candidate.undergrad_major or 'n/a'})\n"
        f"Full school: {candidate.full_school} (class of {candidate.master_year or 'n/a'})\n"
        f"Current grade: {candidate.current_grade or 'n/a'}\n"
        f"Availability: {candidate.availability}\n"
        f"Frequency: {candidate.frequency}\n"
        f"Arrival: {candidate.arrival}\n"
        f"Filter criteria: {filter_criteria}\n"
    )

    rules = (
        "RULES\n"
        "0. Copy candidate details (grade, school, major) verbatim from the "
        "context. Never infer or adjust them. Separate multiple addresses in "
        "email with ','.\n"
        "1. company: the short, colloquial company name without legal suffixes "
        "(Co., Ltd., Inc., Technology).\n"
        "2. department: a short department name that never repeats the company "
        "name.\n"
        "3. position: a short role name ending in 'Intern' that never repeats "
        "the company or department. Keep qualifiers such as 'Content "
        "Operations' or 'Growth Product'.\n"
        "4. profileSelected and emailSubject:\n"
        "   - Look only for an explicit subject or file naming requirement in "
        "the posting. Candidate requirements in the job description are not "
        "naming requirements.\n"
        f"   - profileSelected is \"Master\" only when that naming requirement asks "
        f"for grade, graduation date, class year or {master_year}. Otherwise "
        "\"Base\".\n"
        f"   - School is \"{candidate.full_school}\" for Master and "
        f"\"{candidate.base_school}\" for Base. Use \"{candidate.current_grade}\" "
        "whenever a grade is required.\n"
        "   - With a naming requirement, fill it in exactly. Without one use: "
        f"\"{default_subject(candidate, '{school}')}\".\n"
        "5. Greeting snippets:\n"
        "   - openingLine: \"Dear {company} {position} hiring team\"\n"
        "   - jobSourceLine: \"I saw your job posting for {position}\"\n"
        "   - praiseLine: \"I greatly admire {company}'s work in {department or "
        "position}\"\n"
        "6. needsReview is true when the email is missing, a postgraduate degree "
        "is required, or the company or position abbreviation is uncertain. "
        "Explain in reviewReason; leave it empty otherwise.\n"
        "7. passesFilter is false when the posting violates the filter criteria, "
        "with a short filterReason. Otherwise true.\n"
    )

    output = (
        "OUTPUT\n"
        "Return ONLY a JSON array (no markdown, no explanation) with one object "
        "per posting, using these keys: " + ", ".join(OUTPUT_KEYS) + ". "
        "needsReview and passesFilter are booleans; every other value is a string."
    )

    return (
        "You are a precise recruitment information extractor. Extract key "
        "details from each posting in the text and generate standardised "
        "application metadata.\n\n"
        f"{context}\n{rules}\n{output}"
    )
